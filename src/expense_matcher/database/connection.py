import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

Connection = sqlite3.Connection

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class DatabaseConfig:
    """Location of the SQLite file. Creates the parent directory."""

    def __init__(self, db_path: Path | str = "data/expense_matcher.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def connection_string(self) -> str:
        return str(self.db_path.absolute())


def configure_connection(conn: Connection) -> None:
    """Enable foreign keys and name-addressable rows"""
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row


class DatabaseManager:
    """
    One lazily opened connection to the expense database.

    The bundled schema runs on first connect.
    """

    def __init__(self, config: DatabaseConfig, schema_path: Path = SCHEMA_PATH):
        self.config = config
        self.schema_path = schema_path
        self._connection: Connection | None = None

    def get_connection(self) -> Connection:
        """Open the connection and apply the schema on first use"""
        if self._connection is None:
            self._connection = self._create_connection()
            execute_schema(self._connection, self.schema_path)
        return self._connection

    def _create_connection(self) -> Connection:
        conn = sqlite3.connect(
            self.config.connection_string,
            check_same_thread=False,
        )
        configure_connection(conn)
        logger.debug("Opened database at %s", self.config.db_path)
        return conn

    def close(self) -> None:
        """Close the connection; the next call reopens it"""
        if self._connection:
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """
        Commit the block's statements together, or roll them all back.

        Usage:
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO entries ...")
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def execute_schema(conn: Connection, schema_path: Path = SCHEMA_PATH) -> None:
    """Run a schema script. Its statements must be safe to run again."""
    conn.executescript(Path(schema_path).read_text(encoding="utf-8"))
    conn.commit()
