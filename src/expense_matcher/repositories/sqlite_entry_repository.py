import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from expense_matcher.database.connection import DatabaseManager
from expense_matcher.domain.models import Category, Entry
from expense_matcher.repositories.base import (
    EntryNotFoundError,
    EntryRepository,
    category_from_row,
    category_to_row,
)


class SQLiteEntryRepository(EntryRepository):
    """
    SQLite implementation of the EntryRepository.

    Handles all database operations for entries using raw SQL.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save(self, entry: Entry) -> Entry:
        """Save a single entry."""
        label, builtin = category_to_row(entry.category)

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO entries (
                    description, amount, category, category_builtin,
                    confidence, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.description,
                    str(entry.amount), # Store as string for precision
                    label,
                    builtin,
                    entry.confidence,
                    entry.created_at.isoformat(),
                ),
            )
            entry.id = cursor.lastrowid

        return entry

    def get_by_id(self, entry_id: int) -> Optional[Entry]:
        """Retrieve an entry by ID, or None if it doesn't exist"""
        conn = self.db.get_connection()
        cursor = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,))
        row = cursor.fetchone()

        if row is None:
            return None

        return self._row_to_entry(row)

    def get_all(self, category: Optional[Category] = None) -> List[Entry]:
        """Retrieve entries with an optional category filter."""
        query = "SELECT * FROM entries WHERE 1=1"
        params = []

        if category is not None:
            label, builtin = category_to_row(category)
            query += " AND category = ? AND category_builtin = ?"
            params.extend([label, builtin])

        query += " ORDER BY created_at DESC, id DESC"

        conn = self.db.get_connection()
        rows = conn.execute(query, params).fetchall()

        return [self._row_to_entry(row) for row in rows]

    def update(self, entry: Entry) -> Entry:
        """Update an existing entry."""
        if entry.id is None:
            raise ValueError("Cannot update entry without ID")

        label, builtin = category_to_row(entry.category)
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE entries
                SET description = ?, amount = ?, category = ?,
                    category_builtin = ?, confidence = ?
                WHERE id = ?
                """,
                (
                    entry.description,
                    str(entry.amount),
                    label,
                    builtin,
                    entry.confidence,
                    entry.id,
                ),
            )

            if cursor.rowcount == 0:
                raise EntryNotFoundError(f"Entry with ID {entry.id} not found")

        return entry

    def delete(self, entry_id: int) -> bool:
        """Delete an entry by ID."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    def _row_to_entry(self, row: sqlite3.Row) -> Entry:
        """Convert database row to Entry object."""
        return Entry(
            id=row["id"],
            description=row["description"],
            amount=Decimal(row["amount"]),
            category=category_from_row(row["category"], row["category_builtin"]),
            confidence=row["confidence"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
