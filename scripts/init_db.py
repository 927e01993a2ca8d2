#!/usr/bin/env python3
"""
Initialize the expense matcher database.

Run this script to create the schema ahead of the first CLI invocation.
"""
import sys
from pathlib import Path

from expense_matcher.database.connection import SCHEMA_PATH, DatabaseConfig, DatabaseManager


def main():
    """initialize the database."""

    db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data/expense_matcher.db")

    config = DatabaseConfig(db_path)
    print(f"Initializing database at: {config.db_path}")
    print(f"Executing schema from: {SCHEMA_PATH}")

    with DatabaseManager(config) as db:
        conn = db.get_connection()

        cursor = conn.execute(
            "SELECT version, description FROM schema_version ORDER BY version DESC LIMIT 1"
        )
        row = cursor.fetchone()

        if row:
            print("✓ Database initialized successfully!")
            print(f"  Schema version: {row['version']}")
            print(f"  Description: {row['description']}")
        else:
            print("✗ Database initialization may have failed")


if __name__ == "__main__":
    main()
