from typing import Dict, List, Tuple

from expense_matcher.database.connection import DatabaseManager
from expense_matcher.domain.models import Category
from expense_matcher.repositories.base import (
    LearnedVocabularyRepository,
    category_from_row,
    category_to_row,
)


class SQLiteLearnedVocabularyRepository(LearnedVocabularyRepository):
    """SQLite storage for learned terms and abbreviations"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save_term(self, term: str, category: Category) -> None:
        label, builtin = category_to_row(category)
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO learned_terms (term, category, category_builtin)
                VALUES (?, ?, ?)
                ON CONFLICT(term) DO UPDATE SET
                    category = excluded.category,
                    category_builtin = excluded.category_builtin,
                    learned_at = CURRENT_TIMESTAMP
                """,
                (term, label, builtin),
            )

    def list_terms(self) -> List[Tuple[str, Category]]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT term, category, category_builtin FROM learned_terms ORDER BY learned_at, rowid"
        ).fetchall()
        return [
            (row["term"], category_from_row(row["category"], row["category_builtin"]))
            for row in rows
        ]

    def save_abbreviation(self, token: str, expansion: str) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO learned_abbreviations (token, expansion) VALUES (?, ?)",
                (token, expansion),
            )

    def delete_abbreviation(self, token: str, expansion: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM learned_abbreviations WHERE token = ? AND expansion = ?",
                (token, expansion),
            )
            return cursor.rowcount > 0

    def list_abbreviations(self) -> Dict[str, List[str]]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT token, expansion FROM learned_abbreviations ORDER BY learned_at, rowid"
        ).fetchall()

        abbreviations: Dict[str, List[str]] = {}
        for row in rows:
            abbreviations.setdefault(row["token"], []).append(row["expansion"])
        return abbreviations
