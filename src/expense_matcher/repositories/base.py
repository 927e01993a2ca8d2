from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from expense_matcher.domain.models import BuiltIn, Category, Custom, Entry, as_category


class EntryNotFoundError(Exception):
    """Raised when an entry cannot be found."""
    pass


def category_to_row(category: Category) -> Tuple[str, int]:
    """Split a category into its (label, builtin flag) columns"""
    return category.label, int(isinstance(category, BuiltIn))


def category_from_row(label: str, builtin: int) -> Category:
    """Rebuild a category from its stored columns"""
    if builtin:
        return as_category(label)
    return Custom(label)


class EntryRepository(ABC):
    """
    Abstract repository for logged expense entries.

    The repository pattern abstracts the data access, making it easy
    to swap storage backends in the future.
    """

    @abstractmethod
    def save(self, entry: Entry) -> Entry:
        """
        Save an entry to the repository.

        Args:
            entry: Entry to save

        Returns:
            Entry with ID populated
        """
        pass

    @abstractmethod
    def get_by_id(self, entry_id: int) -> Optional[Entry]:
        """
        Retrieve an entry by ID.

        Args:
            entry_id: Entry ID

        Returns:
            Entry if found, None otherwise
        """
        pass

    @abstractmethod
    def get_all(self, category: Optional[Category] = None) -> List[Entry]:
        """
        Retrieve entries, newest first.

        Args:
            category: Only return entries in this category

        Returns:
            List of matching entries
        """
        pass

    @abstractmethod
    def update(self, entry: Entry) -> Entry:
        """
        Update an existing entry.

        Args:
            entry: Entry with updated values

        Returns:
            Updated entry

        Raises:
            EntryNotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, entry_id: int) -> bool:
        """
        Delete an entry by ID.

        Returns:
            True if deleted, False if not found
        """
        pass


class LearnedVocabularyRepository(ABC):
    """
    Durable storage for what the classification engine learned.

    Learned terms are keyed by term: saving a term again under another
    category moves it.
    """

    @abstractmethod
    def save_term(self, term: str, category: Category) -> None:
        """Insert or move a learned term"""
        pass

    @abstractmethod
    def list_terms(self) -> List[Tuple[str, Category]]:
        """Every learned (term, category) pair, oldest first"""
        pass

    @abstractmethod
    def save_abbreviation(self, token: str, expansion: str) -> None:
        """Store a learned abbreviation, ignoring duplicates"""
        pass

    @abstractmethod
    def delete_abbreviation(self, token: str, expansion: str) -> bool:
        """
        Forget one learned expansion of a token.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def list_abbreviations(self) -> Dict[str, List[str]]:
        """Learned token -> expansions"""
        pass
