import logging
from decimal import Decimal
from typing import Callable, List, Optional, Union

from expense_matcher.categorization import ClassificationEngine, ClassificationResult, LearningEvent
from expense_matcher.domain.enums import BuiltInCategory
from expense_matcher.domain.models import Category, Entry, as_category
from expense_matcher.matching.scoring import normalize
from expense_matcher.repositories.base import (
    EntryNotFoundError,
    EntryRepository,
    LearnedVocabularyRepository,
)
from expense_matcher.search import SearchableField, SearchHit, SearchIndex, SearchOptions
from expense_matcher.services.models import LogResult, SpendingStats

logger = logging.getLogger(__name__)

CategoryInput = Union[Category, BuiltInCategory, str]

ENTRY_SEARCH_FIELDS = (
    SearchableField("description", lambda entry: entry.description, weight=1.0),
    SearchableField("category", lambda entry: entry.category.label, weight=0.5),
)


class CategorizationService:
    """
    Wires the classification engine, search index and repositories.

    Learned state flows one way: the engine emits a LearningEvent after an
    effective correction and the service stores it. On the next start the
    learned repository is fed back into the engine.
    """

    def __init__(
        self,
        entry_repository: EntryRepository,
        learned_repository: LearnedVocabularyRepository,
        engine: Optional[ClassificationEngine] = None,
        engine_factory: Callable[..., ClassificationEngine] = ClassificationEngine.create,
    ):
        self.entry_repository = entry_repository
        self.learned_repository = learned_repository
        self._engine: Optional[ClassificationEngine] = engine
        self._engine_factory = engine_factory

        if self._engine is not None and self._engine.on_learn is None:
            self._engine.on_learn = self._persist_learning

    @property
    def engine(self) -> ClassificationEngine:
        """Lazy-load the classification engine with persisted learning"""
        if self._engine is None:
            self._engine = self._engine_factory(
                learned_terms=self.learned_repository.list_terms(),
                learned_abbreviations=self.learned_repository.list_abbreviations(),
                on_learn=self._persist_learning,
            )
        return self._engine

    def classify(self, description: str, hour: Optional[int] = None) -> ClassificationResult:
        """Classify a description without storing anything"""
        return self.engine.classify(description, hour=hour)

    def log_entry(
        self,
        description: str,
        amount: Decimal,
        category: Optional[CategoryInput] = None,
    ) -> LogResult:
        """
        Store a new entry, classifying it when no category is given.

        Args:
            description: What the money was spent on
            amount: Amount spent
            category: Explicit category, skips classification

        Returns:
            LogResult with the saved entry
        """
        if not description or not description.strip():
            raise ValueError("Description cannot be empty")

        classification = None
        if category is not None:
            entry = Entry(description=description.strip(), amount=Decimal(amount), category=as_category(category))
        else:
            classification = self.engine.classify(description)
            entry = Entry(
                description=description.strip(),
                amount=Decimal(amount),
                category=classification.category,
                confidence=classification.confidence,
            )

        saved = self.entry_repository.save(entry)
        logger.info("Logged entry %s as %s", saved.id, saved.category)
        return LogResult(entry=saved, classification=classification)

    def correct_entry(self, entry_id: int, category: CategoryInput) -> Entry:
        """
        Move an entry to another category and teach the engine.

        Raises:
            EntryNotFoundError: If no entry has this ID
        """
        entry = self.entry_repository.get_by_id(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry with ID {entry_id} not found")

        entry.category = as_category(category)
        entry.confidence = 1.0
        updated = self.entry_repository.update(entry)

        self.engine.learn_from_correction(entry.description, entry.category)
        return updated

    def history(self, category: Optional[CategoryInput] = None) -> List[Entry]:
        """Logged entries, newest first"""
        return self.entry_repository.get_all(
            category=as_category(category) if category is not None else None
        )

    def search_entries(self, query: str, max_typos: Optional[int] = None) -> List[SearchHit]:
        """
        Search logged entries by description and category.

        Args:
            query: Search text
            max_typos: Retry with this typo tolerance when nothing matched

        Returns:
            Ranked hits whose items are Entry objects
        """
        index = SearchIndex(
            self.entry_repository.get_all(),
            SearchOptions(fields=ENTRY_SEARCH_FIELDS),
        )
        if max_typos is None:
            return index.search(query)
        return index.search_with_typo_tolerance(query, max_typos=max_typos)

    def get_stats(self) -> SpendingStats:
        return SpendingStats(
            entries=self.entry_repository.get_all(),
            engine=self.engine.get_stats(),
        )

    def _persist_learning(self, event: LearningEvent) -> None:
        self.learned_repository.save_term(event.term, event.category)
        if event.previous_category is not None:
            old_expansion = normalize(event.previous_category.label)
            for token in event.forgotten_abbreviations:
                self.learned_repository.delete_abbreviation(token, old_expansion)
        expansion = normalize(event.category.label)
        for token in event.abbreviations:
            self.learned_repository.save_abbreviation(token, expansion)
        logger.debug("Persisted learning event %s", event)
