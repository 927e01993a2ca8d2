import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from expense_matcher.domain.enums import BuiltInCategory
from expense_matcher.domain.models import Category, as_category
from expense_matcher.matching.scoring import normalize
from expense_matcher.vocabulary.models import (
    ConsolidatedVocabulary,
    VocabularySource,
    VocabularyTerm,
)

logger = logging.getLogger(__name__)

LEARNED_SOURCE_NAME = "learned"
LEARNED_TERM_WEIGHT = 0.95

CategoryValue = Union[Category, BuiltInCategory, str]


def _union(first: Sequence[str], second: Sequence[str]) -> Tuple[str, ...]:
    """Order-preserving union"""
    merged = list(first)
    for value in second:
        if value not in merged:
            merged.append(value)
    return tuple(merged)


def consolidate(sources: Iterable[VocabularySource]) -> ConsolidatedVocabulary:
    """
    Fold vocabulary sources into one consolidated snapshot.

    Sources are processed in descending priority; sources sharing a priority
    keep their input order. The first entry seen for a (category, term) pair
    fixes its weight, source, and region. Every later entry for the same
    pair only contributes its variations and context clues.

    The fold is pure: the same sources always produce an equal snapshot.

    Args:
        sources: Vocabulary sources in any order

    Returns:
        ConsolidatedVocabulary snapshot
    """
    ordered = sorted(
        enumerate(sources),
        key=lambda pair: (-pair[1].priority, pair[0])
    )

    merged: Dict[Category, Dict[str, VocabularyTerm]] = {}
    for _, source in ordered:
        for category, terms in source.terms.items():
            bucket = merged.setdefault(category, {})
            for term in terms:
                key = term.key
                if not key:
                    continue

                existing = bucket.get(key)
                if existing is None:
                    bucket[key] = term
                    continue

                bucket[key] = replace(
                    existing,
                    variations=_union(existing.variations, term.variations),
                    context_clues=_union(existing.context_clues, term.context_clues),
                )

    return ConsolidatedVocabulary(
        {category: tuple(bucket.values()) for category, bucket in merged.items() if bucket}
    )


class VocabularyStore:
    """
    Owns the vocabulary sources and the consolidated snapshot built from them.

    Base sources never change after construction. The learned source is the
    only mutable part; it always outranks every base source, and each change
    to it re-runs consolidation.

    Learning methods mutate shared state and must be serialized by the
    caller when used from several threads.

    Usage:
        store = VocabularyStore(load_default_sources())
        store.add_learned_term("xyz widget", "Electronics")
        store.snapshot.terms_for(as_category("Electronics"))
    """

    def __init__(
        self,
        sources: Iterable[VocabularySource] = (),
        learned_terms: Iterable[Tuple[str, CategoryValue]] = (),
    ):
        """
        Initialize the store.

        Args:
            sources: Base vocabulary sources
            learned_terms: Previously persisted (term, category) pairs
        """
        base: List[VocabularySource] = []
        seeded: List[Tuple[str, CategoryValue]] = list(learned_terms)

        for source in sources:
            if source.name == LEARNED_SOURCE_NAME:
                # A learned source handed in from outside joins the learned table
                for category, terms in source.terms.items():
                    seeded.extend((term.term, category) for term in terms)
            else:
                base.append(source)

        self._sources: Tuple[VocabularySource, ...] = tuple(base)
        self._learned_priority = max((s.priority for s in self._sources), default=0) + 1
        self._learned: Dict[Category, Dict[str, VocabularyTerm]] = {}
        self._snapshot = consolidate(self._sources)
        self.version = 0

        for term, category in seeded:
            self._insert_learned(term, category)
        self._rebuild()

    @property
    def snapshot(self) -> ConsolidatedVocabulary:
        """Current consolidated vocabulary"""
        return self._snapshot

    @property
    def sources(self) -> Tuple[VocabularySource, ...]:
        """Base sources followed by the learned source"""
        return self._sources + (self.learned_source(),)

    @property
    def learned_priority(self) -> int:
        return self._learned_priority

    def learned_source(self) -> VocabularySource:
        """Immutable view of the learned terms"""
        return VocabularySource(
            name=LEARNED_SOURCE_NAME,
            priority=self._learned_priority,
            terms={category: tuple(bucket.values()) for category, bucket in self._learned.items()},
        )

    def learned_terms(self) -> List[Tuple[str, Category]]:
        """Every learned (term, category) pair, for persistence"""
        return [
            (term.term, category)
            for category, bucket in self._learned.items()
            for term in bucket.values()
        ]

    def add_learned_term(self, term: str, category: CategoryValue) -> bool:
        """
        Add a term to the learned source and re-consolidate.

        Empty input is ignored. A term the category already knows (compared
        case-insensitively) is rejected, so repeated calls never grow the
        vocabulary.

        Args:
            term: Term to learn
            category: Category it belongs to

        Returns:
            True if the vocabulary changed
        """
        if not self._insert_learned(term, category):
            return False

        self._rebuild()
        logger.info("Learned vocabulary term '%s' for %s", normalize(term), as_category(category))
        return True

    def remove_learned_term(self, term: str, category: CategoryValue) -> bool:
        """
        Remove a learned term from a category.

        Only the learned source is touched; base vocabulary is never removed.

        Returns:
            True if the vocabulary changed
        """
        resolved = self._resolve(category)
        key = normalize(term)
        if resolved is None or not key:
            return False

        bucket = self._learned.get(resolved)
        if not bucket or key not in bucket:
            return False

        del bucket[key]
        if not bucket:
            del self._learned[resolved]

        self._rebuild()
        logger.info("Forgot learned term '%s' for %s", key, resolved)
        return True

    def contains(self, term: str, category: CategoryValue) -> bool:
        """True if the category already has this term (case-insensitive)"""
        resolved = self._resolve(category)
        if resolved is None:
            return False
        return self._snapshot.find(resolved, term) is not None

    def __len__(self) -> int:
        return len(self._snapshot)

    def __repr__(self) -> str:
        return (
            f"VocabularyStore({len(self._sources)} sources, "
            f"{len(self._snapshot)} terms, {len(self.learned_terms())} learned)"
        )

    def _resolve(self, category: CategoryValue) -> Optional[Category]:
        try:
            return as_category(category)
        except (TypeError, ValueError):
            return None

    def _insert_learned(self, term: str, category: CategoryValue) -> bool:
        resolved = self._resolve(category)
        key = normalize(term)
        if resolved is None or not key:
            logger.debug("Ignoring invalid learned term %r for %r", term, category)
            return False

        if self._snapshot.find(resolved, key) is not None:
            return False

        bucket = self._learned.setdefault(resolved, {})
        if key in bucket:
            return False

        bucket[key] = VocabularyTerm(
            term=key,
            weight=LEARNED_TERM_WEIGHT,
            source=LEARNED_SOURCE_NAME,
        )
        return True

    def _rebuild(self) -> None:
        self._snapshot = consolidate(self.sources)
        self.version += 1
        logger.debug("Consolidated vocabulary: %s", self)
