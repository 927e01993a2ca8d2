"""
Vocabulary sources and the consolidated, priority-merged snapshot.
"""
from expense_matcher.vocabulary.models import (
    VocabularyTerm,
    VocabularySource,
    ConsolidatedVocabulary,
)
from expense_matcher.vocabulary.store import (
    VocabularyStore,
    consolidate,
    LEARNED_SOURCE_NAME,
    LEARNED_TERM_WEIGHT,
)
from expense_matcher.vocabulary.providers import (
    build_curated_source,
    build_regional_source,
    build_custom_source,
    sources_from_config,
    load_default_sources,
)

__all__ = [
    "VocabularyTerm",
    "VocabularySource",
    "ConsolidatedVocabulary",
    "VocabularyStore",
    "consolidate",
    "LEARNED_SOURCE_NAME",
    "LEARNED_TERM_WEIGHT",
    "build_curated_source",
    "build_regional_source",
    "build_custom_source",
    "sources_from_config",
    "load_default_sources",
]
