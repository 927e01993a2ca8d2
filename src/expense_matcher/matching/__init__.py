"""
Scoring primitives shared by the classification engine and the search index.

All functions are pure and stateless.
"""
from expense_matcher.matching.scoring import (
    normalize,
    normalize_with_offsets,
    tokenize,
    word_windows,
    contains_phrase,
    exact_or_substring_score,
    edit_distance,
    edit_distance_score,
    edit_distance_limit,
    edit_distance_match,
    matched_positions,
    merge_ranges,
)
from expense_matcher.matching.phonetic import (
    PhoneticMatch,
    NO_MATCH,
    consonant_code,
    spelling_key,
    phonetic_keys,
    compare_keys,
    phonetic_similarity,
)
from expense_matcher.matching.semantic import (
    SemanticLexicon,
    DEFAULT_LEXICON,
    semantic_similarity,
)

__all__ = [
    "normalize",
    "normalize_with_offsets",
    "tokenize",
    "word_windows",
    "contains_phrase",
    "exact_or_substring_score",
    "edit_distance",
    "edit_distance_score",
    "edit_distance_limit",
    "edit_distance_match",
    "matched_positions",
    "merge_ranges",
    "PhoneticMatch",
    "NO_MATCH",
    "consonant_code",
    "spelling_key",
    "phonetic_keys",
    "compare_keys",
    "phonetic_similarity",
    "SemanticLexicon",
    "DEFAULT_LEXICON",
    "semantic_similarity",
]
