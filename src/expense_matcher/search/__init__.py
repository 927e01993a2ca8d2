"""
Ranked, highlighted, typo-tolerant search over arbitrary records.
"""
from expense_matcher.search.index import SearchIndex
from expense_matcher.search.highlight import highlight_matches
from expense_matcher.search.models import (
    SearchableField,
    SearchOptions,
    FieldMatch,
    FieldHighlight,
    Highlight,
    SearchHit,
    DEFAULT_FIELD,
)

__all__ = [
    "SearchIndex",
    "highlight_matches",
    "SearchableField",
    "SearchOptions",
    "FieldMatch",
    "FieldHighlight",
    "Highlight",
    "SearchHit",
    "DEFAULT_FIELD",
]
