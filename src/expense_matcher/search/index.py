import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from expense_matcher.matching.scoring import (
    edit_distance,
    edit_distance_score,
    matched_positions,
    merge_ranges,
    normalize_with_offsets,
)
from expense_matcher.search.models import (
    FieldHighlight,
    FieldMatch,
    Highlight,
    SearchableField,
    SearchHit,
    SearchOptions,
)

logger = logging.getLogger(__name__)

SUBSTRING_SCORE = 0.8
FUZZY_MIN_SIMILARITY = 0.3
FUZZY_DISCOUNT = 0.6
TYPO_DISCOUNT = 0.7
TYPO_THRESHOLD_FACTOR = 0.5
MIN_TYPO_WORD_LENGTH = 3

_TOKEN = re.compile(r"\S+")

# (score, original indices, highlight spans)
_ValueMatch = Tuple[float, Tuple[int, ...], Tuple[Tuple[int, int], ...]]


def _as_values(raw: Any) -> List[str]:
    """Field values may be a string, a list of strings or None"""
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, (list, tuple)):
        return [str(value) for value in raw if value is not None]
    return [str(raw)]


def _original_span(offsets: Sequence[int], start: int, end: int) -> Tuple[int, int]:
    """Map a [start, end) range of normalized text back to the original text"""
    return offsets[start], offsets[end - 1] + 1


class SearchIndex:
    """
    Ranked, highlighted, typo-tolerant search over arbitrary items.

    Items are opaque; each configured field pulls a value out of an item
    with its extractor. Highlight spans always point into the original,
    non-normalized field text.

    Usage:
        index = SearchIndex(entries, SearchOptions(fields=(
            SearchableField("description", lambda e: e.description, weight=1.0),
            SearchableField("category", lambda e: e.category.label, weight=0.5),
        )))
        hits = index.search_with_typo_tolerance("stabucks")
    """

    def __init__(self, items: Iterable[Any] = (), options: Optional[SearchOptions] = None):
        """
        Initialize the index.

        Args:
            items: Items to search
            options: Search options. Defaults search `str(item)`.
        """
        self.options = options if options is not None else SearchOptions()
        self._items: List[Any] = list(items)

    def set_collection(self, items: Iterable[Any]) -> None:
        """Replace the indexed items"""
        self._items = list(items)
        logger.debug("Search index now holds %d items", len(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def search(self, query: Optional[str]) -> List[SearchHit]:
        """
        Search every field of every item.

        A substring hit scores 0.8. Otherwise the whole field text is
        compared by edit distance, kept when the similarity is above 0.3
        and discounted by 0.6. Field scores are weighted and averaged over
        the configured fields.

        A query shorter than min_match_length returns every item at score 1.

        Args:
            query: Search text

        Returns:
            Hits at or above the threshold, best first, capped at max_results
        """
        options = self.options
        stripped = (query or "").strip()
        normalized_query, _ = normalize_with_offsets(stripped, options.case_sensitive)
        if len(stripped) < options.min_match_length or not normalized_query:
            return [SearchHit(item=item, score=1.0) for item in self._items]

        hits: List[SearchHit] = []
        for item in self._items:
            hit = self._score_item(item, normalized_query)
            if hit is not None and hit.score >= options.threshold:
                hits.append(hit)

        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:options.max_results]

    def search_with_typo_tolerance(self, query: Optional[str], max_typos: int = 2) -> List[SearchHit]:
        """
        Search, and retry word by word allowing typos when nothing matched.

        The retry compares the query against every run of field words with
        the same word count as the query, accepting up to max_typos edits.
        It uses half the configured threshold.

        Args:
            query: Search text
            max_typos: Largest accepted edit distance

        Returns:
            Plain search results when there are any, typo matches otherwise
        """
        results = self.search(query)
        if results:
            return results

        options = self.options
        normalized_query, _ = normalize_with_offsets((query or "").strip(), options.case_sensitive)
        if len(normalized_query) < MIN_TYPO_WORD_LENGTH:
            return results

        size = len(normalized_query.split())
        threshold = options.threshold * TYPO_THRESHOLD_FACTOR

        hits: List[SearchHit] = []
        for item in self._items:
            hit = self._typo_match_item(item, normalized_query, size, max_typos)
            if hit is not None and hit.score >= threshold:
                hits.append(hit)

        hits.sort(key=lambda hit: hit.score, reverse=True)
        if hits:
            logger.debug("Typo-tolerant pass found %d hits for %r", len(hits), query)
        return hits[:options.max_results]

    def _extract(self, field: SearchableField, item: Any) -> Optional[List[str]]:
        try:
            return _as_values(field.extract(item))
        except Exception as e:
            logger.warning("Skipping field '%s' for %r: %s", field.name, item, e)
            return None

    def _score_item(self, item: Any, query: str) -> Optional[SearchHit]:
        fields = self.options.fields
        total = 0.0
        matches: Dict[str, FieldMatch] = {}
        highlights: Dict[str, FieldHighlight] = {}

        for field in fields:
            values = self._extract(field, item)
            if not values:
                continue

            best: Optional[Tuple[str, _ValueMatch]] = None
            for text in values:
                match = self._match_value(query, text)
                if match is not None and (best is None or match[0] > best[1][0]):
                    best = (text, match)

            if best is None:
                continue

            text, (score, indices, spans) = best
            total += score * field.weight
            matches[field.name] = FieldMatch(field.name, score, text, indices)
            highlights[field.name] = FieldHighlight(
                field.name, text, tuple(Highlight(s, e, text[s:e]) for s, e in spans)
            )

        if not matches:
            return None
        return SearchHit(
            item=item,
            score=min(1.0, total / len(fields)),
            matches=matches,
            highlights=highlights,
        )

    def _match_value(self, query: str, text: str) -> Optional[_ValueMatch]:
        normalized, offsets = normalize_with_offsets(text, self.options.case_sensitive)
        if not normalized:
            return None

        position = normalized.find(query)
        if position >= 0:
            end = position + len(query)
            indices = tuple(offsets[i] for i in range(position, end) if normalized[i] != " ")
            return SUBSTRING_SCORE, indices, (_original_span(offsets, position, end),)

        similarity = edit_distance_score(query, normalized)
        if similarity <= FUZZY_MIN_SIMILARITY:
            return None

        indices = tuple(offsets[i] for i in matched_positions(query, normalized) if normalized[i] != " ")
        return similarity * FUZZY_DISCOUNT, indices, tuple(merge_ranges(list(indices)))

    def _typo_match_item(
        self,
        item: Any,
        query: str,
        size: int,
        max_typos: int,
    ) -> Optional[SearchHit]:
        best_score = 0.0
        matches: Dict[str, FieldMatch] = {}
        highlights: Dict[str, FieldHighlight] = {}

        for field in self.options.fields:
            values = self._extract(field, item)
            if not values:
                continue

            field_best: Optional[Tuple[float, str, Tuple[int, int]]] = None
            for text in values:
                normalized, offsets = normalize_with_offsets(text, self.options.case_sensitive)
                for start, end in self._windows(normalized, size):
                    window = normalized[start:end]
                    if len(window) < MIN_TYPO_WORD_LENGTH:
                        continue
                    distance = edit_distance(query, window, score_cutoff=max_typos)
                    if distance > max_typos:
                        continue
                    score = (1 - distance / max(len(query), len(window))) * field.weight * TYPO_DISCOUNT
                    if field_best is None or score > field_best[0]:
                        field_best = (score, text, _original_span(offsets, start, end))

            if field_best is None:
                continue

            score, text, (start, end) = field_best
            matches[field.name] = FieldMatch(field.name, score, text, tuple(range(start, end)))
            highlights[field.name] = FieldHighlight(field.name, text, (Highlight(start, end, text[start:end]),))
            best_score = max(best_score, score)

        if not matches:
            return None
        return SearchHit(item=item, score=min(1.0, best_score), matches=matches, highlights=highlights)

    @staticmethod
    def _windows(normalized: str, size: int) -> List[Tuple[int, int]]:
        """[start, end) spans of every run of `size` consecutive words"""
        spans = [(m.start(), m.end()) for m in _TOKEN.finditer(normalized)]
        if not spans:
            return []
        if len(spans) <= size:
            return [(spans[0][0], spans[-1][1])]
        return [
            (spans[i][0], spans[i + size - 1][1])
            for i in range(len(spans) - size + 1)
        ]
