from typing import Callable, Iterable, List, Optional, Tuple, Union

from expense_matcher.search.models import Highlight

Span = Union[Highlight, Tuple[int, int]]


def _unchanged(text: str) -> str:
    return text


def highlight_matches(
    text: str,
    spans: Iterable[Span],
    open_tag: str = "<mark>",
    close_tag: str = "</mark>",
    escape: Optional[Callable[[str], str]] = None,
) -> str:
    """
    Wrap [start, end) spans of text in tags.

    Spans are sorted first; a span overlapping an earlier one is clipped,
    and empty or out-of-range spans are ignored.

    Args:
        text: Original field text
        spans: Highlight objects or (start, end) pairs
        open_tag: Inserted before each span
        close_tag: Inserted after each span
        escape: Applied to every piece of text, never to the tags

    Returns:
        Text with tags inserted

    Example:
        >>> highlight_matches("Coffee at Starbucks", [(10, 19)], "[", "]")
        'Coffee at [Starbucks]'
    """
    ranges: List[Tuple[int, int]] = []
    for span in spans:
        start, end = (span.start, span.end) if isinstance(span, Highlight) else span
        ranges.append((max(0, start), min(len(text), end)))

    if escape is None:
        escape = _unchanged

    pieces: List[str] = []
    cursor = 0
    for start, end in sorted(ranges):
        start = max(start, cursor)
        if start >= end:
            continue
        pieces.append(escape(text[cursor:start]))
        pieces.append(f"{open_tag}{escape(text[start:end])}{close_tag}")
        cursor = end

    pieces.append(escape(text[cursor:]))
    return "".join(pieces)
