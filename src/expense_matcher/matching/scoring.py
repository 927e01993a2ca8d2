"""
String normalization and the exact, substring and edit-distance scorers.

Every function here is pure and safe to call from multiple threads.
"""
import math
import unicodedata
from typing import Iterator, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

# Dropped without leaving a word break: "mcdonald's" -> "mcdonalds"
_APOSTROPHES = frozenset("'`’ʼ")

# Edit-distance candidates must stay within min(MAX_EDITS, floor(RATIO * maxLen))
MAX_EDITS = 3
MAX_EDIT_RATIO = 0.4

SUBSTRING_SCALE = 0.9
PREFIX_BONUS = 0.2


def _is_word_char(char: str) -> bool:
    """Letters, digits and combining marks belong to words"""
    return char.isalnum() or unicodedata.category(char).startswith("M")


def normalize_with_offsets(
    text: Optional[str],
    case_sensitive: bool = False,
) -> Tuple[str, Tuple[int, ...]]:
    """
    Normalize text and keep track of where each character came from.

    Lowercases (unless case_sensitive), drops apostrophes, turns any other
    punctuation or whitespace run into a single space and strips the ends.

    Args:
        text: Raw text
        case_sensitive: Keep the original casing

    Returns:
        Tuple of (normalized_text, offsets) where offsets[i] is the index in
        the original text of normalized character i.

    Example:
        >>> normalize_with_offsets("Hi, Bob!")
        ('hi bob', (0, 1, 2, 4, 5, 6))
    """
    if not text:
        return "", ()

    chars: List[str] = []
    offsets: List[int] = []
    pending_separator: Optional[int] = None

    for index, char in enumerate(text):
        if char in _APOSTROPHES:
            continue

        if not _is_word_char(char):
            if chars and pending_separator is None:
                pending_separator = index
            continue

        if pending_separator is not None:
            chars.append(" ")
            offsets.append(pending_separator)
            pending_separator = None

        folded = char if case_sensitive else char.lower()
        for piece in folded:
            chars.append(piece)
            offsets.append(index)

    return "".join(chars), tuple(offsets)


def normalize(text: Optional[str]) -> str:
    """
    Lowercase, strip punctuation and collapse whitespace.

    Example:
        >>> normalize("  Grab a LATTE, please! ")
        'grab a latte please'
    """
    return normalize_with_offsets(text)[0]


def tokenize(text: Optional[str]) -> List[str]:
    """Split normalized text into words"""
    return normalize(text).split()


def word_windows(tokens: List[str], size: int) -> Iterator[str]:
    """
    Yield every run of `size` consecutive tokens joined by a space.

    When there are fewer tokens than `size` the whole text is yielded once.
    """
    if size <= 0 or not tokens:
        return
    if len(tokens) <= size:
        yield " ".join(tokens)
        return
    for start in range(len(tokens) - size + 1):
        yield " ".join(tokens[start:start + size])


def contains_phrase(text: str, phrase: str) -> bool:
    """True if phrase occurs in text on word boundaries (both normalized)"""
    if not phrase or not text:
        return False
    return f" {phrase} " in f" {text} "


def exact_or_substring_score(a: str, b: str) -> float:
    """
    Score an exact or substring relationship between two normalized strings.

    1.0 when equal. When one contains the other the length ratio is scaled
    into (0, 0.9], plus a 0.2 bonus when the shorter string sits at offset 0
    of the longer one, capped at 1.0. Anything else scores 0.

    Example:
        >>> exact_or_substring_score("star", "starbucks")
        0.6
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    position = longer.find(shorter)
    if position < 0:
        return 0.0

    score = SUBSTRING_SCALE * len(shorter) / len(longer)
    if position == 0:
        score += PREFIX_BONUS
    return min(1.0, score)


def edit_distance(a: str, b: str, score_cutoff: Optional[int] = None) -> int:
    """
    Levenshtein distance between two strings.

    With score_cutoff set, any distance above it is reported as cutoff + 1.
    """
    return Levenshtein.distance(a, b, score_cutoff=score_cutoff)


def edit_distance_score(a: str, b: str) -> float:
    """
    Similarity derived from edit distance: 1 - distance / max(len(a), len(b)).

    Two empty strings are identical and score 1.0.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / max_len


def edit_distance_limit(max_len: int) -> int:
    """Largest distance still treated as a typo for strings of this length"""
    return min(MAX_EDITS, math.floor(MAX_EDIT_RATIO * max_len))


def edit_distance_match(a: str, b: str) -> Optional[Tuple[float, int]]:
    """
    Compare two strings as a possible typo of each other.

    Returns:
        Tuple of (score, distance) when the distance is within
        edit_distance_limit, None otherwise.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return None

    limit = edit_distance_limit(max_len)
    distance = edit_distance(a, b, score_cutoff=limit)
    if distance > limit:
        return None
    return 1.0 - distance / max_len, distance


def matched_positions(pattern: str, text: str) -> List[int]:
    """
    Positions in text aligned to identical characters of pattern.

    Uses the Levenshtein alignment, so the result is an increasing
    subsequence of text positions.
    """
    positions: List[int] = []
    for opcode in Levenshtein.opcodes(pattern, text):
        if opcode.tag == "equal":
            positions.extend(range(opcode.dest_start, opcode.dest_end))
    return positions


def merge_ranges(indices: List[int]) -> List[Tuple[int, int]]:
    """
    Merge sorted indices into contiguous [start, end) ranges.

    Example:
        >>> merge_ranges([0, 1, 2, 5, 6, 9])
        [(0, 3), (5, 7), (9, 10)]
    """
    ranges: List[Tuple[int, int]] = []
    for index in sorted(set(indices)):
        if ranges and index == ranges[-1][1]:
            ranges[-1] = (ranges[-1][0], index + 1)
        else:
            ranges.append((index, index + 1))
    return ranges
