"""
Sound-alike matching.

Two cheap encodings are compared: a Soundex-style consonant-class code and
an ordered spelling normalization. This is a lightweight heuristic, not a
reference phonetic algorithm.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

CODE_LENGTH = 4

BOTH_AGREE_CONFIDENCE = 0.9
ONE_AGREES_CONFIDENCE = 0.7

# Acoustically similar consonants share a digit
_CONSONANT_CLASSES = {
    **dict.fromkeys("bfpv", "1"),
    **dict.fromkeys("cgjkqsxz", "2"),
    **dict.fromkeys("dt", "3"),
    "l": "4",
    **dict.fromkeys("mn", "5"),
    "r": "6",
}

# Applied in order; "ce"/"ci" must be handled before the generic "c"
_SPELLING_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"ph"), "f"),
    (re.compile(r"gh"), "f"),
    (re.compile(r"ck"), "k"),
    (re.compile(r"qu"), "kw"),
    (re.compile(r"x"), "ks"),
    (re.compile(r"z"), "s"),
    (re.compile(r"c([ei])"), r"s\1"),
    (re.compile(r"c"), "k"),
]

_NON_LETTERS = re.compile(r"[^a-z]")


@dataclass(frozen=True)
class PhoneticMatch:
    similar: bool
    confidence: float


NO_MATCH = PhoneticMatch(similar=False, confidence=0.0)


def consonant_code(word: str) -> str:
    """
    Soundex-style code: first letter, then consonant classes, fixed length.

    Vowels and h/w/y carry no class and are skipped. A class equal to the
    previous one is not repeated.

    Example:
        >>> consonant_code("smith") == consonant_code("smyth")
        True
    """
    letters = _NON_LETTERS.sub("", word.lower())
    if not letters:
        return ""

    code = letters[0].upper()
    previous = _CONSONANT_CLASSES.get(letters[0], "")

    for letter in letters[1:]:
        digit = _CONSONANT_CLASSES.get(letter, "")
        if digit and digit != previous:
            code += digit
        if digit:
            previous = digit

    return (code + "0" * CODE_LENGTH)[:CODE_LENGTH]


def spelling_key(word: str) -> str:
    """
    Collapse common spelling variants onto one form.

    Example:
        >>> spelling_key("phone") == spelling_key("fone")
        True
    """
    key = _NON_LETTERS.sub("", word.lower())
    for pattern, replacement in _SPELLING_RULES:
        key = pattern.sub(replacement, key)
    return key


@lru_cache(maxsize=8192)
def phonetic_keys(word: str) -> Tuple[str, str]:
    """Both encodings of a word, as (consonant_code, spelling_key)"""
    return consonant_code(word), spelling_key(word)


def compare_keys(keys_a: Tuple[str, str], keys_b: Tuple[str, str]) -> PhoneticMatch:
    """
    Compare two pairs of precomputed encodings.

    Returns:
        PhoneticMatch with confidence 0.9 when both encodings agree, 0.7 when
        only one does, and NO_MATCH otherwise.
    """
    code_a, spelling_a = keys_a
    code_b, spelling_b = keys_b
    if not code_a or not code_b:
        return NO_MATCH

    code_match = code_a == code_b
    spelling_match = spelling_a == spelling_b

    if code_match and spelling_match:
        return PhoneticMatch(similar=True, confidence=BOTH_AGREE_CONFIDENCE)
    if code_match or spelling_match:
        return PhoneticMatch(similar=True, confidence=ONE_AGREES_CONFIDENCE)
    return NO_MATCH


def phonetic_similarity(a: str, b: str) -> PhoneticMatch:
    """
    Decide whether two words sound alike.

    Example:
        >>> phonetic_similarity("fone", "phone").similar
        True
    """
    return compare_keys(phonetic_keys(a), phonetic_keys(b))
