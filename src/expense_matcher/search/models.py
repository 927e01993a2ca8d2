from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple


@dataclass(frozen=True)
class SearchableField:
    """
    A named, weighted value of an indexed item.

    The extractor may return a string, a list of strings or None.
    """
    name: str
    extract: Callable[[Any], Any]
    weight: float = 1.0

    def __post_init__(self):
        if self.weight < 0:
            raise ValueError(f"Field weight for '{self.name}' cannot be negative")


DEFAULT_FIELD = SearchableField("text", extract=str)


@dataclass(frozen=True)
class SearchOptions:
    """
    Search index configuration.

    Attributes:
        threshold: Minimum aggregate score for an item to be returned
        max_results: Result cap
        fields: Fields to search, in order
        case_sensitive: Compare without lowercasing
        min_match_length: Shorter queries return every item
    """
    threshold: float = 0.3
    max_results: int = 50
    fields: Tuple[SearchableField, ...] = (DEFAULT_FIELD,)
    case_sensitive: bool = False
    min_match_length: int = 1

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        if not self.fields:
            raise ValueError("At least one searchable field is required")
        if self.max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {self.max_results}")


@dataclass(frozen=True)
class Highlight:
    """A [start, end) span into the original field text"""
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class FieldMatch:
    """How one field of an item matched"""
    field: str
    score: float
    text: str
    indices: Tuple[int, ...] = ()


@dataclass(frozen=True)
class FieldHighlight:
    field: str
    text: str
    highlights: Tuple[Highlight, ...] = ()


@dataclass(frozen=True)
class SearchHit:
    """One ranked search result"""
    item: Any
    score: float
    matches: Dict[str, FieldMatch] = field(default_factory=dict)
    highlights: Dict[str, FieldHighlight] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"SearchHit({self.item!r}, {self.score:.2f}, fields={list(self.matches)})"
