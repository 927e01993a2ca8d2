from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from expense_matcher.domain.models import BuiltIn, Category
from expense_matcher.matching.scoring import normalize


@dataclass(frozen=True)
class VocabularyTerm:
    """A canonical word or phrase tied to a category"""
    term: str
    weight: float = 1.0
    source: str = ""
    variations: Tuple[str, ...] = ()
    context_clues: Tuple[str, ...] = ()
    region: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError(f"Weight for '{self.term}' must be within [0, 1], got {self.weight}")
        object.__setattr__(self, "variations", tuple(self.variations))
        object.__setattr__(self, "context_clues", tuple(self.context_clues))

    @property
    def key(self) -> str:
        """Identity of the term inside a category"""
        return normalize(self.term)

    @property
    def surface_forms(self) -> Tuple[str, ...]:
        """Normalized term followed by its normalized variations, deduplicated"""
        forms: List[str] = []
        for text in (self.term, *self.variations):
            form = normalize(text)
            if form and form not in forms:
                forms.append(form)
        return tuple(forms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "term": self.term,
            "weight": self.weight,
            "source": self.source,
            "variations": list(self.variations),
            "context": list(self.context_clues),
            "region": self.region,
        }


@dataclass(frozen=True, eq=False)
class VocabularySource:
    """
    A named, prioritized set of category terms.

    Higher priority wins weight conflicts during consolidation. Instances are
    read-only once built.
    """
    name: str
    priority: int
    terms: Mapping[Category, Tuple[VocabularyTerm, ...]]

    def __post_init__(self):
        frozen = {category: tuple(terms) for category, terms in self.terms.items()}
        object.__setattr__(self, "terms", MappingProxyType(frozen))

    @property
    def term_count(self) -> int:
        return sum(len(terms) for terms in self.terms.values())

    def __repr__(self) -> str:
        return f"VocabularySource('{self.name}', priority={self.priority}, {self.term_count} terms)"


def _category_key(category: Category) -> Dict[str, Any]:
    return {"label": category.label, "builtin": isinstance(category, BuiltIn)}


@dataclass(frozen=True, eq=False)
class ConsolidatedVocabulary:
    """
    The merged view of every vocabulary source.

    Each (category, term) pair appears exactly once. Category and term order
    follow the order in which consolidation first met them.
    """
    entries: Mapping[Category, Tuple[VocabularyTerm, ...]]

    def __post_init__(self):
        frozen = {category: tuple(terms) for category, terms in self.entries.items()}
        object.__setattr__(self, "entries", MappingProxyType(frozen))

    @property
    def categories(self) -> Tuple[Category, ...]:
        return tuple(self.entries)

    def terms_for(self, category: Category) -> Tuple[VocabularyTerm, ...]:
        return self.entries.get(category, ())

    def items(self) -> Iterator[Tuple[Category, VocabularyTerm]]:
        """Iterate over every (category, term) pair"""
        for category, terms in self.entries.items():
            for term in terms:
                yield category, term

    def find(self, category: Category, text: str) -> Optional[VocabularyTerm]:
        """Look up a term of a category case-insensitively"""
        key = normalize(text)
        for term in self.terms_for(category):
            if term.key == key:
                return term
        return None

    def __contains__(self, category: object) -> bool:
        return category in self.entries

    def __len__(self) -> int:
        return sum(len(terms) for terms in self.entries.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConsolidatedVocabulary):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> List[Dict[str, Any]]:
        """JSON-serializable, order-preserving representation"""
        return [
            {**_category_key(category), "terms": [term.to_dict() for term in terms]}
            for category, terms in self.entries.items()
        ]
