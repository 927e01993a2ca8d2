"""
Value types produced by the classification engine.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from expense_matcher.domain.enums import MatchAlgorithm
from expense_matcher.domain.models import Category


@dataclass(frozen=True)
class MatchCandidate:
    """
    One matcher's opinion about which category a text belongs to.

    `score` is the matcher's raw similarity; `confidence` is that score
    after the algorithm discount and the term weight were applied.
    """
    category: Category
    score: float
    confidence: float
    algorithm: MatchAlgorithm
    matched_term: str = ""
    matched_text: str = ""
    original_text: str = ""
    explanation: str = ""
    supporting_algorithms: Tuple[MatchAlgorithm, ...] = ()

    @property
    def algorithms(self) -> Tuple[MatchAlgorithm, ...]:
        """Every algorithm backing this candidate, decisive one first"""
        return self.supporting_algorithms or (self.algorithm,)

    def __repr__(self) -> str:
        return (
            f"MatchCandidate({self.category}, {self.confidence:.2f}, "
            f"{self.algorithm.value}, '{self.matched_term}')"
        )


@dataclass(frozen=True)
class ClassificationResult:
    """Final decision for one description"""
    category: Category
    confidence: float
    explanation: str
    algorithm: MatchAlgorithm
    matched_terms: Tuple[str, ...] = ()
    alternatives: Tuple[MatchCandidate, ...] = ()
    trace: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.category} ({self.confidence:.0%}) - {self.explanation}"


@dataclass
class DebugReport:
    """Everything the engine looked at while classifying one description"""
    description: str
    normalized: str
    hour: int
    variants: List[str] = field(default_factory=list)
    exact_hits: List[MatchCandidate] = field(default_factory=list)
    candidates: List[MatchCandidate] = field(default_factory=list)
    fused: List[MatchCandidate] = field(default_factory=list)
    context_boosts: Dict[Category, float] = field(default_factory=dict)
    result: Optional[ClassificationResult] = None


@dataclass(frozen=True)
class LearningEvent:
    """
    Emitted when a correction changed the engine's learned state.

    Persistence layers subscribe to this to store the learned term and
    abbreviations. When the term moved away from previous_category, the
    forgotten abbreviations no longer expand to that category's label.
    """
    term: str
    category: Category
    abbreviations: Tuple[str, ...] = ()
    previous_category: Optional[Category] = None
    forgotten_abbreviations: Tuple[str, ...] = ()
