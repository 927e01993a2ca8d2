from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

from expense_matcher.config.settings import ConfigLoader


@dataclass(frozen=True)
class EngineConfig:
    """
    Confidence constants and limits used by the classification engine.

    The defaults were tuned by hand. Override them through engine.json or
    by passing a dict to `from_dict`.
    """
    # Terminal phases
    learned_confidence: float = 0.98
    exact_confidence: float = 0.95
    min_substring_score: float = 0.7

    # Per-algorithm discounts applied on top of term weight
    fuzzy_discount: float = 0.8
    min_fuzzy_score: float = 0.5
    phonetic_discount: float = 0.7
    min_phonetic_length: int = 3
    min_phonetic_length_ratio: float = 0.5
    semantic_discount: float = 0.6
    min_semantic_similarity: float = 0.5
    min_context_token_length: int = 3

    # Fusion and ranking
    agreement_bonus: float = 0.1
    confidence_floor: float = 0.3
    catch_all_confidence: float = 0.05
    max_results: int = 5

    # Abbreviation discovery during learning
    abbreviation_min_length: int = 2
    abbreviation_max_length: int = 5

    def __post_init__(self):
        if self.max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {self.max_results}")
        if self.abbreviation_min_length > self.abbreviation_max_length:
            raise ValueError("abbreviation_min_length cannot exceed abbreviation_max_length")

    @classmethod
    def from_dict(cls, values: Optional[Mapping[str, Any]] = None) -> "EngineConfig":
        """
        Build a config from a partial mapping of overrides.

        Args:
            values: Field name -> value. Missing fields keep their defaults.

        Raises:
            ValueError: If a key does not name a config field
        """
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown engine config keys: {', '.join(unknown)}")
        return cls(**values)

    @classmethod
    def load(cls) -> "EngineConfig":
        """Load overrides from engine.json, falling back to defaults"""
        try:
            return cls.from_dict(ConfigLoader.load_engine_config())
        except FileNotFoundError:
            return cls()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
