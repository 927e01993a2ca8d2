import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from expense_matcher.config.settings import ConfigLoader
from expense_matcher.domain.models import Category, as_category
from expense_matcher.matching.scoring import normalize

logger = logging.getLogger(__name__)

_AMOUNT_PATTERNS = [
    re.compile(r"(?:R\$|S\$|[$€£¥₹₩₱฿])\s?(\d+(?:[.,]\d{1,2})?)"),
    re.compile(r"(\d+(?:\.\d{1,2})?)\s?(?:usd|eur|gbp|dollars|bucks|quid)\b", re.IGNORECASE),
]


def _parse_boosts(raw: Mapping[str, float]) -> Tuple[Tuple[Category, float], ...]:
    return tuple((as_category(label), float(boost)) for label, boost in raw.items())


@dataclass(frozen=True)
class TimeBand:
    """Inclusive hour range that boosts some categories"""
    start: int
    end: int
    boosts: Tuple[Tuple[Category, float], ...]

    def contains(self, hour: int) -> bool:
        return self.start <= hour <= self.end


@dataclass(frozen=True)
class ActionRule:
    """Regex over normalized text that boosts some categories"""
    pattern: re.Pattern
    boosts: Tuple[Tuple[Category, float], ...]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class FallbackGuess:
    category: Category
    confidence: float
    explanation: str


def extract_amounts(text: str) -> List[Decimal]:
    """
    Find currency amounts mentioned in raw text.

    Example:
        >>> extract_amounts("lunch $12.50 and 3 dollars tip")
        [Decimal('12.50'), Decimal('3')]
    """
    amounts: List[Decimal] = []
    for pattern in _AMOUNT_PATTERNS:
        for match in pattern.finditer(text):
            try:
                amounts.append(Decimal(match.group(1).replace(",", ".")))
            except InvalidOperation:
                continue
    return amounts


class ContextAnalyzer:
    """
    Time-of-day and action-phrase heuristics.

    Produces additive per-category confidence boosts. Every regex is
    compiled once at construction.

    Config format (context.json):
        {
            "time_bands": [{"start": 6, "end": 10, "boosts": {"Coffee": 0.3}}],
            "action_rules": [{"pattern": "\\\\b(gym|workout)\\\\b", "boosts": {"Sports & Fitness": 0.3}}],
            "fallback": {
                "morning": {"start": 6, "end": 10, "keywords": ["grab"], "category": "Coffee", "confidence": 0.4},
                "small_amount": {"below": 50, "category": "Food & Dining", "confidence": 0.3},
                "large_amount": {"at_least": 200, "category": "Shopping", "confidence": 0.3}
            }
        }
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        """
        Initialize the analyzer.

        Args:
            config: Rules config. If None, loads context.json.
        """
        if config is None:
            config = ConfigLoader.load_context_config()

        self.time_bands: Tuple[TimeBand, ...] = tuple(
            TimeBand(int(band["start"]), int(band["end"]), _parse_boosts(band["boosts"]))
            for band in config.get("time_bands", [])
        )
        self.action_rules: Tuple[ActionRule, ...] = tuple(
            ActionRule(re.compile(rule["pattern"]), _parse_boosts(rule["boosts"]))
            for rule in config.get("action_rules", [])
        )
        self._fallback: Mapping[str, Any] = config.get("fallback", {})

    def time_boosts(self, hour: int) -> Dict[Category, float]:
        """Boosts from every time band covering the hour"""
        boosts: Dict[Category, float] = {}
        for band in self.time_bands:
            if band.contains(hour):
                for category, boost in band.boosts:
                    boosts[category] = boosts.get(category, 0.0) + boost
        return boosts

    def action_boosts(self, text: str) -> Dict[Category, float]:
        """Boosts from every action rule matching the text"""
        normalized = normalize(text)
        boosts: Dict[Category, float] = {}
        for rule in self.action_rules:
            if rule.matches(normalized):
                for category, boost in rule.boosts:
                    boosts[category] = boosts.get(category, 0.0) + boost
        return boosts

    def analyze(self, text: str, hour: int) -> Dict[Category, float]:
        """
        Combine time and action boosts for a text at a given hour.

        Args:
            text: Description (normalized or raw)
            hour: Wall-clock hour, 0-23

        Returns:
            Mapping of category to summed boost
        """
        boosts = self.time_boosts(hour)
        for category, boost in self.action_boosts(text).items():
            boosts[category] = boosts.get(category, 0.0) + boost
        return boosts

    def fallback_guess(self, raw_text: str, hour: int) -> Optional[FallbackGuess]:
        """
        Low-confidence guess used when no matcher was confident.

        Checks, in order: a morning "grab something quick" phrase, a large
        amount, a small amount.

        Args:
            raw_text: Original, non-normalized description
            hour: Wall-clock hour, 0-23

        Returns:
            FallbackGuess, or None if no heuristic applies
        """
        words = set(normalize(raw_text).split())

        morning = self._fallback.get("morning")
        if morning and morning["start"] <= hour <= morning["end"]:
            if words.intersection(morning.get("keywords", [])):
                return FallbackGuess(
                    category=as_category(morning["category"]),
                    confidence=float(morning["confidence"]),
                    explanation="Morning time context suggests coffee",
                )

        amounts = extract_amounts(raw_text)
        if not amounts:
            return None

        large = self._fallback.get("large_amount")
        if large and any(amount >= Decimal(str(large["at_least"])) for amount in amounts):
            return FallbackGuess(
                category=as_category(large["category"]),
                confidence=float(large["confidence"]),
                explanation="Large amount suggests shopping",
            )

        small = self._fallback.get("small_amount")
        if small and any(amount < Decimal(str(small["below"])) for amount in amounts):
            return FallbackGuess(
                category=as_category(small["category"]),
                confidence=float(small["confidence"]),
                explanation="Small amount suggests food or coffee",
            )

        return None

    def __repr__(self) -> str:
        return f"ContextAnalyzer({len(self.time_bands)} time bands, {len(self.action_rules)} action rules)"
