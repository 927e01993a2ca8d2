"""
Categorization system for expense descriptions.

Combines exact, fuzzy, phonetic, semantic and context matchers into one
confidence-ranked decision, and learns from user corrections.

Quick Start:
    >>> from expense_matcher.categorization import ClassificationEngine
    >>>
    >>> engine = ClassificationEngine()
    >>> result = engine.classify("sbux coffee run")
    >>> print(f"Categorized as: {result.category} ({result.confidence:.0%})")
"""
from expense_matcher.categorization.engine import ClassificationEngine
from expense_matcher.categorization.config import EngineConfig
from expense_matcher.categorization.abbreviations import AbbreviationExpander
from expense_matcher.categorization.context import ContextAnalyzer, FallbackGuess
from expense_matcher.categorization.models import (
    MatchCandidate,
    ClassificationResult,
    DebugReport,
    LearningEvent,
)

__all__ = [
    "ClassificationEngine",
    "EngineConfig",
    "AbbreviationExpander",
    "ContextAnalyzer",
    "FallbackGuess",
    "MatchCandidate",
    "ClassificationResult",
    "DebugReport",
    "LearningEvent",
]
