import pytest
from datetime import datetime
from decimal import Decimal
from typing import List

from expense_matcher.categorization import AbbreviationExpander, ClassificationEngine, ContextAnalyzer, EngineConfig
from expense_matcher.domain.enums import BuiltInCategory
from expense_matcher.domain.models import BuiltIn, Custom, Entry
from expense_matcher.vocabulary import VocabularyStore, build_curated_source

SMALL_VOCABULARY = {
    "Coffee": {
        "primary": ["coffee", "latte"],
        "brands": [{"term": "starbucks", "variations": ["star bucks"]}],
    },
    "Food & Dining": {
        "primary": ["pizza", "burger", "restaurant", "lunch"],
    },
    "Shopping": {
        "brands": ["amazon", "target"],
    },
    "Electronics": {
        "primary": ["electronics", "laptop"],
    },
}

SMALL_CONTEXT = {
    "time_bands": [
        {"start": 6, "end": 10, "boosts": {"Coffee": 0.3}},
        {"start": 11, "end": 14, "boosts": {"Food & Dining": 0.3}},
    ],
    "action_rules": [
        {"pattern": "\\b(gym|workout)\\b", "boosts": {"Sports & Fitness": 0.3}},
    ],
    "fallback": {
        "morning": {"start": 6, "end": 10, "keywords": ["grab", "quick"], "category": "Coffee", "confidence": 0.4},
        "small_amount": {"below": 50, "category": "Food & Dining", "confidence": 0.3},
        "large_amount": {"at_least": 200, "category": "Shopping", "confidence": 0.3},
    },
}

SMALL_ABBREVIATIONS = {
    "sbux": ["starbucks"],
    "amzn": ["amazon"],
}


@pytest.fixture
def small_store() -> VocabularyStore:
    """Vocabulary store with a handful of terms"""
    return VocabularyStore([build_curated_source("test", 100, SMALL_VOCABULARY)])


@pytest.fixture
def small_engine(small_store) -> ClassificationEngine:
    """Engine over the small vocabulary, independent of the bundled config"""
    return ClassificationEngine(
        vocabulary=small_store,
        abbreviations=AbbreviationExpander(SMALL_ABBREVIATIONS),
        context=ContextAnalyzer(SMALL_CONTEXT),
        config=EngineConfig(),
    )


@pytest.fixture(scope="session")
def default_engine() -> ClassificationEngine:
    """Engine over the bundled vocabulary. Shared, so tests must not teach it."""
    return ClassificationEngine.create(custom_categories={})


@pytest.fixture
def sample_entries() -> List[Entry]:
    """Logged entries across a few categories"""
    return [
        Entry(
            id=1,
            description="Coffee at Starbucks",
            amount=Decimal("5.40"),
            category=BuiltIn(BuiltInCategory.COFFEE),
            created_at=datetime(2025, 3, 3, 8, 15),
            confidence=0.95,
        ),
        Entry(
            id=2,
            description="Uber ride home",
            amount=Decimal("18.20"),
            category=BuiltIn(BuiltInCategory.TRANSPORTATION),
            created_at=datetime(2025, 3, 3, 23, 40),
            confidence=0.95,
        ),
        Entry(
            id=3,
            description="Dog food",
            amount=Decimal("32.00"),
            category=Custom("Pet Supplies"),
            created_at=datetime(2025, 3, 4, 12, 0),
        ),
    ]
