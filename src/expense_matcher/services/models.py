"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from expense_matcher.categorization.models import ClassificationResult
from expense_matcher.domain.models import Entry


@dataclass
class LogResult:
    """
    Result of logging a new entry.

    `classification` is None when the caller supplied the category.
    """
    entry: Entry
    classification: Optional[ClassificationResult] = None

    @property
    def auto_categorized(self) -> bool:
        return self.classification is not None

    def __str__(self) -> str:
        "Human-readable summary"
        lines = [
            f" Entry #{self.entry.id}: {self.entry.description}",
            f" Amount: ${self.entry.amount:,.2f}",
            f" Category: {self.entry.category}",
        ]
        if self.classification is not None:
            lines.append(f" Confidence: {self.classification.confidence:.0%} ({self.classification.explanation})")
        return "\n".join(lines)


@dataclass
class SpendingStats:
    """
    Aggregate view of logged entries plus engine statistics.
    """
    entries: List[Entry] = field(default_factory=list)
    engine: Dict[str, Any] = field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def total_amount(self) -> Decimal:
        return sum((e.amount for e in self.entries), Decimal("0"))

    @property
    def by_category(self) -> Dict[str, Decimal]:
        """Total amount per category label"""
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for entry in self.entries:
            totals[entry.category.label] += entry.amount
        return dict(totals)

    @property
    def top_categories(self) -> List[Tuple[str, Decimal]]:
        """Categories sorted by amount (descending)"""
        return sorted(self.by_category.items(), key=lambda x: x[1], reverse=True)
