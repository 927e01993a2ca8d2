from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from expense_matcher.domain.enums import BuiltInCategory


@dataclass(frozen=True)
class BuiltIn:
    """One of the categories shipped with the engine"""
    id: BuiltInCategory

    @property
    def label(self) -> str:
        return self.id.value

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Custom:
    """A user-defined category label"""
    label: str

    def __str__(self) -> str:
        return self.label


Category = Union[BuiltIn, Custom]

CATCH_ALL: Category = BuiltIn(BuiltInCategory.OTHER)

_BUILTIN_LOOKUP = {}
for _member in BuiltInCategory:
    _BUILTIN_LOOKUP[_member.value.lower()] = _member
    _BUILTIN_LOOKUP[_member.name.lower()] = _member


def as_category(value: Union[Category, BuiltInCategory, str]) -> Category:
    """
    Coerce a loose category value into a Category.

    Strings matching a built-in label or enum name (case-insensitive) become
    BuiltIn, everything else becomes a stripped Custom label.

    Args:
        value: Category, BuiltInCategory or label string

    Returns:
        The corresponding Category

    Raises:
        ValueError: If the value is empty
        TypeError: If the value is of an unsupported type

    Example:
        >>> as_category("coffee")
        BuiltIn(id=<BuiltInCategory.COFFEE: 'Coffee'>)
        >>> as_category("Pet Supplies")
        Custom(label='Pet Supplies')
    """
    if isinstance(value, (BuiltIn, Custom)):
        if isinstance(value, Custom) and not value.label.strip():
            raise ValueError("Category label cannot be empty")
        return value

    if isinstance(value, BuiltInCategory):
        return BuiltIn(value)

    if not isinstance(value, str):
        raise TypeError(f"Unsupported category value: {value!r}")

    label = value.strip()
    if not label:
        raise ValueError("Category label cannot be empty")

    member = _BUILTIN_LOOKUP.get(label.lower())
    if member is not None:
        return BuiltIn(member)

    return Custom(label)


@dataclass
class Entry:
    """A logged expense entry"""
    description: str
    amount: Decimal
    category: Category = CATCH_ALL
    created_at: datetime = field(default_factory=datetime.now)
    confidence: Optional[float] = None
    id: Optional[int] = None

    def __repr__(self):
        return f"Entry({self.id}, {self.description[:30]}, {self.category}, ${self.amount})"
