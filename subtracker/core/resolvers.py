"""Name resolution helpers for budget categories and currencies.

Pure functions that resolve user-friendly names (case-insensitive, with a
few aliases) to the closed enumerations the evaluator works with. Unknown
names are rejected rather than silently dropped.
"""

from __future__ import annotations

from subtracker.models.schemas import BudgetCategory, Currency


class ResolverError(Exception):
    """Raised when an entity cannot be resolved by name."""

    def __init__(
        self,
        entity_type: str,
        query: str,
        available: list[str] | None = None,
    ):
        self.entity_type = entity_type
        self.query = query
        self.available = available or []
        detail = f"No {entity_type} found matching '{query}'."
        if self.available:
            detail += f" Available: {', '.join(self.available)}"
        super().__init__(detail)


_CATEGORY_ALIASES = {
    "rent": BudgetCategory.HOUSING,
    "mortgage": BudgetCategory.HOUSING,
    "groceries": BudgetCategory.FOOD,
    "dining": BudgetCategory.FOOD,
    "transport": BudgetCategory.TRANSPORTATION,
    "health": BudgetCategory.HEALTHCARE,
    "subscriptions": BudgetCategory.ENTERTAINMENT,
    "saving": BudgetCategory.SAVINGS,
}

_CURRENCY_SYMBOLS = {
    "$": Currency.USD,
    "€": Currency.EUR,
    "£": Currency.GBP,
    "c$": Currency.CAD,
    "¥": Currency.JPY,
    "₹": Currency.INR,
}


def resolve_category(name: str) -> BudgetCategory:
    """Find a budget category by name, alias, or unambiguous prefix.

    Raises :class:`ResolverError` if nothing (or more than one category)
    matches.
    """
    key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        raise ResolverError("category", str(name), available=[c.value for c in BudgetCategory])

    for cat in BudgetCategory:
        if cat.value == key:
            return cat
    if key in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[key]

    prefixed = [c for c in BudgetCategory if c.value.startswith(key)]
    if len(prefixed) == 1:
        return prefixed[0]

    raise ResolverError(
        "category",
        str(name),
        available=[c.value for c in BudgetCategory],
    )


def resolve_currency(code: str | None) -> Currency:
    """Find a supported currency by ISO code or symbol.

    Raises :class:`ResolverError` for blank or unsupported codes.
    """
    key = (code or "").strip()
    for cur in Currency:
        if cur.value == key.upper():
            return cur
    if key.lower() in _CURRENCY_SYMBOLS:
        return _CURRENCY_SYMBOLS[key.lower()]
    raise ResolverError(
        "currency",
        key,
        available=[c.value for c in Currency],
    )
