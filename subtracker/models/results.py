"""Result dataclasses for budget evaluator outputs.

These are internal types consumed by formatters: lightweight dataclasses
rather than Pydantic models since they don't need validation. They are
frozen and their mappings are read-only views: every evaluation builds a
fresh result.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from subtracker.models.schemas import (
    BudgetAlertType,
    BudgetCategory,
    Currency,
    FeedbackLevel,
    InputErrorKind,
    RiskLevel,
    TrialAlertType,
)


@dataclass(frozen=True)
class BudgetInput:
    """Snapshot of the budget form, as typed by the user."""
    income: Any = None                                       # str, number or None
    categories: Mapping[str, Any] = field(default_factory=dict)
    currency: str = "USD"


@dataclass(frozen=True)
class FieldError:
    """A validation problem tied to one form field."""
    field: str
    kind: InputErrorKind
    message: str


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[FieldError, ...] = ()
    income: Decimal | None = None
    amounts: Mapping[BudgetCategory, Decimal] = field(default_factory=lambda: MappingProxyType({}))
    currency: Currency | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def errors_by_field(self) -> dict[str, list[FieldError]]:
        grouped: dict[str, list[FieldError]] = {}
        for e in self.errors:
            grouped.setdefault(e.field, []).append(e)
        return grouped

    def kinds(self) -> set[InputErrorKind]:
        return {e.kind for e in self.errors}


@dataclass(frozen=True)
class CategoryBreakdown:
    """One category's share of income and how it compares to guidance."""
    category: BudgetCategory
    amount: Decimal
    ratio: Decimal | None             # full precision, None when income <= 0
    percentage: int | None            # display value, rounded half-up
    feedback: FeedbackLevel | None
    recommendation: str               # e.g. "25-30%"


@dataclass(frozen=True)
class HealthScore:
    score: int | None                 # 0-100, None when income <= 0
    label: str | None


@dataclass(frozen=True)
class EmergencyFund:
    minimum: Decimal                  # 3 months of spending
    ideal: Decimal                    # 6 months of spending
    months_to_minimum: int | None     # None = not applicable (no savings)

    @property
    def applicable(self) -> bool:
        return self.months_to_minimum is not None


@dataclass(frozen=True)
class SubscriptionComparison:
    """Detected subscription spend measured against the entertainment budget."""
    detected_total: Decimal
    entertainment_budget: Decimal
    pct_of_entertainment: int | None  # truncated, None when entertainment is 0
    remaining_entertainment: Decimal  # can be negative
    exceeds_entertainment: bool
    exceeds_recommended_limit: bool


@dataclass(frozen=True)
class SubscriptionBudget:
    available: Decimal                # same as remaining
    recommended_limit: Decimal        # 20% of remaining, 0 when nothing is left
    entertainment_allowance: Decimal  # 25% of the entertainment category
    suggested_categories: tuple[str, ...] = ()
    warning: str | None = None
    comparison: SubscriptionComparison | None = None


@dataclass(frozen=True)
class Advisory:
    """Non-blocking warning shown next to the budget."""
    code: str
    message: str
    category: BudgetCategory | None = None


@dataclass(frozen=True)
class BudgetResult:
    currency: Currency
    income: Decimal
    total_expenses: Decimal           # all categories, savings included
    spending_total: Decimal           # all categories except savings
    remaining: Decimal                # income - total_expenses
    breakdown: Mapping[BudgetCategory, CategoryBreakdown]
    health: HealthScore
    emergency_fund: EmergencyFund
    subscription_budget: SubscriptionBudget
    warnings: tuple[Advisory, ...] = ()

    @property
    def percentages(self) -> Mapping[BudgetCategory, int | None]:
        return MappingProxyType({c: b.percentage for c, b in self.breakdown.items()})

    @property
    def feedback(self) -> Mapping[BudgetCategory, FeedbackLevel | None]:
        return MappingProxyType({c: b.feedback for c, b in self.breakdown.items()})


@dataclass(frozen=True)
class BudgetSuggestion:
    """A starting budget derived from income alone."""
    income: Decimal
    currency: Currency
    tier: str                         # "essentials" or "growth"
    amounts: Mapping[BudgetCategory, Decimal]
    remaining: Decimal


@dataclass(frozen=True)
class SubscriptionSummary:
    count: int
    monthly_total: Decimal
    by_category: Mapping[str, Decimal] = field(default_factory=lambda: MappingProxyType({}))
    skipped_other_currency: int = 0


@dataclass(frozen=True)
class CategorySpending:
    category: str
    amount: Decimal                   # monthly
    percentage: Decimal | None        # of the discretionary budget


@dataclass(frozen=True)
class TrialAlert:
    """A free trial that ends soon or has already ended."""
    name: str
    trial_end_date: date
    days_left: int                    # negative once the trial has ended
    alert_type: TrialAlertType
    amount: Decimal                   # charged when the trial converts
    currency: str | None = None


@dataclass(frozen=True)
class ProfileInsights:
    """Subscription spending measured against a saved budget profile."""
    currency: Currency
    current_spending: Decimal
    discretionary_budget: Decimal
    remaining_discretionary: Decimal
    budget_usage_pct: Decimal | None
    daily_safe_spend: Decimal
    days_until_overbudget: int | None  # None when nothing is being spent
    savings_on_track: bool
    risk_level: RiskLevel
    category_breakdown: list[CategorySpending] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    budget_alert: BudgetAlertType | None = None
    trial_alerts: tuple[TrialAlert, ...] = ()
