"""Pydantic models for SubTracker budget data types."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Enums ---

class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    JPY = "JPY"
    INR = "INR"


class BudgetCategory(str, Enum):
    HOUSING = "housing"
    FOOD = "food"
    TRANSPORTATION = "transportation"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    ENTERTAINMENT = "entertainment"
    SAVINGS = "savings"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class InputErrorKind(str, Enum):
    NON_POSITIVE_INCOME = "NonPositiveIncome"
    NEGATIVE_AMOUNT = "NegativeAmount"
    NOT_A_NUMBER = "NotANumber"
    CATEGORY_EXCEEDS_INCOME = "CategoryExceedsIncome"
    UNSUPPORTED_CURRENCY = "UnsupportedCurrency"
    UNKNOWN_CATEGORY = "UnknownCategory"


class FeedbackLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs improvement"
    WARNING = "warning"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SubscriptionFrequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    PENDING = "pending"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class BudgetAlertType(str, Enum):
    APPROACHING_LIMIT = "approaching_limit"
    EXCEEDED_LIMIT = "exceeded_limit"


class TrialAlertType(str, Enum):
    SEVEN_DAY = "7-day"
    THREE_DAY = "3-day"
    ONE_DAY = "1-day"
    EXPIRED = "expired"


# --- Response Models ---

class AuthUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = {}


class BudgetProfile(BaseModel):
    """A row of the ``budget_profiles`` table.

    The table is owned by the backend and its columns have drifted over
    time (``fixed_costs`` vs ``fixed_expenses``, ``savings_target`` vs
    ``savings_goal``), so everything except ``user_id`` is optional and
    unknown columns are ignored.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    user_id: str
    monthly_income: Optional[Decimal] = None
    fixed_costs: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("fixed_costs", "fixed_expenses")
    )
    savings_target: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("savings_target", "savings_goal")
    )
    discretionary_budget: Optional[Decimal] = None
    currency: str = "USD"
    spending_limit_alerts: bool = True
    categories: Optional[dict[str, Decimal]] = None
    health_score: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        """Serialize to a JSON payload for the upsert endpoint.

        Server-managed columns (``id`` and timestamps) are left out, as are
        unset values. Decimals go over the wire as numbers.
        """
        row: dict[str, Any] = {}
        data = self.model_dump(exclude={"id", "created_at", "updated_at"}, exclude_none=True)
        for key, value in data.items():
            if isinstance(value, Decimal):
                value = float(value)
            elif isinstance(value, dict):
                value = {k: float(v) for k, v in value.items()}
            row[key] = value
        return row


class DetectedSubscription(BaseModel):
    """A subscription found by the email scanner or stored in ``subscriptions``."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(validation_alias=AliasChoices("name", "service_name"))
    amount: Decimal = Field(validation_alias=AliasChoices("amount", "cost"), ge=0)
    category: Optional[str] = None
    frequency: SubscriptionFrequency = Field(
        default=SubscriptionFrequency.MONTHLY,
        validation_alias=AliasChoices("frequency", "billing_cycle"),
    )
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    currency: Optional[str] = None
    trial_end_date: Optional[date] = None

    @property
    def monthly_amount(self) -> Decimal:
        if self.frequency == SubscriptionFrequency.WEEKLY:
            return self.amount * 52 / 12
        if self.frequency == SubscriptionFrequency.QUARTERLY:
            return self.amount / 3
        if self.frequency == SubscriptionFrequency.YEARLY:
            return self.amount / 12
        return self.amount


# --- MCP Tool Input Models ---

FormValue = Union[str, float, None]


class BudgetFormInput(BaseModel):
    """Raw budget form state: amounts may still be text from input fields."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    income: FormValue = Field(None, description="Monthly income (number or text as typed)")
    categories: dict[str, FormValue] = Field(
        default_factory=dict,
        description=(
            "Monthly amount per category: housing, food, transportation, utilities, "
            "healthcare, entertainment, savings, other"
        ),
    )
    currency: str = Field(default="USD", description="Currency code (USD, EUR, GBP, CAD, JPY, INR)")


class EvaluateBudgetInput(BudgetFormInput):
    """Input for evaluating a budget, optionally against detected subscriptions."""

    detected_total: Optional[float] = Field(
        None, description="Monthly total of detected subscriptions to compare with entertainment", ge=0
    )


class SuggestBudgetInput(BaseModel):
    """Input for suggesting a starting budget from income alone."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    income: float = Field(..., description="Monthly income", gt=0)
    currency: str = Field(default="USD", description="Currency code")


class CheckSubscriptionsInput(BudgetFormInput):
    """Input for checking detected subscriptions against a budget."""

    subscriptions: list[DetectedSubscription] = Field(
        default_factory=list,
        description=(
            "Detected subscriptions, each with name, amount, optional category and frequency. "
            "If empty, the user's active subscriptions are loaded."
        ),
    )
    user_id: Optional[str] = Field(None, description="User whose subscriptions to load")


class SaveBudgetInput(BudgetFormInput):
    """Input for saving a budget profile."""

    user_id: Optional[str] = Field(
        None, description="User ID. Defaults to the configured or authenticated user."
    )
    spending_limit_alerts: bool = Field(default=True, description="Enable spending limit alerts")


class UserLookupInput(BaseModel):
    """Input for tools that act on a single user's saved data."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: Optional[str] = Field(
        None, description="User ID. Defaults to the configured or authenticated user."
    )
