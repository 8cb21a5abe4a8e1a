"""Shared test fixtures for SubTracker tests."""

from datetime import date
from decimal import Decimal

from subtracker.models.results import BudgetInput
from subtracker.models.schemas import (
    BudgetProfile,
    DetectedSubscription,
    SubscriptionFrequency,
    SubscriptionStatus,
)


def make_budget(
    income="5000",
    currency: str = "USD",
    **categories,
) -> BudgetInput:
    return BudgetInput(income=income, categories=categories, currency=currency)


def make_profile(
    user_id: str = "user-1",
    monthly_income: str | None = "5000",
    fixed_costs: str | None = "3000",
    savings_target: str | None = "500",
    discretionary_budget: str | None = "200",
    currency: str = "USD",
    categories: dict[str, Decimal] | None = None,
    health_score: int | None = None,
) -> BudgetProfile:
    def _dec(value):
        return Decimal(value) if value is not None else None

    return BudgetProfile(
        id=f"bp-{user_id}",
        user_id=user_id,
        monthly_income=_dec(monthly_income),
        fixed_costs=_dec(fixed_costs),
        savings_target=_dec(savings_target),
        discretionary_budget=_dec(discretionary_budget),
        currency=currency,
        categories=categories,
        health_score=health_score,
    )


def make_subscription(
    name: str = "Netflix",
    amount: str = "15.99",
    category: str | None = "Streaming",
    frequency: str = "monthly",
    status: str = "active",
    currency: str | None = "USD",
    trial_end_date: date | None = None,
) -> DetectedSubscription:
    return DetectedSubscription(
        id=f"sub-{name.lower().replace(' ', '-')}",
        name=name,
        amount=Decimal(amount),
        category=category,
        frequency=SubscriptionFrequency(frequency),
        status=SubscriptionStatus(status),
        currency=currency,
        trial_end_date=trial_end_date,
    )
