"""Subscription spending insights against a saved budget profile.

Pure functions: the caller fetches the profile and subscriptions.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable
from decimal import ROUND_FLOOR, Decimal

from subtracker.core.currency import format_amount, quantize_amount
from subtracker.core.evaluator import summarize_subscriptions
from subtracker.core.resolvers import ResolverError, resolve_currency
from subtracker.models.results import CategorySpending, ProfileInsights, TrialAlert
from subtracker.models.schemas import (
    BudgetAlertType,
    BudgetProfile,
    Currency,
    DetectedSubscription,
    RiskLevel,
    SubscriptionStatus,
    TrialAlertType,
)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

MAX_RECOMMENDATIONS = 4

APPROACHING_LIMIT_PCT = Decimal("85")
EXCEEDED_LIMIT_PCT = _HUNDRED
# (days left, alert) pairs, nearest deadline first
TRIAL_ALERT_DAYS = (
    (1, TrialAlertType.ONE_DAY),
    (3, TrialAlertType.THREE_DAY),
    (7, TrialAlertType.SEVEN_DAY),
)


def _days_left_in_month(today: date) -> int:
    """Days remaining in the month, today included."""
    if today.month == 12:
        last_day = date(today.year + 1, 1, 1) - timedelta(days=1)
    else:
        last_day = date(today.year, today.month + 1, 1) - timedelta(days=1)
    return (last_day - today).days + 1


def determine_risk_level(
    usage_pct: Decimal | None,
    current_spending: Decimal,
    savings_on_track: bool,
    days_until_overbudget: int | None,
) -> RiskLevel:
    # No discretionary budget at all: any spending is over it.
    if usage_pct is None:
        usage_pct = _HUNDRED * 10 if current_spending > 0 else _ZERO

    if (
        usage_pct > 90
        or not savings_on_track
        or (days_until_overbudget is not None and days_until_overbudget < 7)
    ):
        return RiskLevel.HIGH
    if usage_pct > 70 or (days_until_overbudget is not None and days_until_overbudget < 15):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_budget_alert(usage_pct: Decimal | None) -> BudgetAlertType | None:
    """Alert level for the share (in percent) of the discretionary budget in use."""
    if usage_pct is None:
        return None
    if usage_pct >= EXCEEDED_LIMIT_PCT:
        return BudgetAlertType.EXCEEDED_LIMIT
    if usage_pct >= APPROACHING_LIMIT_PCT:
        return BudgetAlertType.APPROACHING_LIMIT
    return None


def classify_trial(days_left: int) -> TrialAlertType | None:
    if days_left <= 0:
        return TrialAlertType.EXPIRED
    for limit, alert_type in TRIAL_ALERT_DAYS:
        if days_left <= limit:
            return alert_type
    return None


def trial_alerts(
    subscriptions: Iterable[DetectedSubscription],
    today: date | None = None,
) -> tuple[TrialAlert, ...]:
    """Trials that end within a week or have already ended, soonest first.

    Only subscriptions in trial status with a known end date are considered.
    """
    today = today or date.today()
    alerts = []
    for sub in subscriptions:
        if sub.status != SubscriptionStatus.TRIAL or sub.trial_end_date is None:
            continue
        days_left = (sub.trial_end_date - today).days
        alert_type = classify_trial(days_left)
        if alert_type is None:
            continue
        alerts.append(TrialAlert(
            name=sub.name,
            trial_end_date=sub.trial_end_date,
            days_left=days_left,
            alert_type=alert_type,
            amount=sub.amount,
            currency=sub.currency,
        ))
    return tuple(sorted(alerts, key=lambda a: a.days_left))


def analyze_profile(
    profile: BudgetProfile,
    subscriptions: list[DetectedSubscription],
    reference_date: date | None = None,
) -> ProfileInsights:
    """Compare monthly subscription spend to the profile's discretionary budget.

    Projects a daily safe spend to month end, how many days remain before
    the discretionary budget runs out at the current burn rate, whether the
    savings target still fits, and a risk level with up to four
    recommendations. Budget alerts fire at 85% and 100% of the
    discretionary budget; trials in *subscriptions* are only checked for
    upcoming end dates.
    """
    today = reference_date or date.today()
    try:
        currency = resolve_currency(profile.currency)
    except ResolverError:
        currency = Currency.USD

    # Trials are not billed yet: they raise alerts but add no spending.
    billed = [s for s in subscriptions if s.status != SubscriptionStatus.TRIAL]
    summary = summarize_subscriptions(billed, currency)
    current = summary.monthly_total

    income = profile.monthly_income or _ZERO
    fixed = profile.fixed_costs or _ZERO
    target = profile.savings_target or _ZERO
    discretionary = profile.discretionary_budget or _ZERO

    remaining = discretionary - current
    days_left = _days_left_in_month(today)
    daily_safe_spend = quantize_amount(max(_ZERO, remaining / days_left), currency)

    daily_burn = current / 30
    days_until_overbudget = None
    if daily_burn > 0:
        days_until_overbudget = max(0, int((remaining / daily_burn).to_integral_value(rounding=ROUND_FLOOR)))

    available_for_savings = income - fixed - current
    savings_on_track = available_for_savings >= target

    usage_pct = None
    if discretionary > 0:
        raw_usage = current / discretionary * _HUNDRED
        usage_pct = raw_usage.quantize(Decimal("0.1"))
        budget_alert = classify_budget_alert(raw_usage)
    else:
        budget_alert = BudgetAlertType.EXCEEDED_LIMIT if current > 0 else None

    breakdown = [
        CategorySpending(
            category=cat,
            amount=amount,
            percentage=(amount / discretionary * _HUNDRED).quantize(Decimal("0.1"))
            if discretionary > 0 else None,
        )
        for cat, amount in sorted(summary.by_category.items(), key=lambda kv: kv[1], reverse=True)
    ]

    risk = determine_risk_level(usage_pct, current, savings_on_track, days_until_overbudget)

    recommendations: list[str] = []
    if usage_pct is not None:
        if usage_pct > 100:
            recommendations.append(
                "You've exceeded your discretionary budget. "
                "Consider cancelling unused subscriptions now."
            )
        elif usage_pct > 85:
            recommendations.append(
                "You're close to your budget limit. Review your subscriptions to avoid overspending."
            )
        elif usage_pct < 50:
            recommendations.append(
                "Good budget control. You have room for additional services if needed."
            )

    if not savings_on_track:
        shortfall = target - available_for_savings
        recommendations.append(
            f"You're {format_amount(shortfall, currency)} short of your savings goal. "
            "Consider reducing subscription spending."
        )

    if breakdown and breakdown[0].percentage is not None and breakdown[0].percentage > 40:
        top = breakdown[0]
        recommendations.append(
            f"{top.category} accounts for {top.percentage:.0f}% of your budget. "
            "Consider consolidating services in this category."
        )

    if risk == RiskLevel.HIGH:
        recommendations.append(
            "Focus on your most essential subscriptions and pause the rest for now."
        )

    if current > income - fixed - target:
        recommendations.append(
            "Your subscriptions don't fit after fixed costs and savings. "
            "Consider adjusting your savings target or spending."
        )

    return ProfileInsights(
        currency=currency,
        current_spending=current,
        discretionary_budget=discretionary,
        remaining_discretionary=remaining,
        budget_usage_pct=usage_pct,
        daily_safe_spend=daily_safe_spend,
        days_until_overbudget=days_until_overbudget,
        savings_on_track=savings_on_track,
        risk_level=risk,
        category_breakdown=breakdown,
        recommendations=recommendations[:MAX_RECOMMENDATIONS],
        budget_alert=budget_alert,
        trial_alerts=trial_alerts(subscriptions, today),
    )
