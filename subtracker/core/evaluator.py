"""Budget evaluator: pure validation and analysis of a monthly budget.

All functions take an immutable :class:`BudgetInput` snapshot (or already
parsed amounts) and return result dataclasses. No I/O. ``validate`` and
``evaluate`` never raise on bad input: validation problems come back as
:class:`FieldError` records, and evaluation degrades to ``None`` ("not
applicable") instead of dividing by zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from subtracker.core.currency import CURRENCIES, format_amount, quantize_amount
from subtracker.core.resolvers import ResolverError, resolve_category, resolve_currency
from subtracker.models.results import (
    Advisory,
    BudgetInput,
    BudgetResult,
    BudgetSuggestion,
    CategoryBreakdown,
    EmergencyFund,
    FieldError,
    HealthScore,
    SubscriptionBudget,
    SubscriptionComparison,
    SubscriptionSummary,
    ValidationResult,
)
from subtracker.models.schemas import (
    BudgetCategory,
    BudgetProfile,
    Currency,
    DetectedSubscription,
    FeedbackLevel,
    InputErrorKind,
    SubscriptionStatus,
)

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_CURRENCY_MARKS = "$€£¥₹"

# Accepted form amounts: at most 10^15 in magnitude, kept to a millionth.
# Every ratio and product the evaluator forms then fits the default
# 28-digit decimal context.
MAX_AMOUNT = Decimal(10) ** 15
AMOUNT_STEP = Decimal("0.000001")


# --- Policy constants ---


@dataclass(frozen=True)
class _ExpensePolicy:
    good_max: Decimal                         # top of the recommended band
    recommendation: str
    excellent_below: Decimal | None = None    # under this -> excellent
    escalate_above: Decimal | None = None     # over this -> high


_EXPENSE_POLICIES: dict[BudgetCategory, _ExpensePolicy] = {
    BudgetCategory.HOUSING: _ExpensePolicy(
        Decimal("0.30"), "25-30%",
        excellent_below=Decimal("0.25"), escalate_above=Decimal("0.50"),
    ),
    BudgetCategory.FOOD: _ExpensePolicy(Decimal("0.15"), "up to 15%"),
    BudgetCategory.TRANSPORTATION: _ExpensePolicy(Decimal("0.15"), "up to 15%"),
    BudgetCategory.UTILITIES: _ExpensePolicy(Decimal("0.10"), "up to 10%"),
    BudgetCategory.HEALTHCARE: _ExpensePolicy(Decimal("0.10"), "up to 10%"),
    BudgetCategory.ENTERTAINMENT: _ExpensePolicy(Decimal("0.10"), "up to 10%"),
    BudgetCategory.OTHER: _ExpensePolicy(Decimal("0.10"), "up to 10%"),
}

SAVINGS_EXCELLENT_RATIO = Decimal("0.20")
SAVINGS_GOOD_RATIO = Decimal("0.10")
SAVINGS_RECOMMENDATION = "20% or more"

# Health score = base + savings points - housing penalty - spending penalty
HEALTH_BASE = Decimal("60")
HEALTH_SAVINGS_POINTS = Decimal("40")
HEALTH_PENALTY_CAP = Decimal("30")
HEALTH_PENALTY_SLOPE = Decimal("150")
HEALTH_HOUSING_LIMIT = Decimal("0.30")

EMERGENCY_MIN_MONTHS = 3
EMERGENCY_IDEAL_MONTHS = 6

SUBSCRIPTION_SHARE_OF_REMAINING = Decimal("0.20")
SUBSCRIPTION_SHARE_OF_ENTERTAINMENT = Decimal("0.25")
LOW_ENTERTAINMENT_RATIO = Decimal("0.02")
SUGGESTED_SUBSCRIPTION_CATEGORIES = ("Streaming", "Music", "Productivity", "News")

LOW_INCOME_FACTOR = Decimal("0.1")
HIGH_INCOME_FACTOR = Decimal("20")

_SUGGESTION_TIERS: dict[str, dict[BudgetCategory, Decimal]] = {
    "essentials": {
        BudgetCategory.HOUSING: Decimal("0.30"),
        BudgetCategory.FOOD: Decimal("0.15"),
        BudgetCategory.TRANSPORTATION: Decimal("0.15"),
        BudgetCategory.ENTERTAINMENT: Decimal("0.05"),
        BudgetCategory.SAVINGS: Decimal("0.10"),
    },
    "growth": {
        BudgetCategory.HOUSING: Decimal("0.25"),
        BudgetCategory.FOOD: Decimal("0.10"),
        BudgetCategory.TRANSPORTATION: Decimal("0.10"),
        BudgetCategory.ENTERTAINMENT: Decimal("0.10"),
        BudgetCategory.SAVINGS: Decimal("0.20"),
    },
}


# --- Parsing ---


def parse_amount(value: Any) -> Decimal | None:
    """Coerce a form value to a Decimal.

    ``None`` and blank text mean "not entered" and parse as zero. Returns
    ``None`` for anything that is not a finite number or is larger than
    :data:`MAX_AMOUNT`. Digits past :data:`AMOUNT_STEP` are rounded off.
    """
    if value is None:
        return _ZERO
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "").lstrip(_CURRENCY_MARKS).strip()
        if not value.strip():
            return _ZERO
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite() or amount.copy_abs() > MAX_AMOUNT:
        return None
    if amount.as_tuple().exponent < AMOUNT_STEP.as_tuple().exponent:
        amount = amount.quantize(AMOUNT_STEP, rounding=ROUND_HALF_UP)
    return amount


def _currency_or_default(code: str | None) -> Currency:
    try:
        return resolve_currency(code)
    except ResolverError:
        return Currency.USD


def _best_effort_amounts(categories: Mapping[str, Any]) -> dict[BudgetCategory, Decimal]:
    """Parse category amounts, skipping unknown keys and treating junk as zero."""
    amounts: dict[BudgetCategory, Decimal] = {}
    for name, raw in categories.items():
        try:
            cat = resolve_category(name)
        except ResolverError:
            continue
        amount = parse_amount(raw)
        if amount is None or amount < 0:
            amount = _ZERO
        amounts[cat] = amounts.get(cat, _ZERO) + amount
    return amounts


# --- Validation ---


def validate(budget: BudgetInput) -> ValidationResult:
    """Check a budget snapshot field by field.

    Never raises. Income-relative checks only run once income itself is
    valid, so each error kind can be produced on its own.
    """
    errors: list[FieldError] = []

    currency: Currency | None = None
    try:
        currency = resolve_currency(budget.currency)
    except ResolverError:
        supported = ", ".join(c.value for c in Currency)
        errors.append(FieldError(
            field="currency",
            kind=InputErrorKind.UNSUPPORTED_CURRENCY,
            message=f"'{budget.currency or ''}' is not a supported currency. Choose one of: {supported}.",
        ))

    income = parse_amount(budget.income)
    valid_income: Decimal | None = None
    if income is None:
        errors.append(FieldError(
            field="income",
            kind=InputErrorKind.NOT_A_NUMBER,
            message="Please enter a valid number for your income.",
        ))
    elif income <= 0:
        errors.append(FieldError(
            field="income",
            kind=InputErrorKind.NON_POSITIVE_INCOME,
            message="Income must be greater than zero.",
        ))
    else:
        valid_income = income

    amounts: dict[BudgetCategory, Decimal] = {}
    for name, raw in budget.categories.items():
        try:
            cat = resolve_category(name)
        except ResolverError:
            errors.append(FieldError(
                field=str(name),
                kind=InputErrorKind.UNKNOWN_CATEGORY,
                message=f"'{name}' is not a supported budget category.",
            ))
            continue

        amount = parse_amount(raw)
        if amount is None:
            errors.append(FieldError(
                field=cat.value,
                kind=InputErrorKind.NOT_A_NUMBER,
                message=f"Please enter a valid number for {cat.value}.",
            ))
        elif amount < 0:
            errors.append(FieldError(
                field=cat.value,
                kind=InputErrorKind.NEGATIVE_AMOUNT,
                message=f"Please enter a positive amount for {cat.value}.",
            ))
        else:
            amounts[cat] = amounts.get(cat, _ZERO) + amount

    if valid_income is not None:
        shown = currency or Currency.USD
        for cat, amount in amounts.items():
            if amount > valid_income:
                errors.append(FieldError(
                    field=cat.value,
                    kind=InputErrorKind.CATEGORY_EXCEEDS_INCOME,
                    message=(
                        f"{cat.label} ({format_amount(amount, shown)}) exceeds your income "
                        f"({format_amount(valid_income, shown)})."
                    ),
                ))

    return ValidationResult(
        errors=tuple(errors),
        income=valid_income,
        amounts=MappingProxyType(amounts),
        currency=currency,
    )


# --- Category feedback ---


def display_percentage(ratio: Decimal) -> int:
    """Ratio to a whole percentage, rounding half-up."""
    return int((ratio * _HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


def category_feedback(category: BudgetCategory, ratio: Decimal | None) -> FeedbackLevel | None:
    """Label a category's share of income against its recommended band."""
    if ratio is None:
        return None
    if category == BudgetCategory.SAVINGS:
        if ratio >= SAVINGS_EXCELLENT_RATIO:
            return FeedbackLevel.EXCELLENT
        if ratio >= SAVINGS_GOOD_RATIO:
            return FeedbackLevel.GOOD
        return FeedbackLevel.NEEDS_IMPROVEMENT

    policy = _EXPENSE_POLICIES[category]
    if policy.escalate_above is not None and ratio > policy.escalate_above:
        return FeedbackLevel.HIGH
    if ratio > policy.good_max:
        return FeedbackLevel.WARNING
    if policy.excellent_below is not None and ratio < policy.excellent_below:
        return FeedbackLevel.EXCELLENT
    return FeedbackLevel.GOOD


def category_recommendation(category: BudgetCategory) -> str:
    if category == BudgetCategory.SAVINGS:
        return SAVINGS_RECOMMENDATION
    return _EXPENSE_POLICIES[category].recommendation


# --- Health score ---


def health_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 65:
        return "Good"
    if score >= 50:
        return "Fair"
    return "Needs Improvement"


def compute_health_score(
    income: Decimal,
    amounts: Mapping[BudgetCategory, Decimal],
) -> HealthScore:
    """Score a budget from 0 to 100.

    ``60 + 40 * min(savings / 20%, 1)``, minus up to 30 points for housing
    above 30% of income and up to 30 points for overspending elsewhere:
    the summed excess of every other expense category over the top of its
    recommended band (150 points per unit of ratio in both penalties).
    A budget with every category inside its band loses nothing.
    """
    if income <= 0:
        return HealthScore(score=None, label=None)

    savings = amounts.get(BudgetCategory.SAVINGS, _ZERO)
    housing = amounts.get(BudgetCategory.HOUSING, _ZERO)
    overspend = sum(
        (
            max(_ZERO, amount / income - _EXPENSE_POLICIES[cat].good_max)
            for cat, amount in amounts.items()
            if cat not in (BudgetCategory.SAVINGS, BudgetCategory.HOUSING)
        ),
        _ZERO,
    )

    savings_points = HEALTH_SAVINGS_POINTS * min(savings / income / SAVINGS_EXCELLENT_RATIO, _ONE)
    housing_penalty = min(
        HEALTH_PENALTY_CAP,
        HEALTH_PENALTY_SLOPE * max(_ZERO, housing / income - HEALTH_HOUSING_LIMIT),
    )
    spending_penalty = min(HEALTH_PENALTY_CAP, HEALTH_PENALTY_SLOPE * overspend)

    raw = HEALTH_BASE + savings_points - housing_penalty - spending_penalty
    score = int(raw.to_integral_value(rounding=ROUND_HALF_UP))
    score = max(0, min(100, score))
    return HealthScore(score=score, label=health_label(score))


# --- Emergency fund ---


def compute_emergency_fund(spending_total: Decimal, savings: Decimal) -> EmergencyFund:
    """Emergency fund targets from monthly spending (savings excluded).

    Months to reach the minimum round up; with no savings the timeline is
    not applicable.
    """
    minimum = spending_total * EMERGENCY_MIN_MONTHS
    ideal = spending_total * EMERGENCY_IDEAL_MONTHS
    months = None
    if savings > 0:
        months = int((minimum / savings).to_integral_value(rounding=ROUND_CEILING))
    return EmergencyFund(minimum=minimum, ideal=ideal, months_to_minimum=months)


# --- Subscription affordability ---


def compare_subscriptions(
    detected_total: Decimal,
    entertainment_budget: Decimal,
    recommended_limit: Decimal,
) -> SubscriptionComparison:
    """Measure a detected subscription total against the entertainment budget.

    The share of entertainment consumed is truncated to a whole percent.
    """
    pct = None
    if entertainment_budget > 0:
        pct = int((detected_total / entertainment_budget * _HUNDRED).to_integral_value(rounding=ROUND_FLOOR))
    return SubscriptionComparison(
        detected_total=detected_total,
        entertainment_budget=entertainment_budget,
        pct_of_entertainment=pct,
        remaining_entertainment=entertainment_budget - detected_total,
        exceeds_entertainment=detected_total > entertainment_budget,
        exceeds_recommended_limit=detected_total > recommended_limit,
    )


def compute_subscription_budget(
    remaining: Decimal,
    entertainment: Decimal,
    detected_total: Decimal | None = None,
) -> SubscriptionBudget:
    if remaining > 0:
        limit = remaining * SUBSCRIPTION_SHARE_OF_REMAINING
        warning = None
    else:
        limit = _ZERO
        warning = (
            "No discretionary budget is left for subscriptions. "
            "Reduce expenses before adding new ones."
        )

    comparison = None
    if detected_total is not None:
        comparison = compare_subscriptions(detected_total, entertainment, limit)

    return SubscriptionBudget(
        available=remaining,
        recommended_limit=limit,
        entertainment_allowance=entertainment * SUBSCRIPTION_SHARE_OF_ENTERTAINMENT,
        suggested_categories=SUGGESTED_SUBSCRIPTION_CATEGORIES,
        warning=warning,
        comparison=comparison,
    )


def summarize_subscriptions(
    subscriptions: Iterable[DetectedSubscription],
    currency: Currency = Currency.USD,
) -> SubscriptionSummary:
    """Total detected subscriptions as a monthly amount.

    Cancelled and paused subscriptions are skipped. Subscriptions billed in
    another currency are counted separately and never summed in.
    """
    count = 0
    skipped = 0
    total = _ZERO
    by_category: dict[str, Decimal] = {}

    for sub in subscriptions:
        if sub.status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.PAUSED):
            continue
        if sub.currency and sub.currency.strip().upper() != currency.value:
            skipped += 1
            continue
        monthly = sub.monthly_amount
        cat = sub.category or "Other"
        by_category[cat] = by_category.get(cat, _ZERO) + monthly
        total += monthly
        count += 1

    return SubscriptionSummary(
        count=count,
        monthly_total=quantize_amount(total, currency),
        by_category=MappingProxyType(
            {c: quantize_amount(v, currency) for c, v in by_category.items()}
        ),
        skipped_other_currency=skipped,
    )


# --- Evaluation ---


def _advisories(
    currency: Currency,
    income: Decimal,
    remaining: Decimal,
    breakdown: Mapping[BudgetCategory, CategoryBreakdown],
) -> tuple[Advisory, ...]:
    warnings: list[Advisory] = []
    reference = CURRENCIES[currency].reference_income

    if income > 0 and remaining < 0:
        warnings.append(Advisory(
            code="over_budget",
            message=(
                f"Your planned expenses exceed your income by "
                f"{format_amount(-remaining, currency)}."
            ),
        ))
    if 0 < income < reference * LOW_INCOME_FACTOR:
        warnings.append(Advisory(
            code="income_unusually_low",
            message=(
                f"{format_amount(income, currency)} is unusually low for a monthly "
                f"income in {currency.value}. Check the amount and currency."
            ),
        ))
    if income > reference * HIGH_INCOME_FACTOR:
        warnings.append(Advisory(
            code="income_confirm",
            message=f"Please confirm this amount: {format_amount(income, currency)} per month.",
        ))

    for cat, item in breakdown.items():
        if item.feedback == FeedbackLevel.HIGH:
            warnings.append(Advisory(
                code="category_high",
                message=(
                    f"{cat.label} takes {item.percentage}% of your income, "
                    f"far above the recommended {item.recommendation}."
                ),
                category=cat,
            ))
        elif item.feedback == FeedbackLevel.WARNING:
            warnings.append(Advisory(
                code="category_warning",
                message=(
                    f"{cat.label} is {item.percentage}% of your income; "
                    f"the recommended range is {item.recommendation}."
                ),
                category=cat,
            ))

    entertainment = breakdown[BudgetCategory.ENTERTAINMENT]
    if entertainment.ratio is not None and 0 < entertainment.ratio < LOW_ENTERTAINMENT_RATIO:
        warnings.append(Advisory(
            code="low_subscription_room",
            message="Your entertainment budget leaves little room for subscriptions.",
            category=BudgetCategory.ENTERTAINMENT,
        ))

    return tuple(warnings)


def evaluate(budget: BudgetInput, detected_total: Any = None) -> BudgetResult:
    """Compute percentages, feedback, health score, emergency fund and
    subscription guidance for a budget snapshot.

    Meant for validated input, but never raises: unknown categories are
    skipped, unparseable or negative amounts count as zero, and ratios
    become ``None`` when income is not positive. *detected_total* is the
    monthly total of detected subscriptions, if the caller has one.
    """
    currency = _currency_or_default(budget.currency)
    income = parse_amount(budget.income)
    if income is None:
        income = _ZERO
    amounts = _best_effort_amounts(budget.categories)

    total_expenses = sum(amounts.values(), _ZERO)
    savings = amounts.get(BudgetCategory.SAVINGS, _ZERO)
    spending_total = total_expenses - savings
    remaining = income - total_expenses

    breakdown: dict[BudgetCategory, CategoryBreakdown] = {}
    for cat in BudgetCategory:
        amount = amounts.get(cat, _ZERO)
        ratio = amount / income if income > 0 else None
        breakdown[cat] = CategoryBreakdown(
            category=cat,
            amount=amount,
            ratio=ratio,
            percentage=display_percentage(ratio) if ratio is not None else None,
            feedback=category_feedback(cat, ratio),
            recommendation=category_recommendation(cat),
        )

    detected = None
    if detected_total is not None:
        detected = parse_amount(detected_total)
        if detected is not None and detected < 0:
            detected = _ZERO

    return BudgetResult(
        currency=currency,
        income=income,
        total_expenses=total_expenses,
        spending_total=spending_total,
        remaining=remaining,
        breakdown=MappingProxyType(breakdown),
        health=compute_health_score(income, amounts),
        emergency_fund=compute_emergency_fund(spending_total, savings),
        subscription_budget=compute_subscription_budget(
            remaining, amounts.get(BudgetCategory.ENTERTAINMENT, _ZERO), detected
        ),
        warnings=_advisories(currency, income, remaining, breakdown),
    )


# --- Budget suggestions ---


def suggest_budget(income: Decimal | float | str, currency: Currency = Currency.USD) -> BudgetSuggestion:
    """Suggest category amounts from income alone.

    Incomes below the currency's reference income get the "essentials"
    template (more room for housing and food, 10% savings); higher incomes
    get the "growth" template with 20% savings.

    Raises ``ValueError`` if *income* is not a positive number.
    """
    amount = parse_amount(income)
    if amount is None or amount <= 0:
        raise ValueError("Income must be a number greater than zero to suggest a budget.")

    tier = "essentials" if amount < CURRENCIES[currency].reference_income else "growth"
    amounts = {
        cat: quantize_amount(amount * share, currency)
        for cat, share in _SUGGESTION_TIERS[tier].items()
    }
    return BudgetSuggestion(
        income=amount,
        currency=currency,
        tier=tier,
        amounts=MappingProxyType(amounts),
        remaining=amount - sum(amounts.values(), _ZERO),
    )


# --- Persistence payload ---


def build_profile(
    user_id: str,
    result: BudgetResult,
    spending_limit_alerts: bool = True,
) -> BudgetProfile:
    """Map an evaluated budget onto a ``budget_profiles`` row."""
    savings = result.breakdown[BudgetCategory.SAVINGS].amount
    return BudgetProfile(
        user_id=user_id,
        monthly_income=result.income,
        fixed_costs=result.spending_total,
        savings_target=savings,
        discretionary_budget=max(result.remaining, _ZERO),
        currency=result.currency.value,
        spending_limit_alerts=spending_limit_alerts,
        categories={
            cat.value: item.amount
            for cat, item in result.breakdown.items()
            if item.amount > 0
        },
        health_score=result.health.score,
    )
