"""Markdown formatters for MCP tool responses.

Pure functions that take result objects and return human-readable Markdown strings.
"""

from __future__ import annotations

from decimal import Decimal

from subtracker.core.currency import format_amount
from subtracker.core.resolvers import ResolverError, resolve_currency
from subtracker.models.results import (
    BudgetInput,
    BudgetResult,
    BudgetSuggestion,
    ProfileInsights,
    SubscriptionSummary,
    TrialAlert,
    ValidationResult,
)
from subtracker.models.schemas import (
    BudgetAlertType,
    BudgetProfile,
    Currency,
    FeedbackLevel,
    TrialAlertType,
)

_FEEDBACK_MARKS = {
    FeedbackLevel.EXCELLENT: "OK",
    FeedbackLevel.GOOD: "OK",
    FeedbackLevel.NEEDS_IMPROVEMENT: "??",
    FeedbackLevel.WARNING: "!!",
    FeedbackLevel.HIGH: "!!",
}


def _profile_currency(code: str) -> Currency:
    try:
        return resolve_currency(code)
    except ResolverError:
        return Currency.USD


def format_validation(result: ValidationResult) -> str:
    if result.is_valid:
        return "Budget is valid."
    lines = [f"## Please fix {len(result.errors)} field(s)\n"]
    for field_name, errors in result.errors_by_field().items():
        for e in errors:
            lines.append(f"- **{field_name}** ({e.kind.value}): {e.message}")
    return "\n".join(lines)


def format_budget_evaluation(result: BudgetResult) -> str:
    cur = result.currency
    lines = [
        "## Budget Overview\n",
        f"**Income:** {format_amount(result.income, cur)}",
        f"**Total expenses:** {format_amount(result.total_expenses, cur)}",
        f"**Remaining:** {format_amount(result.remaining, cur)}",
        "",
        "| Category | Amount | % of income | Feedback | Recommended |",
        "|---|---|---|---|---|",
    ]
    for cat, item in result.breakdown.items():
        if item.amount == 0:
            continue
        pct = f"{item.percentage}%" if item.percentage is not None else "n/a"
        feedback = (
            f"[{_FEEDBACK_MARKS[item.feedback]}] {item.feedback.value}" if item.feedback else "n/a"
        )
        lines.append(
            f"| {cat.label} | {format_amount(item.amount, cur)} | {pct} "
            f"| {feedback} | {item.recommendation} |"
        )

    if result.health.score is not None:
        lines.append(f"\n### Financial Health: {result.health.score}/100 ({result.health.label})")
    else:
        lines.append("\n### Financial Health: not applicable (enter an income above zero)")

    fund = result.emergency_fund
    lines.append("\n### Emergency Fund")
    lines.append(f"- **Minimum (3 months):** {format_amount(fund.minimum, cur)}")
    lines.append(f"- **Ideal (6 months):** {format_amount(fund.ideal, cur)}")
    if fund.applicable:
        lines.append(f"- **Time to minimum:** {fund.months_to_minimum} months at your current savings")
        lines.append("- Set up automatic transfers on payday to build it faster.")
    else:
        lines.append("- **Time to minimum:** not applicable (no monthly savings)")

    lines.append(format_subscription_guidance(result))

    if result.warnings:
        lines.append("\n### Warnings")
        for w in result.warnings:
            lines.append(f"- [!!] {w.message}")

    return "\n".join(lines)


def format_subscription_guidance(result: BudgetResult) -> str:
    cur = result.currency
    sub = result.subscription_budget
    lines = [
        "\n### Subscription Budget",
        f"- **Available after expenses:** {format_amount(sub.available, cur)}",
        f"- **Recommended subscription limit:** {format_amount(sub.recommended_limit, cur)} "
        "(maximum recommended, 20% of what's left)",
        f"- **Entertainment allowance:** {format_amount(sub.entertainment_allowance, cur)} "
        "(25% of entertainment)",
    ]
    if sub.suggested_categories:
        lines.append(f"- **Common categories:** {', '.join(sub.suggested_categories)}")
    if sub.warning:
        lines.append(f"- [!!] {sub.warning}")

    cmp = sub.comparison
    if cmp is not None:
        lines.append(f"- **Detected subscriptions:** {format_amount(cmp.detected_total, cur)}/month")
        if cmp.pct_of_entertainment is not None:
            lines.append(f"- That's {cmp.pct_of_entertainment}% of entertainment budget")
            lines.append(
                f"- **Remaining entertainment:** {format_amount(cmp.remaining_entertainment, cur)}"
            )
        else:
            lines.append("- No entertainment budget set to compare against")
        if cmp.exceeds_recommended_limit:
            lines.append("- [!!] Detected subscriptions exceed the recommended limit")
    return "\n".join(lines)


def format_budget_suggestion(suggestion: BudgetSuggestion) -> str:
    cur = suggestion.currency
    lines = [
        f"## Suggested Budget for {format_amount(suggestion.income, cur)}/month\n",
        f"_Template: {suggestion.tier}_\n",
    ]
    for cat, amount in suggestion.amounts.items():
        pct = (amount / suggestion.income * 100).quantize(Decimal("1"))
        lines.append(f"- **{cat.label}:** {format_amount(amount, cur)} ({pct}%)")
    lines.append(f"\n**Unallocated:** {format_amount(suggestion.remaining, cur)}")
    return "\n".join(lines)


def format_subscription_check(summary: SubscriptionSummary, result: BudgetResult) -> str:
    cur = result.currency
    if summary.count == 0:
        lines = ["No active subscriptions found."]
    else:
        lines = [
            f"## Detected Subscriptions ({summary.count})\n",
            f"**Monthly total:** {format_amount(summary.monthly_total, cur)}\n",
        ]
        for cat, amount in sorted(summary.by_category.items(), key=lambda kv: kv[1], reverse=True):
            lines.append(f"- {cat}: {format_amount(amount, cur)}")
    if summary.skipped_other_currency:
        lines.append(
            f"\n_{summary.skipped_other_currency} subscription(s) billed in another "
            "currency were not included._"
        )
    lines.append(format_subscription_guidance(result))
    return "\n".join(lines)


def format_budget_saved(profile: BudgetProfile, result: BudgetResult) -> str:
    cur = result.currency
    lines = [
        "Budget saved!\n",
        f"- **Total expenses:** {format_amount(result.total_expenses, cur)}",
        f"- **Remaining:** {format_amount(result.remaining, cur)}",
    ]
    if result.health.score is not None:
        lines.append(f"- **Health score:** {result.health.score}/100 ({result.health.label})")
    if profile.id:
        lines.append(f"- **Budget ID:** `{profile.id}`")
    lines.append("\nNext: scan for subscriptions to see how they fit your budget.")
    return "\n".join(lines)


def format_save_failure(
    message: str,
    draft_saved_at: str | None,
    retry_after: int | None = None,
    is_conflict: bool = False,
    retryable: bool = False,
) -> str:
    if is_conflict:
        lines = [
            "## [!!] Budget was modified in another window\n",
            "Reload the saved budget and retry your changes.",
        ]
    else:
        lines = ["## [!!] Could not save budget\n", message]
        if retry_after:
            lines.append(f"\nYou can retry in {retry_after} seconds.")
        elif retryable:
            lines.append("\nThis is usually temporary. Try saving again in a moment.")
    if draft_saved_at:
        lines.append(f"\nYour budget was saved locally ({draft_saved_at}). Nothing you entered was lost.")
    else:
        lines.append("\nThe budget could not be kept locally either. Keep your entries until a save succeeds.")
    return "\n".join(lines)


def format_profile_deleted(user_id: str) -> str:
    return f"Budget profile for `{user_id}` deleted."


def format_budget_profile(profile: BudgetProfile | None) -> str:
    if profile is None:
        return "No budget profile found. Set up your budget to start tracking."
    cur = _profile_currency(profile.currency)

    def _amt(value: Decimal | None) -> str:
        return format_amount(value, cur) if value is not None else "not set"

    lines = [
        "## Budget Profile\n",
        f"- **Monthly income:** {_amt(profile.monthly_income)}",
        f"- **Fixed costs:** {_amt(profile.fixed_costs)}",
        f"- **Savings target:** {_amt(profile.savings_target)}",
        f"- **Discretionary budget:** {_amt(profile.discretionary_budget)}",
        f"- **Currency:** {profile.currency}",
        f"- **Spending alerts:** {'on' if profile.spending_limit_alerts else 'off'}",
    ]
    if profile.health_score is not None:
        lines.append(f"- **Health score:** {profile.health_score}/100")
    if profile.categories:
        lines.append("\n### Categories")
        for name, amount in profile.categories.items():
            lines.append(f"- {name.capitalize()}: {format_amount(amount, cur)}")
    if profile.updated_at:
        lines.append(f"\n_Last updated {profile.updated_at}_")
    return "\n".join(lines)


def _budget_alert_line(insights: ProfileInsights) -> str | None:
    cur = insights.currency
    spent = format_amount(insights.current_spending, cur)
    budget = format_amount(insights.discretionary_budget, cur)
    if insights.budget_alert == BudgetAlertType.EXCEEDED_LIMIT:
        return f"Limit exceeded: subscriptions cost {spent}, over your {budget} discretionary budget."
    if insights.budget_alert == BudgetAlertType.APPROACHING_LIMIT:
        return (
            f"Approaching limit: {insights.budget_usage_pct:.0f}% of your discretionary "
            f"budget used ({spent} of {budget})."
        )
    return None


def _trial_alert_line(alert: TrialAlert, default_currency: Currency) -> str:
    cur = _profile_currency(alert.currency) if alert.currency else default_currency
    charge = format_amount(alert.amount, cur)
    if alert.alert_type == TrialAlertType.EXPIRED:
        return f"{alert.name} trial ended {alert.trial_end_date}. Check whether charges have been applied."
    if alert.alert_type == TrialAlertType.ONE_DAY:
        return f"{alert.name} trial ends tomorrow and will charge {charge}."
    return (
        f"{alert.name} trial ends in {alert.days_left} days ({alert.trial_end_date}). "
        f"It will charge {charge} if not cancelled."
    )


def format_profile_insights(insights: ProfileInsights) -> str:
    cur = insights.currency
    status = {"low": "OK", "medium": "??", "high": "!!"}[insights.risk_level.value]
    lines = [
        f"## [{status}] Subscription Budget Insights ({insights.risk_level.value} risk)\n",
        f"- **Subscriptions this month:** {format_amount(insights.current_spending, cur)}",
        f"- **Discretionary budget:** {format_amount(insights.discretionary_budget, cur)}",
        f"- **Remaining:** {format_amount(insights.remaining_discretionary, cur)}",
    ]
    if insights.budget_usage_pct is not None:
        lines.append(f"- **Budget used:** {insights.budget_usage_pct:.0f}%")
    lines.append(f"- **Daily safe spend:** {format_amount(insights.daily_safe_spend, cur)}/day")
    if insights.days_until_overbudget is not None:
        lines.append(f"- **Days until over budget:** {insights.days_until_overbudget}")
    lines.append(f"- **Savings on track:** {'yes' if insights.savings_on_track else 'no'}")

    alerts = [_budget_alert_line(insights)]
    alerts.extend(_trial_alert_line(a, cur) for a in insights.trial_alerts)
    alerts = [a for a in alerts if a]
    if alerts:
        lines.append("\n### Alerts")
        for a in alerts:
            lines.append(f"- [!!] {a}")

    if insights.category_breakdown:
        lines.append("\n### By Category")
        for c in insights.category_breakdown:
            pct = f" ({c.percentage:.0f}%)" if c.percentage is not None else ""
            lines.append(f"- {c.category}: {format_amount(c.amount, cur)}{pct}")

    if insights.recommendations:
        lines.append("\n### Recommendations")
        for r in insights.recommendations:
            lines.append(f"- {r}")
    return "\n".join(lines)


def format_draft(budget: BudgetInput | None, saved_at: str | None = None) -> str:
    if budget is None:
        return "No saved draft found."
    lines = ["## Restored Draft\n"]
    if saved_at:
        lines.append(f"_Saved {saved_at}_\n")
    lines.append(f"- **Income:** {budget.income if budget.income is not None else '(empty)'}")
    for name, value in budget.categories.items():
        lines.append(f"- **{name}:** {value if value is not None else '(empty)'}")
    lines.append(f"- **Currency:** {budget.currency}")
    return "\n".join(lines)
