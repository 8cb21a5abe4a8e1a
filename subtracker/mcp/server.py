"""SubTracker MCP Server.

Exposes the SubTracker budget evaluator and budget profile storage as MCP
tools: validate and evaluate a monthly budget, check detected subscriptions
against it, and save it to Supabase without losing input on failure.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv
from mcp.server.fastmcp import Context, FastMCP

# Ensure project root is on sys.path so `subtracker` is importable when loaded
# directly by tools like `mcp dev` (which use importlib, not `python -m`).
_project_root = str(Path(__file__).resolve().parent.parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

load_dotenv()

from subtracker.core.drafts import DraftStore
from subtracker.core.evaluator import (
    build_profile,
    evaluate,
    suggest_budget,
    summarize_subscriptions,
    validate,
)
from subtracker.core.insights import analyze_profile
from subtracker.core.resolvers import resolve_currency
from subtracker.core.settings import Settings, load_settings
from subtracker.core.supabase_client import SupabaseClient, SupabaseError
from subtracker.mcp.error_handling import handle_tool_errors
from subtracker.mcp.formatters import (
    format_budget_evaluation,
    format_budget_profile,
    format_budget_saved,
    format_budget_suggestion,
    format_draft,
    format_profile_deleted,
    format_profile_insights,
    format_save_failure,
    format_subscription_check,
    format_validation,
)
from subtracker.models.results import BudgetInput
from subtracker.models.schemas import (
    BudgetFormInput,
    CheckSubscriptionsInput,
    EvaluateBudgetInput,
    SaveBudgetInput,
    SuggestBudgetInput,
    UserLookupInput,
)

logger = logging.getLogger("subtracker")

# Draft key used when no user ID is known without a network call.
LOCAL_DRAFT_KEY = "local"


# --- Lifespan: initialize shared resources ---


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    settings = load_settings()
    client = SupabaseClient(
        url=settings.supabase_url,
        api_key=settings.supabase_anon_key,
        access_token=settings.access_token,
    )
    drafts = DraftStore(settings.drafts_file)
    logger.info("SubTracker server started (%s)", settings.environment)

    yield {"supabase": client, "drafts": drafts, "settings": settings}

    await client.close()


mcp = FastMCP("subtracker_mcp", lifespan=app_lifespan)


# --- Helpers ---


def _get_deps(ctx) -> tuple[SupabaseClient, DraftStore, Settings]:
    state = ctx.request_context.lifespan_context
    return state["supabase"], state["drafts"], state["settings"]


def _to_budget(params: BudgetFormInput) -> BudgetInput:
    return BudgetInput(
        income=params.income,
        categories=dict(params.categories),
        currency=params.currency,
    )


def _draft_key(settings: Settings, user_id: Optional[str]) -> str:
    return user_id or settings.user_id or LOCAL_DRAFT_KEY


def _keep_draft(drafts: DraftStore, key: str, budget: BudgetInput) -> Optional[str]:
    """Store the form locally after a failed save. Returns the stamp, or None
    if the drafts file can't be written."""
    try:
        return drafts.save_draft(key, budget)
    except OSError as e:
        logger.error("Could not write budget draft: %s", e)
        return None


async def _resolve_user_id(
    client: SupabaseClient, settings: Settings, user_id: Optional[str]
) -> str:
    """Explicit ID, then the configured one, then whoever owns the access token."""
    if user_id:
        return user_id
    if settings.user_id:
        return settings.user_id
    user = await client.get_user()
    return user.id


# --- Evaluation Tools (no network) ---


@mcp.tool(
    name="subtracker_validate_budget",
    annotations={
        "title": "Validate Budget",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
@handle_tool_errors
async def subtracker_validate_budget(params: BudgetFormInput, ctx: Context) -> str:
    """Check a budget form for invalid income, amounts, categories or currency."""
    return format_validation(validate(_to_budget(params)))


@mcp.tool(
    name="subtracker_evaluate_budget",
    annotations={
        "title": "Evaluate Budget",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
@handle_tool_errors
async def subtracker_evaluate_budget(params: EvaluateBudgetInput, ctx: Context) -> str:
    """Show category percentages, feedback, health score, emergency fund and
    subscription guidance for a monthly budget."""
    budget = _to_budget(params)
    validation = validate(budget)
    if not validation.is_valid:
        return format_validation(validation)
    result = evaluate(budget, detected_total=params.detected_total)
    return format_budget_evaluation(result)


@mcp.tool(
    name="subtracker_suggest_budget",
    annotations={
        "title": "Suggest Budget",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
@handle_tool_errors
async def subtracker_suggest_budget(params: SuggestBudgetInput, ctx: Context) -> str:
    """Suggest starting category amounts from monthly income."""
    currency = resolve_currency(params.currency)
    return format_budget_suggestion(suggest_budget(params.income, currency))


# --- Subscription Tools ---


@mcp.tool(
    name="subtracker_check_subscriptions",
    annotations={
        "title": "Check Subscriptions Against Budget",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
@handle_tool_errors
async def subtracker_check_subscriptions(params: CheckSubscriptionsInput, ctx: Context) -> str:
    """Compare detected subscriptions with the entertainment budget and the
    recommended subscription limit."""
    budget = _to_budget(params)
    validation = validate(budget)
    if not validation.is_valid:
        return format_validation(validation)

    subscriptions = params.subscriptions
    if not subscriptions:
        supabase, _, settings = _get_deps(ctx)
        user_id = await _resolve_user_id(supabase, settings, params.user_id)
        subscriptions = await supabase.get_subscriptions(user_id)

    summary = summarize_subscriptions(subscriptions, validation.currency)
    result = evaluate(budget, detected_total=summary.monthly_total)
    return format_subscription_check(summary, result)


# --- Profile Tools ---


@mcp.tool(
    name="subtracker_save_budget",
    annotations={
        "title": "Save Budget",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
@handle_tool_errors
async def subtracker_save_budget(params: SaveBudgetInput, ctx: Context) -> str:
    """Validate, evaluate and save a budget profile.

    Nothing is saved while the form has errors. If the save fails the form
    is kept as a local draft that can be restored later.
    """
    supabase, drafts, settings = _get_deps(ctx)
    budget = _to_budget(params)

    validation = validate(budget)
    if not validation.is_valid:
        return format_validation(validation)

    result = evaluate(budget)
    key = _draft_key(settings, params.user_id)

    try:
        user_id = await _resolve_user_id(supabase, settings, params.user_id)
        profile = build_profile(user_id, result, params.spending_limit_alerts)
        saved = await supabase.upsert_budget_profile(profile)
    except SupabaseError as e:
        logger.warning("Budget save failed (%s); keeping local draft", e)
        stamp = _keep_draft(drafts, key, budget)
        return format_save_failure(
            e.message, stamp, e.retry_after, e.is_conflict, e.is_retryable
        )
    except httpx.TransportError as e:
        logger.warning("Budget save failed (%s); keeping local draft", type(e).__name__)
        stamp = _keep_draft(drafts, key, budget)
        return format_save_failure(
            "Cannot connect to Supabase. Check your network connection.", stamp, retryable=True
        )

    try:
        drafts.discard_draft(key)
    except OSError as e:
        logger.warning("Could not clear budget draft: %s", e)
    return format_budget_saved(saved, result)


@mcp.tool(
    name="subtracker_get_budget_profile",
    annotations={
        "title": "Get Budget Profile",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
@handle_tool_errors
async def subtracker_get_budget_profile(params: UserLookupInput, ctx: Context) -> str:
    """Show the user's saved budget profile."""
    supabase, _, settings = _get_deps(ctx)
    user_id = await _resolve_user_id(supabase, settings, params.user_id)
    profile = await supabase.get_budget_profile(user_id)
    return format_budget_profile(profile)


@mcp.tool(
    name="subtracker_delete_budget_profile",
    annotations={
        "title": "Delete Budget Profile",
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
@handle_tool_errors
async def subtracker_delete_budget_profile(params: UserLookupInput, ctx: Context) -> str:
    """Delete the user's saved budget profile so it can be set up again."""
    supabase, _, settings = _get_deps(ctx)
    user_id = await _resolve_user_id(supabase, settings, params.user_id)
    await supabase.delete_budget_profile(user_id)
    logger.info("Deleted budget profile for user %s", user_id)
    return format_profile_deleted(user_id)


@mcp.tool(
    name="subtracker_profile_insights",
    annotations={
        "title": "Subscription Budget Insights",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
@handle_tool_errors
async def subtracker_profile_insights(params: UserLookupInput, ctx: Context) -> str:
    """Measure active subscriptions against the saved discretionary budget:
    daily safe spend, days until over budget, risk level, budget and
    trial-expiry alerts, and recommendations."""
    supabase, _, settings = _get_deps(ctx)
    user_id = await _resolve_user_id(supabase, settings, params.user_id)

    profile = await supabase.get_budget_profile(user_id)
    if profile is None:
        return format_budget_profile(None)

    subscriptions = await supabase.get_subscriptions(user_id, status=("active", "trial"))
    return format_profile_insights(analyze_profile(profile, subscriptions))


@mcp.tool(
    name="subtracker_restore_draft",
    annotations={
        "title": "Restore Budget Draft",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
@handle_tool_errors
async def subtracker_restore_draft(params: UserLookupInput, ctx: Context) -> str:
    """Show the budget form kept locally after a failed save."""
    _, drafts, settings = _get_deps(ctx)
    key = _draft_key(settings, params.user_id)
    return format_draft(drafts.load_draft(key), drafts.saved_at(key))


# --- Entry point ---

if __name__ == "__main__":
    mcp.run()
