"""Tests for MCP tools, run against a mocked Supabase transport."""

import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
import httpx

from tests.conftest import make_budget
from subtracker.core.drafts import DraftStore
from subtracker.core.settings import Settings
from subtracker.core.supabase_client import SupabaseClient
from subtracker.mcp.server import (
    subtracker_check_subscriptions,
    subtracker_delete_budget_profile,
    subtracker_evaluate_budget,
    subtracker_get_budget_profile,
    subtracker_profile_insights,
    subtracker_restore_draft,
    subtracker_save_budget,
    subtracker_suggest_budget,
    subtracker_validate_budget,
)
from subtracker.models.schemas import (
    BudgetFormInput,
    CheckSubscriptionsInput,
    EvaluateBudgetInput,
    SaveBudgetInput,
    SuggestBudgetInput,
    UserLookupInput,
)

BASE_URL = "https://abc.supabase.co"


def _not_called(request):
    raise AssertionError(f"unexpected request to {request.url}")


@pytest.fixture
def make_ctx(tmp_path):
    """Factory for a tool context wired to a mocked Supabase transport."""
    def _make(handler=_not_called, user_id="user-1"):
        client = SupabaseClient(url=BASE_URL, api_key="anon-key")
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url=BASE_URL,
            headers={"apikey": "anon-key", "Authorization": "Bearer anon-key"},
            timeout=30.0,
        )
        drafts = DraftStore(drafts_file=str(tmp_path / "drafts.json"))
        settings = Settings(
            supabase_url=BASE_URL,
            supabase_anon_key="anon-key",
            user_id=user_id,
        )
        state = {"supabase": client, "drafts": drafts, "settings": settings}
        return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=state))
    return _make


def _drafts(ctx) -> DraftStore:
    return ctx.request_context.lifespan_context["drafts"]


def _save_input(**overrides):
    data = {
        "income": "4000",
        "categories": {"housing": "1200", "food": "400", "transportation": "300", "savings": "400"},
    }
    data.update(overrides)
    return SaveBudgetInput(**data)


def _echo_profile(request):
    body = json.loads(request.content)
    return httpx.Response(201, json=[dict(body, id="bp-1")])


class TestEvaluationTools:
    async def test_validate_reports_errors(self, make_ctx):
        params = BudgetFormInput(income="0", categories={"housing": "-500"})
        result = await subtracker_validate_budget(params, make_ctx())
        assert "NonPositiveIncome" in result
        assert "NegativeAmount" in result

    async def test_evaluate(self, make_ctx):
        params = EvaluateBudgetInput(
            income="3000",
            categories={"housing": "900", "food": "400", "transportation": "300", "savings": "300"},
        )
        result = await subtracker_evaluate_budget(params, make_ctx())
        assert "**Remaining:** $1,100.00" in result
        assert "**Recommended subscription limit:** $220.00" in result

    async def test_evaluate_blocks_on_errors(self, make_ctx):
        params = EvaluateBudgetInput(income="1000", categories={"housing": "5000"})
        result = await subtracker_evaluate_budget(params, make_ctx())
        assert "CategoryExceedsIncome" in result
        assert "Budget Overview" not in result

    async def test_suggest(self, make_ctx):
        result = await subtracker_suggest_budget(SuggestBudgetInput(income=10000), make_ctx())
        assert "**Housing:** $2,500.00" in result

    async def test_suggest_unsupported_currency(self, make_ctx):
        result = await subtracker_suggest_budget(
            SuggestBudgetInput(income=1000, currency="XYZ"), make_ctx()
        )
        assert "No currency found matching 'XYZ'" in result


class TestCheckSubscriptions:
    async def test_uses_given_subscriptions(self, make_ctx):
        params = CheckSubscriptionsInput(
            income="3000",
            categories={"housing": "900", "entertainment": "150"},
            subscriptions=[
                {"name": "Netflix", "amount": "15.99", "category": "Streaming"},
                {"name": "Adobe", "amount": "755.64", "category": "Productivity", "frequency": "yearly"},
            ],
        )
        result = await subtracker_check_subscriptions(params, make_ctx())
        assert "**Monthly total:** $78.96" in result
        assert "That's 52% of entertainment budget" in result

    async def test_loads_active_subscriptions(self, make_ctx):
        def handler(request):
            assert request.url.path == "/rest/v1/subscriptions"
            assert request.url.params["user_id"] == "eq.user-1"
            return httpx.Response(200, json=[{"name": "Netflix", "amount": 15.99}])

        params = CheckSubscriptionsInput(income="3000", categories={"entertainment": "150"})
        result = await subtracker_check_subscriptions(params, make_ctx(handler))
        assert "Detected Subscriptions (1)" in result


class TestSaveBudget:
    async def test_saves_profile(self, make_ctx):
        ctx = make_ctx(_echo_profile)
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "Budget saved!" in result
        assert "`bp-1`" in result

    async def test_success_discards_old_draft(self, make_ctx):
        ctx = make_ctx(_echo_profile)
        _drafts(ctx).save_draft("user-1", make_budget("1000"))
        await subtracker_save_budget(_save_input(), ctx)
        assert _drafts(ctx).load_draft("user-1") is None

    async def test_blocks_on_input_errors(self, make_ctx):
        ctx = make_ctx()
        result = await subtracker_save_budget(_save_input(income="0"), ctx)
        assert "NonPositiveIncome" in result
        assert _drafts(ctx).load_draft("user-1") is None

    async def test_service_unavailable_keeps_draft(self, make_ctx):
        def handler(request):
            return httpx.Response(503, headers={"Retry-After": "30"}, json={"message": "Service unavailable"})

        ctx = make_ctx(handler)
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "Could not save budget" in result
        assert "retry in 30 seconds" in result
        assert "saved locally" in result

        draft = _drafts(ctx).load_draft("user-1")
        assert draft.income == "4000"
        assert draft.categories["housing"] == "1200"

    async def test_conflict_keeps_draft(self, make_ctx):
        def handler(request):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key"})

        ctx = make_ctx(handler)
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "modified in another window" in result
        assert _drafts(ctx).load_draft("user-1") is not None

    async def test_network_error_keeps_draft(self, make_ctx):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        ctx = make_ctx(handler)
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "Cannot connect to Supabase" in result
        assert _drafts(ctx).load_draft("user-1") is not None

    async def test_unwritable_drafts_still_reports_failure(self, make_ctx, tmp_path):
        def handler(request):
            return httpx.Response(503, headers={"Retry-After": "30"}, json={"message": "Service unavailable"})

        ctx = make_ctx(handler)
        # A directory where the drafts file should be makes every write fail.
        ctx.request_context.lifespan_context["drafts"] = DraftStore(drafts_file=str(tmp_path))
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "Could not save budget" in result
        assert "retry in 30 seconds" in result
        assert "could not be kept locally" in result
        assert "saved locally" not in result

    async def test_server_error_suggests_retrying(self, make_ctx):
        def handler(request):
            return httpx.Response(500, json={"message": "internal error"})

        result = await subtracker_save_budget(_save_input(), make_ctx(handler))
        assert "usually temporary" in result

    async def test_forbidden_has_no_retry_hint(self, make_ctx):
        def handler(request):
            return httpx.Response(403, json={"message": "permission denied"})

        result = await subtracker_save_budget(_save_input(), make_ctx(handler))
        assert "permission denied" in result
        assert "usually temporary" not in result

    async def test_restore_after_failure(self, make_ctx):
        def handler(request):
            return httpx.Response(500, json={"message": "internal error"})

        ctx = make_ctx(handler)
        await subtracker_save_budget(_save_input(), ctx)
        result = await subtracker_restore_draft(UserLookupInput(), ctx)
        assert "Restored Draft" in result
        assert "**housing:** 1200" in result

    async def test_resolves_user_from_token(self, make_ctx):
        seen = []

        def handler(request):
            if request.url.path == "/auth/v1/user":
                return httpx.Response(200, json={"id": "user-9"})
            seen.append(request)
            return _echo_profile(request)

        ctx = make_ctx(handler, user_id=None)
        result = await subtracker_save_budget(_save_input(), ctx)
        assert "Budget saved!" in result
        assert b'"user_id":"user-9"' in seen[0].content.replace(b" ", b"")


class TestProfileTools:
    async def test_get_profile(self, make_ctx):
        def handler(request):
            return httpx.Response(200, json=[{"user_id": "user-1", "monthly_income": 4000}])

        result = await subtracker_get_budget_profile(UserLookupInput(), make_ctx(handler))
        assert "**Monthly income:** $4,000.00" in result

    async def test_insights_without_profile(self, make_ctx):
        def handler(request):
            return httpx.Response(200, json=[])

        result = await subtracker_profile_insights(UserLookupInput(), make_ctx(handler))
        assert "No budget profile found" in result

    async def test_insights(self, make_ctx):
        def handler(request):
            if request.url.path == "/rest/v1/budget_profiles":
                return httpx.Response(200, json=[{
                    "user_id": "user-1",
                    "monthly_income": 5000,
                    "fixed_costs": 3000,
                    "savings_target": 500,
                    "discretionary_budget": 200,
                }])
            return httpx.Response(200, json=[{"name": "Netflix", "amount": 15.99, "category": "Streaming"}])

        result = await subtracker_profile_insights(UserLookupInput(), make_ctx(handler))
        assert "Subscription Budget Insights" in result
        assert "Streaming: $15.99" in result

    async def test_restore_without_draft(self, make_ctx):
        result = await subtracker_restore_draft(UserLookupInput(), make_ctx())
        assert result == "No saved draft found."

    async def test_insights_alert_on_trials(self, make_ctx):
        trial_end = date.today() + timedelta(days=2)

        def handler(request):
            if request.url.path == "/rest/v1/budget_profiles":
                return httpx.Response(200, json=[{
                    "user_id": "user-1",
                    "monthly_income": 5000,
                    "fixed_costs": 3000,
                    "savings_target": 500,
                    "discretionary_budget": 200,
                }])
            assert request.url.params["status"] == "in.(active,trial)"
            return httpx.Response(200, json=[
                {"name": "Netflix", "amount": 15.99, "category": "Streaming"},
                {"name": "Adobe", "amount": 20, "status": "trial", "trial_end_date": trial_end.isoformat()},
            ])

        result = await subtracker_profile_insights(UserLookupInput(), make_ctx(handler))
        assert "### Alerts" in result
        assert f"Adobe trial ends in 2 days ({trial_end})" in result
        assert "**Subscriptions this month:** $15.99" in result

    async def test_delete_profile(self, make_ctx):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        result = await subtracker_delete_budget_profile(UserLookupInput(), make_ctx(handler))
        assert "Budget profile for `user-1` deleted." in result
        assert seen[0].method == "DELETE"
        assert seen[0].url.params["user_id"] == "eq.user-1"

    async def test_delete_profile_reports_errors(self, make_ctx):
        def handler(request):
            return httpx.Response(401, json={"message": "JWT expired"})

        result = await subtracker_delete_budget_profile(UserLookupInput(), make_ctx(handler))
        assert "JWT expired" in result
