"""Supabase client wrapper.

Async HTTP client for the Supabase REST (PostgREST) and auth (GoTrue)
endpoints that back SubTracker. Handles authentication headers, error
mapping, and upserts against a ``budget_profiles`` table whose columns
may lag behind the app.
"""

import logging
import re
from typing import Any, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from subtracker.models.schemas import AuthUser, BudgetProfile, DetectedSubscription

DEFAULT_TIMEOUT = 30.0
PROFILES_PATH = "/rest/v1/budget_profiles"
SUBSCRIPTIONS_PATH = "/rest/v1/subscriptions"

_MISSING_COLUMN = re.compile(r"Could not find the '([^']+)' column")

logger = logging.getLogger("subtracker")


class SupabaseError(Exception):
    """Base exception for Supabase API errors."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        detail: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.detail = detail
        self.retry_after = retry_after
        super().__init__(f"Supabase Error [{status_code}] {code}: {message}")

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @property
    def is_retryable(self) -> bool:
        return self.status_code in (408, 429) or self.status_code >= 500


def _parse_retry_after(response: httpx.Response, body: dict[str, Any]) -> Optional[int]:
    raw = response.headers.get("Retry-After", body.get("retry_after"))
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class SupabaseClient:
    """Async client for the Supabase REST API."""

    def __init__(self, url: str, api_key: str, access_token: Optional[str] = None):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.access_token or self.api_key}",
                },
                timeout=DEFAULT_TIMEOUT,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make an authenticated request and return the decoded JSON body.

        Returns ``None`` for empty responses (e.g. ``204 No Content``).
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                params=params,
                json=json_data,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            try:
                body = e.response.json() if e.response.content else {}
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise SupabaseError(
                status_code=e.response.status_code,
                code=str(body.get("code") or body.get("error_code") or e.response.status_code),
                message=body.get("message") or body.get("msg") or body.get("error") or str(e),
                detail=body.get("details") or body.get("hint"),
                retry_after=_parse_retry_after(e.response, body),
            ) from e
        except httpx.TimeoutException as e:
            raise SupabaseError(
                status_code=408,
                code="timeout",
                message="Request to Supabase timed out. Please try again.",
            ) from e

        if not response.content:
            return None
        return response.json()

    # --- Auth ---

    async def get_user(self) -> AuthUser:
        """Get the user the access token belongs to."""
        data = await self._request("GET", "/auth/v1/user")
        return AuthUser(**(data or {}))

    # --- Budget profiles ---

    async def get_budget_profile(self, user_id: str) -> Optional[BudgetProfile]:
        """Get a user's budget profile, or ``None`` if they haven't saved one."""
        rows = await self._request(
            "GET",
            PROFILES_PATH,
            params={"user_id": f"eq.{user_id}", "select": "*", "limit": 1},
        )
        if not rows:
            return None
        return BudgetProfile.model_validate(rows[0])

    async def upsert_budget_profile(self, profile: BudgetProfile) -> BudgetProfile:
        """Insert or update a budget profile keyed by ``user_id``.

        If the table lacks one of the payload's columns, PostgREST answers
        ``PGRST204``; the column is dropped and the upsert retried, so an
        older schema still gets every column it does have.
        """
        row = profile.to_row()
        while True:
            try:
                data = await self._request(
                    "POST",
                    PROFILES_PATH,
                    params={"on_conflict": "user_id"},
                    json_data=row,
                    headers={"Prefer": "resolution=merge-duplicates,return=representation"},
                )
                break
            except SupabaseError as e:
                match = _MISSING_COLUMN.search(e.message or "")
                column = match.group(1) if match else None
                if column is None or column == "user_id" or column not in row:
                    raise
                logger.warning("budget_profiles has no '%s' column; retrying without it", column)
                row = {k: v for k, v in row.items() if k != column}

        if data:
            return BudgetProfile.model_validate(data[0])
        return BudgetProfile.model_validate(row)

    async def delete_budget_profile(self, user_id: str) -> None:
        """Delete a user's budget profile."""
        await self._request("DELETE", PROFILES_PATH, params={"user_id": f"eq.{user_id}"})

    # --- Subscriptions ---

    async def get_subscriptions(
        self,
        user_id: str,
        status: Union[str, Sequence[str], None] = "active",
    ) -> list[DetectedSubscription]:
        """Get a user's subscriptions, optionally filtered by one or more statuses.

        Rows that don't parse (unknown billing cycle, missing amount) are
        logged and skipped.
        """
        params = {"user_id": f"eq.{user_id}", "select": "*"}
        if status and isinstance(status, str):
            params["status"] = f"eq.{status}"
        elif status:
            params["status"] = f"in.({','.join(status)})"
        rows = await self._request("GET", SUBSCRIPTIONS_PATH, params=params) or []

        subscriptions = []
        for row in rows:
            try:
                subscriptions.append(DetectedSubscription.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "Skipping subscription %s: %d validation error(s)",
                    row.get("id", "?"), e.error_count(),
                )
        return subscriptions
