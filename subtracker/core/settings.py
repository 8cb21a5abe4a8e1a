"""Environment configuration for the SubTracker server.

Values come from the process environment (populated from ``.env`` by
``load_dotenv`` at server start).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urlparse

from subtracker.core.resolvers import ResolverError, resolve_currency
from subtracker.models.schemas import Currency


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    access_token: Optional[str] = None
    user_id: Optional[str] = None
    default_currency: Currency = Currency.USD
    drafts_file: Optional[str] = None
    environment: str = "development"


@dataclass
class EnvValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_environment(env: Mapping[str, str] | None = None) -> EnvValidationResult:
    """Check the environment for required and well-formed settings."""
    env = os.environ if env is None else env
    result = EnvValidationResult()

    url = env.get("SUPABASE_URL", "").strip()
    key = env.get("SUPABASE_ANON_KEY", "").strip()
    environment = env.get("SUBTRACKER_ENV", "development").strip() or "development"

    if not url:
        result.errors.append("SUPABASE_URL is required")
    else:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            result.errors.append("SUPABASE_URL is not a valid URL")
        else:
            host = parsed.hostname or ""
            if not host.endswith("supabase.co") and host not in ("localhost", "127.0.0.1"):
                result.warnings.append("SUPABASE_URL does not appear to be a Supabase instance")
            if environment == "production" and parsed.scheme != "https":
                result.errors.append("Production SUPABASE_URL must use HTTPS")

    if not key:
        result.errors.append("SUPABASE_ANON_KEY is required")
    elif not key.startswith("eyJ"):
        result.warnings.append("SUPABASE_ANON_KEY does not appear to be a JWT")

    currency = env.get("SUBTRACKER_DEFAULT_CURRENCY", "").strip()
    if currency:
        try:
            resolve_currency(currency)
        except ResolverError:
            result.errors.append(f"SUBTRACKER_DEFAULT_CURRENCY '{currency}' is not supported")

    return result


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from the environment.

    Raises ``RuntimeError`` listing every problem if the configuration is
    invalid.
    """
    env = os.environ if env is None else env
    validation = validate_environment(env)
    if not validation.is_valid:
        raise RuntimeError(
            "Environment configuration is invalid:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
            + "\nSet them in your environment or .env file."
        )

    currency = env.get("SUBTRACKER_DEFAULT_CURRENCY", "").strip()
    return Settings(
        supabase_url=env["SUPABASE_URL"].strip(),
        supabase_anon_key=env["SUPABASE_ANON_KEY"].strip(),
        access_token=env.get("SUBTRACKER_ACCESS_TOKEN") or None,
        user_id=env.get("SUBTRACKER_USER_ID") or None,
        default_currency=resolve_currency(currency) if currency else Currency.USD,
        drafts_file=env.get("SUBTRACKER_DRAFTS_FILE") or None,
        environment=env.get("SUBTRACKER_ENV", "development").strip() or "development",
    )
