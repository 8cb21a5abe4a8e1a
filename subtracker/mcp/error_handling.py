"""Consistent error handling for MCP tool functions."""

from __future__ import annotations

import functools
import logging
from typing import Callable

import httpx
from pydantic import ValidationError

from subtracker.core.resolvers import ResolverError
from subtracker.core.supabase_client import SupabaseError

logger = logging.getLogger("subtracker")


def handle_tool_errors(fn: Callable) -> Callable:
    """Decorator that catches known exceptions and returns user-friendly error strings.

    MCP tools must return ``str``, not raise.  This ensures all tools
    follow that contract without duplicating try/except blocks.
    """

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except SupabaseError as e:
            message = f"Supabase error: {e.message}"
            if e.retry_after:
                message += f" Retry in {e.retry_after} seconds."
            return message
        except ResolverError as e:
            return str(e)
        except httpx.ConnectError:
            return "Cannot connect to Supabase. Check your network connection."
        except httpx.TimeoutException:
            return "Request to Supabase timed out. Please try again."
        except ValidationError as e:
            return f"Invalid data: {e.error_count()} validation error(s). Check your input."
        except ValueError as e:
            return str(e)
        except Exception as e:
            logger.exception("Unexpected error in tool %s", fn.__name__)
            return f"Unexpected error: {type(e).__name__}: {e}"

    return wrapper
