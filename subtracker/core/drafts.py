"""Local draft store for budget forms.

Keeps the last unsaved budget per user on disk so a failed save never
loses what the user typed. Drafts are plain JSON.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from subtracker.models.results import BudgetInput

logger = logging.getLogger("subtracker")


def _to_json_value(value: Any) -> Optional[str]:
    # Amounts are kept as text so Decimals survive the round trip.
    if value is None or isinstance(value, str):
        return value
    return str(value)


class DraftStore:
    """Persists unsaved budget forms keyed by user ID."""

    def __init__(self, drafts_file: Optional[str] = None):
        self._drafts_file = drafts_file or str(
            Path.home() / ".subtracker" / "drafts.json"
        )
        self._drafts: dict[str, dict] = {}
        self._load()

    def _load(self):
        """Load drafts from disk."""
        path = Path(self._drafts_file)
        if path.exists():
            try:
                self._drafts = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable drafts file %s: %s", path, e)
                self._drafts = {}

    def _save(self):
        """Persist drafts to disk."""
        path = Path(self._drafts_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self._drafts, indent=2))

    def save_draft(
        self,
        user_id: str,
        budget: BudgetInput,
        saved_at: Optional[datetime] = None,
    ) -> str:
        """Store the form snapshot for *user_id*. Returns the save timestamp."""
        stamp = (saved_at or datetime.now(timezone.utc)).isoformat()
        self._drafts[user_id] = {
            "income": _to_json_value(budget.income),
            "categories": {
                str(k): _to_json_value(v) for k, v in budget.categories.items()
            },
            "currency": budget.currency,
            "saved_at": stamp,
        }
        self._save()
        logger.debug("Saved budget draft for user %s", user_id)
        return stamp

    def load_draft(self, user_id: str) -> Optional[BudgetInput]:
        """Rebuild the stored form snapshot, or ``None`` if there is none."""
        draft = self._drafts.get(user_id)
        if not draft:
            return None
        return BudgetInput(
            income=draft.get("income"),
            categories=dict(draft.get("categories") or {}),
            currency=draft.get("currency") or "USD",
        )

    def saved_at(self, user_id: str) -> Optional[str]:
        draft = self._drafts.get(user_id)
        return draft.get("saved_at") if draft else None

    def discard_draft(self, user_id: str) -> bool:
        """Drop a user's draft. Returns whether one existed."""
        if user_id not in self._drafts:
            return False
        del self._drafts[user_id]
        self._save()
        return True
