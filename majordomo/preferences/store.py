"""Preference store: defaults merged on read, deep-merged updates."""

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from majordomo.config.loader import convert_keys
from majordomo.preferences.models import RISK_ORDER, UserPreferences
from majordomo.storage.base import RowStore
from majordomo.utils.clock import Clock, SystemClock

if TYPE_CHECKING:
    from majordomo.executors.base import ToolCapability

# Which tolerance bucket governs a tool, by name prefix.
_CATEGORY_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("control", "activate", "set", "turn"), "device_control"),
    (("file", "write", "read"), "file_operations"),
    (("fetch", "search", "send", "http"), "network_requests"),
    (("notify", "announce", "remind"), "notifications"),
    (("delete", "remove", "clear", "update", "create", "add", "forget", "remember"), "data_modification"),
]


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``updates`` into a copy of ``base``."""
    out = dict(base)
    for k, v in updates.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def category_for(tool_name: str) -> str | None:
    name = tool_name.lower()
    for prefixes, category in _CATEGORY_HINTS:
        if any(name.startswith(p) for p in prefixes):
            return category
    return None


class PreferenceStore:
    """Per-user preferences persisted as one JSON row per user."""

    TABLE = "preferences"

    def __init__(self, storage: RowStore, clock: Clock | None = None):
        self.storage = storage
        self.clock = clock or SystemClock()
        self._cache: dict[str, UserPreferences] = {}

    async def get_preferences(self, user_id: str) -> UserPreferences:
        """Load preferences, merging stored overrides onto defaults."""
        if user_id in self._cache:
            return self._cache[user_id]

        defaults = UserPreferences(user_id=user_id).model_dump()
        row = await self.storage.get(self.TABLE, user_id)
        if row:
            try:
                stored = json.loads(row["data"])
                prefs = UserPreferences.model_validate(deep_merge(defaults, stored))
            except ValueError as e:
                logger.warning(f"Preferences: corrupt row for {user_id}, using defaults: {e}")
                prefs = UserPreferences(user_id=user_id)
        else:
            prefs = UserPreferences(user_id=user_id)

        self._cache[user_id] = prefs
        return prefs

    async def update_preferences(self, user_id: str, updates: dict[str, Any]) -> UserPreferences:
        """Deep-merge a partial update (snake_case or camelCase keys) and persist it."""
        current = await self.get_preferences(user_id)
        merged = deep_merge(current.model_dump(), convert_keys(updates))
        merged["user_id"] = user_id
        normalized = UserPreferences.model_validate(merged)
        await self._save(normalized)
        logger.info(f"Preferences: updated {user_id} ({', '.join(updates.keys())})")
        return normalized

    async def reset_to_defaults(self, user_id: str) -> UserPreferences:
        prefs = UserPreferences(user_id=user_id)
        await self._save(prefs)
        return prefs

    async def _save(self, prefs: UserPreferences) -> None:
        await self.storage.upsert(self.TABLE, {
            "id": prefs.user_id,
            "data": json.dumps(prefs.model_dump()),
            "updated_at": self.clock.now().isoformat(),
        })
        self._cache[prefs.user_id] = prefs

    async def should_auto_approve(self, user_id: str, capability: "ToolCapability") -> bool:
        """Whether the user lets this tool run without asking."""
        prefs = await self.get_preferences(user_id)
        autonomy = prefs.autonomy

        if not autonomy.enabled:
            return False

        risk_index = RISK_ORDER.index(capability.risk_level)
        if risk_index > RISK_ORDER.index(autonomy.max_auto_risk):
            return False
        if autonomy.confirm_external and capability.external_impact:
            return False
        if autonomy.confirm_irreversible and not capability.reversible:
            return False

        category = category_for(capability.name)
        if category:
            tolerance = getattr(prefs.category_tolerances, category)
            if risk_index * 25 > tolerance:
                return False

        return True

    async def can_interrupt(
        self,
        user_id: str,
        urgency: int,
        when: datetime | None = None,
        active_app: str | None = None,
    ) -> bool:
        prefs = await self.get_preferences(user_id)
        settings = prefs.interruptions
        hour = (when or self.clock.now()).hour

        start, end = settings.quiet_hours_start, settings.quiet_hours_end
        in_quiet = (hour >= start or hour < end) if start > end else (start <= hour < end)
        if in_quiet and urgency < 8:
            return False

        if active_app and urgency < 7:
            app = active_app.lower()
            if any(focus in app for focus in settings.focus_apps):
                return False

        return True

    async def record_feedback(self, user_id: str, helpful: bool, intrusive: bool) -> UserPreferences:
        """Nudge risk tolerance: helpful and unobtrusive +2, intrusive -5."""
        prefs = await self.get_preferences(user_id)
        delta = 0
        if helpful and not intrusive:
            delta = 2
        elif intrusive:
            delta = -5
        if delta == 0:
            return prefs
        tolerance = max(0, min(100, prefs.risk_tolerance + delta))
        return await self.update_preferences(user_id, {"risk_tolerance": tolerance})

    async def communication_style(self, user_id: str) -> dict[str, str]:
        prefs = await self.get_preferences(user_id)
        return prefs.communication.model_dump()
