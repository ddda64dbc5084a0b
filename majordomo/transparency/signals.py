"""Trust signals: live activity indicators, an auditable action log and permissions."""

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Literal

from loguru import logger

from majordomo.params import Params
from majordomo.storage.base import Row, RowStore
from majordomo.utils.clock import Clock, SystemClock, from_iso, to_iso

ActionResult = Literal["pending", "success", "failure", "cancelled"]
InitiatedBy = Literal["user", "proactive", "scheduled", "goal"]


class ActivityType(str, Enum):
    SCREEN_VIEW = "screen_view"
    AUDIO_LISTEN = "audio_listen"
    ACTION_EXECUTE = "action_execute"
    DATA_ACCESS = "data_access"
    EXTERNAL_CALL = "external_call"
    LEARNING = "learning"


SENSITIVE_ACTIVITIES = {ActivityType.SCREEN_VIEW, ActivityType.AUDIO_LISTEN}

_VERBS = {
    ActivityType.SCREEN_VIEW: "viewing your screen",
    ActivityType.AUDIO_LISTEN: "listening",
    ActivityType.ACTION_EXECUTE: "running an action",
    ActivityType.DATA_ACCESS: "accessing your data",
    ActivityType.EXTERNAL_CALL: "contacting an external service",
    ActivityType.LEARNING: "learning from your activity",
}


@dataclass
class ActivityIndicator:
    id: str
    type: ActivityType
    description: str
    started_at: datetime
    user_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def sensitive(self) -> bool:
        return self.type in SENSITIVE_ACTIVITIES


@dataclass
class ActionRecord:
    id: str
    user_id: str
    action: str
    params: Params
    result: ActionResult
    initiated_by: InitiatedBy
    approved: bool
    approval_method: str | None
    duration_ms: float
    side_effects: list[str]
    created_at: datetime
    error: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "ActionRecord":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            action=row["action"],
            params=json.loads(row["params"] or "{}"),
            result=row["result"],
            initiated_by=row["initiated_by"],
            approved=bool(row["approved"]),
            approval_method=row["approval_method"],
            duration_ms=row["duration_ms"] or 0.0,
            side_effects=json.loads(row["side_effects"] or "[]"),
            created_at=from_iso(row["created_at"]),
            error=row.get("error"),
        )


@dataclass
class Permission:
    user_id: str
    permission: str
    granted: bool
    scope: str
    granted_at: datetime
    granted_by: str | None = None
    expires_at: datetime | None = None
    last_used: datetime | None = None
    usage_count: int = 0

    @classmethod
    def from_row(cls, row: Row) -> "Permission":
        return cls(
            user_id=row["user_id"],
            permission=row["permission"],
            granted=bool(row["granted"]),
            scope=row["scope"] or "",
            granted_at=from_iso(row["granted_at"]),
            granted_by=row["granted_by"],
            expires_at=from_iso(row["expires_at"]),
            last_used=from_iso(row["last_used"]),
            usage_count=row["usage_count"] or 0,
        )


@dataclass
class TrustDashboard:
    total_actions: int
    successful_actions: int
    failed_actions: int
    success_rate: float
    recent_actions: list[ActionRecord]
    granted_permissions: int
    denied_permissions: int
    active_indicators: list[ActivityIndicator]


class TrustSignals:
    """
    Keeps the user informed about what the assistant is doing.

    Indicators live in memory for the duration of an activity; action
    history and permissions are persisted so they survive restarts.
    """

    HISTORY_TABLE = "action_history"
    PERMISSIONS_TABLE = "permissions"

    def __init__(self, storage: RowStore, clock: Clock | None = None):
        self.storage = storage
        self.clock = clock or SystemClock()
        self._indicators: dict[str, ActivityIndicator] = {}

    # -- Activity indicators --

    def start_activity(
        self,
        type: ActivityType | str,
        description: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> str:
        indicator = ActivityIndicator(
            id=f"act_{uuid.uuid4().hex[:12]}",
            type=ActivityType(type),
            description=description,
            started_at=self.clock.now(),
            user_id=user_id,
            details=details or {},
        )
        self._indicators[indicator.id] = indicator
        logger.debug(f"Trust: started {indicator.type.value} ({description})")
        return indicator.id

    def stop_activity(self, indicator_id: str) -> bool:
        indicator = self._indicators.pop(indicator_id, None)
        if indicator is None:
            return False
        logger.debug(f"Trust: stopped {indicator.type.value} ({indicator.description})")
        return True

    @asynccontextmanager
    async def activity(
        self,
        type: ActivityType | str,
        description: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """Show an indicator for the duration of the block."""
        indicator_id = self.start_activity(type, description, user_id, details)
        try:
            yield indicator_id
        finally:
            self.stop_activity(indicator_id)

    def active_indicators(self) -> list[ActivityIndicator]:
        return sorted(self._indicators.values(), key=lambda i: i.started_at)

    def has_sensitive_activity(self) -> bool:
        return any(i.sensitive for i in self._indicators.values())

    def activity_status(self) -> str:
        """One-line status for a tray icon or status bar."""
        indicators = self.active_indicators()
        if not indicators:
            return "idle"
        verbs = []
        for indicator in indicators:
            verb = _VERBS[indicator.type]
            if verb not in verbs:
                verbs.append(verb)
        return "Majordomo is: " + ", ".join(verbs)

    def privacy_notice(self) -> str | None:
        """Notice to show while the screen or microphone is in use."""
        sensitive = [i for i in self.active_indicators() if i.sensitive]
        if not sensitive:
            return None
        what = " and ".join(sorted({_VERBS[i.type] for i in sensitive}))
        return f"Privacy notice: Majordomo is currently {what}."

    # -- Action history --

    async def record_action(
        self,
        user_id: str,
        action: str,
        params: Params,
        *,
        initiated_by: InitiatedBy = "user",
        approved: bool = False,
        approval_method: str | None = None,
    ) -> str:
        """Log an action as pending and return its history id."""
        record_id = f"ah_{uuid.uuid4().hex[:12]}"
        await self.storage.insert(self.HISTORY_TABLE, {
            "id": record_id,
            "user_id": user_id,
            "action": action,
            "params": json.dumps(params),
            "result": "pending",
            "initiated_by": initiated_by,
            "approved": int(approved),
            "approval_method": approval_method,
            "duration_ms": 0.0,
            "side_effects": "[]",
            "created_at": self.clock.now().isoformat(),
        })
        return record_id

    async def complete_action(
        self,
        record_id: str,
        result: ActionResult,
        *,
        duration_ms: float = 0.0,
        side_effects: list[str] | None = None,
        error: str | None = None,
    ) -> bool:
        if result == "pending":
            raise ValueError("complete_action needs a final result")
        updated = await self.storage.update(self.HISTORY_TABLE, record_id, {
            "result": result,
            "duration_ms": duration_ms,
            "side_effects": json.dumps(side_effects or []),
            "error": error,
        })
        if not updated:
            logger.warning(f"Trust: no action history entry {record_id}")
        return updated

    async def get_action(self, record_id: str) -> ActionRecord | None:
        row = await self.storage.get(self.HISTORY_TABLE, record_id)
        return ActionRecord.from_row(row) if row else None

    async def action_history(self, user_id: str, limit: int = 50, action: str | None = None) -> list[ActionRecord]:
        """Most recent actions first."""
        where: dict[str, Any] = {"user_id": user_id}
        if action:
            where["action"] = action
        rows = await self.storage.query(self.HISTORY_TABLE, where, order_by="created_at DESC", limit=limit)
        return [ActionRecord.from_row(r) for r in rows]

    # -- Permissions --

    async def set_permission(
        self,
        user_id: str,
        permission: str,
        granted: bool,
        *,
        scope: str = "",
        granted_by: str | None = "user",
        expires_at: datetime | None = None,
    ) -> Permission:
        perm_id = f"perm_{user_id}_{permission}"
        existing = await self.storage.get(self.PERMISSIONS_TABLE, perm_id)
        row = {
            "id": perm_id,
            "user_id": user_id,
            "permission": permission,
            "granted": int(granted),
            "scope": scope,
            "granted_at": self.clock.now().isoformat(),
            "granted_by": granted_by,
            "expires_at": to_iso(expires_at),
            "last_used": existing["last_used"] if existing else None,
            "usage_count": existing["usage_count"] if existing else 0,
        }
        await self.storage.upsert(self.PERMISSIONS_TABLE, row)
        logger.info(f"Trust: {'granted' if granted else 'revoked'} {permission} for {user_id}")
        return Permission.from_row(row)

    async def get_permission(self, user_id: str, permission: str) -> Permission | None:
        row = await self.storage.get(self.PERMISSIONS_TABLE, f"perm_{user_id}_{permission}")
        return Permission.from_row(row) if row else None

    async def has_permission(self, user_id: str, permission: str) -> bool:
        perm = await self.get_permission(user_id, permission)
        if perm is None or not perm.granted:
            return False
        if perm.expires_at and perm.expires_at <= self.clock.now():
            return False
        return True

    async def record_permission_usage(self, user_id: str, permission: str) -> None:
        perm = await self.get_permission(user_id, permission)
        if perm is None:
            return
        await self.storage.update(self.PERMISSIONS_TABLE, f"perm_{user_id}_{permission}", {
            "last_used": self.clock.now().isoformat(),
            "usage_count": perm.usage_count + 1,
        })

    async def permissions(self, user_id: str) -> list[Permission]:
        rows = await self.storage.query(self.PERMISSIONS_TABLE, {"user_id": user_id}, order_by="permission")
        return [Permission.from_row(r) for r in rows]

    # -- Dashboard --

    async def trust_dashboard(self, user_id: str, recent: int = 10) -> TrustDashboard:
        history = await self.action_history(user_id, limit=1000)
        successful = sum(1 for a in history if a.result == "success")
        failed = sum(1 for a in history if a.result == "failure")
        finished = successful + failed
        perms = await self.permissions(user_id)
        return TrustDashboard(
            total_actions=len(history),
            successful_actions=successful,
            failed_actions=failed,
            success_rate=successful / finished if finished else 1.0,
            recent_actions=history[:recent],
            granted_permissions=sum(1 for p in perms if p.granted),
            denied_permissions=sum(1 for p in perms if not p.granted),
            active_indicators=self.active_indicators(),
        )
