"""Autonomy decision engine.

``decide`` is a pure function of the proposed action, the tool's metadata,
the current world state and the learned approval patterns. It never
raises: missing information falls back to asking the user.
"""

import re
from typing import TYPE_CHECKING, Any

from loguru import logger

from majordomo.autonomy.patterns import ApprovalPatternCache
from majordomo.autonomy.types import ActionRequest, AutonomyLevel, Decision, WorldState
from majordomo.params import VOLATILE_KEYS, Params

if TYPE_CHECKING:
    from majordomo.executors.base import ToolCapability
    from majordomo.preferences.store import PreferenceStore

L = AutonomyLevel

DEFAULT_LEVELS: dict[str, AutonomyLevel] = {
    **dict.fromkeys([
        "getTime", "getDate", "getWeather", "getTimers", "getAlarms", "getReminders",
        "getList", "getAllLists", "getNote", "getAllNotes", "getDeviceState", "getAllDevices",
        "getCurrentTrack", "getSchedule", "getTasks", "getEmails", "recall", "getMemorySummary",
        "getMode", "getSystemStatus", "getHealthSummary", "calculate", "convert", "getNews",
        "getStockPrice", "getGoals",
    ], L.AUTO_APPROVE),
    **dict.fromkeys([
        "setTimer", "cancelTimer", "pauseTimer", "resumeTimer", "setAlarm", "cancelAlarm",
        "addToList", "removeFromList", "createNote", "setMode", "pauseMusic", "resumeMusic",
        "nextTrack", "previousTrack", "setVolume", "shuffleOn", "shuffleOff",
    ], L.ANNOUNCE),
    **dict.fromkeys([
        "playMusic", "controlDevice", "activateScene", "setReminder", "remember", "addTask",
        "completeTask", "announce", "analyzeImage", "createGoal",
    ], L.CONFIRM_SIMPLE),
    **dict.fromkeys([
        "createEvent", "deleteEvent", "clearList", "deleteNote", "cancelReminder", "sendEmail",
        "sendSMS", "forget", "completeGoal",
    ], L.CONFIRM_DETAILED),
}

NOISY_ACTIONS = frozenset({"playMusic", "announce", "setVolume"})
QUIET_MODES = frozenset({"focus", "dnd"})
# Actions that wake people up; announce-level ones need a yes at night.
NIGHT_SENSITIVE = frozenset({"playMusic", "announce", "controlDevice", "activateScene", "setTimer", "setAlarm", "setVolume"})

LOW_CONFIDENCE = 0.5
MODERATE_CONFIDENCE = 0.7
DETAILED_EXPIRY_S = 300
DEFAULT_EXPIRY_S = 120

_DISPLAY_SKIP = VOLATILE_KEYS | {"userId"}
_CAMEL = re.compile(r"([A-Z])")


def decide(
    request: ActionRequest,
    tool: "ToolCapability | None",
    world: WorldState,
    patterns: ApprovalPatternCache | None = None,
) -> Decision:
    """Classify a proposed action into an autonomy level."""
    action, params = request.action, request.params

    level = DEFAULT_LEVELS.get(action, L.CONFIRM_SIMPLE)
    escalated = False
    safety = tool.safety_level if tool else None
    if safety == "safe":
        level = L.AUTO_APPROVE
    elif safety in ("high_risk", "critical"):
        level = L.CONFIRM_DETAILED
        escalated = True

    confidence = request.confidence
    if confidence < LOW_CONFIDENCE:
        return Decision(
            level=L.CONFIRM_DETAILED,
            reason="Low confidence requires confirmation",
            display_message=f"I'm only {round(confidence * 100)}% confident about this.",
            display_params=format_params_for_display(params),
            expires_in_seconds=DETAILED_EXPIRY_S,
            escalated=True,
        )
    if confidence < MODERATE_CONFIDENCE and level == L.AUTO_APPROVE:
        level = L.ANNOUNCE

    if (
        level == L.CONFIRM_SIMPLE
        and tool is not None
        and tool.supports_auto_approval
        and patterns is not None
        and patterns.has_learned_approval(action, params, world.pattern_context)
    ):
        return Decision(
            level=L.ANNOUNCE,
            reason="Learned from previous approvals",
            display_message=request.reasoning or f"Executing {action} (previously approved pattern)",
            expires_in_seconds=DEFAULT_EXPIRY_S,
        )

    mode = world.user.mode
    if mode in QUIET_MODES and action in NOISY_ACTIONS:
        return Decision(
            level=L.CONFIRM_DETAILED,
            reason="Focus mode active - confirm audio changes",
            display_message=f"You're in {mode} mode. Still want to {action}?",
            display_params=format_params_for_display(params),
            expires_in_seconds=DETAILED_EXPIRY_S,
            escalated=True,
        )
    if mode == "guest" and level != L.AUTO_APPROVE:
        level = L.CONFIRM_DETAILED
        escalated = True

    is_night = world.time.time_of_day == "night" or mode == "night"
    if is_night and action in NIGHT_SENSITIVE and level == L.ANNOUNCE:
        level = L.CONFIRM_SIMPLE
        escalated = True

    display_message = None
    display_params = None
    if level.needs_confirmation:
        display_message = request.reasoning or f"Execute {action}?"
        display_params = format_params_for_display(params)
    elif level == L.ANNOUNCE:
        display_message = request.reasoning or format_announcement(action, params)

    return Decision(
        level=level,
        reason=f"Default for {action}",
        display_message=display_message,
        display_params=display_params,
        expires_in_seconds=DETAILED_EXPIRY_S if level == L.CONFIRM_DETAILED else DEFAULT_EXPIRY_S,
        escalated=escalated,
    )


def humanize_key(key: str) -> str:
    """``durationSeconds`` -> ``Duration Seconds``."""
    spaced = _CAMEL.sub(r" \1", key).strip()
    return spaced[:1].upper() + spaced[1:]


def _display_value(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value[:100] + "..." if len(value) > 100 else value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        shown = ", ".join(_display_value(v) or "" for v in value[:3])
        return shown + ("..." if len(value) > 3 else "")
    return None


def format_params_for_display(params: Params) -> dict[str, str]:
    """User-facing view of params: technical keys dropped, long values cut."""
    display: dict[str, str] = {}
    for key, value in params.items():
        if key in _DISPLAY_SKIP:
            continue
        rendered = _display_value(value)
        if rendered is not None:
            display[humanize_key(key)] = rendered
    return display


def format_announcement(action: str, params: Params) -> str:
    def label() -> str:
        return f": {params['label']}" if params.get("label") else ""

    templates = {
        "setTimer": lambda: f"Setting timer for {params.get('duration')} seconds{label()}",
        "setAlarm": lambda: f"Setting alarm for {params.get('time')}{label()}",
        "addToList": lambda: f'Adding "{params.get("item")}" to {params.get("listName")}',
        "setVolume": lambda: f"Setting volume to {params.get('volume')}%",
        "setMode": lambda: f"Switching to {params.get('mode')} mode",
        "playMusic": lambda: f'Playing "{params.get("query")}"',
        "pauseMusic": lambda: "Pausing music",
        "resumeMusic": lambda: "Resuming music",
        "nextTrack": lambda: "Skipping to next track",
    }
    template = templates.get(action)
    return template() if template else f"Executing {action}"


class AutonomyEngine:
    """
    Wraps ``decide`` with the learned-pattern cache and the user's preferences.
    """

    def __init__(self, patterns: ApprovalPatternCache, preferences: "PreferenceStore | None" = None):
        self.patterns = patterns
        self.preferences = preferences

    def decide(self, request: ActionRequest, tool: "ToolCapability | None", world: WorldState) -> Decision:
        decision = decide(request, tool, world, self.patterns)
        logger.debug(f"Autonomy: {request.action} -> {decision.level.value} ({decision.reason})")
        return decision

    def record_approval(self, request: ActionRequest, world: WorldState) -> None:
        pattern = self.patterns.record_approval(request.action, request.params, world.pattern_context, request.reasoning)
        logger.debug(f"Autonomy: {request.action} approved {pattern.approval_count}x")

    async def should_auto_approve(self, user_id: str, tool: "ToolCapability") -> bool:
        """Preference-level gate; with no preference store only risk-free tools pass."""
        if self.preferences is None:
            return tool.risk_level == "none"
        return await self.preferences.should_auto_approve(user_id, tool)

    @staticmethod
    def requires_simulation(tool: "ToolCapability") -> bool:
        return tool.risk_level not in ("none", "low")
