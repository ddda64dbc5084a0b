"""Tests for the orchestrator: lifecycle, governance of intents and the loops."""

from unittest.mock import AsyncMock

import pytest

from majordomo.errors import InvalidStateError, NotFoundError, ParamValidationError, UnknownToolError
from majordomo.orchestrator import Orchestrator, OrchestratorState, build_services
from majordomo.orchestrator.scheduler import ManualTicker
from majordomo.perception import StaticPerceptionSource
from majordomo.simulation import Recommendation

LOOPS = ("perception", "cognition", "action", "heartbeat")
DEVICE_ON = {"entityId": "light.hall", "action": "on"}


@pytest.fixture
def perception(clock):
    return StaticPerceptionSource(clock)


@pytest.fixture
def services(storage, clock, home, perception):
    svc = build_services(storage=storage, clock=clock, perception=perception)
    svc.registry.register(home)
    return svc


@pytest.fixture
def tickers():
    return {name: ManualTicker() for name in LOOPS}


@pytest.fixture
def orch(services, tickers):
    return Orchestrator(services, tickers)


def collect(bus, topic="*"):
    events = []

    async def on_event(event):
        events.append(event)

    bus.subscribe(topic, on_event)
    return events


# ============================================================================
# Lifecycle
# ============================================================================


@pytest.mark.asyncio
async def test_lifecycle_transitions(orch, services):
    changes = collect(services.bus, "stateChanged")

    with pytest.raises(InvalidStateError):
        await orch.pause()
    with pytest.raises(InvalidStateError):
        await orch.resume()
    await orch.stop()

    await orch.start(user_id="u1")
    assert orch.state == OrchestratorState.RUNNING
    assert orch.user_id == "u1"
    assert all(h.running for h in orch.health().values())
    with pytest.raises(InvalidStateError):
        await orch.start()
    with pytest.raises(InvalidStateError):
        await orch.resume()

    await orch.pause()
    assert orch.state == OrchestratorState.PAUSED
    await orch.resume()
    await orch.stop()

    assert orch.state == OrchestratorState.STOPPED
    assert not any(h.running for h in orch.health().values())
    assert [(e.previous, e.current) for e in changes] == [
        ("stopped", "starting"),
        ("starting", "running"),
        ("running", "paused"),
        ("paused", "running"),
        ("running", "stopping"),
        ("stopping", "stopped"),
    ]


@pytest.mark.asyncio
async def test_start_takes_a_baseline_snapshot(orch, services):
    await orch.start()
    await orch.stop()
    assert services.snapshots.stats().total_snapshots == 1


@pytest.mark.asyncio
async def test_paused_orchestrator_leaves_the_queue_alone(orch, tickers, home):
    await orch.start()
    await orch.submit_request("setTimer", {"durationSeconds": 30})
    await orch.pause()

    await tickers["action"].tick()
    assert home.executed == []
    assert len(orch.queued_intents()) == 1

    await orch.resume()
    await tickers["action"].tick()
    await orch.stop()
    assert home.executed == [("setTimer", {"durationSeconds": 30})]


# ============================================================================
# Submitting requests
# ============================================================================


@pytest.mark.asyncio
async def test_submit_rejects_unknown_tools_and_bad_params(orch):
    with pytest.raises(UnknownToolError):
        await orch.submit_request("launchRocket")
    with pytest.raises(ParamValidationError):
        await orch.submit_request("setTimer", ["not", "a", "dict"])
    assert orch.queued_intents() == []


@pytest.mark.asyncio
async def test_immediate_safe_request_runs_and_is_recorded(orch, services, home):
    completed = collect(services.bus, "actionComplete")

    intent_id = await orch.submit_request("getTime", immediate=True)
    await services.bus.drain()

    assert home.executed == [("getTime", {})]
    [event] = completed
    assert event.intent_id == intent_id
    assert event.success
    assert event.output == "12:00"
    assert event.change_id is not None

    change = services.snapshots.get_change(event.change_id)
    assert "memories.total" in {d.dotted_path for d in change.diffs}

    [record] = await services.trust.action_history("default")
    assert record.result == "success"
    assert record.approval_method == "auto"
    assert record.initiated_by == "user"

    memories = await services.memory.recall("default", "executed getTime")
    assert memories[0].content == "Successfully executed getTime"
    assert services.trust.active_indicators() == []


@pytest.mark.asyncio
async def test_failed_execution_is_reported(orch, services):
    completed = collect(services.bus, "actionComplete")

    await orch.submit_request("explode", immediate=True)
    await services.bus.drain()

    assert not completed[0].success
    assert completed[0].status == "failed"
    assert completed[0].error_code == "EXECUTION_ERROR"
    [record] = await services.trust.action_history("default")
    assert record.result == "failure"
    assert record.error == "Error executing explode: kaboom"
    assert (await services.memory.stats("default")).total == 0


@pytest.mark.asyncio
async def test_unexpected_errors_never_escape(orch, services):
    services.registry.execute = AsyncMock(side_effect=RuntimeError("registry exploded"))
    intent_id = await orch.submit_request("getTime")
    [intent] = orch.queued_intents()
    assert intent.id == intent_id

    outcome = await orch.process_intent(intent)
    assert outcome.status == "failed"
    assert outcome.result.error.code == "EXECUTION_ERROR"
    assert not outcome.result.error.recoverable
    assert services.trust.active_indicators() == []


@pytest.mark.asyncio
async def test_critical_action_is_aborted_by_simulation(orch, services, home):
    completed = collect(services.bus, "actionComplete")

    await orch.submit_request("wipeDisk", immediate=True)
    await services.bus.drain()

    assert home.executed == []
    assert completed[0].status == "aborted"
    assert not completed[0].success
    [record] = await services.trust.action_history("default")
    assert record.result == "cancelled"
    assert orch.pending_confirmations() == []


# ============================================================================
# Confirmations
# ============================================================================


@pytest.mark.asyncio
async def test_confirmation_flow(orch, services, home):
    asked = collect(services.bus, "confirmationRequired")

    intent_id = await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)
    await services.bus.drain()

    assert home.executed == []
    pending = orch.get_pending(intent_id)
    assert pending.simulation.recommendation == Recommendation.CAUTION
    [event] = asked
    assert event.level == "confirm_simple"
    assert event.delivery == "display"
    assert "Risk level: medium." in event.summary
    assert (await orch.capture_state())["pendingConfirmations"] == [intent_id]

    outcome = await orch.confirm_action(intent_id)
    assert outcome.success
    assert home.executed == [("controlDevice", DEVICE_ON)]
    assert orch.pending_confirmations() == []
    [record] = await services.trust.action_history("default")
    assert record.approval_method == "confirmed"

    with pytest.raises(NotFoundError):
        await orch.confirm_action(intent_id)


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_name, params, mode, confidence, level", [
    ("getTime", {}, "normal", 0.3, "confirm_detailed"),
    ("setTimer", {"durationSeconds": 60}, "guest", 0.8, "confirm_detailed"),
    ("playMusic", {"query": "jazz"}, "focus", 0.8, "confirm_detailed"),
    ("setTimer", {"durationSeconds": 60}, "night", 0.8, "confirm_simple"),
])
async def test_context_gates_are_not_waived_by_preferences(
    orch, tickers, services, home, perception, tool_name, params, mode, confidence, level,
):
    asked = collect(services.bus, "confirmationRequired")
    perception.update(user_mode=mode)
    await orch.start()
    await tickers["perception"].tick()

    capability = services.registry.get_capability(tool_name)
    assert await services.autonomy.should_auto_approve("default", capability)

    intent_id = await orch.submit_request(tool_name, params, confidence=confidence, immediate=True)
    await services.bus.drain()
    await orch.stop()

    assert home.executed == []
    assert orch.get_pending(intent_id) is not None
    assert asked[0].level == level


@pytest.mark.asyncio
async def test_preferences_waive_a_default_simple_confirmation(orch, services, home):
    intent_id = await orch.submit_request("playMusic", {"query": "jazz"}, immediate=True)

    assert orch.get_pending(intent_id) is None
    assert home.executed == [("playMusic", {"query": "jazz"})]


@pytest.mark.asyncio
async def test_repeated_approvals_stop_the_questions(orch, services, home):
    for _ in range(3):
        intent_id = await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)
        await orch.confirm_action(intent_id)

    await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)
    assert orch.pending_confirmations() == []
    assert len(home.executed) == 4


@pytest.mark.asyncio
async def test_expired_confirmation_cannot_be_confirmed(orch, clock, home):
    intent_id = await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)
    clock.advance(121)

    with pytest.raises(NotFoundError):
        await orch.confirm_action(intent_id)
    assert home.executed == []
    assert orch.get_pending(intent_id) is None


@pytest.mark.asyncio
async def test_reject_is_remembered(orch, services):
    rejected = collect(services.bus, "actionRejected")
    intent_id = await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)

    assert await orch.reject_action(intent_id, "it's daytime")
    assert not await orch.reject_action(intent_id)
    await services.bus.drain()

    assert rejected[0].reason == "it's daytime"
    facts = await services.memory.matching("default", "rejected action")
    assert [m.content for m in facts] == ["Rejected action: controlDevice - it's daytime"]


@pytest.mark.asyncio
async def test_cancel_confirmation(orch):
    intent_id = await orch.submit_request("controlDevice", DEVICE_ON, immediate=True)
    assert orch.cancel_confirmation(intent_id)
    assert not orch.cancel_confirmation(intent_id)


# ============================================================================
# Queue and loops
# ============================================================================


@pytest.mark.asyncio
async def test_action_loop_follows_priority(orch, tickers, home, services):
    queued = collect(services.bus, "intentQueued")
    await orch.start()
    await orch.submit_request("setTimer", {"durationSeconds": 1}, priority=1)
    await orch.submit_request("setTimer", {"durationSeconds": 2}, priority=9)
    await orch.submit_request("setTimer", {"durationSeconds": 3}, priority=5)

    await tickers["action"].tick(4)
    await orch.stop()

    assert [p["durationSeconds"] for _, p in home.executed] == [2, 3, 1]
    assert [e.queue_size for e in queued] == [1, 2, 3]


@pytest.mark.asyncio
async def test_expired_intents_are_dropped(orch, tickers, home, clock):
    await orch.start()
    await orch.submit_request("setTimer", {"durationSeconds": 5}, ttl_seconds=10)
    clock.advance(11)
    await tickers["action"].tick()
    await orch.stop()

    assert home.executed == []
    assert orch.queued_intents() == []


@pytest.mark.asyncio
async def test_heartbeat(orch, tickers, services):
    beats = collect(services.bus, "heartbeat")
    await orch.start()
    await orch.submit_request("setTimer", {"durationSeconds": 5})
    await tickers["heartbeat"].tick()
    await orch.stop()

    assert beats[0].state == "running"
    assert beats[0].queue_size == 1
    assert orch.health()["heartbeat"].tick_count == 1


@pytest.mark.asyncio
async def test_perception_tick_notes_the_active_window(orch, tickers, services, perception):
    perception.update(active_app="Excel", active_window="Q3 budget.xlsx", user_mode="night")
    await orch.start()
    await tickers["perception"].tick()
    await tickers["perception"].tick()

    perception.update(user_state="idle")
    await tickers["perception"].tick()
    await orch.stop()

    [memory] = await services.memory.matching("default", "focused on")
    assert memory.content == "User focused on Excel: Q3 budget.xlsx"
    assert memory.type == "ephemeral"
    assert memory.source == "observed"
    assert memory.reinforce_count == 0
    assert services.interruptions.state.value == "idle"
    assert orch.world_state().user.mode == "night"
    assert orch.status()["perception"]["active_app"] == "Excel"


@pytest.mark.asyncio
async def test_cognition_proposes_goal_steps_once(orch, tickers, services, home):
    await orch.create_goal("Know the time", priority=8, steps=["getTime"])
    await orch.create_goal("Bake", steps=["bakeCake"])
    await orch.create_goal("Clean up", steps=["wipeDisk"])

    await orch.start()
    await tickers["cognition"].tick()
    [intent] = orch.queued_intents()
    assert intent.source == "goal"
    assert intent.reasoning == "Next step for goal: Know the time"

    await tickers["cognition"].tick()
    assert len(orch.queued_intents()) == 1

    await tickers["action"].tick()
    await orch.stop()
    assert home.executed == [("getTime", {})]


@pytest.mark.asyncio
async def test_reactive_users_get_no_proposals(orch, services):
    await services.preferences.update_preferences("default", {"communication": {"proactivity": "reactive"}})
    await orch.create_goal("Know the time", steps=["getTime"])
    assert await orch.check_proactive_actions() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("user_state, delivery", [("active", "display"), ("meeting", "silent")])
async def test_goal_confirmations_respect_interruption_budget(orch, services, user_state, delivery):
    await services.preferences.update_preferences("default", {
        "autonomy": {"maxAutoRisk": "medium"},
        "categoryTolerances": {"deviceControl": 60},
    })
    await orch.create_goal("Air the room", steps=["controlDevice"])
    services.interruptions.set_user_state(user_state)
    asked = collect(services.bus, "confirmationRequired")

    assert await orch.check_proactive_actions() == 1
    [intent] = orch.queued_intents()
    outcome = await orch.process_intent(intent)
    await services.bus.drain()

    assert outcome.status == "awaiting_confirmation"
    assert outcome.simulation.recommendation == Recommendation.RECONSIDER
    assert asked[0].delivery == delivery
    assert asked[0].message == "Execute controlDevice?"


# ============================================================================
# Goals and status
# ============================================================================


@pytest.mark.asyncio
async def test_create_goal_maps_priority(orch, services):
    goal_id = await orch.create_goal("Ship it", priority=10, steps=["Write changelog"])
    goal = await services.goals.get_goal(goal_id)
    assert goal.priority == "critical"
    assert goal.next_actions == ["Write changelog"]

    with pytest.raises(ValueError):
        await orch.create_goal("Nope", priority=0)

    state = await orch.capture_state()
    assert state["goals"][goal_id]["priority"] == "critical"


def test_status_when_stopped(orch):
    status = orch.status()
    assert status["state"] == "stopped"
    assert status["queueDepth"] == 0
    assert status["perception"] is None
    assert status["activity"] == "idle"
    assert set(status["health"]) == set(LOOPS)
