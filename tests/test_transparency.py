"""Tests for trust signals: indicators, action history, permissions and the dashboard."""

from datetime import timedelta

import pytest

from majordomo.transparency import ActivityType, TrustSignals


@pytest.fixture
def trust(storage, clock):
    return TrustSignals(storage, clock)


# ============================================================================
# Activity indicators
# ============================================================================


def test_indicators_and_status(trust, clock):
    assert trust.activity_status() == "idle"
    assert trust.privacy_notice() is None

    screen = trust.start_activity(ActivityType.SCREEN_VIEW, "Reading the active window")
    clock.advance(1)
    trust.start_activity("action_execute", "Running setTimer", user_id="u1")

    assert [i.type for i in trust.active_indicators()] == [ActivityType.SCREEN_VIEW, ActivityType.ACTION_EXECUTE]
    assert trust.has_sensitive_activity()
    assert trust.activity_status() == "Majordomo is: viewing your screen, running an action"
    assert trust.privacy_notice() == "Privacy notice: Majordomo is currently viewing your screen."

    assert trust.stop_activity(screen)
    assert not trust.stop_activity(screen)
    assert not trust.has_sensitive_activity()
    assert trust.privacy_notice() is None


def test_unknown_activity_type_rejected(trust):
    with pytest.raises(ValueError):
        trust.start_activity("mind_reading", "nope")


@pytest.mark.asyncio
async def test_activity_context_manager_cleans_up(trust):
    with pytest.raises(RuntimeError):
        async with trust.activity(ActivityType.AUDIO_LISTEN, "Listening for wake word") as indicator_id:
            assert indicator_id.startswith("act_")
            assert trust.privacy_notice() == "Privacy notice: Majordomo is currently listening."
            raise RuntimeError("mic unplugged")

    assert trust.active_indicators() == []


# ============================================================================
# Action history
# ============================================================================


@pytest.mark.asyncio
async def test_action_lifecycle(trust):
    record_id = await trust.record_action(
        "u1", "setTimer", {"durationSeconds": 60}, initiated_by="user", approved=True, approval_method="auto",
    )
    pending = await trust.get_action(record_id)
    assert pending.result == "pending"
    assert pending.params == {"durationSeconds": 60}
    assert pending.approved

    assert await trust.complete_action(record_id, "success", duration_ms=12.5, side_effects=["Timer created"])
    done = await trust.get_action(record_id)
    assert done.result == "success"
    assert done.duration_ms == 12.5
    assert done.side_effects == ["Timer created"]
    assert done.error is None


@pytest.mark.asyncio
async def test_complete_action_validation(trust):
    record_id = await trust.record_action("u1", "getTime", {})
    with pytest.raises(ValueError):
        await trust.complete_action(record_id, "pending")
    assert not await trust.complete_action("ah_missing", "failure", error="gone")


@pytest.mark.asyncio
async def test_history_is_newest_first(trust, clock):
    ids = []
    for action in ("getTime", "setTimer", "getTime"):
        ids.append(await trust.record_action("u1", action, {}))
        clock.advance(1)
    await trust.record_action("u2", "getTime", {})

    history = await trust.action_history("u1")
    assert [r.id for r in history] == list(reversed(ids))
    assert len(await trust.action_history("u1", limit=2)) == 2
    assert [r.id for r in await trust.action_history("u1", action="setTimer")] == [ids[1]]


# ============================================================================
# Permissions
# ============================================================================


@pytest.mark.asyncio
async def test_permission_grant_revoke_and_expiry(trust, clock):
    assert not await trust.has_permission("u1", "screen_capture")

    await trust.set_permission("u1", "screen_capture", True, scope="active window", expires_at=clock.now() + timedelta(hours=1))
    assert await trust.has_permission("u1", "screen_capture")

    clock.advance(hours=2)
    assert not await trust.has_permission("u1", "screen_capture")

    await trust.set_permission("u1", "screen_capture", False)
    perm = await trust.get_permission("u1", "screen_capture")
    assert not perm.granted
    assert perm.expires_at is None


@pytest.mark.asyncio
async def test_permission_usage_survives_regrant(trust):
    await trust.set_permission("u1", "microphone", True)
    await trust.record_permission_usage("u1", "microphone")
    await trust.record_permission_usage("u1", "microphone")
    await trust.record_permission_usage("u1", "never_granted")

    regranted = await trust.set_permission("u1", "microphone", True, scope="wake word only")
    assert regranted.usage_count == 2
    assert regranted.last_used is not None
    assert regranted.scope == "wake word only"


# ============================================================================
# Dashboard
# ============================================================================


@pytest.mark.asyncio
async def test_trust_dashboard(trust, clock):
    empty = await trust.trust_dashboard("u1")
    assert empty.total_actions == 0
    assert empty.success_rate == 1.0

    for result in ("success", "success", "success", "failure", "cancelled"):
        record_id = await trust.record_action("u1", "setTimer", {})
        await trust.complete_action(record_id, result)
        clock.advance(1)
    await trust.record_action("u1", "getTime", {})
    await trust.set_permission("u1", "microphone", True)
    await trust.set_permission("u1", "contacts", False)
    trust.start_activity(ActivityType.LEARNING, "Updating habits")

    dashboard = await trust.trust_dashboard("u1", recent=3)
    assert dashboard.total_actions == 6
    assert dashboard.successful_actions == 3
    assert dashboard.failed_actions == 1
    assert dashboard.success_rate == pytest.approx(0.75)
    assert len(dashboard.recent_actions) == 3
    assert dashboard.recent_actions[0].result == "pending"
    assert (dashboard.granted_permissions, dashboard.denied_permissions) == (1, 1)
    assert len(dashboard.active_indicators) == 1
