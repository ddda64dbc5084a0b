"""Tests for the interruption budget manager."""

import pytest

from majordomo.interruption import (
    DeliveryMethod,
    InterruptionBudget,
    InterruptionManager,
    InterruptionRequest,
    UserState,
)
from majordomo.interruption.types import InterruptionType


def _req(urgency: int = 5, type: InterruptionType = InterruptionType.NOTIFICATION, **kw) -> InterruptionRequest:
    return InterruptionRequest(type=type, urgency=urgency, content=kw.pop("content", "Your build finished"), **kw)


@pytest.fixture
def manager(clock):
    return InterruptionManager(InterruptionBudget(), clock)


def test_focused_budget_is_scaled_down(manager, clock):
    manager.set_user_state(UserState.FOCUSED)
    assert manager.effective_budget() == 2

    for _ in range(2):
        request = _req()
        assert manager.should_interrupt(request).should_interrupt
        manager.record_interruption(request.type, request.urgency)
        clock.advance(minutes=1)

    third = _req()
    decision = manager.should_interrupt(third)
    assert decision.should_interrupt is False
    assert decision.reason == "Hourly budget exhausted"
    assert manager.get_delivery_method(third) not in (DeliveryMethod.SPEAK, DeliveryMethod.DISPLAY)

    must_show = _req(can_defer=False)
    assert manager.get_delivery_method(must_show) == DeliveryMethod.BADGE


def test_budget_window_rolls_over(manager, clock):
    manager.set_user_state(UserState.FOCUSED)
    for _ in range(2):
        manager.record_interruption(InterruptionType.NOTIFICATION, 5)
        clock.advance(minutes=1)
    assert not manager.should_interrupt(_req()).should_interrupt

    clock.advance(hours=1)
    assert manager.should_interrupt(_req(urgency=7)).should_interrupt


def test_critical_and_high_urgency_bypass_everything(manager):
    manager.set_user_state(UserState.DND)
    assert manager.should_interrupt(_req(type=InterruptionType.CRITICAL, urgency=1)).should_interrupt
    assert manager.should_interrupt(_req(urgency=9)).should_interrupt
    assert not manager.should_interrupt(_req(urgency=8, can_defer=False)).should_interrupt


def test_zero_multiplier_defers_then_releases_on_state_change(manager):
    manager.set_user_state(UserState.MEETING)
    decision = manager.should_interrupt(_req(content="Package delivered"))
    assert decision.should_interrupt is False
    assert decision.defer_target == "active"
    assert decision.alternative_action == "queue"
    assert [r.content for r in manager.deferred_queue()] == ["Package delivered"]

    released = manager.set_user_state(UserState.ACTIVE)
    assert len(released) == 1
    request, fresh = released[0]
    assert request.content == "Package delivered"
    assert fresh.should_interrupt is True
    assert manager.deferred_queue() == []


def test_non_deferrable_in_meeting_is_silently_logged(manager):
    manager.set_user_state(UserState.MEETING)
    decision = manager.should_interrupt(_req(can_defer=False))
    assert decision.alternative_action == "silent_log"
    assert manager.deferred_queue() == []


def test_idle_target_waits_for_idle(manager):
    manager.set_user_state(UserState.AWAY)
    manager.should_interrupt(_req(defer_until="idle"))

    assert manager.set_user_state(UserState.ACTIVE) == []
    assert len(manager.deferred_queue()) == 1

    released = manager.set_user_state(UserState.IDLE)
    assert len(released) == 1
    assert manager.deferred_queue() == []


def test_clear_deferred(manager):
    manager.set_user_state(UserState.DND)
    manager.should_interrupt(_req())
    manager.should_interrupt(_req(content="second"))
    assert manager.clear_deferred() == 2
    assert manager.deferred_queue() == []


def test_cooldown(manager, clock):
    manager.record_interruption(InterruptionType.NOTIFICATION, 5)
    clock.advance(10)
    decision = manager.should_interrupt(_req())
    assert decision.should_interrupt is False
    assert (decision.deferred_until - clock.now()).total_seconds() == pytest.approx(20)

    clock.advance(21)
    assert manager.should_interrupt(_req()).should_interrupt


def test_per_minute_limit(clock):
    manager = InterruptionManager(InterruptionBudget(cooldown_ms=0, max_per_minute=2), clock)
    manager.record_interruption(InterruptionType.NOTIFICATION, 5)
    manager.record_interruption(InterruptionType.NOTIFICATION, 5)
    decision = manager.should_interrupt(_req())
    assert decision.reason == "Per-minute budget exhausted"

    clock.advance(61)
    assert manager.should_interrupt(_req()).should_interrupt


def test_focus_protection_after_long_session(manager, clock):
    manager.set_user_state(UserState.FOCUSED)
    clock.advance(minutes=16)
    assert manager.should_interrupt(_req(urgency=5)).reason.startswith("Protecting focus session")
    assert manager.should_interrupt(_req(urgency=7)).should_interrupt
    assert manager.focus_duration().total_seconds() == pytest.approx(16 * 60)

    manager.set_user_state(UserState.ACTIVE)
    assert manager.focus_duration() is None


def test_can_suggest(manager, clock):
    assert manager.can_suggest() is True

    manager.set_user_state(UserState.FOCUSED)
    assert manager.can_suggest() is False

    manager.set_user_state(UserState.ACTIVE)
    for _ in range(5):
        manager.record_interruption(InterruptionType.SUGGESTION, 3)
    clock.advance(120)
    assert manager.can_suggest() is False


def test_suggestion_cooldown_is_doubled(manager, clock):
    manager.record_interruption(InterruptionType.SUGGESTION, 3)
    clock.advance(45)
    assert manager.can_suggest() is False
    clock.advance(20)
    assert manager.can_suggest() is True


def test_delivery_methods(manager):
    assert manager.get_delivery_method(_req(urgency=5)) == DeliveryMethod.DISPLAY
    assert manager.get_delivery_method(_req(type=InterruptionType.URGENT, urgency=6)) == DeliveryMethod.SPEAK

    manager.set_user_state(UserState.IDLE)
    assert manager.get_delivery_method(_req(urgency=7)) == DeliveryMethod.SPEAK

    manager.set_user_state(UserState.MEETING)
    assert manager.get_delivery_method(_req()) == DeliveryMethod.DEFER
    assert manager.get_delivery_method(_req(can_defer=False)) == DeliveryMethod.SILENT


def test_stats(manager):
    manager.record_interruption(InterruptionType.ALERT, 6)
    manager.record_interruption("suggestion", 3)
    stats = manager.stats()
    assert stats.last_hour == 2
    assert stats.last_minute == 2
    assert stats.by_type == {"alert": 1, "suggestion": 1}
    assert stats.effective_budget == 10
    assert stats.state == UserState.ACTIVE
