"""Utility helpers for majordomo."""

from majordomo.utils.clock import Clock, ManualClock, SystemClock, hours_between

__all__ = ["Clock", "SystemClock", "ManualClock", "hours_between"]
