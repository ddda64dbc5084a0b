"""Transparency: what the assistant is doing, what it did, and what it may do."""

from majordomo.transparency.signals import (
    ActionRecord,
    ActivityIndicator,
    ActivityType,
    Permission,
    TrustDashboard,
    TrustSignals,
)

__all__ = [
    "ActionRecord",
    "ActivityIndicator",
    "ActivityType",
    "Permission",
    "TrustDashboard",
    "TrustSignals",
]
