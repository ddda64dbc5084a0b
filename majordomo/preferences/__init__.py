"""Per-user preferences."""

from majordomo.preferences.models import UserPreferences
from majordomo.preferences.store import PreferenceStore

__all__ = ["UserPreferences", "PreferenceStore"]
