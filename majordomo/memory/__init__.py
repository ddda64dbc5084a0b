"""Decaying user memories."""

from majordomo.memory.models import Memory, MemoryCategory, MemoryType
from majordomo.memory.store import MemoryStore

__all__ = ["Memory", "MemoryCategory", "MemoryType", "MemoryStore"]
