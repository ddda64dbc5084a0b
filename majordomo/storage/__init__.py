"""Durable row storage."""

from majordomo.storage.base import RowStore
from majordomo.storage.sqlite import SQLiteRowStore

__all__ = ["RowStore", "SQLiteRowStore"]
