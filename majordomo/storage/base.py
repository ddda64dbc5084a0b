"""Abstract row store interface.

Stores above this layer see a durable key/row store: rows are flat dicts of
scalars (str, int, float, bytes, None) keyed by an ``id`` column.
"""

from abc import ABC, abstractmethod
from typing import Any

Row = dict[str, Any]


class RowStore(ABC):
    """Async CRUD plus equality-filtered queries over named tables."""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> None:
        """Insert a new row. Raises StorageError on duplicate id."""

    @abstractmethod
    async def upsert(self, table: str, row: Row) -> None:
        """Insert or replace a row by id."""

    @abstractmethod
    async def get(self, table: str, row_id: str) -> Row | None:
        """Fetch one row by id."""

    @abstractmethod
    async def update(self, table: str, row_id: str, changes: Row) -> bool:
        """Apply column changes; returns False if the row does not exist."""

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> bool:
        """Delete one row; returns False if nothing was deleted."""

    @abstractmethod
    async def query(
        self,
        table: str,
        where: Row | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """
        Select rows.

        Args:
            where: Column equality filters. A list/tuple/set value means IN.
            order_by: Column name, optionally suffixed with " DESC".
            limit: Max rows.
        """

    @abstractmethod
    async def delete_where(self, table: str, where: Row) -> int:
        """Delete all matching rows and return the count."""

    async def count(self, table: str, where: Row | None = None) -> int:
        return len(await self.query(table, where))

    def close(self) -> None:
        """Release resources."""
