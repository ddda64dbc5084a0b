"""SQLite row store. Blocking sqlite3 calls run in a worker thread."""

import asyncio
import re
import sqlite3
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from majordomo.errors import StorageError
from majordomo.storage.base import Row, RowStore

_IDENT = re.compile(r"^[a-z_][a-z0-9_]*$")

SCHEMA = """
CREATE TABLE IF NOT EXISTS goals (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    description TEXT NOT NULL,
    context TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    priority TEXT NOT NULL DEFAULT 'medium',
    parent_id TEXT REFERENCES goals(id),
    child_ids TEXT NOT NULL DEFAULT '[]',
    progress INTEGER NOT NULL DEFAULT 0,
    next_actions TEXT NOT NULL DEFAULT '[]',
    blockers TEXT NOT NULL DEFAULT '[]',
    tags TEXT NOT NULL DEFAULT '[]',
    attention_score REAL NOT NULL DEFAULT 1.0,
    interaction_count INTEGER NOT NULL DEFAULT 0,
    ttl_hours REAL NOT NULL DEFAULT 168,
    created_at TEXT NOT NULL,
    last_interaction_at TEXT NOT NULL,
    decayed_at TEXT,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_goals_user ON goals(user_id, status);

CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    content TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'working',
    category TEXT NOT NULL DEFAULT 'fact',
    importance INTEGER NOT NULL DEFAULT 5,
    strength REAL NOT NULL DEFAULT 1.0,
    keywords TEXT NOT NULL DEFAULT '[]',
    entities TEXT NOT NULL DEFAULT '[]',
    source TEXT NOT NULL DEFAULT 'user',
    embedding BLOB,
    access_count INTEGER NOT NULL DEFAULT 0,
    reinforce_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    last_accessed TEXT NOT NULL,
    last_reinforced TEXT NOT NULL,
    decayed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_memories_user ON memories(user_id, type);

CREATE TABLE IF NOT EXISTS action_history (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    action TEXT NOT NULL,
    params TEXT NOT NULL DEFAULT '{}',
    result TEXT NOT NULL DEFAULT 'pending',
    initiated_by TEXT NOT NULL DEFAULT 'user',
    approved INTEGER NOT NULL DEFAULT 0,
    approval_method TEXT,
    duration_ms REAL NOT NULL DEFAULT 0,
    side_effects TEXT NOT NULL DEFAULT '[]',
    error TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_action_history_user ON action_history(user_id, created_at);

CREATE TABLE IF NOT EXISTS permissions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    permission TEXT NOT NULL,
    granted INTEGER NOT NULL DEFAULT 1,
    scope TEXT NOT NULL DEFAULT '',
    granted_at TEXT NOT NULL,
    granted_by TEXT,
    expires_at TEXT,
    last_used TEXT,
    usage_count INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_permissions_user ON permissions(user_id);

CREATE TABLE IF NOT EXISTS preferences (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SQLiteRowStore(RowStore):
    """RowStore backed by a single sqlite3 connection guarded by an RLock."""

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._columns: dict[str, set[str]] = {}
        self._init_db()

    def _init_db(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()
            tables = [r[0] for r in self._conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
            for table in tables:
                cols = self._conn.execute(f"PRAGMA table_info({table})").fetchall()
                self._columns[table] = {c[1] for c in cols}
        logger.debug(f"Storage: opened {self.db_path} ({len(self._columns)} tables)")

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _check(self, table: str, columns) -> None:
        if table not in self._columns:
            raise StorageError(f"Unknown table: {table}")
        unknown = [c for c in columns if c not in self._columns[table]]
        if unknown:
            raise StorageError(f"Unknown columns for {table}: {', '.join(unknown)}")

    def _run(self, sql: str, args: tuple = ()) -> sqlite3.Cursor:
        if self._conn is None:
            raise StorageError("Store is closed")
        with self._lock:
            try:
                cursor = self._conn.execute(sql, args)
                self._conn.commit()
                return cursor
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"{e} [{sql.split()[0]}]") from e

    def _fetch(self, sql: str, args: tuple = ()) -> list[Row]:
        if self._conn is None:
            raise StorageError("Store is closed")
        with self._lock:
            try:
                return [dict(r) for r in self._conn.execute(sql, args).fetchall()]
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    @staticmethod
    def _where(where: Row | None) -> tuple[str, tuple]:
        if not where:
            return "", ()
        clauses: list[str] = []
        args: list[Any] = []
        for col, val in where.items():
            if isinstance(val, (list, tuple, set, frozenset)):
                vals = list(val)
                if not vals:
                    clauses.append("0")
                    continue
                clauses.append(f"{col} IN ({', '.join('?' for _ in vals)})")
                args.extend(vals)
            elif val is None:
                clauses.append(f"{col} IS NULL")
            else:
                clauses.append(f"{col} = ?")
                args.append(val)
        return " WHERE " + " AND ".join(clauses), tuple(args)

    # -- RowStore --

    async def insert(self, table: str, row: Row) -> None:
        self._check(table, row.keys())
        cols = list(row.keys())
        sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})"
        await asyncio.to_thread(self._run, sql, tuple(row[c] for c in cols))

    async def upsert(self, table: str, row: Row) -> None:
        self._check(table, row.keys())
        cols = list(row.keys())
        sql = f"INSERT OR REPLACE INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})"
        await asyncio.to_thread(self._run, sql, tuple(row[c] for c in cols))

    async def get(self, table: str, row_id: str) -> Row | None:
        self._check(table, ())
        rows = await asyncio.to_thread(self._fetch, f"SELECT * FROM {table} WHERE id = ?", (row_id,))
        return rows[0] if rows else None

    async def update(self, table: str, row_id: str, changes: Row) -> bool:
        if not changes:
            return await self.get(table, row_id) is not None
        self._check(table, changes.keys())
        sets = ", ".join(f"{c} = ?" for c in changes)
        sql = f"UPDATE {table} SET {sets} WHERE id = ?"
        cursor = await asyncio.to_thread(self._run, sql, (*changes.values(), row_id))
        return cursor.rowcount > 0

    async def delete(self, table: str, row_id: str) -> bool:
        self._check(table, ())
        cursor = await asyncio.to_thread(self._run, f"DELETE FROM {table} WHERE id = ?", (row_id,))
        return cursor.rowcount > 0

    async def query(
        self,
        table: str,
        where: Row | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        self._check(table, (where or {}).keys())
        clause, args = self._where(where)
        sql = f"SELECT * FROM {table}{clause}"
        if order_by:
            col, _, direction = order_by.partition(" ")
            direction = direction.strip().upper()
            if not _IDENT.match(col) or direction not in ("", "ASC", "DESC"):
                raise StorageError(f"Invalid order_by: {order_by}")
            self._check(table, (col,))
            sql += f" ORDER BY {col} {direction or 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            args = (*args, int(limit))
        return await asyncio.to_thread(self._fetch, sql, args)

    async def delete_where(self, table: str, where: Row) -> int:
        self._check(table, where.keys())
        clause, args = self._where(where)
        cursor = await asyncio.to_thread(self._run, f"DELETE FROM {table}{clause}", args)
        return cursor.rowcount
