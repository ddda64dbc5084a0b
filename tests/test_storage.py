"""Tests for the SQLite row store."""

import pytest

from majordomo.errors import StorageError
from majordomo.storage.sqlite import SQLiteRowStore


def _pref(row_id: str, data: str = "{}", updated_at: str = "2026-01-01T00:00:00+00:00") -> dict:
    return {"id": row_id, "data": data, "updated_at": updated_at}


@pytest.mark.asyncio
async def test_insert_get_update_delete(storage):
    await storage.insert("preferences", _pref("alice"))
    assert (await storage.get("preferences", "alice"))["data"] == "{}"

    assert await storage.update("preferences", "alice", {"data": '{"x": 1}'}) is True
    assert (await storage.get("preferences", "alice"))["data"] == '{"x": 1}'

    assert await storage.update("preferences", "nobody", {"data": "{}"}) is False
    assert await storage.delete("preferences", "alice") is True
    assert await storage.delete("preferences", "alice") is False
    assert await storage.get("preferences", "alice") is None


@pytest.mark.asyncio
async def test_duplicate_insert_raises_storage_error(storage):
    await storage.insert("preferences", _pref("alice"))
    with pytest.raises(StorageError):
        await storage.insert("preferences", _pref("alice"))


@pytest.mark.asyncio
async def test_upsert_replaces(storage):
    await storage.upsert("preferences", _pref("alice", "{}"))
    await storage.upsert("preferences", _pref("alice", '{"v": 2}'))
    assert await storage.count("preferences") == 1
    assert (await storage.get("preferences", "alice"))["data"] == '{"v": 2}'


@pytest.mark.asyncio
async def test_unknown_table_or_column_rejected(storage):
    with pytest.raises(StorageError):
        await storage.get("nope", "x")
    with pytest.raises(StorageError):
        await storage.insert("preferences", {"id": "a", "data": "{}", "updated_at": "t", "evil; DROP": 1})
    with pytest.raises(StorageError):
        await storage.query("preferences", order_by="updated_at; DROP TABLE goals")


@pytest.mark.asyncio
async def test_query_filters_in_null_order_and_limit(storage):
    rows = [
        ("p1", "goal one", "active", None, "2026-01-01T01:00:00+00:00"),
        ("p2", "goal two", "paused", None, "2026-01-01T02:00:00+00:00"),
        ("c1", "child", "active", "p1", "2026-01-01T03:00:00+00:00"),
        ("p3", "done", "completed", None, "2026-01-01T04:00:00+00:00"),
    ]
    for gid, desc, status, parent, created in rows:
        await storage.insert("goals", {
            "id": gid,
            "user_id": "u",
            "description": desc,
            "status": status,
            "parent_id": parent,
            "created_at": created,
            "last_interaction_at": created,
        })

    top = await storage.query("goals", {"parent_id": None, "status": ["active", "paused"]}, order_by="created_at")
    assert [r["id"] for r in top] == ["p1", "p2"]

    latest = await storage.query("goals", {"user_id": "u"}, order_by="created_at DESC", limit=2)
    assert [r["id"] for r in latest] == ["p3", "c1"]

    assert await storage.query("goals", {"status": []}) == []
    assert await storage.delete_where("goals", {"status": "active"}) == 2
    assert await storage.count("goals") == 2


@pytest.mark.asyncio
async def test_rows_survive_reopen(tmp_path):
    path = tmp_path / "nested" / "store.db"
    store = SQLiteRowStore(path)
    await store.insert("preferences", _pref("alice", '{"keep": true}'))
    store.close()

    reopened = SQLiteRowStore(path)
    try:
        assert (await reopened.get("preferences", "alice"))["data"] == '{"keep": true}'
    finally:
        reopened.close()


@pytest.mark.asyncio
async def test_closed_store_raises(tmp_path):
    store = SQLiteRowStore(tmp_path / "x.db")
    store.close()
    with pytest.raises(StorageError):
        await store.get("preferences", "a")
