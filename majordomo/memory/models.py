"""Memory types."""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from majordomo.memory.text import blob_to_embedding, embedding_to_blob
from majordomo.utils.clock import from_iso, to_iso

MemoryType = Literal["ephemeral", "working", "long_term", "permanent"]
MemoryCategory = Literal["preference", "fact", "habit", "context", "relationship", "skill", "goal"]
MemorySource = Literal["user", "inferred", "observed", "system"]

# Next longer-lived type once a memory has been reinforced often enough.
PROMOTIONS: dict[str, str] = {"ephemeral": "working", "working": "long_term"}

_TIMESTAMPS = ("created_at", "last_accessed", "last_reinforced", "decayed_at")


class Memory(BaseModel):
    """Something the assistant knows about a user, with a decaying strength."""

    id: str
    user_id: str = Field(alias="userId")
    content: str
    type: MemoryType = "working"
    category: MemoryCategory = "fact"
    importance: int = Field(5, ge=1, le=10)
    strength: float = Field(1.0, ge=0.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    source: MemorySource = "user"
    embedding: list[float] | None = Field(None, repr=False)
    access_count: int = Field(0, alias="accessCount")
    reinforce_count: int = Field(0, alias="reinforceCount")
    created_at: datetime = Field(alias="createdAt")
    last_accessed: datetime = Field(alias="lastAccessed")
    last_reinforced: datetime = Field(alias="lastReinforced")
    decayed_at: datetime | None = Field(None, alias="decayedAt")

    model_config = {"populate_by_name": True}

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["keywords"] = json.dumps(self.keywords)
        row["entities"] = json.dumps(self.entities)
        row["embedding"] = embedding_to_blob(self.embedding)
        for key in _TIMESTAMPS:
            row[key] = to_iso(row[key])
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Memory":
        data = dict(row)
        data["keywords"] = json.loads(data.get("keywords") or "[]")
        data["entities"] = json.loads(data.get("entities") or "[]")
        data["embedding"] = blob_to_embedding(data.get("embedding"))
        for key in _TIMESTAMPS:
            data[key] = from_iso(data.get(key))
        return cls.model_validate(data)
