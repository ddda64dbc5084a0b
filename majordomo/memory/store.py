"""Memory store with type-dependent decay, reinforcement and semantic de-duplication."""

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from majordomo.memory.models import PROMOTIONS, Memory, MemoryCategory, MemorySource, MemoryType
from majordomo.memory.text import cosine_similarity, extract_entities, extract_keywords
from majordomo.storage.base import RowStore
from majordomo.utils.clock import Clock, SystemClock, hours_between

if TYPE_CHECKING:
    from majordomo.providers.base import LLMProvider

DECAY_RATES: dict[str, float] = {"ephemeral": 0.2, "working": 0.05, "long_term": 0.002, "permanent": 0.0}
REINFORCE_BOOSTS: dict[str, float] = {"ephemeral": 0.3, "working": 0.2, "long_term": 0.1, "permanent": 0.0}

# Recall scoring weights
W_SEMANTIC = 0.6
W_KEYWORD = 0.2
W_IMPORTANCE = 0.1
W_RECENCY = 0.1
RECENT_HOURS = 24


@dataclass
class DecayResult:
    decayed: int = 0
    pruned: int = 0


@dataclass
class MemoryStats:
    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    average_strength: float = 0.0


class MemoryStore:
    """
    Per-user memories persisted in the ``memories`` table.

    Strength decays hourly at a rate set by the memory type and is restored
    by reinforcement. Embeddings are optional: when the provider is missing
    or failing, de-duplication falls back to exact text match and recall
    falls back to keywords.
    """

    TABLE = "memories"

    def __init__(
        self,
        storage: RowStore,
        embedder: "LLMProvider | None" = None,
        clock: Clock | None = None,
        *,
        decay_rates: dict[str, float] | None = None,
        reinforce_boosts: dict[str, float] | None = None,
        min_strength: float = 0.1,
        dedup_threshold: float = 0.95,
        promote_to_working: int = 5,
        promote_to_long_term: int = 10,
    ):
        self.storage = storage
        self.embedder = embedder
        self.clock = clock or SystemClock()
        self.decay_rates = {**DECAY_RATES, **(decay_rates or {})}
        self.reinforce_boosts = {**REINFORCE_BOOSTS, **(reinforce_boosts or {})}
        self.min_strength = min_strength
        self.dedup_threshold = dedup_threshold
        self.promotion_thresholds = {"ephemeral": promote_to_working, "working": promote_to_long_term}

    # -- Writes --

    async def remember(
        self,
        user_id: str,
        content: str,
        *,
        type: MemoryType = "working",
        category: MemoryCategory = "fact",
        importance: int = 5,
        keywords: list[str] | None = None,
        entities: list[str] | None = None,
        source: MemorySource = "user",
    ) -> Memory:
        """
        Store a memory, or reinforce an equivalent one that already exists.

        Returns:
            The new memory, or the existing memory that was reinforced.
        """
        content = content.strip()
        if not content:
            raise ValueError("content cannot be empty")

        embedding = await self._embed(content)

        similar = await self._find_similar(user_id, content, embedding)
        if similar is not None:
            logger.debug(f"Memory: '{content[:40]}' matches {similar.id}, reinforcing")
            return await self.reinforce(similar.id) or similar

        now = self.clock.now()
        memory = Memory(
            id=f"mem_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            content=content,
            type=type,
            category=category,
            importance=importance,
            strength=1.0,
            keywords=keywords if keywords is not None else extract_keywords(content),
            entities=entities if entities is not None else extract_entities(content),
            source=source,
            embedding=embedding,
            created_at=now,
            last_accessed=now,
            last_reinforced=now,
        )
        await self.storage.insert(self.TABLE, memory.to_row())
        logger.info(f"Memory: stored {memory.id} ({type}/{category}) for {user_id}")
        return memory

    async def reinforce(self, memory_id: str) -> Memory | None:
        memory = await self.get(memory_id)
        if memory is None:
            return None

        count = memory.reinforce_count + 1
        changes: dict[str, Any] = {
            "strength": min(1.0, memory.strength + self.reinforce_boosts[memory.type]),
            "reinforce_count": count,
            "last_reinforced": self.clock.now().isoformat(),
        }
        threshold = self.promotion_thresholds.get(memory.type)
        if threshold is not None and count >= threshold:
            changes["type"] = PROMOTIONS[memory.type]
            logger.info(f"Memory: promoted {memory_id} {memory.type} -> {changes['type']}")

        await self.storage.update(self.TABLE, memory_id, changes)
        return await self.get(memory_id)

    async def promote(self, memory_id: str, new_type: MemoryType) -> bool:
        return await self.storage.update(self.TABLE, memory_id, {"type": new_type})

    async def forget(self, memory_id: str) -> bool:
        deleted = await self.storage.delete(self.TABLE, memory_id)
        if deleted:
            logger.info(f"Memory: forgot {memory_id}")
        return deleted

    async def forget_matching(self, user_id: str, query: str) -> int:
        """Delete non-permanent memories whose content contains ``query`` (case-insensitive)."""
        ids = [m.id for m in await self.matching(user_id, query)]
        for memory_id in ids:
            await self.storage.delete(self.TABLE, memory_id)
        if ids:
            logger.info(f"Memory: forgot {len(ids)} memories matching '{query}' for {user_id}")
        return len(ids)

    async def apply_decay(self) -> DecayResult:
        """
        Decay every non-permanent memory, then prune the weak ones.

        Only the time since the later of the last access and the previous
        pass is charged, so running this twice in a row changes nothing.
        """
        now = self.clock.now()
        result = DecayResult()

        for row in await self.storage.query(self.TABLE):
            memory = Memory.from_row(row)
            rate = self.decay_rates.get(memory.type, 0.0)
            if rate == 0 or memory.strength <= 0:
                continue

            since = memory.last_accessed
            if memory.decayed_at and memory.decayed_at > since:
                since = memory.decayed_at
            loss = hours_between(since, now) * rate
            if loss <= 0:
                continue

            await self.storage.update(self.TABLE, memory.id, {
                "strength": max(0.0, memory.strength - loss),
                "decayed_at": now.isoformat(),
            })
            result.decayed += 1

        for row in await self.storage.query(self.TABLE):
            if row["type"] != "permanent" and row["strength"] < self.min_strength:
                await self.storage.delete(self.TABLE, row["id"])
                result.pruned += 1

        if result.pruned:
            logger.info(f"Memory: decay pass touched {result.decayed}, pruned {result.pruned}")
        return result

    # -- Reads --

    async def get(self, memory_id: str) -> Memory | None:
        row = await self.storage.get(self.TABLE, memory_id)
        return Memory.from_row(row) if row else None

    async def recall(
        self,
        user_id: str,
        query: str,
        *,
        category: MemoryCategory | None = None,
        type: MemoryType | None = None,
        min_strength: float | None = None,
        limit: int = 10,
    ) -> list[Memory]:
        """
        Rank the user's memories against a query.

        score = 0.6 * cosine + 0.2 * keyword overlap
                + 0.1 * (importance / 10) * strength + 0.1 if accessed in the last 24h
        """
        floor = self.min_strength if min_strength is None else min_strength
        query_embedding = await self._embed(query, purpose="query")
        query_keywords = extract_keywords(query)
        now = self.clock.now()

        where: dict[str, Any] = {}
        if category:
            where["category"] = category
        if type:
            where["type"] = type

        scored: list[tuple[float, Memory]] = []
        for memory in await self._load(user_id, **where):
            if memory.strength < floor:
                continue
            score = 0.0
            if query_embedding is not None and memory.embedding is not None:
                score += W_SEMANTIC * cosine_similarity(query_embedding, memory.embedding)
            if query_keywords:
                text = memory.content.lower()
                matches = sum(1 for k in query_keywords if k in text)
                score += W_KEYWORD * matches / len(query_keywords)
            score += W_IMPORTANCE * (memory.importance / 10) * memory.strength
            if hours_between(memory.last_accessed, now) < RECENT_HOURS:
                score += W_RECENCY
            scored.append((score, memory))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        results = []
        for _, memory in scored[:limit]:
            await self.storage.update(self.TABLE, memory.id, {
                "access_count": memory.access_count + 1,
                "last_accessed": now.isoformat(),
            })
            results.append(memory.model_copy(update={"access_count": memory.access_count + 1, "last_accessed": now}))
        return results

    async def matching(self, user_id: str, query: str) -> list[Memory]:
        """Non-permanent memories whose content contains ``query``, case-insensitive. No access bump."""
        needle = query.lower()
        return [m for m in await self._load(user_id) if needle in m.content.lower() and m.type != "permanent"]

    async def preferences(self, user_id: str) -> list[Memory]:
        return await self._strongest(user_id, "preference")

    async def habits(self, user_id: str) -> list[Memory]:
        return await self._strongest(user_id, "habit")

    async def context_summary(self, user_id: str) -> str:
        parts = []
        prefs = await self.preferences(user_id)
        if prefs:
            parts.append("Preferences: " + "; ".join(m.content for m in prefs[:5]))
        habits = await self.habits(user_id)
        if habits:
            parts.append("Habits: " + "; ".join(m.content for m in habits[:5]))
        return "\n".join(parts) or "No significant memories."

    async def stats(self, user_id: str) -> MemoryStats:
        memories = await self._load(user_id)
        by_type: dict[str, int] = {}
        by_category: dict[str, int] = {}
        for m in memories:
            by_type[m.type] = by_type.get(m.type, 0) + 1
            by_category[m.category] = by_category.get(m.category, 0) + 1
        avg = sum(m.strength for m in memories) / len(memories) if memories else 0.0
        return MemoryStats(total=len(memories), by_type=by_type, by_category=by_category, average_strength=avg)

    # -- Internals --

    async def _load(self, user_id: str, **where: Any) -> list[Memory]:
        rows = await self.storage.query(self.TABLE, {"user_id": user_id, **where}, order_by="created_at")
        return [Memory.from_row(r) for r in rows]

    async def _strongest(self, user_id: str, category: str) -> list[Memory]:
        memories = [m for m in await self._load(user_id, category=category) if m.strength >= self.min_strength]
        memories.sort(key=lambda m: (m.importance, m.strength), reverse=True)
        return memories

    async def _embed(self, text: str, purpose: str = "memory") -> list[float] | None:
        if self.embedder is None:
            return None
        try:
            return await self.embedder.embed(text)
        except Exception as e:
            logger.warning(f"Memory: embedding failed for {purpose}, continuing without vector: {e}")
            return None

    async def _find_similar(self, user_id: str, content: str, embedding: list[float] | None) -> Memory | None:
        normalized = content.lower().strip()
        candidates = await self._load(user_id)

        for memory in candidates:
            if memory.content.lower().strip() == normalized:
                return memory

        if embedding is not None:
            for memory in candidates:
                if memory.embedding is not None and cosine_similarity(embedding, memory.embedding) >= self.dedup_threshold:
                    return memory
        return None
