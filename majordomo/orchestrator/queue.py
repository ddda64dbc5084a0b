"""Priority queue of intents."""

from majordomo.orchestrator.models import Intent


class IntentQueue:
    """
    Highest priority first; equal priorities keep arrival order.

    A plain list with insertion before the first lower-priority entry.
    """

    def __init__(self):
        self._items: list[Intent] = []

    def push(self, intent: Intent) -> int:
        """Insert an intent and return its position."""
        index = next((i for i, queued in enumerate(self._items) if queued.priority < intent.priority), len(self._items))
        self._items.insert(index, intent)
        return index

    def pop(self) -> Intent | None:
        return self._items.pop(0) if self._items else None

    def peek(self) -> Intent | None:
        return self._items[0] if self._items else None

    def remove(self, intent_id: str) -> bool:
        for i, intent in enumerate(self._items):
            if intent.id == intent_id:
                del self._items[i]
                return True
        return False

    def snapshot(self) -> list[Intent]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, intent_id: str) -> bool:
        return any(i.id == intent_id for i in self._items)
