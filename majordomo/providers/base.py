"""Minimal language-model contract: chat for planning, embed for memory."""

from abc import ABC, abstractmethod
from typing import Any, Literal, TypedDict


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    The model is only ever a planner; nothing here executes actions.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], **options: Any) -> str:
        """
        Send a chat completion request.

        Args:
            messages: Conversation so far.
            **options: model, max_tokens, temperature, ...

        Returns:
            The assistant's reply text.
        """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for ``text``."""

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the provider is reachable. Never raises."""
