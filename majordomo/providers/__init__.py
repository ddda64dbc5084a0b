"""LLM provider abstraction."""

from majordomo.providers.base import ChatMessage, LLMProvider
from majordomo.providers.litellm_provider import LiteLLMProvider

__all__ = ["ChatMessage", "LLMProvider", "LiteLLMProvider"]
