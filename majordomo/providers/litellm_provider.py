"""LiteLLM provider implementation for multi-provider support."""

from typing import Any

import litellm
from litellm import acompletion, aembedding
from loguru import logger

from majordomo.errors import ProviderCallError
from majordomo.providers.base import ChatMessage, LLMProvider


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM.

    Covers OpenRouter, Anthropic, OpenAI, Gemini and local servers through
    one interface; the model string selects the backend.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-opus-4-5",
        embedding_model: str = "text-embedding-3-small",
        timeout: float = 30.0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.timeout = timeout

        litellm.suppress_debug_info = True
        litellm.drop_params = True

    def _auth_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs

    async def chat(self, messages: list[ChatMessage], **options: Any) -> str:
        model = options.pop("model", None) or self.default_model
        kwargs = {
            "model": model,
            "messages": messages,
            "max_tokens": options.pop("max_tokens", 1024),
            "temperature": options.pop("temperature", 0.2),
            **self._auth_kwargs(),
            **options,
        }
        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            logger.error(f"Provider: chat call to {model} failed: {e}")
            raise ProviderCallError(f"chat failed: {e}") from e

        content = response.choices[0].message.content
        return content or ""

    async def embed(self, text: str) -> list[float]:
        try:
            response = await aembedding(model=self.embedding_model, input=[text], **self._auth_kwargs())
        except Exception as e:
            raise ProviderCallError(f"embedding failed: {e}") from e
        return list(response.data[0]["embedding"])

    async def health_check(self) -> bool:
        try:
            reply = await self.chat([{"role": "user", "content": "ping"}], max_tokens=1)
        except ProviderCallError:
            return False
        return reply is not None
