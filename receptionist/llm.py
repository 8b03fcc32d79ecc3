"""Thin async wrapper over the OpenAI API (chat completions + embeddings)."""

from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from receptionist.config import settings

log = logging.getLogger("receptionist.llm")


class LLMClient:
    """Lazily-constructed OpenAI client shared by polish, KB answers and summaries."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        embedding_model: str | None = None,
    ) -> None:
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.model = model or settings.openai_model
        self.embedding_model = embedding_model or settings.openai_embedding_model
        self._client: Optional[AsyncOpenAI] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def chat(self, messages: list[dict], temperature: float = 0.2) -> str:
        """Single completion; returns the stripped message text ("" if none)."""
        response = await self._get_client().chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        response = await self._get_client().embeddings.create(
            model=self.embedding_model,
            input=texts,
        )
        return [item.embedding for item in response.data]
