"""
Async OpenAI-compatible chat client used for fact extraction and summaries.
"""

import logging
from typing import Any, Optional

from openai import AsyncOpenAI

from rag_memory.config.settings import LLMCfg

logger = logging.getLogger(__name__)


class ChatLLM:
    """
    Thin async wrapper around `chat.completions.create`.

    Returns None when no API key is configured or the provider returns no
    content; transport errors propagate to the caller, which decides how to
    degrade.
    """

    def __init__(self, config: LLMCfg, client: Optional[Any] = None):
        self.config = config
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or self.config.enabled

    def _get_client(self) -> Optional[Any]:
        if self._client is None and self.config.enabled:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> Optional[str]:
        """
        Send a single user message and return the reply text.

        Args:
            prompt: User message
            temperature: Sampling temperature
            max_tokens: Completion token limit

        Returns:
            Stripped reply text, or None if unavailable/empty
        """
        client = self._get_client()
        if client is None:
            return None

        response = await client.chat.completions.create(
            model=self.config.model_name,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response or not response.choices:
            return None
        content = response.choices[0].message.content
        return content.strip() if content else None

    async def aclose(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
