"""
Summarizers that shrink memory text to a character budget.
"""

import logging

from rag_memory.memory.compressor import truncate_to_budget
from .llm import ChatLLM
from .prompts import build_summary_prompt

logger = logging.getLogger(__name__)


class TruncatingSummarizer:
    """No-model summarizer: keeps the leading text that fits the budget."""

    async def summarize(self, text: str, budget: int) -> str:
        return truncate_to_budget(text, budget)


class LLMSummarizer:
    """
    Prompts a chat model for a compact fact summary.

    The reply is hard-capped at the budget, since models don't count
    characters reliably.
    """

    def __init__(self, llm: ChatLLM, temperature: float = 0.3):
        self.llm = llm
        self.temperature = temperature

    async def summarize(self, text: str, budget: int) -> str:
        # ~4 characters per token, with headroom to finish a sentence
        max_tokens = max(32, budget // 3)
        reply = await self.llm.complete(
            build_summary_prompt(text, budget),
            temperature=self.temperature,
            max_tokens=max_tokens,
        )
        if not reply:
            raise RuntimeError("summarizer returned no text")
        if len(reply) > budget:
            logger.debug("Summary over budget (%d > %d), truncating", len(reply), budget)
        return truncate_to_budget(reply, budget)
