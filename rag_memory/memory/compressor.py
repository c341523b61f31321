"""
Context compression.

Joins selected memories into one block of text and, when it exceeds the
character budget, asks a summarizer to shrink it.
"""

import asyncio
import logging
from typing import Optional, Protocol, Sequence

from .schemas import Memory

logger = logging.getLogger(__name__)

MEMORY_BLOCK_HEADER = "<memory_context>"
MEMORY_BLOCK_FOOTER = "</memory_context>"


class Summarizer(Protocol):
    async def summarize(self, text: str, budget: int) -> str:
        ...


def truncate_to_budget(text: str, budget: int) -> str:
    """
    Cut `text` to at most `budget` characters, preferring a word boundary.

    An ellipsis marks the cut when there is room for one.
    """
    if budget <= 0:
        return ""
    if len(text) <= budget:
        return text
    if budget <= 3:
        return text[:budget]

    cut = text[:budget - 3]
    boundary = max(cut.rfind("\n"), cut.rfind(" "))
    # Only back off to a boundary if it keeps at least half the text
    if boundary > (budget - 3) // 2:
        cut = cut[:boundary]
    return cut.rstrip() + "..."


def format_memory_block(text: str) -> str:
    """Wrap memory text in the labelled section handed to the generator."""
    if not text:
        return ""
    return (
        f"{MEMORY_BLOCK_HEADER}\n"
        "Known facts about the user (use when relevant):\n"
        f"{text}\n"
        f"{MEMORY_BLOCK_FOOTER}"
    )


class ContextCompressor:
    """
    Turns a memory selection into a bounded memory block.

    The summarizer is only called when the joined content is over budget.
    If it fails, times out, or returns more than the budget, the text is
    truncated instead.
    """

    def __init__(
        self,
        summarizer: Optional[Summarizer] = None,
        budget_chars: int = 1000,
        timeout: Optional[float] = None,
    ):
        if budget_chars < 1:
            raise ValueError(f"budget_chars must be positive, got {budget_chars}")
        self.summarizer = summarizer
        self.budget_chars = budget_chars
        self.timeout = timeout

    @staticmethod
    def join(memories: Sequence[Memory]) -> str:
        return "\n".join(m.content for m in memories)

    async def compress(self, memories: Sequence[Memory], budget_chars: Optional[int] = None) -> str:
        """
        Build the memory block for `memories` (selection order preserved).

        Args:
            memories: Selected memories
            budget_chars: Override for the configured budget

        Returns:
            Memory block, or "" when there is nothing to include
        """
        if not memories:
            return ""
        budget = self.budget_chars if budget_chars is None else budget_chars

        text = self.join(memories)
        if len(text) > budget:
            text = await self.shrink(text, budget)

        return format_memory_block(text)

    async def shrink(self, text: str, budget: int) -> str:
        """Reduce `text` to `budget` characters via the summarizer, else truncation."""
        if self.summarizer is not None:
            try:
                summary = await asyncio.wait_for(
                    self.summarizer.summarize(text, budget), timeout=self.timeout
                )
            except Exception as e:
                logger.warning("Summarizer unavailable, truncating memory context: %r", e)
            else:
                if summary and len(summary) <= budget:
                    return summary
                logger.warning(
                    "Summarizer returned %d chars for a %d budget, truncating",
                    len(summary or ""), budget,
                )
        return truncate_to_budget(text, budget)
