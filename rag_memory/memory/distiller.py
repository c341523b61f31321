"""
Fact distillation from conversation turns.

Renders the recent dialog as a transcript, asks the extraction service for
candidate facts, validates them into RawFact and applies the admission
policy. Any extraction failure yields no facts.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from pydantic import ValidationError

from rag_memory.errors import CollaboratorUnavailable, ExtractionParseFailure
from .policy import FactQualityPolicy
from .schemas import MemorySource, RawFact, Turn

logger = logging.getLogger(__name__)

TurnLike = Union[Turn, Mapping[str, Any]]


class FactExtractor(Protocol):
    async def extract_facts(self, transcript: str) -> Optional[List[Dict[str, Any]]]:
        ...


def _as_turn(turn: TurnLike) -> Turn:
    if isinstance(turn, Turn):
        return turn
    return Turn(role=str(turn.get("role", "user")), content=str(turn.get("content", "")))


def render_transcript(turns: Sequence[TurnLike]) -> str:
    """Render turns as `role: content` lines, one per turn."""
    lines = []
    for turn in turns:
        t = _as_turn(turn)
        content = t.content.strip()
        if content:
            lines.append(f"{t.role.strip().lower() or 'user'}: {content}")
    return "\n".join(lines)


def coerce_raw_facts(payload: Sequence[Any]) -> List[RawFact]:
    """
    Validate loosely-typed extraction items into RawFact.

    Items that are not objects, lack string content, or fail validation
    are dropped.
    """
    facts: List[RawFact] = []
    for item in payload:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            logger.debug("Dropping malformed extraction item: %r", item)
            continue
        try:
            facts.append(RawFact.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping invalid extraction item %r: %s", item, e)
    return facts


class FactDistiller:
    """
    Extracts durable facts from the last `max_turns` turns of a conversation.
    """

    def __init__(
        self,
        extractor: FactExtractor,
        policy: Optional[FactQualityPolicy] = None,
        max_turns: int = 12,
        timeout: Optional[float] = None,
    ):
        if max_turns < 1:
            raise ValueError(f"max_turns must be positive, got {max_turns}")
        self.extractor = extractor
        self.policy = policy or FactQualityPolicy()
        self.max_turns = max_turns
        self.timeout = timeout

    async def distill_from_turns(
        self,
        turns: Sequence[TurnLike],
        conversation_id: Optional[str] = None,
    ) -> List[RawFact]:
        """
        Extract and filter candidate facts.

        Args:
            turns: Conversation turns, oldest first
            conversation_id: Reference recorded in each fact's provenance

        Returns:
            Admitted facts stamped with provenance; [] on any extraction failure
        """
        window = list(turns)[-self.max_turns:]
        transcript = render_transcript(window)
        if not transcript:
            return []

        payload = await self._extract(transcript)
        if not payload:
            return []

        extracted_at = time.time()
        admitted: List[RawFact] = []
        for fact in coerce_raw_facts(payload):
            reason = self.policy.rejection_reason(fact)
            if reason:
                logger.debug("Rejected fact %r: %s", fact.content[:60], reason)
                continue
            fact.source = MemorySource(
                origin="conversation",
                ref_id=conversation_id,
                extracted_at=extracted_at,
            )
            admitted.append(fact)

        logger.info(
            "Distilled %d/%d facts from %d turns (conversation=%s)",
            len(admitted), len(payload), len(window), conversation_id,
        )
        return admitted

    async def _extract(self, transcript: str) -> Optional[List[Any]]:
        try:
            return await asyncio.wait_for(
                self.extractor.extract_facts(transcript), timeout=self.timeout
            )
        except ExtractionParseFailure as e:
            logger.warning("Extraction output unparseable, no facts: %s", e)
        except Exception as e:
            logger.warning("%s", CollaboratorUnavailable("extract_facts", repr(e)))
        return None
