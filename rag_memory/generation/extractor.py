"""
LLM-backed fact extraction.

Turns a role-labelled transcript into a list of loosely-typed fact dicts.
Validation into RawFact happens in the distiller, not here.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from rag_memory.errors import ExtractionParseFailure
from .llm import ChatLLM
from .prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)


def parse_fact_payload(raw: str) -> List[Any]:
    """
    Parse the extraction reply into a list.

    Accepts a bare JSON array, one wrapped in a ``` / ```json fence, or an
    array embedded in surrounding prose. An object with a "facts" list is
    unwrapped.

    Raises:
        ExtractionParseFailure: If no JSON list can be recovered
    """
    text = (raw or "").strip()
    if not text:
        raise ExtractionParseFailure("empty extraction reply")

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    data = _try_json(text)
    if data is None:
        embedded = _ARRAY_RE.search(text)
        if embedded:
            data = _try_json(embedded.group(0))

    if isinstance(data, dict) and isinstance(data.get("facts"), list):
        data = data["facts"]
    if not isinstance(data, list):
        raise ExtractionParseFailure(f"expected a JSON array, got: {text[:80]!r}")
    return data


def _try_json(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


class LLMFactExtractor:
    """Extracts candidate facts by prompting a chat model for a JSON array."""

    def __init__(self, llm: ChatLLM, temperature: float = 0.2, max_tokens: int = 500):
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def extract_facts(self, transcript: str) -> Optional[List[Dict[str, Any]]]:
        """
        Returns:
            Parsed list (items not yet validated), or None if the LLM is unavailable

        Raises:
            ExtractionParseFailure: On unparseable output
        """
        reply = await self.llm.complete(
            build_extraction_prompt(transcript),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if reply is None:
            return None
        return parse_fact_payload(reply)


class NullFactExtractor:
    """Used when no extraction model is configured; never yields facts."""

    async def extract_facts(self, transcript: str) -> Optional[List[Dict[str, Any]]]:
        return None
