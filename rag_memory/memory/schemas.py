"""
Memory system data models.

Defines the stored Memory record, the RawFact candidate produced by fact
extraction, and the result types returned by the read path.
"""

from typing import Any, Dict, List, Literal, Optional
import time

from pydantic import BaseModel, Field, field_validator


# Type aliases
MemoryKind = Literal["preference", "project", "fact", "profile"]
MEMORY_KINDS = ("preference", "project", "fact", "profile")


class MemorySource(BaseModel):
    """Provenance of a memory (informational only, never used for ranking)."""

    origin: str = Field("manual", description="'conversation', 'activity_analysis', 'manual', ...")
    ref_id: Optional[str] = Field(None, description="Conversation or activity identifier")
    extracted_at: Optional[float] = Field(None, description="Unix timestamp of extraction")
    meta: Dict[str, Any] = Field(default_factory=dict)


class Memory(BaseModel):
    """
    A single long-term memory owned by one user.

    `(owner, content)` is the natural dedup key. `salience` is kept in
    [0.0, 1.0]. A memory whose `decay_at` lies in the past is never returned
    by retrieval.
    """

    id: str = Field(..., description="Unique identifier, immutable")
    owner: str = Field(..., description="User this memory belongs to, immutable")
    content: str = Field(..., min_length=1, description="Factual statement")
    kind: MemoryKind = "fact"
    tags: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = Field(None, description="Set at write time by the store")
    salience: float = Field(0.7, ge=0.0, le=1.0)
    decay_at: Optional[float] = Field(None, description="Unix timestamp after which the memory is inactive")
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    source: MemorySource = Field(default_factory=MemorySource)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "mem_3f9a1c2b7d4e",
                "owner": "u1",
                "content": "Works as a structural engineer in Seattle",
                "kind": "profile",
                "tags": ["work", "location"],
                "salience": 0.75,
                "decay_at": None,
                "source": {"origin": "conversation", "ref_id": "conv_42"},
            }
        }

    def is_active(self, now: Optional[float] = None) -> bool:
        """True unless `decay_at` is set and already in the past."""
        if self.decay_at is None:
            return True
        return self.decay_at > (time.time() if now is None else now)

    def snippet(self, max_chars: int = 80) -> str:
        """Get truncated content for display."""
        if len(self.content) <= max_chars:
            return self.content
        return self.content[:max_chars - 3] + "..."


class RawFact(BaseModel):
    """
    A candidate fact as returned by the extraction service.

    Payloads are loosely typed JSON; anything that is not an object with a
    string `content` is rejected before it reaches this model, and unknown
    kinds collapse to "fact".
    """

    kind: MemoryKind = "fact"
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    salience: Optional[float] = None
    source: Optional[MemorySource] = None

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in MEMORY_KINDS:
            return value.strip().lower()
        return "fact"

    @field_validator("content", mode="before")
    @classmethod
    def _strip_content(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(t).strip() for t in value if str(t).strip()]

    @field_validator("salience", mode="before")
    @classmethod
    def _coerce_salience(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class ScoredMemory(BaseModel):
    """A memory paired with its cosine similarity to the query."""

    memory: Memory
    similarity: float


class ContextResult(BaseModel):
    """Memory context for one query plus the provenance of what was used."""

    text: str = ""
    used_ids: List[str] = Field(default_factory=list)
    similarities: List[float] = Field(default_factory=list)
    candidate_count: int = 0
    relevant_count: int = 0
    compressed: bool = False

    @property
    def empty(self) -> bool:
        return not self.text


class KindStats(BaseModel):
    count: int = 0
    avg_salience: float = 0.0


class MemoryStats(BaseModel):
    """Per-owner memory counts, overall and by kind."""

    total: int = 0
    by_kind: Dict[str, KindStats] = Field(default_factory=dict)


class Turn(BaseModel):
    """One conversation turn."""

    role: str
    content: str
