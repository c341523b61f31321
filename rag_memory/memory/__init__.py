"""Memory records, persistence, admission policy, compression and distillation."""

from .schemas import (
    ContextResult,
    KindStats,
    Memory,
    MemoryKind,
    MemorySource,
    MemoryStats,
    RawFact,
    ScoredMemory,
    Turn,
)
from .store import MemoryStore
from .policy import FactQualityPolicy, is_transient
from .compressor import ContextCompressor, format_memory_block
from .distiller import FactDistiller, render_transcript

__all__ = [
    "ContextResult",
    "KindStats",
    "Memory",
    "MemoryKind",
    "MemorySource",
    "MemoryStats",
    "RawFact",
    "ScoredMemory",
    "Turn",
    "MemoryStore",
    "FactQualityPolicy",
    "is_transient",
    "ContextCompressor",
    "format_memory_block",
    "FactDistiller",
    "render_transcript",
]
