"""
Per-user long-term memory for RAG chat: similarity retrieval with MMR
diversity, context compression and fact consolidation.
"""

from rag_memory.config.settings import Settings
from rag_memory.engine import ConsolidationEngine, create_consolidation_engine
from rag_memory.memory.schemas import ContextResult, Memory, RawFact, ScoredMemory
from rag_memory.memory.store import MemoryStore

__version__ = "0.4.0"

__all__ = [
    "Settings",
    "ConsolidationEngine",
    "create_consolidation_engine",
    "ContextResult",
    "Memory",
    "RawFact",
    "ScoredMemory",
    "MemoryStore",
]
