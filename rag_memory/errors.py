"""
Error taxonomy for the memory engine.

Only programming-contract violations reach callers of the engine; the rest
are recovered where they occur and degrade to empty results.
"""


class MemoryEngineError(Exception):
    """Base class for memory engine errors."""


class DimensionMismatch(MemoryEngineError, ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector length mismatch: {left} != {right}")
        self.left = left
        self.right = right


class CollaboratorUnavailable(MemoryEngineError):
    """An external call (embed, extract, summarize, store) failed or timed out."""

    def __init__(self, collaborator: str, reason: str = ""):
        message = f"{collaborator} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.collaborator = collaborator
        self.reason = reason


class MalformedCandidate(MemoryEngineError):
    """A stored memory cannot be scored (missing or incompatible embedding)."""

    def __init__(self, memory_id: str, reason: str):
        super().__init__(f"Memory {memory_id} skipped: {reason}")
        self.memory_id = memory_id
        self.reason = reason


class ExtractionParseFailure(MemoryEngineError):
    """The fact extraction service returned output that is not a JSON list."""
