"""Test configuration and fixtures."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from rag_memory.config.settings import EmbeddingCfg, LLMCfg, Settings, StoreCfg
from rag_memory.memory.schemas import Memory, RawFact
from rag_memory.memory.store import MemoryStore


# Deterministic vectors for the "What music do you like?" scenario.
# cos(query, jazz) ~ 0.81, cos(query, jazz concerts) ~ 0.79,
# cos(query, nurse) = 0.40, cos(jazz, jazz concerts) ~ 0.99
MUSIC_QUERY = "What music do you like?"
SCENARIO_VECTORS: Dict[str, List[float]] = {
    MUSIC_QUERY: [0.81, -0.0844, 0.40, 0.4205],
    "Likes jazz music a lot": [1.0, 0.0, 0.0, 0.0],
    "Enjoys going to jazz concerts": [0.99, 0.141, 0.0, 0.0],
    "Works as a nurse at the city hospital": [0.0, 0.0, 1.0, 0.0],
}


class FakeEmbedder:
    """Returns preset vectors by exact text; records every call."""

    model_name = "fake-embedder"

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        default: Optional[List[float]] = None,
        fail_on: Optional[set] = None,
    ):
        self.vectors = dict(vectors or {})
        self.default = default
        self.fail_on = fail_on or set()
        self.calls: List[str] = []

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError(f"embedding backend down for {text!r}")
        return self.vectors.get(text, self.default)


class FakeExtractor:
    def __init__(self, payload: Any = None, exc: Optional[Exception] = None):
        self.payload = payload
        self.exc = exc
        self.transcripts: List[str] = []

    async def extract_facts(self, transcript: str):
        self.transcripts.append(transcript)
        if self.exc is not None:
            raise self.exc
        return self.payload


class FakeSummarizer:
    def __init__(self, reply: Optional[str] = None, exc: Optional[Exception] = None):
        self.reply = reply
        self.exc = exc
        self.calls: List[tuple] = []

    async def summarize(self, text: str, budget: int) -> str:
        self.calls.append((text, budget))
        if self.exc is not None:
            raise self.exc
        return self.reply if self.reply is not None else text[:budget]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment: temp paths, hashing embedder, no LLM."""
    return Settings(
        store=StoreCfg(db_path=tmp_path / "memory" / "memories.db"),
        embedding=EmbeddingCfg(
            backend="hashing",
            model_name="fnv",
            hashing_dims=64,
            cache_enabled=False,
            cache_path=tmp_path / "cache" / "embeddings.db",
        ),
        llm=LLMCfg(api_key="", base_url=None, model_name="test-model"),
        collaborator_timeout=2.0,
    )


@pytest.fixture
def store(tmp_path: Path):
    """MemoryStore on a temporary database."""
    s = MemoryStore(db_path=tmp_path / "memories.db")
    yield s
    s.close()


@pytest.fixture
def add_memory(store):
    """Insert a memory with an explicit embedding and return it."""

    def _add(owner: str, content: str, embedding: Optional[List[float]], **fields) -> Memory:
        decay_at = fields.pop("decay_at", None)
        fact = RawFact(content=content, **fields)
        return store.upsert(owner, fact, embedding=embedding, decay_at=decay_at)

    return _add


@pytest.fixture
def make_embedder():
    return FakeEmbedder


@pytest.fixture
def make_extractor():
    return FakeExtractor


@pytest.fixture
def make_summarizer():
    return FakeSummarizer


@pytest.fixture
def scenario_vectors() -> Dict[str, List[float]]:
    return dict(SCENARIO_VECTORS)


@pytest.fixture
def scenario_embedder() -> FakeEmbedder:
    return FakeEmbedder(SCENARIO_VECTORS)
