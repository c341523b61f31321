"""Application settings and configuration schema."""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


class RetrievalCfg(BaseModel):
    """Read-path tunables (relevance floor, pool cap, MMR, compression)."""
    relevance_floor: float = Field(0.25, ge=-1.0, le=1.0)
    candidate_pool: int = Field(24, ge=1)
    mmr_k: int = Field(10, ge=1)
    mmr_lambda: float = Field(0.7, ge=0.0, le=1.0)
    budget_chars: int = Field(1000, ge=1)
    salience_bump: float = Field(0.05, ge=0.0, le=1.0)


class DistillCfg(BaseModel):
    """Write-path tunables for fact distillation and admission."""
    min_turns: int = Field(4, ge=1)
    max_turns: int = Field(12, ge=1)
    min_content_chars: int = Field(15, ge=1)
    min_salience: float = Field(0.6, ge=0.0, le=1.0)
    default_salience: float = Field(0.7, ge=0.0, le=1.0)


class StoreCfg(BaseModel):
    """SQLite memory store location."""
    db_path: Path = Field(
        default_factory=lambda: Path(_env("RAG_MEMORY_DB_PATH", "data/memory/memories.db"))
    )


class EmbeddingCfg(BaseModel):
    """Embedding backend selection and cache policy."""
    backend: Literal["sentence-transformers", "hashing"] = Field(
        default_factory=lambda: _env("RAG_MEMORY_EMBED_BACKEND", "sentence-transformers")
    )
    model_name: str = Field(
        default_factory=lambda: _env("RAG_MEMORY_EMBED_MODEL", "all-MiniLM-L6-v2")
    )
    hashing_dims: int = Field(1536, ge=8)
    cache_enabled: bool = True
    cache_path: Path = Path("data/cache/embeddings.db")
    cache_ttl_seconds: float = Field(7 * 24 * 3600.0, gt=0)
    cache_max_entries: int = Field(50_000, ge=1)


class LLMCfg(BaseModel):
    """OpenAI-compatible chat endpoint used for extraction and summarization."""
    api_key: str = Field(default_factory=lambda: _env("OPENAI_API_KEY"))
    base_url: Optional[str] = Field(
        default_factory=lambda: _env("RAG_MEMORY_LLM_BASE_URL") or None
    )
    model_name: str = Field(default_factory=lambda: _env("RAG_MEMORY_LLM_MODEL", "gpt-4o-mini"))
    extraction_temperature: float = 0.2
    extraction_max_tokens: int = 500
    summary_temperature: float = 0.3
    max_retries: int = 0
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class Settings(BaseModel):
    """Main application settings."""
    retrieval: RetrievalCfg = Field(default_factory=RetrievalCfg)
    distill: DistillCfg = Field(default_factory=DistillCfg)
    store: StoreCfg = Field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = Field(default_factory=EmbeddingCfg)
    llm: LLMCfg = Field(default_factory=LLMCfg)
    # Upper bound for any single external call (embed, extract, summarize, store I/O)
    collaborator_timeout: float = Field(10.0, gt=0)
