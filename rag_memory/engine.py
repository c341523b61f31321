"""
Consolidation engine.

Read path: embed query -> fetch active memories -> score -> relevance floor
-> candidate cap -> MMR rerank -> compress -> (detached) salience bump.

Write path: distill recent turns -> quality filter -> embed -> dedup upsert.

Every collaborator call (embedder, extractor, summarizer, store) is bounded
by a timeout and degrades to an empty result on failure. Only caller bugs
such as a missing owner raise.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Set

from rag_memory.compute.vector_ops import to_float_list
from rag_memory.config.settings import Settings
from rag_memory.embeddings.backends import Embedder, create_embedder
from rag_memory.errors import CollaboratorUnavailable
from rag_memory.generation import (
    ChatLLM,
    LLMFactExtractor,
    LLMSummarizer,
    NullFactExtractor,
    TruncatingSummarizer,
)
from rag_memory.memory.compressor import ContextCompressor, Summarizer
from rag_memory.memory.distiller import FactDistiller, FactExtractor, TurnLike
from rag_memory.memory.policy import FactQualityPolicy, NoiseFilter
from rag_memory.memory.schemas import (
    ContextResult,
    MemoryKind,
    MemorySource,
    MemoryStats,
    RawFact,
    ScoredMemory,
    Turn,
)
from rag_memory.memory.store import MemoryStore
from rag_memory.persist.embedding_cache import CachingEmbedder
from rag_memory.persist.sqlite_store import KVStore
from rag_memory.retrieval import (
    DiversityReranker,
    RelevanceScorer,
    filter_relevant,
    rank_by_similarity,
)
from rag_memory.telemetry import log_step, new_run_id

logger = logging.getLogger(__name__)


def _ms_since(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _require_owner(owner: Any) -> str:
    if not isinstance(owner, str) or not owner.strip():
        raise ValueError(f"owner must be a non-empty string, got {owner!r}")
    return owner


class ConsolidationEngine:
    """
    Per-user long-term memory: builds context for queries and consolidates
    facts distilled from conversations.

    Usage:
        >>> engine = create_consolidation_engine()
        >>> block = await engine.build_context("u1", "What music do I like?")
        >>> stored = await engine.maybe_auto_distill("u1", "conv_42", turns)
        >>> await engine.aclose()
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        extractor: Optional[FactExtractor] = None,
        summarizer: Optional[Summarizer] = None,
        settings: Optional[Settings] = None,
        noise_filter: Optional[NoiseFilter] = None,
        llm: Optional[ChatLLM] = None,
    ):
        """
        Args:
            store: Memory persistence
            embedder: Async text embedder
            extractor: Fact extraction service (none: distillation yields nothing)
            summarizer: Over-budget summarizer (none: truncate)
            settings: Tunables; defaults if omitted
            noise_filter: Extra predicate rejecting noisy fact content
            llm: Chat client closed by `aclose`, if the engine owns one
        """
        self.settings = settings or Settings()
        self.store = store
        self.embedder = embedder
        self.llm = llm

        retrieval = self.settings.retrieval
        distill = self.settings.distill
        timeout = self.settings.collaborator_timeout

        self.scorer = RelevanceScorer()
        self.reranker = DiversityReranker(k=retrieval.mmr_k, lambda_=retrieval.mmr_lambda)
        self.compressor = ContextCompressor(
            summarizer, budget_chars=retrieval.budget_chars, timeout=timeout
        )
        self.distiller = FactDistiller(
            extractor or NullFactExtractor(),
            FactQualityPolicy(
                min_chars=distill.min_content_chars,
                min_salience=distill.min_salience,
                noise_filter=noise_filter,
            ),
            max_turns=distill.max_turns,
            timeout=timeout,
        )

        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Collaborator guard
    # ------------------------------------------------------------------

    async def _guard(self, collaborator: str, call: Awaitable[Any]) -> Any:
        """Await `call` under the collaborator timeout; None on any failure."""
        try:
            return await asyncio.wait_for(call, timeout=self.settings.collaborator_timeout)
        except Exception as e:
            logger.warning("%s", CollaboratorUnavailable(collaborator, repr(e)))
            return None

    async def _store_call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await self._guard(f"store.{fn.__name__}", asyncio.to_thread(fn, *args))

    async def _embed(self, text: str) -> Optional[List[float]]:
        raw = await self._guard("embed", self.embedder.embed(text))
        vector = to_float_list(raw)
        if raw is not None and vector is None:
            logger.warning("%s", CollaboratorUnavailable("embed", f"unusable vector {type(raw).__name__}"))
        return vector

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def build_context(self, owner: str, query_text: str) -> str:
        """
        Memory block for `query_text`, or "" when nothing relevant is stored.
        """
        result = await self.build_context_result(owner, query_text)
        return result.text

    async def build_context_result(self, owner: str, query_text: str) -> ContextResult:
        """
        Build the memory context and report which memories were used.

        Args:
            owner: User whose memories are searched
            query_text: Incoming user query

        Returns:
            ContextResult; empty when the query can't be embedded, the user
            has no active memories, or none clears the relevance floor

        Raises:
            ValueError: If owner is missing
        """
        _require_owner(owner)
        if not query_text or not query_text.strip():
            return ContextResult()

        cfg = self.settings.retrieval
        run_id = new_run_id()

        start = time.perf_counter()
        query_vector = await self._embed(query_text)
        log_step(run_id, "embed", _ms_since(start), ok=query_vector is not None)
        if query_vector is None:
            return ContextResult()

        start = time.perf_counter()
        candidates = await self._store_call(self.store.find_active, owner) or []
        log_step(run_id, "fetch", _ms_since(start), owner=owner, candidates=len(candidates))
        if not candidates:
            return ContextResult()

        start = time.perf_counter()
        scored = self.scorer.score(candidates, query_vector)
        relevant = filter_relevant(scored, cfg.relevance_floor)
        pool = rank_by_similarity(relevant, limit=cfg.candidate_pool)
        log_step(run_id, "score", _ms_since(start), scored=len(scored), relevant=len(relevant))
        if not pool:
            return ContextResult(candidate_count=len(candidates))

        start = time.perf_counter()
        selected = self.reranker.rerank(pool)
        log_step(run_id, "rerank", _ms_since(start), pool=len(pool), selected=len(selected))

        start = time.perf_counter()
        memories = [s.memory for s in selected]
        compressed = len(ContextCompressor.join(memories)) > cfg.budget_chars
        text = await self.compressor.compress(memories)
        log_step(run_id, "compress", _ms_since(start), chars=len(text), compressed=compressed)

        used_ids = [m.id for m in memories]
        self._schedule_salience_bump(used_ids)

        return ContextResult(
            text=text,
            used_ids=used_ids,
            similarities=[s.similarity for s in selected],
            candidate_count=len(candidates),
            relevant_count=len(relevant),
            compressed=compressed,
        )

    async def search_memories(
        self,
        owner: str,
        query_text: str,
        limit: int = 10,
        min_similarity: Optional[float] = None,
    ) -> List[ScoredMemory]:
        """
        Direct similarity search over active memories (no MMR, no compression).

        Args:
            owner: User whose memories are searched
            query_text: Search text
            limit: Maximum results
            min_similarity: Optional floor; None keeps every scored memory,
                including negative similarities

        Returns:
            Up to `limit` results, most similar first

        Raises:
            ValueError: If owner is missing or limit < 1
        """
        _require_owner(owner)
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        query_vector = await self._embed(query_text) if query_text else None
        if query_vector is None:
            return []

        candidates = await self._store_call(self.store.find_active, owner) or []
        scored = self.scorer.score(candidates, query_vector)
        if min_similarity is not None:
            scored = filter_relevant(scored, min_similarity)
        return rank_by_similarity(scored, limit=limit)

    # ------------------------------------------------------------------
    # Salience write-back
    # ------------------------------------------------------------------

    def _schedule_salience_bump(self, memory_ids: List[str]) -> None:
        delta = self.settings.retrieval.salience_bump
        if not memory_ids or delta == 0:
            return
        task = asyncio.create_task(self._bump_salience(memory_ids, delta))
        self._pending.add(task)
        task.add_done_callback(self._on_bump_done)

    async def _bump_salience(self, memory_ids: List[str], delta: float) -> int:
        return await asyncio.wait_for(
            asyncio.to_thread(self.store.bump_salience, memory_ids, delta),
            timeout=self.settings.collaborator_timeout,
        )

    def _on_bump_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("%s", CollaboratorUnavailable("store.bump_salience", repr(exc)))

    async def drain(self) -> None:
        """Wait for pending salience write-backs to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def maybe_auto_distill(
        self,
        owner: str,
        conversation_id: Optional[str],
        recent_turns: Sequence[TurnLike],
    ) -> int:
        """
        Distill and store facts when the conversation is long enough.

        Returns:
            Number of facts stored (0 below the turn threshold or on failure)
        """
        _require_owner(owner)
        turns = list(recent_turns or [])
        if len(turns) < self.settings.distill.min_turns:
            logger.debug("Skipping distillation: %d turns < %d", len(turns), self.settings.distill.min_turns)
            return 0

        facts = await self.distiller.distill_from_turns(turns, conversation_id=conversation_id)
        if not facts:
            return 0

        stored = await self.upsert_facts(owner, facts)
        logger.info("Stored %d facts for owner %s from conversation %s", len(stored), owner, conversation_id)
        return len(stored)

    async def auto_store_conversation(
        self,
        owner: str,
        messages: Sequence[Any],
        conversation_id: Optional[str] = None,
    ) -> int:
        """
        Distill a chat transcript into memories.

        `messages` are chat messages as dicts or objects with `role` and
        `content`; entries without content are skipped.
        """
        turns: List[Turn] = []
        for msg in messages or []:
            if isinstance(msg, Mapping):
                role, content = msg.get("role"), msg.get("content")
            else:
                role, content = getattr(msg, "role", None), getattr(msg, "content", None)
            if not isinstance(content, str) or not content.strip():
                continue
            turns.append(Turn(role=str(role or "user"), content=content))
        return await self.maybe_auto_distill(owner, conversation_id, turns)

    async def upsert_facts(self, owner: str, facts: Sequence[RawFact]) -> List[str]:
        """
        Embed and dedup-upsert facts. Facts that can't be embedded are dropped.

        Returns:
            Ids of stored memories
        """
        _require_owner(owner)
        ids: List[str] = []
        for fact in facts:
            if not fact.content:
                continue
            vector = await self._embed(fact.content)
            if vector is None:
                logger.debug("Dropping fact without embedding: %r", fact.content[:60])
                continue
            memory = await self._store_call(self.store.upsert, owner, fact, vector)
            if memory is not None:
                ids.append(memory.id)
        return ids

    async def store_memory(
        self,
        owner: str,
        content: str,
        kind: MemoryKind = "fact",
        tags: Optional[List[str]] = None,
        salience: float = 0.7,
        origin: str = "manual",
    ) -> bool:
        """Store one memory directly, bypassing the admission policy."""
        fact = RawFact(
            kind=kind,
            content=content,
            tags=tags or [],
            salience=salience,
            source=MemorySource(origin=origin, extracted_at=time.time()),
        )
        return bool(await self.upsert_facts(owner, [fact]))

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def clear_user_memories(self, owner: str) -> int:
        """Delete every memory of `owner`. Returns the count deleted."""
        _require_owner(owner)
        return await self._store_call(self.store.delete_all_for, owner) or 0

    async def memory_stats(self, owner: str) -> MemoryStats:
        _require_owner(owner)
        return await self._store_call(self.store.stats, owner) or MemoryStats()

    async def aclose(self) -> None:
        """Drain write-backs and release the store, cache and LLM client."""
        await self.drain()
        if isinstance(self.embedder, CachingEmbedder):
            self.embedder.close()
        if self.llm is not None:
            await self.llm.aclose()
        self.store.close()


def create_consolidation_engine(settings: Optional[Settings] = None) -> ConsolidationEngine:
    """
    Wire a ConsolidationEngine from settings.

    Without an LLM API key, fact extraction is disabled and over-budget
    context is truncated rather than summarized.
    """
    settings = settings or Settings()

    store = MemoryStore(settings.store.db_path, default_salience=settings.distill.default_salience)

    embedder: Embedder = create_embedder(settings.embedding)
    if settings.embedding.cache_enabled:
        embedder = CachingEmbedder(
            embedder,
            KVStore(settings.embedding.cache_path),
            ttl_seconds=settings.embedding.cache_ttl_seconds,
            max_entries=settings.embedding.cache_max_entries,
        )

    llm: Optional[ChatLLM] = ChatLLM(settings.llm)
    if llm.is_available():
        extractor: FactExtractor = LLMFactExtractor(
            llm,
            temperature=settings.llm.extraction_temperature,
            max_tokens=settings.llm.extraction_max_tokens,
        )
        summarizer: Summarizer = LLMSummarizer(llm, temperature=settings.llm.summary_temperature)
    else:
        logger.info("No LLM API key configured; fact extraction disabled, context will be truncated")
        extractor = NullFactExtractor()
        summarizer = TruncatingSummarizer()
        llm = None

    return ConsolidationEngine(store, embedder, extractor, summarizer, settings, llm=llm)
