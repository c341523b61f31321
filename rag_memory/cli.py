"""
CLI for memory administration.

Usage:
    rag-memory stats u1
    rag-memory search u1 "what music do I like" --limit 5
    rag-memory clear u1 --yes
    rag-memory purge-expired
    rag-memory evict-cache
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rag_memory.config.settings import Settings
from rag_memory.engine import create_consolidation_engine
from rag_memory.memory.store import MemoryStore
from rag_memory.persist.sqlite_store import KVStore
from rag_memory.telemetry import configure_logging


def format_time(ts: Optional[float]) -> str:
    """Format unix timestamp as human-readable string."""
    if not ts:
        return "never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def show_stats(settings: Settings, owner: str) -> int:
    with MemoryStore(settings.store.db_path) as store:
        stats = store.stats(owner)
        memories = store.list_for(owner, include_expired=True)

    print(f"📊 Memories for {owner}: {stats.total}\n")
    if not stats.by_kind:
        return 0

    print(f"{'Kind':<12} {'Count':>8} {'Avg salience':>14}")
    print("=" * 36)
    for kind, ks in sorted(stats.by_kind.items()):
        print(f"{kind:<12} {ks.count:>8,} {ks.avg_salience:>14.3f}")

    expired = sum(1 for m in memories if not m.is_active())
    newest = max((m.updated_at for m in memories), default=None)
    print("=" * 36)
    print(f"Expired (awaiting purge): {expired}")
    print(f"Last updated: {format_time(newest)}")
    return 0


async def _search(settings: Settings, owner: str, query: str, limit: int) -> int:
    engine = create_consolidation_engine(settings)
    try:
        results = await engine.search_memories(owner, query, limit=limit)
    finally:
        await engine.aclose()

    if not results:
        print("No matching memories")
        return 0

    print(f"{'Sim':>6}  {'Sal':>5}  {'Kind':<10} Content")
    for r in results:
        m = r.memory
        print(f"{r.similarity:>6.3f}  {m.salience:>5.2f}  {m.kind:<10} {m.snippet(70)}")
    return 0


def clear_owner(settings: Settings, owner: str, confirmed: bool) -> int:
    if not confirmed:
        print(f"❌ Refusing to delete memories for {owner} without --yes")
        return 1
    with MemoryStore(settings.store.db_path) as store:
        deleted = store.delete_all_for(owner)
    print(f"🗑️  Deleted {deleted} memories for {owner}")
    return 0


def purge_expired(settings: Settings) -> int:
    with MemoryStore(settings.store.db_path) as store:
        removed = store.purge_expired()
    print(f"🗑️  Purged {removed} expired memories")
    return 0


def evict_cache(settings: Settings) -> int:
    cache_path = settings.embedding.cache_path
    if not cache_path.exists():
        print(f"❌ Embedding cache not found: {cache_path}")
        return 1
    with KVStore(cache_path) as kv:
        removed = kv.purge_older_than("embeddings", settings.embedding.cache_ttl_seconds)
        remaining = kv.count("embeddings")
    print(f"🗑️  Evicted {removed} stale embeddings ({remaining:,} remain)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-memory",
        description="Inspect and maintain the long-term memory store",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help="Memory database (default: $RAG_MEMORY_DB_PATH or data/memory/memories.db)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("stats", help="Show memory counts for an owner")
    p.add_argument("owner")

    p = sub.add_parser("search", help="Similarity search over an owner's memories")
    p.add_argument("owner")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=10)

    p = sub.add_parser("clear", help="Delete every memory of an owner")
    p.add_argument("owner")
    p.add_argument("--yes", action="store_true", help="Confirm deletion")

    sub.add_parser("purge-expired", help="Remove memories past their decay time")
    sub.add_parser("evict-cache", help="Remove embedding cache entries older than the TTL")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    settings = Settings()
    if args.db_path is not None:
        settings.store.db_path = args.db_path

    if args.command == "stats":
        return show_stats(settings, args.owner)
    if args.command == "search":
        if args.limit < 1:
            print("❌ --limit must be at least 1")
            return 1
        return asyncio.run(_search(settings, args.owner, args.query, args.limit))
    if args.command == "clear":
        return clear_owner(settings, args.owner, args.yes)
    if args.command == "purge-expired":
        return purge_expired(settings)
    if args.command == "evict-cache":
        return evict_cache(settings)
    return 1


if __name__ == "__main__":
    sys.exit(main())
