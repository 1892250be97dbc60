#!/usr/bin/env python
"""Rebuild the knowledge base and its embedding cache.

Usage:
    python scripts/reindex.py              # Reuse the cache when it still matches
    python scripts/reindex.py --rebuild    # Delete the cache and re-embed everything
    python scripts/reindex.py --keyword    # Chunk only, no embeddings
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

import structlog

from kb_assistant import config
from kb_assistant.rag.retriever import KnowledgeBase

logger = structlog.get_logger()


def print_summary(stats: dict, elapsed_seconds: float, knowledge_dir: Path):
    """Print load statistics."""
    print(f"\n{'=' * 60}")
    print("  Indexing Complete!")
    print(f"{'=' * 60}\n")
    print(f"  Documents read:       {stats['documents']}")
    print(f"  Chunks created:       {stats['chunks']}")
    print(f"  Embeddings ready:     {stats['embeddings']}")
    print(f"  Time elapsed:         {elapsed_seconds:.1f}s")
    print(f"\n{'=' * 60}\n")

    if stats["chunks"] == 0:
        print(f"Warning: no chunks were produced from {knowledge_dir}\n")


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Rebuild the knowledge base embedding cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Delete the embedding cache before loading",
    )

    parser.add_argument(
        "--keyword",
        action="store_true",
        help="Use keyword mode (no embeddings are generated)",
    )

    parser.add_argument(
        "--knowledge-dir",
        type=Path,
        default=None,
        help=f"Knowledge directory (default: {config.KNOWLEDGE_DIR})",
    )

    args = parser.parse_args()

    knowledge_base = KnowledgeBase(
        knowledge_dir=args.knowledge_dir,
        mode="keyword" if args.keyword else None,
    )

    print("\nConfiguration:")
    print(f"   Knowledge directory: {knowledge_base.knowledge_dir}")
    print(f"   Retrieval mode:      {knowledge_base.mode}")
    print(f"   Embedding model:     {config.EMBEDDING_MODEL}")
    print(f"   Chunk size:          {config.CHUNK_SIZE} chars")
    print(f"   Chunk overlap:       {config.CHUNK_OVERLAP} chars")

    try:
        if args.rebuild and knowledge_base.store.index_path.exists():
            knowledge_base.store.index_path.unlink()
            print(f"\nRemoved cache: {knowledge_base.store.index_path}")

        start = datetime.now()
        stats = await knowledge_base.load()
        print_summary(stats, (datetime.now() - start).total_seconds(), knowledge_base.knowledge_dir)

    except KeyboardInterrupt:
        print("\n\nIndexing cancelled by user.\n")
        sys.exit(1)

    except Exception as e:
        print(f"\nError: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
