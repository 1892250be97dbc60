"""Knowledge base: loads the corpus and retrieves passages for a question.

Handles:
- Rebuilding chunks and embeddings from the knowledge folder
- Embedding or keyword retrieval
- Formatting retrieved passages for the prompt
"""
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
import structlog

from kb_assistant import config
from kb_assistant.llm_client import OpenAIClient, llm_client
from kb_assistant.rag.chunker import Chunk, TextChunker
from kb_assistant.rag.keyword import KeywordScorer
from kb_assistant.rag.loader import DocumentLoader
from kb_assistant.rag.store import EmbeddingStore

logger = structlog.get_logger()

RETRIEVAL_MODES = ("embedding", "keyword")


@dataclass
class RetrievalResult:
    """A single retrieved chunk with its score."""

    chunk: Chunk
    score: float
    rank: int

    @property
    def source(self) -> str:
        return self.chunk.source

    @property
    def content(self) -> str:
        return self.chunk.text


def format_reference(results: List[RetrievalResult], title: str = None) -> str:
    """Format retrieved passages as the numbered reference block.

    Returns an empty string when nothing was retrieved, so the prompt
    carries no reference section at all.
    """
    if not results:
        return ""

    title = title or config.REFERENCE_TITLE
    entries = "\n\n".join(
        f"[{i}] ({r.source}) {r.content}" for i, r in enumerate(results, 1)
    )
    return f"\n\n{title}:\n{entries}\n\n"


class KnowledgeBase:
    """The loaded corpus and the retrieval over it."""

    def __init__(
        self,
        knowledge_dir: Path = None,
        mode: str = None,
        top_k: int = None,
        client: Optional[OpenAIClient] = None,
        chunker: Optional[TextChunker] = None,
        store: Optional[EmbeddingStore] = None,
    ):
        """Initialize the knowledge base (nothing is read until load()).

        Args:
            knowledge_dir: Folder with .txt/.pdf files (default from config)
            mode: "embedding" or "keyword" (default from config)
            top_k: Default number of passages to retrieve (default from config)
            client: Model client used for query embeddings
            chunker: Text chunker (default from config)
            store: Embedding store (default: cache inside knowledge_dir)
        """
        self.knowledge_dir = Path(knowledge_dir or config.KNOWLEDGE_DIR)
        self.mode = mode or config.RETRIEVAL_MODE
        if self.mode not in RETRIEVAL_MODES:
            raise ValueError(f"Unknown retrieval mode: {self.mode!r}")

        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.client = client or llm_client
        self.loader = DocumentLoader(self.knowledge_dir)
        self.chunker = chunker or TextChunker()
        self.store = store or EmbeddingStore(
            index_path=self.knowledge_dir / config.INDEX_FILENAME,
            client=self.client,
        )
        self.scorer = KeywordScorer()

        self.chunks: List[Chunk] = []
        self._lock = asyncio.Lock()

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    async def load(self) -> Dict[str, Any]:
        """Rebuild the corpus from the knowledge folder.

        The previous chunks and embeddings stay in use until the new ones
        are complete; concurrent calls run one after another.

        Returns:
            Load statistics

        Raises:
            Exception: If embedding generation fails (old state is kept)
        """
        async with self._lock:
            documents = self.loader.load_documents()
            chunks = self.chunker.chunk_documents(documents)

            logger.info("chunks_ready", chunk_count=len(chunks), documents=len(documents))

            store = EmbeddingStore(
                index_path=self.store.index_path,
                embedding_model=self.store.embedding_model,
                batch_size=self.store.batch_size,
                client=self.store.client,
            )
            embeddings: List[List[float]] = []
            if self.mode == "embedding" and chunks:
                embeddings = await store.build_or_load([c.text for c in chunks])

            # Swap both together so searches never mix old and new state.
            self.chunks, self.store = chunks, store

            logger.info(
                "knowledge_loaded",
                chunk_count=len(chunks),
                embedding_count=len(embeddings),
                mode=self.mode,
            )

            return {
                "documents": len(documents),
                "chunks": len(chunks),
                "embeddings": len(embeddings),
            }

    async def search(self, question: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Retrieve the passages most relevant to a question.

        Args:
            question: User question
            top_k: Number of passages (overrides default)

        Returns:
            List of RetrievalResult objects, best first
        """
        top_k = self.top_k if top_k is None else top_k
        chunks, store = self.chunks, self.store

        if not chunks or not question or not question.strip():
            return []

        if self.mode == "keyword":
            ranked = self.scorer.top_k(question, [c.text for c in chunks], top_k)
        else:
            if len(store) == 0:
                return []
            vectors = await self.client.embed([question], model=store.embedding_model)
            ranked = store.search(vectors[0], top_k)

        results = [
            RetrievalResult(chunk=chunks[i], score=score, rank=rank)
            for rank, (i, score) in enumerate(ranked, 1)
        ]

        logger.info(
            "retrieval_completed",
            query_length=len(question),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    def debug_info(self) -> Dict[str, Any]:
        """Describe the knowledge folder and the loaded corpus."""
        return {
            "knowledgeDir": str(self.knowledge_dir),
            "exists": self.knowledge_dir.exists(),
            "files": self.loader.list_entries(),
            "chunkCount": self.chunk_count,
        }
