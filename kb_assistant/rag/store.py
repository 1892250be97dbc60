"""In-memory embedding store with a JSON cache on disk.

Handles:
- Batched embedding generation
- Cache loading and validation against the current corpus
- Brute-force cosine similarity search
"""
import json
from pathlib import Path
from typing import List, Optional, Tuple
import numpy as np
import structlog

from kb_assistant import config
from kb_assistant.llm_client import OpenAIClient, llm_client

logger = structlog.get_logger()

COSINE_EPSILON = 1e-8


def cosine_similarity(a, b) -> float:
    """Cosine similarity of two vectors, safe for zero vectors."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b) + COSINE_EPSILON))


def _is_vector_matrix(rows) -> bool:
    """Non-empty numeric rows, all of the same length."""
    if not rows:
        return True
    width = None
    for row in rows:
        if not isinstance(row, list) or not row:
            return False
        if width is None:
            width = len(row)
        if len(row) != width:
            return False
        if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in row):
            return False
    return True


class EmbeddingStore:
    """One embedding vector per chunk, kept in chunk order."""

    def __init__(
        self,
        index_path: Path = None,
        embedding_model: str = None,
        batch_size: int = None,
        client: Optional[OpenAIClient] = None,
    ):
        """Initialize the store.

        Args:
            index_path: Cache file location (default from config)
            embedding_model: Embedding model name (default from config)
            batch_size: Texts per embeddings request (default from config)
            client: Model client (default: the global client)
        """
        self.index_path = Path(index_path or config.INDEX_PATH)
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.client = client or llm_client

        self.embeddings: List[List[float]] = []
        self._matrix: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.embeddings)

    def set_embeddings(self, embeddings: List[List[float]]) -> None:
        """Replace the stored vectors."""
        self.embeddings = list(embeddings)
        self._matrix = (
            np.asarray(self.embeddings, dtype=np.float64) if self.embeddings else None
        )

    def load_cache(self, expected_count: int) -> Optional[List[List[float]]]:
        """Load cached embeddings if they still match the corpus.

        The cache is valid only when it holds exactly one vector per chunk
        and, if it records a model, was built with the configured model.

        Args:
            expected_count: Current number of chunks

        Returns:
            Cached vectors, or None if there is no usable cache
        """
        if not self.index_path.exists():
            return None

        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("embedding_cache_unreadable", path=str(self.index_path), error=str(e))
            return None

        if not isinstance(data, dict):
            return None

        embeddings = data.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != expected_count:
            logger.info(
                "embedding_cache_stale",
                cached=len(embeddings) if isinstance(embeddings, list) else None,
                expected=expected_count,
            )
            return None

        cached_model = data.get("model")
        if cached_model and cached_model != self.embedding_model:
            logger.info(
                "embedding_cache_model_mismatch",
                cached_model=cached_model,
                model=self.embedding_model,
            )
            return None

        if not _is_vector_matrix(embeddings):
            logger.warning("embedding_cache_malformed", path=str(self.index_path))
            return None

        return embeddings

    def save_cache(self) -> None:
        """Write the current vectors to disk; failures are only logged."""
        payload = {
            "model": self.embedding_model,
            "chunk_count": len(self.embeddings),
            "embeddings": self.embeddings,
        }
        try:
            with open(self.index_path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
        except OSError as e:
            logger.warning("embedding_cache_write_failed", path=str(self.index_path), error=str(e))
            return

        logger.info("embedding_cache_saved", path=str(self.index_path), count=len(self.embeddings))

    async def build(self, texts: List[str]) -> List[List[float]]:
        """Embed all texts in batches and cache the result.

        Raises:
            RuntimeError: If the model service returns no vector for a batch
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            vectors = await self.client.embed(batch, model=self.embedding_model)
            embeddings.extend(vectors)

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        self.set_embeddings(embeddings)
        self.save_cache()
        return embeddings

    async def build_or_load(self, texts: List[str]) -> List[List[float]]:
        """Use the cache when it matches the corpus, otherwise rebuild."""
        cached = self.load_cache(len(texts))
        if cached is not None:
            self.set_embeddings(cached)
            logger.info("embedding_cache_loaded", count=len(cached))
            return cached

        return await self.build(texts)

    def search(self, query_vector: List[float], top_k: int) -> List[Tuple[int, float]]:
        """Rank every stored vector against the query.

        Args:
            query_vector: Query embedding
            top_k: Maximum number of results

        Returns:
            (chunk index, score) pairs, best first; equal scores keep chunk order
        """
        if self._matrix is None or top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        norms = np.linalg.norm(self._matrix, axis=1) * np.linalg.norm(query)
        scores = (self._matrix @ query) / (norms + COSINE_EPSILON)

        order = np.argsort(-scores, kind="stable")[:top_k]
        return [(int(i), float(scores[i])) for i in order]
