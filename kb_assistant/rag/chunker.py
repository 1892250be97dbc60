"""Text chunking with overlap for the retrieval pipeline.

Documents are split into paragraph blocks first; blocks longer than the
chunk size are cut into overlapping character windows.
"""
import re
from typing import Iterable, List
from dataclasses import dataclass
import structlog

from kb_assistant import config

logger = structlog.get_logger()

BLOCK_SEPARATOR = re.compile(r"\n{2,}")


@dataclass
class Chunk:
    """A retrievable passage and the document it came from."""

    text: str
    source: str
    chunk_index: int = 0


def split_blocks(text: str) -> List[str]:
    """Split text on blank lines into trimmed, non-empty blocks."""
    if not text:
        return []
    blocks = BLOCK_SEPARATOR.split(text.replace("\r", ""))
    return [b.strip() for b in blocks if b.strip()]


class TextChunker:
    """Paragraph-aware character chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum chunk length in characters (default from config)
            chunk_overlap: Characters shared by consecutive windows (default from config)
        """
        self.chunk_size = chunk_size or config.CHUNK_SIZE
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be between 0 and "
                f"chunk size ({self.chunk_size})"
            )

    def split_block(self, block: str) -> List[str]:
        """Cut one block into windows of at most chunk_size characters.

        The last window is the first one that reaches the end of the block,
        so the tail is never emitted twice.
        """
        if len(block) <= self.chunk_size:
            return [block]

        step = self.chunk_size - self.chunk_overlap
        windows = []
        start = 0
        while start < len(block):
            windows.append(block[start : start + self.chunk_size])
            if start + self.chunk_size >= len(block):
                break
            start += step
        return windows

    def chunk_document(self, text: str, source: str, start_index: int = 0) -> List[Chunk]:
        """Chunk the text of a single document.

        Args:
            text: Document text
            source: Source label attached to every chunk
            start_index: chunk_index of the first produced chunk

        Returns:
            List of Chunk objects in reading order
        """
        chunks = []
        for block in split_blocks(text):
            for window in self.split_block(block):
                chunks.append(
                    Chunk(
                        text=window,
                        source=source,
                        chunk_index=start_index + len(chunks),
                    )
                )
        return chunks

    def chunk_documents(self, documents: Iterable) -> List[Chunk]:
        """Chunk documents in order, numbering chunks across the corpus."""
        chunks: List[Chunk] = []
        for doc in documents:
            doc_chunks = self.chunk_document(doc.text, doc.source, start_index=len(chunks))
            if not doc_chunks:
                logger.warning("no_chunks_created", source=doc.source)
            chunks.extend(doc_chunks)

        logger.info(
            "chunking_complete",
            chunk_count=len(chunks),
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

        return chunks

    def get_chunk_stats(self, chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.text) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }
