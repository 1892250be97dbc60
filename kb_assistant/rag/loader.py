"""Document loader for the knowledge folder.

Handles:
- File discovery (top level only, hidden files skipped)
- Plain text reading
- PDF text extraction
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pypdf import PdfReader
import structlog

from kb_assistant import config

logger = structlog.get_logger()

SOURCE_SUFFIX_PATTERN = re.compile(r"\.(pdf|txt)$", re.IGNORECASE)


@dataclass
class Document:
    """Raw text of one knowledge file."""

    text: str
    source: str
    path: Path


def normalize_source_name(filename: str) -> str:
    """Turn a file name into the source label shown in citations.

    >>> normalize_source_name("Employee Handbook.PDF")
    'Employee Handbook'
    """
    return SOURCE_SUFFIX_PATTERN.sub("", filename).strip()


class DocumentLoader:
    """Reads .txt and .pdf files from a single directory."""

    def __init__(self, knowledge_dir: Path = None):
        self.knowledge_dir = Path(knowledge_dir or config.KNOWLEDGE_DIR)

    def list_entries(self) -> List[str]:
        """Names of all non-hidden entries in the knowledge directory."""
        if not self.knowledge_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.knowledge_dir.iterdir() if not p.name.startswith(".")
        )

    def discover_files(self) -> List[Path]:
        """Find the regular files that may hold knowledge.

        Returns:
            Sorted list of file paths (empty if the directory is missing)
        """
        if not self.knowledge_dir.exists():
            logger.info("knowledge_dir_not_found", knowledge_dir=str(self.knowledge_dir))
            return []

        files = [
            self.knowledge_dir / name
            for name in self.list_entries()
            if (self.knowledge_dir / name).is_file()
        ]

        logger.info(
            "knowledge_files_discovered",
            count=len(files),
            knowledge_dir=str(self.knowledge_dir),
        )

        return files

    def read_pdf(self, path: Path) -> str:
        """Extract the text of every page, one blank line between pages."""
        reader = PdfReader(str(path))
        pages = [(page.extract_text() or "") for page in reader.pages]
        return "\n\n".join(pages)

    def read_file(self, path: Path) -> Optional[Document]:
        """Read a single knowledge file.

        Unsupported extensions and files that fail to read or parse are
        skipped with a warning.

        Args:
            path: File to read

        Returns:
            Document, or None if the file was skipped
        """
        suffix = path.suffix.lower()
        source = normalize_source_name(path.name)

        try:
            if suffix == ".txt":
                text = path.read_text(encoding="utf-8", errors="replace")
                return Document(text=text, source=source, path=path)

            if suffix == ".pdf":
                try:
                    text = self.read_pdf(path)
                except Exception as e:
                    logger.warning("pdf_parse_failed", path=str(path), error=str(e))
                    return None

                logger.info("pdf_parsed", path=path.name, chars=len(text))
                return Document(text=text, source=source, path=path)

        except OSError as e:
            logger.warning("file_read_failed", path=str(path), error=str(e))
            return None

        logger.debug("unsupported_file_skipped", path=str(path))
        return None

    def load_documents(self) -> List[Document]:
        """Read every supported file in discovery order."""
        documents = []
        for path in self.discover_files():
            doc = self.read_file(path)
            if doc is not None:
                documents.append(doc)
        return documents
