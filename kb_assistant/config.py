"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Paths
BASE_DIR = Path(__file__).parent.parent
WEB_DIR = BASE_DIR / "web"
KNOWLEDGE_DIR = Path(os.getenv("KNOWLEDGE_DIR", str(BASE_DIR / "knowledge")))
INDEX_FILENAME = ".index.json"
INDEX_PATH = KNOWLEDGE_DIR / INDEX_FILENAME

# Model service (OpenAI-compatible API)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60.0"))

# RAG parameters (character-based)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "800"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "150"))
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "64"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "8"))
RETRIEVAL_MODE = os.getenv("RETRIEVAL_MODE", "embedding")  # "embedding" or "keyword"

# Assistant persona
ASSISTANT_NAME = os.getenv("ASSISTANT_NAME", "Studio Team Assistant")
REFERENCE_TITLE = os.getenv("REFERENCE_TITLE", "Studio Reference")
FALLBACK_REPLY = os.getenv("FALLBACK_REPLY", "I don't have that in the studio docs.")
MAX_MESSAGE_CHARS = int(os.getenv("MAX_MESSAGE_CHARS", "2000"))

# Knowledge folder watcher
WATCH_KNOWLEDGE = _env_bool("WATCH_KNOWLEDGE")
WATCH_DEBOUNCE_SECONDS = float(os.getenv("WATCH_DEBOUNCE_SECONDS", "2.0"))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
STATIC_VERSION = os.getenv("STATIC_VERSION", "1.0.0")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
