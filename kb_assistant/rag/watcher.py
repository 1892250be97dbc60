"""File watcher for automatic knowledge reloading.

Monitors the knowledge/ directory and rebuilds the knowledge base after
.txt or .pdf files are created, modified, deleted or moved.
"""
from pathlib import Path
from typing import Optional
import asyncio
import structlog
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileSystemEvent

from kb_assistant import config

logger = structlog.get_logger()

WATCHED_SUFFIXES = (".txt", ".pdf")
WATCHED_EVENTS = ("created", "modified", "deleted", "moved")


def is_knowledge_file(path: Path) -> bool:
    """Whether a path is a file the loader would read."""
    return not path.name.startswith(".") and path.suffix.lower() in WATCHED_SUFFIXES


class KnowledgeFileHandler(FileSystemEventHandler):
    """Debounces file events into a single knowledge base reload."""

    def __init__(
        self,
        knowledge_base,
        debounce_seconds: float = 2.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """Initialize the file handler.

        Args:
            knowledge_base: KnowledgeBase to reload
            debounce_seconds: Quiet period required before reloading
            loop: Event loop the reload runs on
        """
        super().__init__()
        self.knowledge_base = knowledge_base
        self.debounce_seconds = debounce_seconds
        self.loop = loop or asyncio.get_running_loop()

        self._last_change: float = 0.0
        self._reload_task: Optional[asyncio.Task] = None

    def on_any_event(self, event: FileSystemEvent):
        """Handle events from the observer thread."""
        if event.is_directory or event.event_type not in WATCHED_EVENTS:
            return

        paths = [event.src_path, getattr(event, "dest_path", "")]
        if not any(p and is_knowledge_file(Path(p)) for p in paths):
            return

        logger.info("knowledge_file_changed", change=event.event_type, path=str(event.src_path))
        self.loop.call_soon_threadsafe(self._schedule_reload)

    def _schedule_reload(self):
        self._last_change = self.loop.time()
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = self.loop.create_task(self._debounced_reload())

    async def _debounced_reload(self):
        """Wait until no change arrived for debounce_seconds, then reload."""
        while True:
            await asyncio.sleep(self.debounce_seconds)
            if self.loop.time() - self._last_change >= self.debounce_seconds:
                break

        try:
            stats = await self.knowledge_base.load()
            logger.info("knowledge_reloaded_after_change", **stats)
        except Exception as e:
            logger.error(
                "knowledge_reload_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

    def shutdown(self):
        """Cancel a pending reload."""
        if self._reload_task and not self._reload_task.done():
            self._reload_task.cancel()


class KnowledgeWatcher:
    """Watcher for the knowledge/ directory."""

    def __init__(
        self,
        knowledge_base,
        knowledge_dir: Optional[Path] = None,
        debounce_seconds: float = None,
    ):
        self.knowledge_base = knowledge_base
        self.knowledge_dir = Path(knowledge_dir or knowledge_base.knowledge_dir)
        self.debounce_seconds = (
            config.WATCH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )

        self.event_handler: Optional[KnowledgeFileHandler] = None
        self.observer: Optional[Observer] = None
        self._started = False

    async def start(self):
        """Start watching for file changes."""
        if self._started:
            logger.warning("watcher_already_started")
            return

        if not self.knowledge_dir.is_dir():
            logger.warning("watcher_not_started_missing_dir", knowledge_dir=str(self.knowledge_dir))
            return

        self.event_handler = KnowledgeFileHandler(
            knowledge_base=self.knowledge_base,
            debounce_seconds=self.debounce_seconds,
            loop=asyncio.get_running_loop(),
        )

        self.observer = Observer()
        self.observer.schedule(self.event_handler, str(self.knowledge_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info("knowledge_watcher_started", knowledge_dir=str(self.knowledge_dir))

    def stop(self):
        """Stop watching for file changes."""
        if not self._started:
            return

        if self.observer:
            self.observer.stop()
            self.observer.join(timeout=5.0)

        if self.event_handler:
            self.event_handler.shutdown()

        self._started = False

        logger.info("knowledge_watcher_stopped")

    def is_alive(self) -> bool:
        return self._started and self.observer is not None and self.observer.is_alive()
