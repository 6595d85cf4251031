"""Directory notifications that tell the watcher to rescan."""
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from message_watcher.logging_conf import logger
from message_watcher.queue.models import HEADER_EXTENSION
from message_watcher.queue.store import EnvelopeStore


class InboxEventHandler(FileSystemEventHandler):
    """Marks the store stale when a header file lands in the inbox."""

    def __init__(self, store: EnvelopeStore):
        self.store = store

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and str(event.src_path).endswith(HEADER_EXTENSION):
            self.store.mark_stale()

    def on_moved(self, event: FileSystemEvent) -> None:
        # Producers that write a temp file and rename it show up here
        if not event.is_directory and str(event.dest_path).endswith(HEADER_EXTENSION):
            self.store.mark_stale()


class InboxNotifier:
    """Owns the watchdog observer for one inbox."""

    def __init__(self, inbox: Path, store: EnvelopeStore):
        self.inbox = Path(inbox)
        self.handler = InboxEventHandler(store)
        self._observer: Optional[Observer] = None

    @property
    def active(self) -> bool:
        return self._observer is not None

    def start(self) -> bool:
        """Start watching. False if the platform refused (inotify limits and the like)."""
        if self._observer is not None:
            return True
        observer = Observer()
        try:
            observer.schedule(self.handler, str(self.inbox), recursive=False)
            observer.daemon = True
            observer.start()
        except OSError as e:
            logger.warning(f"Unable to watch {self.inbox}, falling back to polling: {e}")
            return False
        self._observer = observer
        logger.info(f"Watching {self.inbox} for new messages")
        return True

    def stop(self, timeout: float = 5) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        try:
            observer.stop()
            observer.join(timeout)
        except RuntimeError as e:
            logger.warning(f"Error stopping directory observer: {e}")
