"""Keeps the envelope store in sync with the inbox directory."""
import time
from pathlib import Path
from typing import Callable, List, Optional

from message_watcher import settings
from message_watcher.errors import MalformedMessageError
from message_watcher.filesystem import FileSystemService
from message_watcher.logging_conf import logger
from message_watcher.queue.models import HEADER_EXTENSION, MessageEnvelope, MessageHeader
from message_watcher.queue.mover import DurableMover
from message_watcher.queue.store import EnvelopeStore

FileNamePredicate = Callable[[Path], bool]
HeaderPredicate = Callable[[MessageHeader], bool]


def accept_all(_) -> bool:
    return True


class DirectoryScanner:
    """Rescans the inbox when the store is stale and merges new headers into it."""

    def __init__(
        self,
        store: EnvelopeStore,
        fs: FileSystemService,
        mover: DurableMover,
        inbox: Path,
        file_name_filter: FileNamePredicate = accept_all,
        header_filter: HeaderPredicate = accept_all,
        rescan_interval: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.fs = fs
        self.mover = mover
        self.inbox = Path(inbox)
        self.file_name_filter = file_name_filter
        self.header_filter = header_filter
        self.rescan_interval = settings.RESCAN_INTERVAL if rescan_interval is None else rescan_interval
        self._monotonic = monotonic
        self._last_scan = monotonic()

    def rescan_due(self) -> bool:
        if self.store.stale and self._monotonic() - self._last_scan > self.rescan_interval:
            return True
        return len(self.store) == 0 or self.store.all_processed()

    def refresh(self) -> List[MessageEnvelope]:
        """Return the pending envelopes in dispatch order, rescanning if due."""
        if not self.rescan_due():
            return self.store.ordered()

        self.store.clear_stale()
        try:
            self._scan()
        except OSError as e:
            logger.debug(f"Unable to list {self.inbox}, will retry: {e}")
            self.store.mark_stale()
        self._last_scan = self._monotonic()
        return self.store.ordered()

    def _scan(self) -> None:
        tracked = self.store.tracked_paths()
        candidates = [
            path for path in self.fs.list_files(self.inbox, HEADER_EXTENSION)
            if self.file_name_filter(path) and path not in tracked
        ]

        discovered = []
        for path in candidates:
            envelope = self._load(path)
            if envelope is not None:
                discovered.append(self.store.adopt(envelope))

        self.store.replace(self.store.unprocessed() + discovered)
        if discovered:
            logger.debug(f"Discovered {len(discovered)} new message(s); {len(self.store)} pending")

    def _load(self, path: Path) -> Optional[MessageEnvelope]:
        """Parse a header file; None if it is skipped, in flight, or bad."""
        try:
            file_date = self.fs.modified_time(path)
            raw = self.fs.read_bytes(path)
            if not raw.strip():
                # Producer has created the file but not written it yet
                self.store.mark_stale()
                return None
            header = MessageHeader.from_json(raw)
        except OSError as e:
            logger.debug(f"=> file {path.name} is in use or gone, will retry: {e}")
            self.store.mark_stale()
            return None
        except MalformedMessageError as e:
            logger.error(f"=> Bad message in file {path}: {e}")
            if self.fs.exists(path):
                self.mover.quarantine(path, f"=> Bad message in file {path.name}", str(e))
            return None

        if not self.header_filter(header):
            return None
        return MessageEnvelope(path=path, file_date=file_date, header=header)
