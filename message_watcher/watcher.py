"""Background worker that watches a message directory and dispatches what it finds."""
import threading
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from message_watcher import settings
from message_watcher.errors import WorkerCancelled
from message_watcher.filesystem import FileSystemService
from message_watcher.handlers.base import MessageHandler
from message_watcher.logging_conf import logger
from message_watcher.notifications import InboxNotifier
from message_watcher.queue.dispatcher import Dispatcher
from message_watcher.queue.models import (
    HEADER_EXTENSION,
    MessageDirectories,
    data_file_for,
    reason_file_for,
)
from message_watcher.queue.mover import DurableMover
from message_watcher.queue.scanner import DirectoryScanner, FileNamePredicate, HeaderPredicate, accept_all
from message_watcher.queue.store import EnvelopeStore
from message_watcher.shutdown import StopOutcome, stop_thread


class WatcherState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class MessageWatcher:
    """Watches a directory for message headers and runs them through handlers."""

    def __init__(
        self,
        message_dir,
        handlers: Iterable[MessageHandler],
        file_name_filter: FileNamePredicate = accept_all,
        header_filter: HeaderPredicate = accept_all,
        fs: Optional[FileSystemService] = None,
        poll_interval: Optional[float] = None,
        rescan_interval: Optional[float] = None,
        burst_seconds: Optional[float] = None,
        move_retry_delay: Optional[float] = None,
        watch_directory: bool = True,
    ):
        self.fs = fs or FileSystemService()
        self.directories = MessageDirectories.under(Path(message_dir))
        self.handlers = list(handlers)
        self.poll_interval = settings.POLL_INTERVAL if poll_interval is None else poll_interval
        self.watch_directory = watch_directory

        self.running = False
        self.state = WatcherState.STOPPED
        self.thread: Optional[threading.Thread] = None
        self._wakeup = threading.Event()

        self._ensure_directory("Error", self.directories.errors)
        self._ensure_directory("Archive", self.directories.archive)

        self.store = EnvelopeStore()
        self.mover = DurableMover(self.fs, self.directories, lambda: self.running, retry_delay=move_retry_delay)
        self.scanner = DirectoryScanner(
            self.store,
            self.fs,
            self.mover,
            self.directories.inbox,
            file_name_filter=file_name_filter,
            header_filter=header_filter,
            rescan_interval=rescan_interval,
        )
        self.dispatcher = Dispatcher(self.store, self.fs, self.mover, self.handlers, burst_seconds=burst_seconds)
        self.notifier = InboxNotifier(self.directories.inbox, self.store)

    def _ensure_directory(self, label: str, path: Path) -> None:
        if self.fs.directory_exists(path):
            return
        logger.info(f"Creating {label} message directory")
        try:
            created = self.fs.create_directory(path)
            logger.info(f"Created {label} message directory {created}")
        except OSError as e:
            logger.error(f"Unable to create {label} message directory: {e}")

    def start(self):
        """Start the watcher in a background thread."""
        if self.state is not WatcherState.STOPPED:
            logger.warning(f"Watcher is already {self.state.value}")
            return

        self.state = WatcherState.STARTING
        self.running = True
        self._wakeup.clear()
        self.thread = threading.Thread(target=self._run, name="message-watcher", daemon=True)
        self.thread.start()
        logger.info(f"Watcher started on {self.directories.inbox}")

    def stop(
        self,
        join_timeout: Optional[float] = None,
        grace_seconds: Optional[float] = None,
        poll_increment: Optional[float] = None,
    ) -> StopOutcome:
        """Stop the watcher, escalating to a forced cancel if the thread hangs."""
        if self.state is WatcherState.STOPPED:
            return StopOutcome.JOINED

        logger.info("Stopping...")
        self.state = WatcherState.STOPPING
        self.running = False
        self._wakeup.set()
        self.notifier.stop()

        outcome = StopOutcome.JOINED
        if self.thread is not None:
            outcome = stop_thread(
                self.thread,
                join_timeout=settings.STOP_JOIN_TIMEOUT if join_timeout is None else join_timeout,
                grace_seconds=settings.STOP_GRACE_SECONDS if grace_seconds is None else grace_seconds,
                poll_increment=settings.STOP_POLL_INCREMENT if poll_increment is None else poll_increment,
            )
        self.state = WatcherState.STOPPED
        logger.info(f"Stopped ({outcome.value})")
        return outcome

    def recover_quarantined(self) -> int:
        """Put quarantined headers back in the inbox when their data file is there.

        Returns the number of headers moved back.
        """
        try:
            headers = self.fs.list_files(self.directories.errors, HEADER_EXTENSION)
        except OSError as e:
            logger.warning(f"Unable to list {self.directories.errors}: {e}")
            return 0

        recovered = 0
        for header_path in headers:
            inbox_header = self.directories.inbox / header_path.name
            if not self.fs.exists(data_file_for(inbox_header)):
                continue
            try:
                self.fs.delete_file(reason_file_for(self.directories.errors, header_path))
                self.fs.move_file(header_path, inbox_header)
                recovered += 1
                logger.info(f"=> Retrying previously failed message {header_path.name}")
            except Exception as e:
                # Left in Errors; the next startup tries again
                logger.debug(f"=> Unable to requeue {header_path.name}: {e}")
        return recovered

    def _run(self):
        """Main watcher loop."""
        logger.info("Watcher thread started")
        try:
            self.recover_quarantined()
            if self.running:
                self.state = WatcherState.RUNNING
            if self.watch_directory:
                self.notifier.start()

            while self.running:
                try:
                    self._tick()
                except Exception as e:
                    logger.error(f"Watcher error: {e}", exc_info=True)
                    self._wait(self.poll_interval)
        except WorkerCancelled:
            logger.warning("Watcher thread cancelled")
        finally:
            self.notifier.stop()
            logger.info("Watcher thread stopped")

    def _tick(self):
        if not self.notifier.active:
            # No notifications; rescan on the timer alone
            self.store.mark_stale()
        self.scanner.refresh()

        if self.dispatcher.has_eligible():
            burst = self.dispatcher.run_burst(lambda: self.running)
            if burst.retired:
                return
        self._wait(self.poll_interval)

    def _wait(self, seconds: float) -> None:
        if self.running:
            self._wakeup.wait(seconds)
