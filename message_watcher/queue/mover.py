"""Moves message files into the Archive and Errors directories."""
import time
from pathlib import Path
from typing import Callable, Optional

from message_watcher import settings
from message_watcher.errors import DestinationExistsError, FileMoveError, SharingViolationError
from message_watcher.filesystem import FileSystemService
from message_watcher.logging_conf import logger
from message_watcher.queue.models import MessageDirectories, reason_file_for


class DurableMover:
    """Relocates files, retrying for as long as the watcher is running."""

    def __init__(
        self,
        fs: FileSystemService,
        directories: MessageDirectories,
        is_running: Callable[[], bool],
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fs = fs
        self.directories = directories
        self.is_running = is_running
        self.retry_delay = settings.MOVE_RETRY_DELAY if retry_delay is None else retry_delay
        self._sleep = sleep

    def move_until_successful(self, source: Path, destination: Path) -> bool:
        """Move source to destination.

        Returns True once the file is at its destination, False if the
        watcher stopped first. Raises FileMoveError for anything that is
        neither a sharing violation nor a lost race.
        """
        while self.is_running():
            try:
                self.fs.move_file(source, destination)
                return True
            except DestinationExistsError:
                # Someone else already moved it there
                try:
                    self.fs.delete_file(source)
                    return True
                except OSError as e:
                    logger.error(f"=> Unable to delete message file that also exists in {destination.parent}: {source}", exc_info=True)
                    raise FileMoveError(source, destination, f"Unable to delete {source}: {e}") from e
            except SharingViolationError:
                logger.debug(f"=> {source} is in use, retrying move in {self.retry_delay}s")
                if self.is_running():
                    self._sleep(self.retry_delay)
        logger.info(f"=> Abandoned move of {source}; watcher is stopping")
        return False

    def archive(self, header_path: Path, data_path: Path) -> bool:
        """Move a completed header and its data file into Archive, replacing older copies."""
        if not self._replace_into(self.directories.archive, header_path):
            return False
        if self.fs.exists(data_path):
            return self._replace_into(self.directories.archive, data_path)
        return True

    def quarantine(self, header_path: Path, reason: str, detail: Optional[str] = None) -> bool:
        """Move a header into Errors and record why next to it."""
        destination = self.directories.errors / header_path.name
        try:
            if not self.move_until_successful(header_path, destination):
                return False
        except FileMoveError:
            logger.error(f"=> Unable to move bad message file {header_path}", exc_info=True)
            return False

        text = reason if not detail else f"{reason}\n{detail}"
        reason_path = reason_file_for(self.directories.errors, header_path)
        try:
            self.fs.write_text(reason_path, text)
        except OSError:
            logger.error(f"=> Unable to write reason file {reason_path}", exc_info=True)
        return True

    def _replace_into(self, directory: Path, source: Path) -> bool:
        destination = directory / source.name
        if self.fs.exists(destination):
            self.fs.delete_file(destination)
        return self.move_until_successful(source, destination)
