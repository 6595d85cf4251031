"""Local file-system access used by the watcher."""
import errno
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import List

from message_watcher.errors import DestinationExistsError, FileMoveError, SharingViolationError

# Windows ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_WINDOWS_SHARING_ERRORS = (32, 33)
_POSIX_SHARING_ERRORS = (errno.EBUSY, errno.ETXTBSY)
# link() is not available on this volume; fall back to a plain move
_NO_HARDLINK_ERRORS = (errno.EXDEV, errno.EPERM, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP)


def is_sharing_violation(error: OSError) -> bool:
    """Return True when the OS reports the file as open elsewhere."""
    if getattr(error, "winerror", None) in _WINDOWS_SHARING_ERRORS:
        return True
    return error.errno in _POSIX_SHARING_ERRORS


class FileSystemService:
    """Thin wrapper over the OS so the watcher can be exercised against fakes."""

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def directory_exists(self, path: Path) -> bool:
        return Path(path).is_dir()

    def create_directory(self, path: Path) -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path.resolve()

    def list_files(self, directory: Path, suffix: str) -> List[Path]:
        """List files in a directory whose name ends with suffix, sorted by name."""
        files = [p for p in Path(directory).iterdir() if p.is_file() and p.name.endswith(suffix)]
        files.sort(key=lambda p: p.name)
        return files

    def modified_time(self, path: Path) -> datetime:
        return datetime.fromtimestamp(Path(path).stat().st_mtime)

    def read_bytes(self, path: Path) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def write_text(self, path: Path, text: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

    def delete_file(self, path: Path) -> None:
        Path(path).unlink(missing_ok=True)

    def move_file(self, source: Path, destination: Path) -> None:
        """Move a file without ever overwriting the destination.

        Raises:
            DestinationExistsError: a file is already at destination
            SharingViolationError: source is held open elsewhere
            FileMoveError: anything else
        """
        source = Path(source)
        destination = Path(destination)
        try:
            try:
                # link() fails atomically if the destination exists
                os.link(source, destination)
            except FileExistsError:
                raise
            except OSError as e:
                if e.errno not in _NO_HARDLINK_ERRORS or is_sharing_violation(e):
                    raise
                if destination.exists():
                    raise FileExistsError(errno.EEXIST, "Destination exists", str(destination))
                shutil.move(str(source), str(destination))
                return
            os.unlink(source)
        except FileExistsError as e:
            raise DestinationExistsError(source, destination, f"{destination} already exists") from e
        except OSError as e:
            if is_sharing_violation(e):
                raise SharingViolationError(source, destination, f"{source} is in use: {e}") from e
            raise FileMoveError(source, destination, f"Unable to move {source} to {destination}: {e}") from e
