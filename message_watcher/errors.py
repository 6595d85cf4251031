"""Exceptions raised by the message watcher."""


class MessageWatcherError(Exception):
    """Base class for watcher errors."""


class MalformedMessageError(MessageWatcherError):
    """A header file could not be decoded into a MessageHeader."""


class FileMoveError(MessageWatcherError):
    """A file could not be moved."""

    def __init__(self, source, destination, message=None):
        self.source = source
        self.destination = destination
        super().__init__(message or f"Unable to move {source} to {destination}")


class SharingViolationError(FileMoveError):
    """The file is open elsewhere; the move may succeed later."""


class DestinationExistsError(FileMoveError):
    """Something else already put a file at the destination."""


class WorkerCancelled(BaseException):
    """Raised inside the worker thread to force it to exit.

    Derives from BaseException so per-message ``except Exception`` blocks
    let it through.
    """
