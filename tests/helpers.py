"""Shared fixtures for the watcher tests."""
import json
from datetime import datetime
from pathlib import Path

from message_watcher.filesystem import FileSystemService
from message_watcher.handlers.base import HandlerResult, MessageHandler
from message_watcher.queue.dispatcher import Dispatcher
from message_watcher.queue.models import MessageDirectories
from message_watcher.queue.mover import DurableMover
from message_watcher.queue.scanner import DirectoryScanner
from message_watcher.queue.store import EnvelopeStore

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0)


def drop_message(inbox, message_id, priority=5, timestamp=BASE_TIME, run_after=None,
                 type_of_data="Report", data=None):
    """Write a PascalCase header (and optional data file) the way producers do."""
    inbox = Path(inbox)
    header = {
        "Id": message_id,
        "CreatedBy": "tests",
        "Priority": priority,
        "SourceSystem": 1,
        "TaskType": 2,
        "TimeStamp": timestamp.isoformat(),
        "RunAfter": run_after.isoformat() if run_after else None,
        "TypeOfData": type_of_data,
        "Data": "",
    }
    path = inbox / f"{message_id}.request"
    path.write_text(json.dumps(header), encoding="utf-8")
    if data is not None:
        (inbox / f"{message_id}.data").write_text(data, encoding="utf-8")
    return path


class RecordingHandler(MessageHandler):
    """Handles one type of data and remembers what it saw."""

    def __init__(self, type_of_data="Report", results=None, label=None):
        self.type_of_data = type_of_data
        self.results = list(results or [])
        self.label = label
        self.handled = []
        self.quiesce_calls = 0

    @property
    def name(self):
        return self.label or super().name

    def can_handle(self, header):
        return header.type_of_data == self.type_of_data

    def handle(self, header, data_file):
        self.handled.append((header.id, data_file))
        if self.results:
            return self.results.pop(0)
        return HandlerResult.success()

    def quiesce(self):
        self.quiesce_calls += 1


class Queue:
    """Store, scanner, mover and dispatcher wired over one directory."""

    def __init__(self, root, handlers, clock=lambda: BASE_TIME, monotonic=None, burst_seconds=10,
                 file_name_filter=None, header_filter=None, fs=None):
        self.directories = MessageDirectories.under(Path(root))
        self.directories.errors.mkdir(exist_ok=True)
        self.directories.archive.mkdir(exist_ok=True)
        self.fs = fs or FileSystemService()
        self.store = EnvelopeStore()
        self.mover = DurableMover(self.fs, self.directories, lambda: True, retry_delay=0)
        self.now = 0.0
        monotonic = monotonic or (lambda: self.now)

        filters = {}
        if file_name_filter:
            filters["file_name_filter"] = file_name_filter
        if header_filter:
            filters["header_filter"] = header_filter
        self.scanner = DirectoryScanner(
            self.store, self.fs, self.mover, self.directories.inbox,
            rescan_interval=10, monotonic=lambda: self.now, **filters
        )
        self.dispatcher = Dispatcher(
            self.store, self.fs, self.mover, handlers,
            burst_seconds=burst_seconds, clock=clock, monotonic=monotonic,
        )

    def ids(self):
        return [envelope.header.id for envelope in self.store.ordered()]
