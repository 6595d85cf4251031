"""Picks eligible messages and runs them through their handler."""
import time
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Collection, List, Optional, Sequence

from message_watcher import settings
from message_watcher.errors import SharingViolationError
from message_watcher.filesystem import FileSystemService
from message_watcher.handlers.base import MessageHandler, Outcome
from message_watcher.logging_conf import logger
from message_watcher.queue.models import MessageEnvelope, data_file_for
from message_watcher.queue.mover import DurableMover
from message_watcher.queue.store import EnvelopeStore


@dataclass
class BurstResult:
    dispatched: int = 0
    retired: int = 0
    drained: bool = False


class Dispatcher:
    """Routes each message to exactly one handler, then archives or quarantines it."""

    def __init__(
        self,
        store: EnvelopeStore,
        fs: FileSystemService,
        mover: DurableMover,
        handlers: Sequence[MessageHandler],
        burst_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.fs = fs
        self.mover = mover
        self.handlers: List[MessageHandler] = list(handlers)
        self.burst_seconds = settings.BURST_SECONDS if burst_seconds is None else burst_seconds
        self._clock = clock
        self._monotonic = monotonic

    def next_eligible(self, skip: Collection[int] = ()) -> Optional[MessageEnvelope]:
        """First unprocessed, due envelope in store order."""
        now = self._clock()
        for envelope in self.store.ordered():
            if envelope.processed or envelope.envelope_id in skip:
                continue
            if envelope.header.is_due(now):
                return envelope
        return None

    def has_eligible(self) -> bool:
        return self.next_eligible() is not None

    def dispatch_next(self, skip: Collection[int] = ()) -> bool:
        """Process the next eligible envelope. False if there was none."""
        envelope = self.next_eligible(skip)
        if envelope is None:
            return False
        logger.info(f"=> Processing {envelope.path.name}")
        self.process(envelope)
        return True

    def run_burst(self, is_running: Callable[[], bool] = lambda: True) -> BurstResult:
        """Dispatch eligible envelopes until none remain or the time budget is spent."""
        started = self._monotonic()
        result = BurstResult()
        deferred = set()

        envelope = self.next_eligible(deferred)
        while envelope is not None and is_running():
            logger.info(f"=> Processing {envelope.path.name}")
            self.process(envelope)
            result.dispatched += 1
            if envelope.processed:
                result.retired += 1
            else:
                deferred.add(envelope.envelope_id)

            envelope = self.next_eligible(deferred)
            if self._monotonic() - started >= self.burst_seconds:
                break

        result.drained = envelope is None
        if result.drained or not is_running():
            self.quiesce()
        return result

    def quiesce(self) -> None:
        for handler in self.handlers:
            try:
                handler.quiesce()
            except Exception:
                logger.error(f"=> {handler.name}.quiesce failed", exc_info=True)

    def process(self, envelope: MessageEnvelope) -> None:
        path = envelope.path
        try:
            if not self.fs.exists(path):
                # Already handled by a previous run
                envelope.processed = True
                return

            handlers = [h for h in self.handlers if h.can_handle(envelope.header)]
            if not handlers:
                self._fail(envelope, f"=> No handler for this message type: {path.name} (type of data '{envelope.header.type_of_data}')")
                return
            if len(handlers) > 1:
                names = ", ".join(h.name for h in handlers)
                self._fail(envelope, f"=> Ambiguous handlers for {path.name}: {names}")
                return

            data_file = data_file_for(path)
            result = handlers[0].handle(envelope.header, data_file)

            if result.outcome is Outcome.INDETERMINATE:
                logger.debug(f"=> {path.name} deferred by {handlers[0].name} {result.detail}".rstrip())
                return
            if result.outcome is Outcome.SUCCESS:
                if self.mover.archive(path, data_file):
                    logger.info(f"=> Archived {path.name}")
                envelope.processed = True
                return
            self._fail(envelope, f"=> Failed to process {path.name}", result.describe())
        except SharingViolationError as e:
            logger.debug(f"=> file contention for {path.name}, will retry: {e}")
        except Exception:
            self._fail(envelope, f"=> Error while processing {path.name}", traceback.format_exc(), exc_info=True)

    def _fail(self, envelope: MessageEnvelope, reason: str, detail: Optional[str] = None, exc_info: bool = False) -> None:
        envelope.processed = True
        logger.error(reason, exc_info=exc_info)
        if not self.fs.exists(envelope.path):
            # Nothing left in the inbox to quarantine
            return
        self.mover.quarantine(envelope.path, reason, detail)
