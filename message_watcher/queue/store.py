"""In-memory store of discovered, not yet retired messages."""
import itertools
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Set

from message_watcher.queue.models import MessageEnvelope


class EnvelopeStore:
    """Envelopes keyed by id, kept in dispatch order.

    Only the worker thread writes to the store. The staleness flag is the one
    piece that the directory notification callback touches.
    """

    def __init__(self):
        self._envelopes: Dict[int, MessageEnvelope] = {}
        self._order: List[int] = []
        self._ids = itertools.count(1)
        self._stale = threading.Event()
        self._stale.set()

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self):
        return iter(self.ordered())

    def ordered(self) -> List[MessageEnvelope]:
        return [self._envelopes[envelope_id] for envelope_id in self._order]

    def get(self, envelope_id: int) -> MessageEnvelope:
        return self._envelopes[envelope_id]

    def tracked_paths(self) -> Set[Path]:
        return {envelope.path for envelope in self._envelopes.values()}

    def all_processed(self) -> bool:
        return all(envelope.processed for envelope in self._envelopes.values())

    def unprocessed(self) -> List[MessageEnvelope]:
        return [envelope for envelope in self.ordered() if not envelope.processed]

    def adopt(self, envelope: MessageEnvelope) -> MessageEnvelope:
        """Assign a store id to a newly discovered envelope."""
        envelope.envelope_id = next(self._ids)
        return envelope

    def replace(self, envelopes: Iterable[MessageEnvelope]) -> None:
        """Swap in a new set of envelopes, sorted by priority then timestamp."""
        ordered = sorted(envelopes, key=lambda e: e.sort_key)
        self._envelopes = {envelope.envelope_id: envelope for envelope in ordered}
        self._order = [envelope.envelope_id for envelope in ordered]

    @property
    def stale(self) -> bool:
        return self._stale.is_set()

    def mark_stale(self) -> None:
        self._stale.set()

    def clear_stale(self) -> None:
        self._stale.clear()
