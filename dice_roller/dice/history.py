from __future__ import annotations

import copy
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Iterator, Tuple

from dice_roller.dice.dice_engine import RollOutcome
from dice_roller.helpers.logging_helper import log_debug, log_module_import

log_module_import(__name__)

DEFAULT_HISTORY_SIZE = 10


def _timestamp() -> str:
    return time.strftime("%H:%M:%S")


@dataclass(frozen=True)
class HistoryEntry:
    expression_label: str
    outcome: RollOutcome
    timestamp: str = field(default_factory=_timestamp)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total(self) -> int:
        return self.outcome.total

    def summary(self) -> str:
        return f"[{self.timestamp}] {self.expression_label} -> {self.outcome.breakdown()} = {self.total}"


class HistoryLedger:
    """Bounded log of completed rolls, newest first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE, clock: Callable[[], str] = _timestamp) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1.")
        self.capacity = int(capacity)
        self._clock = clock
        self._entries: Deque[HistoryEntry] = deque(maxlen=self.capacity)

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        if not isinstance(entry, HistoryEntry):
            raise TypeError("HistoryLedger only accepts HistoryEntry objects.")
        # appendleft on a full bounded deque drops the entry at the right, the oldest one.
        self._entries.appendleft(entry)
        log_debug(f"History now holds {len(self._entries)} roll(s)")
        return entry

    def record(self, outcome: RollOutcome, expression_label: str) -> HistoryEntry:
        entry = HistoryEntry(
            expression_label=expression_label,
            outcome=copy.deepcopy(outcome),
            timestamp=self._clock(),
        )
        return self.append(entry)

    def list(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def latest(self) -> HistoryEntry | None:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))


__all__ = ["DEFAULT_HISTORY_SIZE", "HistoryEntry", "HistoryLedger"]
