"""Atomic executor — serialized, all-or-nothing units of work.

Every public marketplace operation runs inside one unit:

1. A process-wide re-entrant lock is taken, so no two operations ever
   interleave or observe each other's intermediate writes.
2. Every participant (record store, fee schedule, admin gate, ledgers)
   is snapshotted.
3. If any exception escapes the unit, all participants are restored in
   reverse order and the exception propagates unchanged.

Units nest: an inner unit that fails restores only its own snapshots and
leaves the outer unit free to continue or fail in turn.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, Sequence, runtime_checkable


@runtime_checkable
class Snapshotable(Protocol):
    """State that can be captured and put back exactly."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


class AtomicExecutor:
    """Runs operations as single, serialized, all-or-nothing units."""

    def __init__(self, participants: Sequence[Snapshotable]) -> None:
        for p in participants:
            if not isinstance(p, Snapshotable):
                raise TypeError(
                    f"Participant must implement snapshot()/restore(), got {type(p)}"
                )
        self._participants = list(participants)
        self._lock = threading.RLock()

    @contextmanager
    def unit(self) -> Iterator[None]:
        with self._lock:
            snapshots = [(p, p.snapshot()) for p in self._participants]
            try:
                yield
            except BaseException:
                for participant, snap in reversed(snapshots):
                    participant.restore(snap)
                raise
