"""Per-comment request ledger."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, Optional, Tuple

from ..models import LedgerEntry, LineRange, RequestKey, RequestStatus


class RequestLedger:
    """Tracks whether each trigger comment is in flight, completed or failed.

    Entries live for the process lifetime only. Every ``mark_processing``
    must be followed by exactly one of ``mark_completed``, ``mark_error`` or
    ``release``; a key left in ``processing`` suppresses automatic triggers for
    that comment forever.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[RequestKey, LedgerEntry] = {}
        self._clock = clock

    def get(self, key: RequestKey) -> Optional[LedgerEntry]:
        return self._entries.get(key)

    def mark_processing(self, key: RequestKey) -> LedgerEntry:
        """Record ``key`` as in flight and return the entry that owns the slot."""
        if self.is_processing(key):
            raise RuntimeError(f"Request {key} is already in flight")
        entry = LedgerEntry(status=RequestStatus.PROCESSING, timestamp=self._clock())
        self._entries[key] = entry
        return entry

    def mark_completed(self, key: RequestKey, code_range: LineRange | None = None) -> None:
        self._entries[key] = LedgerEntry(
            status=RequestStatus.COMPLETED,
            timestamp=self._clock(),
            code_range=code_range,
        )

    def mark_error(self, key: RequestKey, message: str) -> None:
        self._entries[key] = LedgerEntry(
            status=RequestStatus.ERROR,
            timestamp=self._clock(),
            error=message,
        )

    def clear(self, key: RequestKey) -> None:
        self._entries.pop(key, None)

    def release(self, key: RequestKey, entry: LedgerEntry) -> bool:
        """Clear ``key`` only while ``entry`` is still its current record."""
        if self._entries.get(key) is not entry:
            return False
        del self._entries[key]
        return True

    def is_processing(self, key: RequestKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.status is RequestStatus.PROCESSING

    def is_completed(self, key: RequestKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.status is RequestStatus.COMPLETED

    def processing_count(self) -> int:
        return self._count(RequestStatus.PROCESSING)

    def completed_count(self) -> int:
        return self._count(RequestStatus.COMPLETED)

    def clear_buffer(self, buffer_id: int) -> int:
        stale = [key for key in self._entries if key.buffer_id == buffer_id]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def reset(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[Tuple[RequestKey, LedgerEntry]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _count(self, status: RequestStatus) -> int:
        return sum(1 for entry in self._entries.values() if entry.status is status)


__all__ = ["RequestLedger"]
