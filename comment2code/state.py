"""Session-scoped mutable state shared by the trigger pipeline."""

from __future__ import annotations

from typing import Dict, List, Tuple

from .dispatch import Debouncer, DispatchQueue
from .placement.markers import GeneratedRegions
from .stores.ledger import RequestLedger


class SessionState:
    """Everything one editor session remembers; nothing here outlives the process."""

    def __init__(self, *, debounce_ms: int = 500) -> None:
        self.ledger = RequestLedger()
        self.queue = DispatchQueue()
        self.regions = GeneratedRegions()
        self.debouncer = Debouncer(debounce_ms / 1000.0)
        # buffer -> {line number at queue time -> raw line}
        self.pending: Dict[int, Dict[int, str]] = {}
        # auto_linear: comment currently being written
        self.active_comment: Dict[int, int] = {}
        self.active_raw: Dict[int, str] = {}
        # auto_nonlinear: last trigger line the cursor was on
        self.last_cursor_line: Dict[int, int] = {}

    def queue_pending(self, buffer_id: int, line_num: int, raw_line: str) -> None:
        self.pending.setdefault(buffer_id, {})[line_num] = raw_line

    def take_pending(self, buffer_id: int) -> List[Tuple[int, str]]:
        """Return queued ``(line, raw_line)`` pairs top to bottom and forget them."""
        pending = self.pending.pop(buffer_id, {})
        return sorted(pending.items())

    def clear_tracking(self) -> None:
        self.active_comment.clear()
        self.active_raw.clear()
        self.last_cursor_line.clear()

    def clear_buffer(self, buffer_id: int) -> None:
        self.debouncer.cancel(buffer_id)
        self.ledger.clear_buffer(buffer_id)
        self.regions.drop_buffer(buffer_id)
        self.queue.remove_buffer(buffer_id)
        self.pending.pop(buffer_id, None)
        self.active_comment.pop(buffer_id, None)
        self.active_raw.pop(buffer_id, None)
        self.last_cursor_line.pop(buffer_id, None)

    def reset(self) -> None:
        self.debouncer.cancel_all()
        self.ledger.reset()
        self.queue.clear()
        self.regions.reset()
        self.pending.clear()
        self.clear_tracking()


__all__ = ["SessionState"]
