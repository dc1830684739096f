"""Sequential dispatch queue and per-buffer debounce timers."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, Dict, Iterator, List, Optional

from .models import QueueItem


class DispatchQueue:
    """FIFO of trigger requests processed strictly one at a time.

    Items carry the comment text rather than a line number; the driver
    re-locates each one by content right before it is processed. ``running``
    is the lock held by the driver while an item (including its generation
    round trip) is in progress.
    """

    def __init__(self) -> None:
        self._items: Deque[QueueItem] = deque()
        self.running = False

    def enqueue(self, buffer_id: int, raw_line: str, prompt: str) -> bool:
        """Append a request; returns False when the same comment is already queued."""
        for item in self._items:
            if item.buffer_id == buffer_id and item.raw_line == raw_line:
                return False
        self._items.append(QueueItem(buffer_id=buffer_id, raw_line=raw_line, prompt=prompt))
        return True

    def pop(self) -> Optional[QueueItem]:
        if not self._items:
            return None
        return self._items.popleft()

    def remove_buffer(self, buffer_id: int) -> int:
        before = len(self._items)
        self._items = deque(item for item in self._items if item.buffer_id != buffer_id)
        return before - len(self._items)

    def clear(self) -> None:
        # ``running`` belongs to the active driver and is released by it.
        self._items.clear()

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(list(self._items))


class Debouncer:
    """One pending timer per buffer; scheduling again restarts the delay."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._handles: Dict[int, asyncio.TimerHandle] = {}

    def schedule(self, buffer_id: int, callback: Callable[[int], None]) -> None:
        self.cancel(buffer_id)
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _fire() -> None:
            if self._handles.get(buffer_id) is handle:
                del self._handles[buffer_id]
            callback(buffer_id)

        handle = loop.call_later(self.delay, _fire)
        self._handles[buffer_id] = handle

    def cancel(self, buffer_id: int) -> bool:
        handle = self._handles.pop(buffer_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def pending(self, buffer_id: int) -> bool:
        return buffer_id in self._handles

    def pending_buffers(self) -> List[int]:
        return list(self._handles)


__all__ = ["Debouncer", "DispatchQueue"]
