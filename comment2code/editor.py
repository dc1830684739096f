"""Boundary with the host editor: buffers, cursor position and editor events."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from .parsing.grammar import detect_filetype


class EditorEvent(str, Enum):
    """Editor notifications that activation policies react to."""

    INSERT_LEAVE = "insert_leave"
    TEXT_CHANGED = "text_changed"
    TEXT_CHANGED_INSERT = "text_changed_insert"
    CURSOR_MOVED = "cursor_moved"
    CURSOR_MOVED_INSERT = "cursor_moved_insert"
    BUFFER_LEAVE = "buffer_leave"
    BUFFER_DELETE = "buffer_delete"


@runtime_checkable
class Buffer(Protocol):
    """Mutable, 0-indexed, line-numbered text buffer."""

    buffer_id: int
    name: str
    filetype: str

    def line_count(self) -> int: ...

    def get_lines(self, start: int = 0, end: Optional[int] = None) -> List[str]: ...

    def set_lines(self, start: int, end: int, lines: Sequence[str]) -> None: ...

    def is_valid(self) -> bool: ...


class EditorHost(Protocol):
    """What the core needs from the editor that owns the buffers."""

    def get_buffer(self, buffer_id: int) -> Optional[Buffer]: ...

    def current_buffer(self) -> Optional[Buffer]: ...

    def cursor_line(self, buffer_id: Optional[int] = None) -> int: ...


def split_lines(text: str) -> List[str]:
    """Split file text into buffer lines; a trailing newline does not add a line."""
    if not text:
        return [""]
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass
class InMemoryBuffer:
    """Plain list-backed buffer used by the CLI, the HTTP host and tests."""

    buffer_id: int
    lines: List[str] = field(default_factory=lambda: [""])
    name: str = ""
    filetype: str = ""
    valid: bool = True
    trailing_newline: bool = True

    def __post_init__(self) -> None:
        self.lines = _normalise(self.lines)

    def line_count(self) -> int:
        return len(self.lines)

    def get_lines(self, start: int = 0, end: Optional[int] = None) -> List[str]:
        return list(self.lines[start:end])

    def set_lines(self, start: int, end: int, lines: Sequence[str]) -> None:
        """Replace lines ``[start, end)``; ``start == end`` inserts."""
        if start < 0 or end < start or start > len(self.lines):
            raise IndexError(f"Invalid line range {start}:{end} for buffer {self.buffer_id}")
        self.lines[start:end] = _normalise(lines)
        if not self.lines:
            self.lines = [""]

    def is_valid(self) -> bool:
        return self.valid

    def text(self) -> str:
        body = "\n".join(self.lines)
        return body + "\n" if self.trailing_newline else body


class MemoryEditor:
    """Minimal editor host keeping buffers and cursors in memory."""

    def __init__(self) -> None:
        self._buffers: Dict[int, InMemoryBuffer] = {}
        self._cursors: Dict[int, int] = {}
        self._ids = itertools.count(1)
        self._current: Optional[int] = None

    def open_buffer(
        self,
        lines: Iterable[str] | str = "",
        *,
        name: str = "",
        filetype: str | None = None,
        buffer_id: int | None = None,
    ) -> InMemoryBuffer:
        content = split_lines(lines) if isinstance(lines, str) else list(lines)
        if buffer_id is None:
            buffer_id = next(self._ids)
            while buffer_id in self._buffers:
                buffer_id = next(self._ids)
        resolved_filetype = filetype if filetype is not None else detect_filetype(name)
        buffer = InMemoryBuffer(
            buffer_id=buffer_id,
            lines=content or [""],
            name=name,
            filetype=resolved_filetype,
        )
        self._buffers[buffer_id] = buffer
        self._cursors[buffer_id] = 0
        self._current = buffer_id
        return buffer

    def open_file(self, path: Path) -> InMemoryBuffer:
        text = path.read_text(encoding="utf-8")
        buffer = self.open_buffer(text, name=str(path))
        buffer.trailing_newline = text.endswith("\n")
        return buffer

    def get_buffer(self, buffer_id: int) -> Optional[InMemoryBuffer]:
        buffer = self._buffers.get(buffer_id)
        if buffer is None or not buffer.is_valid():
            return None
        return buffer

    def buffers(self) -> List[InMemoryBuffer]:
        return list(self._buffers.values())

    def current_buffer(self) -> Optional[InMemoryBuffer]:
        if self._current is None:
            return None
        return self.get_buffer(self._current)

    def set_current(self, buffer_id: int) -> None:
        if buffer_id not in self._buffers:
            raise KeyError(f"Unknown buffer {buffer_id}")
        self._current = buffer_id

    def cursor_line(self, buffer_id: Optional[int] = None) -> int:
        target = self._current if buffer_id is None else buffer_id
        if target is None:
            return 0
        return self._cursors.get(target, 0)

    def set_cursor(self, buffer_id: int, line: int) -> None:
        if buffer_id not in self._buffers:
            raise KeyError(f"Unknown buffer {buffer_id}")
        self._cursors[buffer_id] = max(0, line)

    def close_buffer(self, buffer_id: int) -> bool:
        buffer = self._buffers.pop(buffer_id, None)
        self._cursors.pop(buffer_id, None)
        if self._current == buffer_id:
            self._current = next(iter(self._buffers), None)
        if buffer is None:
            return False
        buffer.valid = False
        return True


def _normalise(lines: Iterable[str]) -> List[str]:
    # Entries holding embedded newlines become separate lines.
    result: List[str] = []
    for line in lines:
        result.extend(str(line).split("\n"))
    return result


__all__ = [
    "Buffer",
    "EditorEvent",
    "EditorHost",
    "InMemoryBuffer",
    "MemoryEditor",
    "split_lines",
]
