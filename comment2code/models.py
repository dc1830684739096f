"""Core data models shared across comment2code components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class TriggerComment:
    """A parsed trigger comment; only valid for the buffer state it came from."""

    line_number: int
    prompt: str
    indent: str
    raw_line: str
    comment_prefix: str


@dataclass(frozen=True)
class LineRange:
    """Inclusive, 0-indexed range of buffer lines."""

    start: int
    end: int

    def is_valid(self, line_count: int) -> bool:
        if self.start < 0 or self.start > self.end:
            return False
        return self.end < line_count

    def overlaps(self, other: "LineRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)


@dataclass
class CodeRegion:
    """Existing code directly beneath a trigger comment."""

    start_line: int
    end_line: int
    lines: List[str] = field(default_factory=list)

    @property
    def code(self) -> str:
        return "\n".join(self.lines)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def range(self) -> LineRange:
        return LineRange(self.start_line, self.end_line)


@dataclass(frozen=True)
class RequestKey:
    """Ledger identity: buffer, line at creation time, trimmed comment text."""

    buffer_id: int
    line_number: int
    text: str

    @classmethod
    def for_comment(cls, buffer_id: int, comment: TriggerComment) -> "RequestKey":
        return cls(buffer_id, comment.line_number, comment.raw_line.strip())

    def __str__(self) -> str:
        return f"{self.buffer_id}:{self.line_number}:{self.text}"


class RequestStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class LedgerEntry:
    """Status record for one trigger comment request."""

    status: RequestStatus
    timestamp: float
    code_range: Optional[LineRange] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class QueueItem:
    """Dispatch queue entry; the comment is re-found by ``raw_line``, never by index."""

    buffer_id: int
    raw_line: str
    prompt: str


class Outcome(str, Enum):
    """Terminal result of processing one trigger comment."""

    GENERATED = "generated"
    REFACTORED = "refactored"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"
    STALE = "stale"
    NOT_FOUND = "not_found"


__all__ = [
    "CodeRegion",
    "LedgerEntry",
    "LineRange",
    "Outcome",
    "QueueItem",
    "RequestKey",
    "RequestStatus",
    "TriggerComment",
]
