"""Finds trigger comments and the code under them in the buffer's current state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..models import CodeRegion, TriggerComment
from .grammar import CommentGrammar

if TYPE_CHECKING:  # pragma: no cover
    from ..editor import Buffer


def find_by_content(
    buffer: Buffer, raw_line: str, grammar: CommentGrammar
) -> Optional[TriggerComment]:
    """Return the first trigger comment whose trimmed text equals ``raw_line``.

    Queued requests must call this right before writing to the buffer; line
    numbers remembered from earlier are shifted by every insertion above them.
    """
    target = raw_line.strip()
    for index, line in enumerate(buffer.get_lines()):
        if line.strip() != target:
            continue
        parsed = grammar.parse_line(line, index)
        if parsed is not None:
            return parsed
    return None


def find_code_region(
    buffer: Buffer, comment_line: int, grammar: CommentGrammar
) -> Optional[CodeRegion]:
    """Return the code between ``comment_line`` and the next trigger comment (or EOF).

    Leading blank lines are skipped, blank lines inside the region are kept
    and trailing blank lines are dropped.
    """
    lines = buffer.get_lines(comment_line + 1)
    start: Optional[int] = None
    end: Optional[int] = None
    for offset, line in enumerate(lines):
        if grammar.is_trigger(line):
            break
        if not line.strip():
            continue
        index = comment_line + 1 + offset
        if start is None:
            start = index
        end = index
    if start is None or end is None:
        return None
    region_lines = buffer.get_lines(start, end + 1)
    return CodeRegion(start_line=start, end_line=end, lines=region_lines)


__all__ = ["find_by_content", "find_code_region"]
