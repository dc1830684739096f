"""Placement engine: the only code that writes generated text into a buffer."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING, List

from ..logging import get_logger
from ..models import LineRange
from .markers import GeneratedRegions

if TYPE_CHECKING:  # pragma: no cover
    from ..editor import Buffer


def apply_indent(code: str, indent: str) -> List[str]:
    """Re-base ``code`` on ``indent``; relative indentation is kept, blank lines stay empty."""
    lines = textwrap.dedent(code).split("\n")
    return [indent + line if line.strip() else "" for line in lines]


class Inserter:
    """Inserts or replaces generated code below trigger comments."""

    def __init__(self, regions: GeneratedRegions | None = None) -> None:
        self.regions = regions or GeneratedRegions()
        self.logger = get_logger("placement")

    def insert(self, buffer: Buffer, comment_line: int, code: str, indent: str) -> LineRange:
        """Insert ``code`` under the comment, separated from it by one blank line.

        A blank line already sitting directly below the comment is reused as
        the separator. The returned range covers the code lines only.
        """
        lines = apply_indent(code, indent)
        insert_at = comment_line + 1
        following = buffer.get_lines(insert_at, insert_at + 1)
        if following and not following[0].strip():
            insert_at += 1
            block = lines
        else:
            block = [""] + lines

        buffer.set_lines(insert_at, insert_at, block)
        self.regions.shift(buffer.buffer_id, insert_at, len(block))

        end = insert_at + len(block) - 1
        start = end - len(lines) + 1
        placed = LineRange(start, end)
        self.regions.mark(buffer.buffer_id, placed)
        self.logger.debug(
            "Inserted %d line(s) at %d-%d in buffer %s", len(lines), start, end, buffer.buffer_id
        )
        return placed

    def replace(
        self,
        buffer: Buffer,
        comment_line: int,
        code: str,
        indent: str,
        old_range: LineRange | None,
    ) -> LineRange:
        """Swap ``old_range`` for ``code``; stale or missing ranges fall back to ``insert``."""
        if old_range is None or not old_range.is_valid(buffer.line_count()):
            self.logger.debug("Stale region %s in buffer %s; inserting instead", old_range, buffer.buffer_id)
            return self.insert(buffer, comment_line, code, indent)

        self.regions.clear_range(buffer.buffer_id, old_range)
        lines = apply_indent(code, indent)
        buffer.set_lines(old_range.start, old_range.end + 1, lines)
        self.regions.shift(buffer.buffer_id, old_range.end + 1, len(lines) - len(old_range))

        placed = LineRange(old_range.start, old_range.start + len(lines) - 1)
        self.regions.mark(buffer.buffer_id, placed)
        self.logger.debug(
            "Replaced lines %d-%d with %d line(s) in buffer %s",
            old_range.start,
            old_range.end,
            len(lines),
            buffer.buffer_id,
        )
        return placed


__all__ = ["Inserter", "apply_indent"]
