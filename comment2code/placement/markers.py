"""Generated region markers for in-place re-generation."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..models import LineRange


class GeneratedRegions:
    """Remembers which line ranges of each buffer hold generated code.

    Ranges are kept in sync with insertions made by the placement engine via
    ``shift``; edits made elsewhere can leave them stale, which callers detect
    with ``LineRange.is_valid`` before replacing.
    """

    DEFAULT_LOOKAHEAD = 50

    def __init__(self) -> None:
        self._regions: Dict[int, List[LineRange]] = {}

    def mark(self, buffer_id: int, region: LineRange) -> None:
        regions = self._regions.setdefault(buffer_id, [])
        regions[:] = [existing for existing in regions if not existing.overlaps(region)]
        regions.append(region)
        regions.sort(key=lambda item: item.start)

    def clear_range(self, buffer_id: int, region: LineRange) -> int:
        regions = self._regions.get(buffer_id)
        if not regions:
            return 0
        kept = [existing for existing in regions if not existing.overlaps(region)]
        removed = len(regions) - len(kept)
        regions[:] = kept
        return removed

    def shift(self, buffer_id: int, from_line: int, delta: int) -> None:
        """Move every region starting at or after ``from_line`` by ``delta`` lines."""
        if not delta:
            return
        regions = self._regions.get(buffer_id)
        if not regions:
            return
        regions[:] = [
            LineRange(region.start + delta, region.end + delta)
            if region.start >= from_line
            else region
            for region in regions
        ]

    def region_for_comment(
        self, buffer_id: int, comment_line: int, lookahead: int = DEFAULT_LOOKAHEAD
    ) -> Optional[LineRange]:
        """First generated region starting within ``lookahead`` lines below the comment."""
        for region in self._regions.get(buffer_id, []):
            if comment_line < region.start <= comment_line + lookahead:
                if region.start <= region.end:
                    return region
                return None
        return None

    def regions(self, buffer_id: int) -> List[LineRange]:
        return list(self._regions.get(buffer_id, []))

    def drop_buffer(self, buffer_id: int) -> None:
        self._regions.pop(buffer_id, None)

    def reset(self) -> None:
        self._regions.clear()


__all__ = ["GeneratedRegions"]
