"""Recognises trigger comments such as ``# @ai: build a parser``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from ..models import TriggerComment
from .constants import (
    COMMENT_PREFIXES,
    DEFAULT_PREFIX,
    DEFAULT_TRIGGER,
    FILETYPE_BY_NAME,
    FILETYPE_BY_SUFFIX,
    PREFIX_BY_FILETYPE,
)

_INDENT_RE = re.compile(r"^(\s*)")


@dataclass(frozen=True)
class _PrefixMatcher:
    prefix: str
    closer: Optional[str]
    pattern: Pattern[str]


class CommentGrammar:
    """Matches ``<indent><prefix> <trigger> <prompt>`` against the ordered prefix list."""

    def __init__(
        self,
        trigger: str = DEFAULT_TRIGGER,
        prefixes: Sequence[Tuple[str, Optional[str]]] = COMMENT_PREFIXES,
    ) -> None:
        if not trigger or not trigger.strip():
            raise ValueError("Trigger marker must be a non-empty string")
        self.trigger = trigger
        self._matchers = self._compile(trigger, prefixes)

    @property
    def prefixes(self) -> List[str]:
        return [matcher.prefix for matcher in self._matchers]

    def extract_prompt(self, line: str) -> Optional[Tuple[str, str]]:
        """Return ``(prompt, prefix)`` for a trigger comment, ``None`` otherwise."""
        for matcher in self._matchers:
            match = matcher.pattern.match(line)
            if not match:
                continue
            prompt = match.group(2).strip()
            if matcher.closer and prompt.endswith(matcher.closer):
                prompt = prompt[: -len(matcher.closer)].rstrip()
            if not prompt:
                continue
            return prompt, matcher.prefix
        return None

    def is_trigger(self, line: str) -> bool:
        return self.extract_prompt(line) is not None

    def parse_line(self, line: str, line_number: int) -> Optional[TriggerComment]:
        extracted = self.extract_prompt(line)
        if extracted is None:
            return None
        prompt, prefix = extracted
        indent_match = _INDENT_RE.match(line)
        indent = indent_match.group(1) if indent_match else ""
        return TriggerComment(
            line_number=line_number,
            prompt=prompt,
            indent=indent,
            raw_line=line,
            comment_prefix=prefix,
        )

    def find_all(self, lines: Iterable[str]) -> List[TriggerComment]:
        """Return every trigger comment, top to bottom."""
        comments: List[TriggerComment] = []
        for index, line in enumerate(lines):
            parsed = self.parse_line(line, index)
            if parsed is not None:
                comments.append(parsed)
        return comments

    @staticmethod
    def _compile(
        trigger: str, prefixes: Sequence[Tuple[str, Optional[str]]]
    ) -> List[_PrefixMatcher]:
        escaped_trigger = re.escape(trigger)
        matchers: List[_PrefixMatcher] = []
        for prefix, closer in prefixes:
            pattern = re.compile(
                r"^(\s*)" + re.escape(prefix) + r"\s*" + escaped_trigger + r"\s*(\S.*)$"
            )
            matchers.append(_PrefixMatcher(prefix=prefix, closer=closer, pattern=pattern))
        return matchers


def comment_prefix_for(filetype: str | None) -> str:
    """Default line-comment prefix for a buffer language tag."""
    if not filetype:
        return DEFAULT_PREFIX
    return PREFIX_BY_FILETYPE.get(filetype.lower(), DEFAULT_PREFIX)


def detect_filetype(path: str | Path) -> str:
    """Guess a language tag from a file name; empty string when unknown."""
    candidate = Path(path)
    if candidate.name in FILETYPE_BY_NAME:
        return FILETYPE_BY_NAME[candidate.name]
    return FILETYPE_BY_SUFFIX.get(candidate.suffix.lower(), "")


__all__ = ["CommentGrammar", "comment_prefix_for", "detect_filetype"]
