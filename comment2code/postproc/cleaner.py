"""Turns raw CLI responses into plain code ready for insertion."""

from __future__ import annotations

from typing import List

from ..parsing.constants import DEFAULT_TRIGGER
from ..parsing.grammar import CommentGrammar

_FENCE = "```"


def clean_output(output: str, trigger: str = DEFAULT_TRIGGER) -> str:
    """Return only the code from a model response.

    One level of Markdown fencing is peeled when the response opens with a
    fence; everything from the next fence line onwards (closing fence,
    trailing prose, further blocks) is discarded. Lines echoing the trigger
    comment are removed and leading/trailing blank lines dropped. The
    remaining lines are kept verbatim so relative indentation survives.
    """
    grammar = CommentGrammar(trigger)
    text = output.replace("\r\n", "\n").replace("\r", "\n")
    lines = _trim_blank_lines(_drop_trigger_lines(text.split("\n"), grammar))

    if lines and lines[0].lstrip().startswith(_FENCE):
        kept: List[str] = []
        for line in lines[1:]:
            if line.strip().startswith(_FENCE):
                break
            kept.append(line)
        lines = _trim_blank_lines(_drop_trigger_lines(kept, grammar))

    return "\n".join(lines)


def _drop_trigger_lines(lines: List[str], grammar: CommentGrammar) -> List[str]:
    return [line for line in lines if not grammar.is_trigger(line)]


def _trim_blank_lines(lines: List[str]) -> List[str]:
    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


__all__ = ["clean_output"]
