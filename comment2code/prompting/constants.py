"""Shared constants for generation prompts."""

from __future__ import annotations

CONTEXT_LINES_BEFORE = 10
CONTEXT_LINES_AFTER = 5

GENERATE_TEMPLATE = "generate.j2"
REFACTOR_TEMPLATE = "refactor.j2"

UNTITLED_NAME = "untitled"
PLAIN_LANGUAGE = "text"


__all__ = [
    "CONTEXT_LINES_AFTER",
    "CONTEXT_LINES_BEFORE",
    "GENERATE_TEMPLATE",
    "PLAIN_LANGUAGE",
    "REFACTOR_TEMPLATE",
    "UNTITLED_NAME",
]
