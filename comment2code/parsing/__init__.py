"""Trigger comment grammar and buffer location helpers."""

from .grammar import CommentGrammar, comment_prefix_for
from .locator import find_by_content, find_code_region

__all__ = [
    "CommentGrammar",
    "comment_prefix_for",
    "find_by_content",
    "find_code_region",
]
