"""Prompt construction for the generation CLI."""

from .builder import PromptBuilder

__all__ = ["PromptBuilder"]
