"""Writes generated code into buffers and tracks where it went."""

from .inserter import Inserter, apply_indent
from .markers import GeneratedRegions

__all__ = ["GeneratedRegions", "Inserter", "apply_indent"]
