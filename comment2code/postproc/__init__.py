"""Post-processing of generation output."""

from .cleaner import clean_output

__all__ = ["clean_output"]
