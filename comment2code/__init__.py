"""Generate code beneath ``@ai:`` trigger comments with the opencode CLI."""

from .config import Comment2CodeConfig, load_config
from .editor import EditorEvent, InMemoryBuffer, MemoryEditor
from .models import Outcome, TriggerComment
from .orchestrator import Orchestrator

__version__ = "0.1.0"

__all__ = [
    "Comment2CodeConfig",
    "EditorEvent",
    "InMemoryBuffer",
    "MemoryEditor",
    "Orchestrator",
    "Outcome",
    "TriggerComment",
    "load_config",
]
