"""Builds context-bearing prompts for the generation CLI."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Dict, List

from jinja2 import Environment, FileSystemLoader

from ..models import CodeRegion
from ..parsing.constants import DEFAULT_TRIGGER
from ..parsing.grammar import comment_prefix_for
from .constants import (
    CONTEXT_LINES_AFTER,
    CONTEXT_LINES_BEFORE,
    GENERATE_TEMPLATE,
    PLAIN_LANGUAGE,
    REFACTOR_TEMPLATE,
    UNTITLED_NAME,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..editor import Buffer


class PromptBuilder:
    """Renders the generate and refactor templates for a trigger comment."""

    def __init__(
        self,
        templates_dir: Path | None = None,
        *,
        trigger: str = DEFAULT_TRIGGER,
        context_before: int = CONTEXT_LINES_BEFORE,
        context_after: int = CONTEXT_LINES_AFTER,
    ) -> None:
        self.templates_dir = templates_dir
        self.trigger = trigger
        # More lines before than after: what precedes the comment is what the code builds on.
        self.context_before = max(0, context_before)
        self.context_after = max(0, context_after)
        self._env = self._create_env(templates_dir)

    def build_prompt(self, buffer: Buffer, line_num: int, prompt: str) -> str:
        """Prompt for generating new code beneath the comment at ``line_num``."""
        variables = self._base_variables(buffer, line_num, prompt)
        return self._render(GENERATE_TEMPLATE, variables)

    def build_refactor_prompt(
        self,
        buffer: Buffer,
        line_num: int,
        prompt: str,
        region: CodeRegion | str,
    ) -> str:
        """Prompt for rewriting the existing code region beneath the comment."""
        variables = self._base_variables(buffer, line_num, prompt)
        variables["code"] = region.code if isinstance(region, CodeRegion) else region
        return self._render(REFACTOR_TEMPLATE, variables)

    def context_window(self, buffer: Buffer, line_num: int) -> List[str]:
        start = max(0, line_num - self.context_before)
        end = min(buffer.line_count(), line_num + self.context_after)
        return buffer.get_lines(start, end)

    def _base_variables(self, buffer: Buffer, line_num: int, prompt: str) -> Dict[str, object]:
        filetype = buffer.filetype or ""
        return {
            "filename": buffer.name or UNTITLED_NAME,
            "language": filetype or PLAIN_LANGUAGE,
            "line_label": line_num + 1,
            "context": "\n".join(self.context_window(buffer, line_num)),
            "task": prompt.strip(),
            "comment": f"{comment_prefix_for(filetype)} {self.trigger}",
        }

    def _render(self, template_name: str, variables: Dict[str, object]) -> str:
        template = self._env.get_template(template_name)
        return template.render(**variables).strip()

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        default_dir = str(Path(__file__).with_name("templates"))
        if default_dir not in directories:
            directories.append(default_dir)
        loader = FileSystemLoader(directories)
        return Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )


__all__ = ["PromptBuilder"]
