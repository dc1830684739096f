from __future__ import annotations

import asyncio
import re
from typing import Callable, Dict, List, Optional, Union

import pytest

from comment2code.config import Comment2CodeConfig
from comment2code.editor import MemoryEditor
from comment2code.llm.runner import GenerationRequest, OpencodeRunner
from comment2code.orchestrator import Orchestrator

_TASK_RE = re.compile(r"^(?:Task|Instruction): (.*)$", re.MULTILINE)


class StubGenerator:
    """Stands in for the opencode CLI; answers by the task named in the prompt."""

    def __init__(self, default: str = "a + b") -> None:
        self.default = default
        self.outputs: Dict[str, Union[str, Exception]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.events: List[str] = []
        self.prompts: List[str] = []

    @property
    def calls(self) -> List[str]:
        return [event.split(":", 1)[1] for event in self.events if event.startswith("start:")]

    async def __call__(self, request: GenerationRequest) -> str:
        match = _TASK_RE.search(request.prompt)
        task = match.group(1).strip() if match else ""
        self.prompts.append(request.prompt)
        self.events.append(f"start:{task}")
        gate = self.gates.get(task)
        if gate is not None:
            await gate.wait()
        output = self.outputs.get(task, self.default)
        self.events.append(f"end:{task}")
        if isinstance(output, Exception):
            raise output
        return output


@pytest.fixture
def editor() -> MemoryEditor:
    return MemoryEditor()


@pytest.fixture
def generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture
def make_orchestrator(
    editor: MemoryEditor, generator: StubGenerator
) -> Callable[..., Orchestrator]:
    """Build an orchestrator wired to the in-memory editor and the stub generator."""

    def _factory(config: Optional[Comment2CodeConfig] = None, **overrides: object) -> Orchestrator:
        config = config or Comment2CodeConfig(mode="manual")
        for key, value in overrides.items():
            setattr(config, key, value)
        runner = OpencodeRunner(config.model, trigger=config.trigger, runner=generator)
        return Orchestrator(editor, config, runner=runner)

    return _factory
