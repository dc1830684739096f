"""Asynchronous adapter around the opencode CLI."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Hashable, Optional, Sequence, Set

from ..logging import get_logger
from ..parsing.constants import DEFAULT_TRIGGER
from ..postproc.cleaner import clean_output


class GenerationError(RuntimeError):
    """Base class for failures of the generation CLI."""


class ToolNotFoundError(GenerationError):
    """Raised when the generation executable cannot be located."""


class NonZeroExitError(GenerationError):
    """Raised when the CLI fails or produces no usable output."""

    def __init__(self, returncode: int | None, stderr: str) -> None:
        self.returncode = returncode
        self.stderr = stderr
        message = stderr.strip() or f"Exit code: {returncode}"
        super().__init__(message)


class GenerationCancelled(GenerationError):
    """Raised by ``execute`` when its job was cancelled through the runner."""


@dataclass
class GenerationRequest:
    """Represents one invocation of the generation CLI."""

    prompt: str
    model: Optional[str]
    executable: str


RunnerFn = Callable[[GenerationRequest], Awaitable[str]]


class OpencodeRunner:
    """Runs prompts through ``opencode [--model M] run <prompt>`` without blocking the loop."""

    DEFAULT_EXECUTABLE = "opencode"
    DEFAULT_MODEL = "opencode/big-pickle"
    FALLBACK_PATHS = (
        "~/.opencode/bin/opencode",
        "/usr/local/bin/opencode",
        "/opt/homebrew/bin/opencode",
    )
    ENV_MODEL_KEYS = ("COMMENT2CODE_MODEL", "OPENCODE_MODEL")
    ENV_EXECUTABLE_KEYS = ("COMMENT2CODE_EXECUTABLE",)

    def __init__(
        self,
        model: str | None = None,
        *,
        executable: str | None = None,
        fallback_paths: Sequence[str] | None = None,
        trigger: str = DEFAULT_TRIGGER,
        runner: RunnerFn | None = None,
    ) -> None:
        self.model = self._resolve_model(model)
        self.executable = executable or self._first_env_value(self.ENV_EXECUTABLE_KEYS) or self.DEFAULT_EXECUTABLE
        self.fallback_paths = tuple(fallback_paths) if fallback_paths is not None else self.FALLBACK_PATHS
        self.trigger = trigger
        self._runner: RunnerFn = runner if runner is not None else self._cli_runner
        self._jobs: Dict[Hashable, asyncio.Task[str]] = {}
        self._cancelled: Set[asyncio.Task[str]] = set()
        self.logger = get_logger("llm")

    async def execute(self, prompt: str, key: Hashable) -> str:
        """Run the prompt and return cleaned code.

        Raises ``ToolNotFoundError``, ``NonZeroExitError`` or, when the job was
        cancelled via this runner, ``GenerationCancelled``.
        """
        if key in self._jobs:
            raise RuntimeError(f"A generation job for {key} is already running")
        request = GenerationRequest(prompt=prompt, model=self.model, executable=self.executable)
        task = asyncio.ensure_future(self._runner(request))
        self._jobs[key] = task
        self.logger.debug("Started generation job %s", key)
        try:
            stdout = await task
        except asyncio.CancelledError:
            if task in self._cancelled:
                raise GenerationCancelled(f"Generation for {key} was cancelled") from None
            task.cancel()
            raise
        finally:
            if self._jobs.get(key) is task:
                del self._jobs[key]
            self._cancelled.discard(task)

        cleaned = clean_output(stdout, self.trigger)
        if not cleaned:
            raise NonZeroExitError(0, "Generation produced no code")
        return cleaned

    def cancel(self, key: Hashable) -> bool:
        """Cancel the job for ``key``; the key is free for a new job straight away."""
        task = self._jobs.pop(key, None)
        if task is None or task.done():
            return False
        self._cancelled.add(task)
        task.cancel()
        self.logger.debug("Cancelled generation job %s", key)
        return True

    def cancel_buffer(self, buffer_id: int) -> int:
        keys = [key for key in self._jobs if getattr(key, "buffer_id", None) == buffer_id]
        return sum(1 for key in keys if self.cancel(key))

    def cancel_all(self) -> int:
        return sum(1 for key in list(self._jobs) if self.cancel(key))

    def running_count(self) -> int:
        return len(self._jobs)

    def is_running(self, key: Hashable) -> bool:
        return key in self._jobs

    def resolve_executable(self) -> str:
        """Locate the CLI on PATH or in one of the conventional install locations."""
        found = shutil.which(self.executable)
        if found:
            return found
        for candidate in self.fallback_paths:
            path = Path(candidate).expanduser()
            if path.is_file() and os.access(path, os.X_OK):
                return str(path)
        raise ToolNotFoundError(
            f"{self.executable} CLI not found. Install it or set 'executable' in .comment2code.yml."
        )

    async def _cli_runner(self, request: GenerationRequest) -> str:
        executable = self.resolve_executable()
        args = [executable]
        if request.model:
            args.extend(["--model", request.model])
        args.extend(["run", request.prompt])

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:  # pragma: no cover - depends on environment
            raise ToolNotFoundError(f"Unable to execute '{executable}'.") from exc

        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            raise

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if process.returncode != 0 or not stdout.strip():
            raise NonZeroExitError(process.returncode, stderr)
        return stdout

    def _resolve_model(self, model: str | None) -> str | None:
        if model:
            return model
        env_value = self._first_env_value(self.ENV_MODEL_KEYS)
        if env_value:
            return env_value
        return self.DEFAULT_MODEL

    @staticmethod
    def _first_env_value(keys: Sequence[str]) -> str | None:
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return None


__all__ = [
    "GenerationCancelled",
    "GenerationError",
    "GenerationRequest",
    "NonZeroExitError",
    "OpencodeRunner",
    "ToolNotFoundError",
]
