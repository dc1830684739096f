"""Coordinates trigger detection, dispatch, generation and placement."""

from __future__ import annotations

import asyncio
from typing import Coroutine, Dict, List, Optional, Set

from .config import Comment2CodeConfig
from .editor import Buffer, EditorEvent, EditorHost
from .llm.runner import GenerationCancelled, GenerationError, OpencodeRunner, ToolNotFoundError
from .logging import Notifier, get_logger
from .models import LedgerEntry, LineRange, Outcome, QueueItem, RequestKey, TriggerComment
from .parsing.grammar import CommentGrammar
from .parsing.locator import find_by_content, find_code_region
from .placement.inserter import Inserter
from .placement.markers import GeneratedRegions
from .policies import ActivationPolicy, get_policy, normalise_mode
from .prompting.builder import PromptBuilder
from .state import SessionState


class Orchestrator:
    """One editor session: owns the state and exposes the command surface."""

    def __init__(
        self,
        editor: EditorHost,
        config: Comment2CodeConfig | None = None,
        *,
        runner: OpencodeRunner | None = None,
        prompt_builder: PromptBuilder | None = None,
        state: SessionState | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or Comment2CodeConfig()
        self.editor = editor
        self.grammar = CommentGrammar(self.config.trigger)
        self.state = state or SessionState(debounce_ms=self.config.debounce_ms)
        self.runner = runner or OpencodeRunner(
            self.config.model,
            executable=self.config.executable,
            fallback_paths=self.config.fallback_paths,
            trigger=self.config.trigger,
        )
        self.prompt_builder = prompt_builder or PromptBuilder(
            self.config.templates_dir,
            trigger=self.config.trigger,
            context_before=self.config.context_before,
            context_after=self.config.context_after,
        )
        self.inserter = Inserter(self.state.regions)
        self.notify = notifier or Notifier(enabled=self.config.notify)
        self.config.mode = normalise_mode(self.config.mode)
        self.policy: ActivationPolicy = get_policy(self.config.mode)
        self.logger = get_logger("orchestrator")
        self._tasks: Set[asyncio.Task[object]] = set()
        self._queue_task: Optional[asyncio.Task[object]] = None

    # ------------------------------------------------------------------
    # Per-comment processing

    async def process_comment(
        self, buffer_id: int, comment: TriggerComment, *, force: bool = False
    ) -> Outcome:
        """Generate (or, when forced over existing code, refactor) for one comment."""
        key = RequestKey.for_comment(buffer_id, comment)
        ledger = self.state.ledger

        if ledger.is_processing(key):
            if force:
                self.notify.info("Generation already running for this comment")
            return Outcome.SKIPPED
        if force:
            ledger.clear(key)
        elif ledger.is_completed(key):
            return Outcome.SKIPPED

        buffer = self.editor.get_buffer(buffer_id)
        if buffer is None:
            self.notify.info("Buffer no longer valid, skipping")
            return Outcome.STALE

        region = find_code_region(buffer, comment.line_number, self.grammar)
        if region is not None and not force:
            # Code already sits below a leftover comment; never clobber it automatically.
            ledger.mark_completed(key)
            self.logger.debug("Code already present below %s; marking completed", key)
            return Outcome.SKIPPED

        refactor = region is not None
        owned = ledger.mark_processing(key)
        try:
            if refactor:
                self.logger.info("Refactoring code for '%s'", comment.prompt)
                prompt = self.prompt_builder.build_refactor_prompt(
                    buffer, comment.line_number, comment.prompt, region
                )
            else:
                self.logger.info("Generating code for '%s'", comment.prompt)
                prompt = self.prompt_builder.build_prompt(
                    buffer, comment.line_number, comment.prompt
                )
            code = await self.runner.execute(prompt, key)
        except GenerationCancelled:
            ledger.release(key, owned)
            self.notify.info("Generation cancelled")
            return Outcome.CANCELLED
        except ToolNotFoundError as exc:
            ledger.release(key, owned)
            self.notify.error(str(exc))
            return Outcome.FAILED
        except GenerationError as exc:
            if ledger.get(key) is owned:
                ledger.mark_error(key, str(exc))
            self.notify.error(f"Error: {exc}")
            return Outcome.FAILED
        except BaseException:
            ledger.release(key, owned)
            raise

        return self._place(buffer_id, comment, key, owned, code, refactor=refactor, force=force)

    def _place(
        self,
        buffer_id: int,
        comment: TriggerComment,
        key: RequestKey,
        owned: LedgerEntry,
        code: str,
        *,
        refactor: bool,
        force: bool,
    ) -> Outcome:
        ledger = self.state.ledger
        buffer = self.editor.get_buffer(buffer_id)
        if buffer is None or not buffer.is_valid():
            ledger.release(key, owned)
            self.notify.info("Buffer closed before code arrived; result discarded")
            return Outcome.STALE

        # Earlier insertions may have moved the comment since it was parsed.
        current = find_by_content(buffer, comment.raw_line, self.grammar)
        if current is None:
            ledger.release(key, owned)
            self.notify.info("Comment no longer found in buffer; result discarded")
            return Outcome.NOT_FOUND

        if refactor:
            region = find_code_region(buffer, current.line_number, self.grammar)
            placed = self.inserter.replace(
                buffer,
                current.line_number,
                code,
                current.indent,
                region.range if region is not None else None,
            )
            ledger.mark_completed(key, placed)
            self.notify.info("Code refactored successfully!")
            return Outcome.REFACTORED

        previous = self._generated_region(buffer, current.line_number) if force else None
        if previous is not None:
            # Re-generation over earlier output that no longer reads as code (e.g. blanked).
            placed = self.inserter.replace(buffer, current.line_number, code, current.indent, previous)
        else:
            placed = self.inserter.insert(buffer, current.line_number, code, current.indent)
        ledger.mark_completed(key, placed)
        self.notify.info("Code generated successfully!")
        return Outcome.GENERATED

    def _generated_region(self, buffer: Buffer, comment_line: int) -> Optional[LineRange]:
        """Earlier output recorded below the comment, never past the next trigger comment."""
        lookahead = GeneratedRegions.DEFAULT_LOOKAHEAD
        below = buffer.get_lines(comment_line + 1, comment_line + 1 + lookahead)
        for offset, line in enumerate(below):
            if self.grammar.is_trigger(line):
                lookahead = offset
                break
        if not lookahead:
            return None
        return self.state.regions.region_for_comment(buffer.buffer_id, comment_line, lookahead)

    # ------------------------------------------------------------------
    # Sequential dispatch

    def process_queue(self) -> Optional[asyncio.Task[object]]:
        """Start the queue driver unless it is already running."""
        queue = self.state.queue
        if queue.running:
            return self._queue_task
        if queue.is_empty():
            return None
        queue.running = True
        self._queue_task = self._spawn(self._drain_queue())
        return self._queue_task

    async def _drain_queue(self) -> None:
        queue = self.state.queue
        try:
            while True:
                item = queue.pop()
                if item is None:
                    break
                try:
                    await self._dispatch(item)
                except Exception:
                    self.logger.exception("Failed to process queued comment %r", item.raw_line)
        finally:
            queue.running = False

    async def _dispatch(self, item: QueueItem) -> Outcome:
        buffer = self.editor.get_buffer(item.buffer_id)
        if buffer is None:
            self.notify.info("Buffer no longer valid, skipping")
            return Outcome.STALE
        comment = find_by_content(buffer, item.raw_line, self.grammar)
        if comment is None:
            self.notify.info("Comment no longer found in buffer, skipping")
            return Outcome.NOT_FOUND
        return await self.process_comment(item.buffer_id, comment, force=True)

    # ------------------------------------------------------------------
    # Commands

    def trigger_current(self) -> bool:
        buffer = self.editor.current_buffer()
        if buffer is None:
            self.notify.warning("No active buffer")
            return False
        return self.trigger_line(buffer.buffer_id, self.editor.cursor_line(buffer.buffer_id))

    def trigger_line(self, buffer_id: int, line: int) -> bool:
        """Queue the trigger comment on ``line`` for forced generation."""
        comment = self.parse_line(buffer_id, line)
        if comment is None:
            self.notify.warning(f"No {self.grammar.trigger} comment found on current line")
            return False
        queue = self.state.queue
        queue.enqueue(buffer_id, comment.raw_line, comment.prompt)
        if len(queue) > 1:
            self.notify.info(f"Queued ({len(queue)} pending)")
        self.process_queue()
        return True

    def process_all(self, buffer_id: int | None = None) -> int:
        """Queue every trigger comment of the buffer, top to bottom."""
        buffer = self._target_buffer(buffer_id)
        if buffer is None:
            self.notify.warning("No active buffer")
            return 0
        comments = self.grammar.find_all(buffer.get_lines())
        if not comments:
            self.notify.info(f"No {self.grammar.trigger} comments found in buffer")
            return 0
        for comment in comments:
            self.state.queue.enqueue(buffer.buffer_id, comment.raw_line, comment.prompt)
        self.notify.info(f"Queued {len(comments)} comment(s) for processing...")
        self.process_queue()
        return len(comments)

    def toggle(self) -> bool:
        self.config.enabled = not self.config.enabled
        self.notify.info("Enabled" if self.config.enabled else "Disabled")
        return self.config.enabled

    def enable(self) -> None:
        self.config.enabled = True
        self.notify.info("Enabled")

    def disable(self) -> None:
        self.config.enabled = False
        self.notify.info("Disabled")

    def get_mode(self) -> str:
        return self.config.mode

    def set_mode(self, mode: str) -> bool:
        try:
            new_mode = normalise_mode(mode)
        except ValueError as exc:
            self.notify.error(str(exc))
            return False
        old_mode = self.config.mode
        self.policy = get_policy(new_mode)
        self.config.mode = new_mode
        self.state.clear_tracking()
        self.notify.info(f"Mode changed: {old_mode} -> {new_mode}")
        return True

    def cancel_all(self) -> int:
        cancelled = self.runner.cancel_all()
        self.notify.info("Cancelled all running jobs")
        return cancelled

    def reset(self) -> None:
        self.runner.cancel_all()
        self.state.reset()
        self.notify.info("State reset")

    def status(self) -> Dict[str, object]:
        ledger = self.state.ledger
        return {
            "enabled": self.config.enabled,
            "mode": self.config.mode,
            "processing_count": ledger.processing_count(),
            "processed_count": len(ledger),
            "completed_count": ledger.completed_count(),
            "queued_count": len(self.state.queue),
        }

    def close_buffer(self, buffer_id: int) -> None:
        """Forget everything about a buffer that is going away."""
        self.state.clear_buffer(buffer_id)
        self.runner.cancel_buffer(buffer_id)

    # ------------------------------------------------------------------
    # Editor events and activation policies

    def handle_event(
        self, buffer_id: int, event: EditorEvent | str, cursor_line: int | None = None
    ) -> None:
        event = EditorEvent(event)
        if event is EditorEvent.BUFFER_DELETE:
            self.close_buffer(buffer_id)
            return
        if not self.config.enabled or not self.policy.handles(event):
            return
        if cursor_line is None:
            cursor_line = self.editor.cursor_line(buffer_id)
        self.policy.on_event(self, buffer_id, event, cursor_line)

    def parse_line(self, buffer_id: int, line: int) -> Optional[TriggerComment]:
        buffer = self.editor.get_buffer(buffer_id)
        if buffer is None or line < 0 or line >= buffer.line_count():
            return None
        return self.grammar.parse_line(buffer.get_lines(line, line + 1)[0], line)

    def resolve_comment(
        self, buffer_id: int, line: int, raw_line: str
    ) -> Optional[TriggerComment]:
        """Prefer the comment still at ``line``; otherwise look it up by content."""
        parsed = self.parse_line(buffer_id, line)
        if parsed is not None and parsed.raw_line.strip() == raw_line.strip():
            return parsed
        buffer = self.editor.get_buffer(buffer_id)
        if buffer is not None:
            found = find_by_content(buffer, raw_line, self.grammar)
            if found is not None:
                return found
        return parsed

    def fire(self, buffer_id: int, comment: TriggerComment) -> asyncio.Task[object]:
        """Process a comment right away through the ledger (non-forced)."""
        return self._spawn(self.process_comment(buffer_id, comment, force=False))

    def fire_debounced(self, buffer_id: int, comment: TriggerComment) -> None:
        self.state.queue_pending(buffer_id, comment.line_number, comment.raw_line)
        self.state.debouncer.schedule(buffer_id, self._on_debounce)

    def _on_debounce(self, buffer_id: int) -> None:
        if self.editor.get_buffer(buffer_id) is None:
            self.state.pending.pop(buffer_id, None)
            return
        self._spawn(self.process_pending(buffer_id))

    async def process_pending(self, buffer_id: int) -> List[Outcome]:
        """Process every comment queued for the buffer since the last debounce fire."""
        outcomes: List[Outcome] = []
        for line, raw_line in self.state.take_pending(buffer_id):
            comment = self.resolve_comment(buffer_id, line, raw_line)
            if comment is None:
                continue
            outcomes.append(await self.process_comment(buffer_id, comment, force=False))
        return outcomes

    # ------------------------------------------------------------------
    # Task bookkeeping

    async def wait_idle(self) -> None:
        """Wait until every spawned task (queue driver, auto triggers) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[object, object, object]) -> asyncio.Task[object]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Background task failed: %s", exc, exc_info=exc)

    def _target_buffer(self, buffer_id: int | None) -> Optional[Buffer]:
        if buffer_id is None:
            return self.editor.current_buffer()
        return self.editor.get_buffer(buffer_id)


__all__ = ["Orchestrator"]
