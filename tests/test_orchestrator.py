"""End-to-end tests for per-comment processing and the command surface."""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from comment2code.config import Comment2CodeConfig
from comment2code.editor import EditorEvent, MemoryEditor
from comment2code.llm import NonZeroExitError, OpencodeRunner
from comment2code.models import LineRange, Outcome, RequestKey, RequestStatus
from comment2code.orchestrator import Orchestrator

from conftest import StubGenerator

OrchestratorFactory = Callable[..., Orchestrator]


def _messages(orchestrator: Orchestrator) -> list[str]:
    return [message for _, message in orchestrator.notify.history()]


def test_trigger_inserts_code_after_a_blank_separator(
    editor: MemoryEditor, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: add two numbers", ""], name="calc.py")
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        assert orchestrator.trigger_line(buffer.buffer_id, 0) is True
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["# @ai: add two numbers", "", "a + b"]
    entry = orchestrator.state.ledger.get(RequestKey(buffer.buffer_id, 0, "# @ai: add two numbers"))
    assert entry is not None
    assert entry.status is RequestStatus.COMPLETED
    assert entry.code_range == LineRange(2, 2)
    assert "Code generated successfully!" in _messages(orchestrator)


def test_forced_trigger_refactors_existing_code_in_place(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: optimize", "def f():\n    return 1", "# @ai: next"])
    generator.outputs["optimize"] = "def f():\n    return 2"
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["# @ai: optimize", "def f():", "    return 2", "# @ai: next"]
    assert "def f():\n    return 1" in generator.prompts[0]
    assert "Code to refactor:" in generator.prompts[0]
    assert "Code refactored successfully!" in _messages(orchestrator)


def test_process_all_handles_comments_strictly_in_order(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: one", "# @ai: two", "# @ai: three"])
    generator.outputs.update({"one": "first()", "two": "second()", "three": "third()"})
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        gate = asyncio.Event()
        generator.gates["one"] = gate
        assert orchestrator.process_all(buffer.buffer_id) == 3
        for _ in range(20):
            await asyncio.sleep(0)
        assert generator.events == ["start:one"]
        assert orchestrator.status()["queued_count"] == 2
        gate.set()
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert generator.events == [
        "start:one",
        "end:one",
        "start:two",
        "end:two",
        "start:three",
        "end:three",
    ]
    assert buffer.lines == [
        "# @ai: one",
        "",
        "first()",
        "# @ai: two",
        "",
        "second()",
        "# @ai: three",
        "",
        "third()",
    ]
    assert orchestrator.state.queue.running is False
    assert "Queued 3 comment(s) for processing..." in _messages(orchestrator)


def test_comment_moved_during_generation_is_relocated_before_writing(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["    # @ai: body", ""])
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        gate = asyncio.Event()
        generator.gates["body"] = gate
        orchestrator.trigger_line(buffer.buffer_id, 0)
        for _ in range(20):
            await asyncio.sleep(0)
        buffer.set_lines(0, 0, ["def f():"])
        gate.set()
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["def f():", "    # @ai: body", "", "    a + b"]


def test_comment_removed_during_generation_discards_the_result(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: vanish", ""])
    orchestrator = make_orchestrator()

    async def scenario() -> Outcome:
        gate = asyncio.Event()
        generator.gates["vanish"] = gate
        comment = orchestrator.parse_line(buffer.buffer_id, 0)
        assert comment is not None
        job = asyncio.ensure_future(orchestrator.process_comment(buffer.buffer_id, comment, force=True))
        for _ in range(20):
            await asyncio.sleep(0)
        buffer.set_lines(0, 1, ["# edited by hand"])
        gate.set()
        return await job

    outcome = asyncio.run(scenario())

    assert outcome is Outcome.NOT_FOUND
    assert buffer.lines == ["# edited by hand", ""]
    assert len(orchestrator.state.ledger) == 0


def test_non_forced_processing_respects_the_ledger_and_existing_code(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: keep", "x = 1", "# @ai: new", ""])
    orchestrator = make_orchestrator()

    async def scenario() -> list[Outcome]:
        keep = orchestrator.parse_line(buffer.buffer_id, 0)
        new = orchestrator.parse_line(buffer.buffer_id, 2)
        assert keep is not None and new is not None
        return [
            await orchestrator.process_comment(buffer.buffer_id, keep),
            await orchestrator.process_comment(buffer.buffer_id, new),
            await orchestrator.process_comment(buffer.buffer_id, new),
        ]

    outcomes = asyncio.run(scenario())

    assert outcomes == [Outcome.SKIPPED, Outcome.GENERATED, Outcome.SKIPPED]
    assert generator.calls == ["new"]
    assert orchestrator.state.ledger.is_completed(RequestKey(buffer.buffer_id, 0, "# @ai: keep"))


def test_generation_failure_marks_error_without_blocking_retry(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: broken", ""])
    generator.outputs["broken"] = NonZeroExitError(1, "rate limited")
    orchestrator = make_orchestrator()
    key = RequestKey(buffer.buffer_id, 0, "# @ai: broken")

    async def scenario() -> list[Outcome]:
        comment = orchestrator.parse_line(buffer.buffer_id, 0)
        assert comment is not None
        first = await orchestrator.process_comment(buffer.buffer_id, comment)
        entry = orchestrator.state.ledger.get(key)
        assert entry is not None and entry.status is RequestStatus.ERROR
        generator.outputs["broken"] = "fixed()"
        second = await orchestrator.process_comment(buffer.buffer_id, comment)
        return [first, second]

    outcomes = asyncio.run(scenario())

    assert outcomes == [Outcome.FAILED, Outcome.GENERATED]
    assert "Error: rate limited" in _messages(orchestrator)
    assert buffer.lines == ["# @ai: broken", "", "fixed()"]


def test_missing_cli_clears_the_ledger_entry(
    editor: MemoryEditor, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("comment2code.llm.runner.shutil.which", lambda name: None)
    buffer = editor.open_buffer(["# @ai: add", ""])
    config = Comment2CodeConfig(mode="manual", fallback_paths=[])
    orchestrator = Orchestrator(editor, config)

    async def scenario() -> Outcome:
        comment = orchestrator.parse_line(buffer.buffer_id, 0)
        assert comment is not None
        return await orchestrator.process_comment(buffer.buffer_id, comment, force=True)

    assert asyncio.run(scenario()) is Outcome.FAILED
    assert len(orchestrator.state.ledger) == 0
    assert any("CLI not found" in message for message in _messages(orchestrator))


def test_cancel_all_stops_generation_and_clears_the_ledger(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: slow", ""])
    generator.gates["slow"] = asyncio.Event()
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 0)
        for _ in range(20):
            await asyncio.sleep(0)
        assert orchestrator.status()["processing_count"] == 1
        assert orchestrator.cancel_all() == 1
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["# @ai: slow", ""]
    assert len(orchestrator.state.ledger) == 0
    assert orchestrator.state.queue.running is False
    assert "Generation cancelled" in _messages(orchestrator)


def test_buffer_delete_tears_down_all_buffer_state(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: slow", "", "# @ai: later", ""])
    generator.gates["slow"] = asyncio.Event()
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.process_all(buffer.buffer_id)
        for _ in range(20):
            await asyncio.sleep(0)
        orchestrator.state.queue_pending(buffer.buffer_id, 2, "# @ai: later")
        editor.close_buffer(buffer.buffer_id)
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.BUFFER_DELETE)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    state = orchestrator.state
    assert len(state.ledger) == 0
    assert len(state.queue) == 0
    assert state.pending == {}
    assert state.regions.regions(buffer.buffer_id) == []
    assert orchestrator.runner.running_count() == 0
    assert generator.calls == ["slow"]


def test_reset_during_generation_does_not_disturb_the_next_request(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: slow", ""])
    gate = asyncio.Event()
    generator.gates["slow"] = gate
    orchestrator = make_orchestrator()
    key = RequestKey(buffer.buffer_id, 0, "# @ai: slow")

    async def scenario() -> list[Outcome]:
        comment = orchestrator.parse_line(buffer.buffer_id, 0)
        assert comment is not None
        first = asyncio.ensure_future(orchestrator.process_comment(buffer.buffer_id, comment))
        for _ in range(20):
            await asyncio.sleep(0)
        assert orchestrator.state.ledger.is_processing(key)

        orchestrator.reset()
        second = asyncio.ensure_future(orchestrator.process_comment(buffer.buffer_id, comment))
        for _ in range(20):
            await asyncio.sleep(0)
        assert orchestrator.state.ledger.is_processing(key)

        gate.set()
        return [await first, await second]

    outcomes = asyncio.run(scenario())

    assert outcomes == [Outcome.CANCELLED, Outcome.GENERATED]
    assert generator.calls == ["slow", "slow"]
    assert buffer.lines == ["# @ai: slow", "", "a + b"]
    assert orchestrator.state.ledger.is_completed(key)


def test_generated_code_keeps_its_relative_indentation(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["def f():", "    # @ai: body", ""])
    generator.outputs["body"] = "    if ready:\n        go()"
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 1)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["def f():", "    # @ai: body", "", "    if ready:", "        go()"]


def test_forced_retrigger_reuses_the_region_of_blanked_output(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: add", ""])
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()
        buffer.set_lines(2, 3, ["  "])
        generator.outputs["add"] = "total = a + b"
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["# @ai: add", "", "total = a + b"]
    assert orchestrator.state.regions.regions(buffer.buffer_id) == [LineRange(2, 2)]


def test_forced_generation_never_reuses_a_region_below_the_next_comment(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: one", "# @ai: two", ""])
    generator.outputs["one"] = "first()"
    generator.outputs["two"] = "second()"
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 1)
        await orchestrator.wait_idle()
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["# @ai: one", "", "first()", "# @ai: two", "", "second()"]
    assert orchestrator.state.regions.regions(buffer.buffer_id) == [LineRange(2, 2), LineRange(5, 5)]


def test_nonlinear_mode_generates_after_the_debounce_delay(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: one", "", "# @ai: two", "", ""])
    orchestrator = make_orchestrator(Comment2CodeConfig(mode="auto_nonlinear", debounce_ms=10))
    generator.outputs.update({"one": "first()", "two": "second()"})

    async def scenario() -> None:
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.CURSOR_MOVED, 0)
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.CURSOR_MOVED, 2)
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.CURSOR_MOVED, 4)
        assert generator.calls == []
        await asyncio.sleep(0.05)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert generator.calls == ["one", "two"]
    assert buffer.lines == ["# @ai: one", "", "first()", "# @ai: two", "", "second()", ""]


def test_linear_mode_fires_when_the_next_comment_starts(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: one", "", "# @ai: two", ""])
    orchestrator = make_orchestrator(Comment2CodeConfig(mode="auto_linear"))
    generator.outputs.update({"one": "first()", "two": "second()"})

    async def scenario() -> None:
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.TEXT_CHANGED_INSERT, 0)
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.TEXT_CHANGED_INSERT, 2)
        await orchestrator.wait_idle()
        assert generator.calls == ["one"]
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.BUFFER_LEAVE, 0)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert generator.calls == ["one", "two"]
    assert buffer.lines == ["# @ai: one", "", "first()", "# @ai: two", "", "second()"]


def test_events_are_ignored_while_disabled(
    editor: MemoryEditor, generator: StubGenerator, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: one", "", "# @ai: two", ""])
    orchestrator = make_orchestrator(Comment2CodeConfig(mode="auto_linear"))
    orchestrator.disable()

    async def scenario() -> None:
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.TEXT_CHANGED, 0)
        orchestrator.handle_event(buffer.buffer_id, EditorEvent.TEXT_CHANGED, 2)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert generator.calls == []
    assert orchestrator.toggle() is True


def test_trigger_line_without_comment_warns(
    editor: MemoryEditor, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["x = 1"])
    orchestrator = make_orchestrator()

    assert orchestrator.trigger_line(buffer.buffer_id, 0) is False
    assert orchestrator.trigger_line(buffer.buffer_id, 9) is False
    assert "No @ai: comment found on current line" in _messages(orchestrator)


def test_trigger_current_uses_cursor_position(
    editor: MemoryEditor, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["x = 1", "# @ai: add", ""])
    editor.set_cursor(buffer.buffer_id, 1)
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        assert orchestrator.trigger_current() is True
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert buffer.lines == ["x = 1", "# @ai: add", "", "a + b"]


def test_set_mode_switches_policy_and_rejects_unknown_modes(
    make_orchestrator: OrchestratorFactory,
) -> None:
    orchestrator = make_orchestrator()
    orchestrator.state.active_comment[1] = 4

    assert orchestrator.set_mode("linear") is True
    assert orchestrator.get_mode() == "auto_linear"
    assert orchestrator.policy.name == "auto_linear"
    assert orchestrator.state.active_comment == {}
    assert "Mode changed: manual -> auto_linear" in _messages(orchestrator)

    assert orchestrator.set_mode("sometimes") is False
    assert orchestrator.get_mode() == "auto_linear"


def test_status_and_reset(
    editor: MemoryEditor, make_orchestrator: OrchestratorFactory
) -> None:
    buffer = editor.open_buffer(["# @ai: add", ""])
    orchestrator = make_orchestrator()

    async def scenario() -> None:
        orchestrator.trigger_line(buffer.buffer_id, 0)
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert orchestrator.status() == {
        "enabled": True,
        "mode": "manual",
        "processing_count": 0,
        "processed_count": 1,
        "completed_count": 1,
        "queued_count": 0,
    }
    orchestrator.reset()
    assert orchestrator.status()["processed_count"] == 0
    assert "State reset" in _messages(orchestrator)


def test_runner_defaults_come_from_config(editor: MemoryEditor) -> None:
    config = Comment2CodeConfig(model="custom/model", executable="/opt/bin/opencode")

    orchestrator = Orchestrator(editor, config)

    assert isinstance(orchestrator.runner, OpencodeRunner)
    assert orchestrator.runner.model == "custom/model"
    assert orchestrator.runner.executable == "/opt/bin/opencode"
    assert orchestrator.policy.name == "auto_nonlinear"
