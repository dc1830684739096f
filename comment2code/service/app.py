"""FastAPI application exposing a comment2code session to editor integrations."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import Comment2CodeConfig
from ..editor import EditorEvent, InMemoryBuffer, MemoryEditor
from ..orchestrator import Orchestrator


class BufferOpenRequest(BaseModel):
    lines: Optional[List[str]] = None
    text: Optional[str] = None
    name: str = ""
    filetype: Optional[str] = None


class BufferUpdateRequest(BaseModel):
    lines: List[str]
    cursor_line: Optional[int] = None


class BufferResponse(BaseModel):
    buffer_id: int
    name: str
    filetype: str
    lines: List[str]


class EventRequest(BaseModel):
    buffer_id: int
    event: EditorEvent
    cursor_line: Optional[int] = None


class TriggerRequest(BaseModel):
    buffer_id: int
    line: int
    wait: bool = True


class ProcessAllRequest(BaseModel):
    buffer_id: Optional[int] = None
    wait: bool = True


class ModeRequest(BaseModel):
    mode: str


class CommandResponse(BaseModel):
    ok: bool
    detail: Optional[str] = None
    count: Optional[int] = None


class StatusResponse(BaseModel):
    enabled: bool
    mode: str
    processing_count: int
    processed_count: int
    completed_count: int
    queued_count: int


class RequestResponse(BaseModel):
    buffer_id: int
    line: int
    text: str
    status: str
    code_start: Optional[int] = None
    code_end: Optional[int] = None
    error: Optional[str] = None


class NotificationResponse(BaseModel):
    level: str
    message: str


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator(MemoryEditor())


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application around a single editor session."""

    app = FastAPI(title="comment2code", version="0.1.0")
    # Ledger, queue and markers must survive between requests.
    session = orchestrator_factory()
    app.state.orchestrator = session

    async def get_orchestrator() -> Orchestrator:
        return session

    def _editor(orchestrator: Orchestrator) -> MemoryEditor:
        editor = orchestrator.editor
        if not isinstance(editor, MemoryEditor):
            raise RuntimeError("HTTP host requires an in-memory editor")
        return editor

    def _buffer(orchestrator: Orchestrator, buffer_id: int) -> InMemoryBuffer:
        buffer = _editor(orchestrator).get_buffer(buffer_id)
        if buffer is None:
            raise KeyError(f"Unknown buffer {buffer_id}")
        return buffer

    def _describe(buffer: InMemoryBuffer) -> BufferResponse:
        return BufferResponse(
            buffer_id=buffer.buffer_id,
            name=buffer.name,
            filetype=buffer.filetype,
            lines=buffer.get_lines(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/status", response_model=StatusResponse)
    async def status(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> StatusResponse:
        return StatusResponse(**orchestrator.status())

    @app.get("/config")
    async def config(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> Dict[str, Any]:
        current = orchestrator.config
        return {
            "enabled": current.enabled,
            "mode": current.mode,
            "trigger": current.trigger,
            "model": current.model,
            "executable": current.executable,
            "debounce_ms": current.debounce_ms,
            "keymaps": {
                "manual_trigger": current.keymaps.manual_trigger,
                "process_all": current.keymaps.process_all,
            },
        }

    @app.post("/buffers", response_model=BufferResponse)
    async def open_buffer(
        payload: BufferOpenRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> BufferResponse:
        content: Any = payload.lines if payload.lines is not None else (payload.text or "")
        buffer = _editor(orchestrator).open_buffer(
            content, name=payload.name, filetype=payload.filetype
        )
        return _describe(buffer)

    @app.get("/buffers/{buffer_id}", response_model=BufferResponse)
    async def get_buffer(
        buffer_id: int,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> BufferResponse:
        return _describe(_buffer(orchestrator, buffer_id))

    @app.put("/buffers/{buffer_id}", response_model=BufferResponse)
    async def update_buffer(
        buffer_id: int,
        payload: BufferUpdateRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> BufferResponse:
        buffer = _buffer(orchestrator, buffer_id)
        buffer.set_lines(0, buffer.line_count(), payload.lines)
        if payload.cursor_line is not None:
            _editor(orchestrator).set_cursor(buffer_id, payload.cursor_line)
        return _describe(buffer)

    @app.delete("/buffers/{buffer_id}", response_model=CommandResponse)
    async def close_buffer(
        buffer_id: int,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        orchestrator.close_buffer(buffer_id)
        closed = _editor(orchestrator).close_buffer(buffer_id)
        return CommandResponse(ok=closed)

    @app.post("/events", response_model=CommandResponse)
    async def handle_event(
        payload: EventRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        editor = _editor(orchestrator)
        if payload.cursor_line is not None and editor.get_buffer(payload.buffer_id) is not None:
            editor.set_cursor(payload.buffer_id, payload.cursor_line)
        orchestrator.handle_event(payload.buffer_id, payload.event, payload.cursor_line)
        return CommandResponse(ok=True)

    @app.post("/trigger", response_model=CommandResponse)
    async def trigger(
        payload: TriggerRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        _buffer(orchestrator, payload.buffer_id)
        queued = orchestrator.trigger_line(payload.buffer_id, payload.line)
        if queued and payload.wait:
            await orchestrator.wait_idle()
        return CommandResponse(ok=queued)

    @app.post("/process-all", response_model=CommandResponse)
    async def process_all(
        payload: ProcessAllRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        count = orchestrator.process_all(payload.buffer_id)
        if count and payload.wait:
            await orchestrator.wait_idle()
        return CommandResponse(ok=count > 0, count=count)

    @app.post("/mode", response_model=CommandResponse)
    async def set_mode(
        payload: ModeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        changed = orchestrator.set_mode(payload.mode)
        return CommandResponse(ok=changed, detail=orchestrator.get_mode())

    @app.post("/toggle", response_model=CommandResponse)
    async def toggle(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        enabled = orchestrator.toggle()
        return CommandResponse(ok=True, detail="enabled" if enabled else "disabled")

    @app.post("/cancel", response_model=CommandResponse)
    async def cancel(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        return CommandResponse(ok=True, count=orchestrator.cancel_all())

    @app.post("/reset", response_model=CommandResponse)
    async def reset(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CommandResponse:
        orchestrator.reset()
        return CommandResponse(ok=True)

    @app.get("/requests", response_model=List[RequestResponse])
    async def list_requests(
        buffer_id: Optional[int] = None,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> List[RequestResponse]:
        records = []
        for key, entry in orchestrator.state.ledger.items():
            if buffer_id is not None and key.buffer_id != buffer_id:
                continue
            code_range = entry.code_range
            records.append(
                RequestResponse(
                    buffer_id=key.buffer_id,
                    line=key.line_number,
                    text=key.text,
                    status=entry.status.value,
                    code_start=code_range.start if code_range is not None else None,
                    code_end=code_range.end if code_range is not None else None,
                    error=entry.error,
                )
            )
        return records

    @app.get("/notifications", response_model=List[NotificationResponse])
    async def notifications(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> List[NotificationResponse]:
        return [
            NotificationResponse(level=logging.getLevelName(level).lower(), message=message)
            for level, message in orchestrator.notify.drain()
        ]

    @app.exception_handler(KeyError)
    async def key_error_handler(_: Any, exc: KeyError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc.args[0]) if exc.args else "Not found"})

    @app.exception_handler(IndexError)
    async def index_error_handler(_: Any, exc: IndexError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1",
    port: int = 8765,
    *,
    config: Comment2CodeConfig | None = None,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(lambda: Orchestrator(MemoryEditor(), config))
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
