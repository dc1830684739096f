"""Activation policies deciding when a trigger comment fires on its own."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Optional, Protocol

from .editor import EditorEvent
from .models import TriggerComment

if TYPE_CHECKING:  # pragma: no cover
    from .state import SessionState


MANUAL = "manual"
AUTO_LINEAR = "auto_linear"
AUTO_NONLINEAR = "auto_nonlinear"

MODES = (MANUAL, AUTO_LINEAR, AUTO_NONLINEAR)

_MODE_ALIASES: Dict[str, str] = {
    "manual": MANUAL,
    "auto_linear": AUTO_LINEAR,
    "linear": AUTO_LINEAR,
    "auto_nonlinear": AUTO_NONLINEAR,
    "auto_non_linear": AUTO_NONLINEAR,
    "nonlinear": AUTO_NONLINEAR,
    "non_linear": AUTO_NONLINEAR,
}


class PolicyHost(Protocol):
    """Operations a policy may call back into."""

    state: "SessionState"

    def parse_line(self, buffer_id: int, line: int) -> Optional[TriggerComment]: ...

    def resolve_comment(
        self, buffer_id: int, line: int, raw_line: str
    ) -> Optional[TriggerComment]: ...

    def fire(self, buffer_id: int, comment: TriggerComment) -> object: ...

    def fire_debounced(self, buffer_id: int, comment: TriggerComment) -> None: ...


class ActivationPolicy(ABC):
    """Contract for activation strategies reacting to editor events."""

    name: str = ""
    events: FrozenSet[EditorEvent] = frozenset()

    def handles(self, event: EditorEvent) -> bool:
        return event in self.events

    @abstractmethod
    def on_event(
        self, host: PolicyHost, buffer_id: int, event: EditorEvent, cursor_line: int
    ) -> None:
        """React to ``event`` with the cursor on ``cursor_line``."""


class ManualPolicy(ActivationPolicy):
    """Never fires on its own; only explicit commands enqueue work."""

    name = MANUAL

    def on_event(
        self, host: PolicyHost, buffer_id: int, event: EditorEvent, cursor_line: int
    ) -> None:
        return None


class LinearPolicy(ActivationPolicy):
    """Fires a comment once the user starts writing the next one, or leaves the buffer."""

    name = AUTO_LINEAR
    events = frozenset(
        {
            EditorEvent.INSERT_LEAVE,
            EditorEvent.TEXT_CHANGED,
            EditorEvent.TEXT_CHANGED_INSERT,
            EditorEvent.BUFFER_LEAVE,
        }
    )

    def on_event(
        self, host: PolicyHost, buffer_id: int, event: EditorEvent, cursor_line: int
    ) -> None:
        active = host.state.active_comment
        if event is EditorEvent.BUFFER_LEAVE:
            previous = active.pop(buffer_id, None)
            if previous is not None:
                self._fire_line(host, buffer_id, previous)
            return

        current = host.parse_line(buffer_id, cursor_line)
        if current is None:
            return

        previous = active.get(buffer_id)
        if previous is not None and previous != cursor_line:
            self._fire_line(host, buffer_id, previous)
            active.pop(buffer_id, None)
        active[buffer_id] = cursor_line
        host.state.active_raw[buffer_id] = current.raw_line

    @staticmethod
    def _fire_line(host: PolicyHost, buffer_id: int, line: int) -> None:
        raw_line = host.state.active_raw.pop(buffer_id, None)
        if raw_line is None:
            comment = host.parse_line(buffer_id, line)
        else:
            comment = host.resolve_comment(buffer_id, line, raw_line)
        if comment is not None:
            host.fire(buffer_id, comment)


class NonLinearPolicy(ActivationPolicy):
    """Fires a comment after the cursor leaves its line and stays away for the debounce delay."""

    name = AUTO_NONLINEAR
    events = frozenset(
        {
            EditorEvent.CURSOR_MOVED,
            EditorEvent.CURSOR_MOVED_INSERT,
            EditorEvent.INSERT_LEAVE,
        }
    )

    def on_event(
        self, host: PolicyHost, buffer_id: int, event: EditorEvent, cursor_line: int
    ) -> None:
        tracked = host.state.last_cursor_line
        current = host.parse_line(buffer_id, cursor_line)

        if event is EditorEvent.INSERT_LEAVE:
            if current is not None:
                tracked[buffer_id] = cursor_line
            return

        previous = tracked.get(buffer_id)
        if previous is not None and previous != cursor_line:
            left_behind = host.parse_line(buffer_id, previous)
            if left_behind is not None:
                host.fire_debounced(buffer_id, left_behind)

        if current is not None:
            tracked[buffer_id] = cursor_line
        else:
            tracked.pop(buffer_id, None)


_POLICIES: Dict[str, Callable[[], ActivationPolicy]] = {
    MANUAL: ManualPolicy,
    AUTO_LINEAR: LinearPolicy,
    AUTO_NONLINEAR: NonLinearPolicy,
}


def normalise_mode(mode: str) -> str:
    """Return the canonical mode name or raise ``ValueError``."""
    key = str(mode).strip().lower().replace("-", "_")
    try:
        return _MODE_ALIASES[key]
    except KeyError:
        raise ValueError(
            f"Invalid mode: {mode}. Use: {', '.join(MODES)}"
        ) from None


def get_policy(mode: str) -> ActivationPolicy:
    return _POLICIES[normalise_mode(mode)]()


__all__ = [
    "AUTO_LINEAR",
    "AUTO_NONLINEAR",
    "ActivationPolicy",
    "LinearPolicy",
    "MANUAL",
    "MODES",
    "ManualPolicy",
    "NonLinearPolicy",
    "get_policy",
    "normalise_mode",
]
