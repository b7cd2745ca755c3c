from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    TRANSLATING = "translating"
    DONE = "done"
    ERROR = "error"


_ALLOWED: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.LISTENING, SessionState.TRANSLATING}),
    SessionState.LISTENING: frozenset({SessionState.TRANSLATING, SessionState.ERROR}),
    SessionState.TRANSLATING: frozenset({SessionState.DONE, SessionState.ERROR}),
    SessionState.DONE: frozenset({SessionState.LISTENING, SessionState.TRANSLATING, SessionState.IDLE}),
    SessionState.ERROR: frozenset({SessionState.IDLE}),
}

# States from which a new capture or typed translation may begin.
READY_STATES = frozenset({SessionState.IDLE, SessionState.DONE})


@dataclass
class SessionStateTracker:
    state: SessionState = SessionState.IDLE
    last_error: str | None = None

    def can_move(self, new: SessionState) -> bool:
        return new in _ALLOWED[self.state]

    def move(self, new: SessionState) -> SessionState:
        if not self.can_move(new):
            raise RuntimeError(f"illegal session transition {self.state.value} -> {new.value}")
        old = self.state
        self.state = new
        if new in (SessionState.LISTENING, SessionState.TRANSLATING) and old in READY_STATES:
            self.last_error = None
        return old

    def set_error(self, detail: str) -> SessionState:
        old = self.move(SessionState.ERROR)
        self.last_error = detail
        return old

    def force_idle(self) -> SessionState:
        old = self.state
        self.state = SessionState.IDLE
        return old
