"""Render session lifecycle state machine."""
from __future__ import annotations

from enum import Enum, auto
from typing import ClassVar

import structlog

from spa_prerender.errors import PrerenderError

logger = structlog.get_logger()


class RunState(Enum):
    """Render session states.

    State transitions:
        IDLE -> SERVER_STARTING -> BROWSER_LAUNCHING -> RENDERING -> COMPLETED
        any active state -> FAILING: an exception escaped the session
        any active state -> INTERRUPTED: an interrupt signal was handled
        COMPLETED/FAILING/INTERRUPTED -> TEARING_DOWN -> EXITED
    """

    IDLE = auto()
    SERVER_STARTING = auto()
    BROWSER_LAUNCHING = auto()
    RENDERING = auto()
    COMPLETED = auto()
    FAILING = auto()
    INTERRUPTED = auto()
    TEARING_DOWN = auto()
    EXITED = auto()


_ABORT = {RunState.FAILING, RunState.INTERRUPTED}


class RunStateError(PrerenderError):
    """Raised when an invalid run state transition is attempted."""

    def __init__(self, from_state: RunState, to_state: RunState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid run state transition: {from_state.name} -> {to_state.name}")


class RunStateMachine:
    """Enforces valid transitions of a render session and logs them."""

    VALID_TRANSITIONS: ClassVar[dict[RunState, set[RunState]]] = {
        RunState.IDLE: {RunState.SERVER_STARTING, RunState.TEARING_DOWN} | _ABORT,
        RunState.SERVER_STARTING: {RunState.BROWSER_LAUNCHING} | _ABORT,
        RunState.BROWSER_LAUNCHING: {RunState.RENDERING} | _ABORT,
        RunState.RENDERING: {RunState.COMPLETED} | _ABORT,
        RunState.COMPLETED: {RunState.TEARING_DOWN, RunState.INTERRUPTED},
        RunState.FAILING: {RunState.TEARING_DOWN, RunState.INTERRUPTED},
        RunState.INTERRUPTED: {RunState.TEARING_DOWN},
        RunState.TEARING_DOWN: {RunState.EXITED},
        RunState.EXITED: set(),  # Terminal state
    }

    def __init__(self, run_id: str) -> None:
        self._run_id = run_id
        self._state = RunState.IDLE
        self._log = logger.bind(run_id=run_id, component="render_session")

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def run_id(self) -> str:
        return self._run_id

    def can_transition(self, to_state: RunState) -> bool:
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: RunState) -> None:
        """Move to to_state.

        Raises:
            RunStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise RunStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug("run_state_transition", from_state=old_state.name, to_state=to_state.name)

    def to_server_starting(self) -> None:
        self.transition(RunState.SERVER_STARTING)

    def to_browser_launching(self) -> None:
        self.transition(RunState.BROWSER_LAUNCHING)

    def to_rendering(self) -> None:
        self.transition(RunState.RENDERING)

    def to_completed(self) -> None:
        self.transition(RunState.COMPLETED)

    def to_failing(self) -> None:
        self.transition(RunState.FAILING)

    def to_interrupted(self) -> None:
        self.transition(RunState.INTERRUPTED)

    def to_tearing_down(self) -> None:
        self.transition(RunState.TEARING_DOWN)

    def to_exited(self) -> None:
        self.transition(RunState.EXITED)

    def is_terminal(self) -> bool:
        return self._state == RunState.EXITED

    def was_interrupted(self) -> bool:
        return self._state == RunState.INTERRUPTED
