"""Finite state machine with enter, update and exit handlers per state."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from controlkit.errors import HalError, InvalidParamError, NotInitializedError

_log = logging.getLogger(__name__)

StateHandler = Callable[[int], None]
TransitionHandler = Callable[[int, int], None]


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class State:
    """A state definition. Handlers receive a time in milliseconds and raise on failure."""

    name: str
    on_enter: Optional[StateHandler] = None
    on_update: Optional[StateHandler] = None
    on_exit: Optional[StateHandler] = None


class StateManager:
    """Keeps track of the current state and runs its handlers.

    A transition requested from inside a handler while another transition
    is running is deferred and carried out once the running one is done.
    """

    INVALID_STATE = 0xFFFF

    def __init__(self, name: str, clock: Callable[[], int] | None = None) -> None:
        self.name = name
        self._clock = clock or _monotonic_ms
        self._states: dict[int, State] = {}
        self._current = self.INVALID_STATE
        self._previous = self.INVALID_STATE
        self._pending = self.INVALID_STATE
        self._state_time = 0
        self._last_update_time = 0
        self._in_transition = False
        self._transition_handler: Optional[TransitionHandler] = None

    @property
    def current_state(self) -> int:
        return self._current

    @property
    def previous_state(self) -> int:
        return self._previous

    @property
    def state_time(self) -> int:
        """Milliseconds accumulated by :meth:`update` since the last transition."""
        return self._state_time

    @property
    def current_state_name(self) -> str:
        if self._current == self.INVALID_STATE:
            return "INVALID"
        state = self._states.get(self._current)
        return state.name if state is not None else "UNKNOWN"

    def register_state(self, state_id: int, state: State) -> None:
        """Add a state; registering the same id twice raises :class:`HalError`."""
        if state_id in self._states:
            _log.warning("%s: state %s already registered", self.name, state_id)
            raise HalError(f"state {state_id} already registered")
        self._states[state_id] = state
        _log.debug("%s: registered state %s: %s", self.name, state_id, state.name)

    def add_state(self, state_id: int, name: str, on_update: Optional[StateHandler]) -> None:
        """Register a state that only has an update handler."""
        self.register_state(state_id, State(name, on_update=on_update))

    def has_state(self, state_id: int) -> bool:
        return state_id in self._states

    def is_in_state(self, state_id: int) -> bool:
        return self._current == state_id

    def set_transition_handler(self, handler: Optional[TransitionHandler]) -> None:
        """Set a callback receiving ``(previous, current)`` after each entered state."""
        self._transition_handler = handler

    def transition_to(self, new_state: int) -> bool:
        """Move to ``new_state``.

        Returns ``False`` when the request was deferred because a transition
        is already running, ``True`` otherwise. Unknown states raise
        :class:`InvalidParamError`; handler failures propagate.
        """
        if self._in_transition:
            _log.warning("%s: already in transition, deferring to state %s", self.name, new_state)
            self._pending = new_state
            return False
        if not self.has_state(new_state):
            _log.error("%s: invalid state transition to %s", self.name, new_state)
            raise InvalidParamError(f"unknown state {new_state}")
        if self._current == new_state:
            return True

        self._in_transition = True
        self._pending = new_state
        try:
            self._execute_transition()
        finally:
            self._in_transition = False
            deferred, self._pending = self._pending, self.INVALID_STATE

        if deferred not in (self._current, self.INVALID_STATE):
            return self.transition_to(deferred)
        return True

    def _execute_transition(self) -> None:
        if self._current != self.INVALID_STATE:
            old = self._states.get(self._current)
            if old is not None and old.on_exit is not None:
                _log.debug("%s: exiting state %s", self.name, old.name)
                old.on_exit(self._state_time)

        self._previous = self._current
        self._current = self._pending
        self._state_time = 0
        self._last_update_time = self._clock()

        new = self._states[self._current]
        _log.info("%s: transitioning to state %s", self.name, new.name)
        if new.on_enter is not None:
            try:
                new.on_enter(0)
            except Exception:
                _log.error("%s: failed to enter state %s", self.name, new.name)
                self._current = self._previous
                raise
        if self._transition_handler is not None:
            self._transition_handler(self._previous, self._current)

    def update(self, delta_ms: int) -> None:
        """Advance the state time and run the current state's update handler."""
        if self._current == self.INVALID_STATE:
            raise NotInitializedError("no state has been entered yet")
        self._state_time += delta_ms
        state = self._states.get(self._current)
        if state is not None and state.on_update is not None:
            state.on_update(delta_ms)


E = TypeVar("E", bound=Enum)


def _state_key(state: Enum) -> int:
    return int(state.value)


class StateMachine(Generic[E]):
    """A :class:`StateManager` addressed by enum members instead of numbers."""

    def __init__(self, name: str, initial: E, clock: Callable[[], int] | None = None) -> None:
        self._manager = StateManager(name, clock)
        self._current = initial

    @property
    def manager(self) -> StateManager:
        return self._manager

    @property
    def current_state(self) -> E:
        """The most recently requested state."""
        return self._current

    @property
    def current_state_name(self) -> str:
        return self._manager.current_state_name

    @property
    def state_time(self) -> int:
        return self._manager.state_time

    def register_state(self, state: E, definition: State) -> None:
        self._manager.register_state(_state_key(state), definition)

    def add_state(self, state: E, name: str, on_update: Optional[StateHandler]) -> None:
        self._manager.add_state(_state_key(state), name, on_update)

    def transition_to(self, new_state: E) -> bool:
        self._current = new_state
        return self._manager.transition_to(_state_key(new_state))

    def update(self, delta_ms: int) -> None:
        self._manager.update(delta_ms)

    def is_in_state(self, state: E) -> bool:
        return self._manager.is_in_state(_state_key(state))