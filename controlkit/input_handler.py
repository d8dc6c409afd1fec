"""Button input processing: debouncing, press events, long presses, double clicks and combinations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Iterable, Optional, Protocol, Union

from controlkit.constants import Hardware
from controlkit.errors import HalError, InvalidParamError

_log = logging.getLogger(__name__)

_UINT32 = 0xFFFFFFFF


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000) & _UINT32


def _elapsed(now: int, then: int) -> int:
    return (now - then) & _UINT32


class InputSource(Protocol):
    """A device that reports the state of a fixed number of input channels."""

    def channel_count(self) -> int: ...

    def update(self) -> None: ...

    def read_channel(self, channel: int) -> bool: ...

    def read_raw(self) -> int: ...


class InputEvent(Enum):
    PRESSED = "pressed"
    RELEASED = "released"
    LONG_PRESS = "long_press"
    DOUBLE_CLICK = "double_click"


ButtonCallback = Callable[[int, InputEvent], None]
CombinationCallback = Callable[[], None]


@dataclass
class ButtonCombination:
    """Channels that must be held together; fires after ``hold_time_ms`` (or at once when 0)."""

    mask: int
    name: str
    callback: Optional[CombinationCallback] = None
    hold_time_ms: int = 0


@dataclass
class _ChannelState:
    current: bool = False
    previous: bool = False
    debounced: bool = False
    press_time: int = 0
    release_time: int = 0
    last_click_time: int = 0
    long_press_fired: bool = False
    double_click_pending: bool = False


class InputHandler:
    """Polls an input source and dispatches per-channel and combination events."""

    def __init__(self, source: Optional[InputSource], clock: Callable[[], int] | None = None) -> None:
        self._source = source
        self._clock = clock or _monotonic_ms
        self._states: list[_ChannelState] = []
        self._callbacks: list[tuple[int, InputEvent, ButtonCallback]] = []
        self._combinations: list[ButtonCombination] = []
        self._global_callback: Optional[ButtonCallback] = None

        self.debounce_enabled = True
        self.debounce_delay = Hardware.DEBOUNCE_DELAY_MS
        self.long_press_enabled = True
        self.long_press_time = Hardware.LONG_PRESS_DURATION_MS
        self.double_click_enabled = True
        self.double_click_window = Hardware.DOUBLE_CLICK_WINDOW_MS

        self._last_raw_state = 0
        self._current_combination = 0
        self._combination_start_time = 0

    @property
    def channel_count(self) -> int:
        return len(self._states)

    @property
    def raw_state(self) -> int:
        """The raw bit word read from the source at the end of the last update."""
        return self._last_raw_state

    @property
    def pressed_count(self) -> int:
        return sum(1 for state in self._states if state.debounced)

    def init(self) -> None:
        """Size the channel table from the source; raises :class:`InvalidParamError` without one."""
        if self._source is None:
            _log.error("invalid input instance")
            raise InvalidParamError("no input source")
        count = self._source.channel_count()
        self._states = [_ChannelState() for _ in range(count)]
        _log.info("input handler initialized with %d channels", count)

    def update(self, delta_ms: int) -> None:
        """Poll the source once and fire any resulting events."""
        if self._source is None:
            raise HalError("no input source")
        self._source.update()
        now = self._clock()
        for channel in range(len(self._states)):
            self._process_channel(channel, now)
        self._process_combinations(now)
        self._last_raw_state = self._source.read_raw()

    def _process_channel(self, channel: int, now: int) -> None:
        state = self._states[channel]
        state.previous = state.current
        state.current = bool(self._source.read_channel(channel))

        if self.debounce_enabled:
            if state.current != state.debounced:
                if _elapsed(now, state.press_time) > self.debounce_delay:
                    state.debounced = state.current
                else:
                    return
        else:
            state.debounced = state.current

        if state.debounced and not state.previous:
            state.press_time = now
            state.long_press_fired = False
            self._fire(channel, InputEvent.PRESSED)
            if self.double_click_enabled:
                if _elapsed(now, state.last_click_time) < self.double_click_window:
                    self._fire(channel, InputEvent.DOUBLE_CLICK)
                    state.double_click_pending = False
                    state.last_click_time = 0
                else:
                    state.double_click_pending = True
                    state.last_click_time = now

        if not state.debounced and state.previous:
            state.release_time = now
            self._fire(channel, InputEvent.RELEASED)

        if state.debounced and self.long_press_enabled and not state.long_press_fired:
            if _elapsed(now, state.press_time) >= self.long_press_time:
                state.long_press_fired = True
                self._fire(channel, InputEvent.LONG_PRESS)

        if self.double_click_enabled and state.double_click_pending:
            if _elapsed(now, state.last_click_time) >= self.double_click_window:
                state.double_click_pending = False

    def _process_combinations(self, now: int) -> None:
        held = 0
        for channel, state in enumerate(self._states):
            if state.debounced:
                held |= 1 << channel

        for combo in self._combinations:
            if held & combo.mask != combo.mask:
                continue
            if self._current_combination != combo.mask:
                self._current_combination = combo.mask
                self._combination_start_time = now
                _log.debug("combination detected: %s", combo.name)
            elif combo.hold_time_ms > 0:
                if _elapsed(now, self._combination_start_time) >= combo.hold_time_ms:
                    if combo.callback is not None:
                        combo.callback()
                    self._current_combination = 0
            else:
                if combo.callback is not None:
                    combo.callback()
                self._current_combination = 0
            return

        self._current_combination = 0

    def _fire(self, channel: int, event: InputEvent) -> None:
        for cb_channel, cb_event, callback in self._callbacks:
            if cb_channel == channel and cb_event is event:
                callback(channel, event)
        if self._global_callback is not None:
            self._global_callback(channel, event)

    def register_callback(self, channel: int, event: InputEvent, callback: ButtonCallback) -> None:
        self._callbacks.append((channel, event, callback))

    def register_combination(self, combination: ButtonCombination) -> None:
        self._combinations.append(combination)
        _log.debug("registered combination: %s (0x%X)", combination.name, combination.mask)

    def register_global_callback(self, callback: Optional[ButtonCallback]) -> None:
        """Set the callback that receives every event of every channel."""
        self._global_callback = callback

    def is_pressed(self, channel: int) -> bool:
        return 0 <= channel < len(self._states) and self._states[channel].debounced

    def is_any_pressed(self) -> bool:
        return any(state.debounced for state in self._states)

    def print_state(self) -> None:
        _log.debug("button state: 0x%02X, pressed: %d", self._last_raw_state & 0xFF, self.pressed_count)


class ButtonId(IntEnum):
    UP = 0
    DOWN = 1
    LEFT = 2
    RIGHT = 3
    SELECT = 4
    BACK = 5
    MENU = 6
    ACTION = 7


def button_name(button_id: Union[ButtonId, int]) -> str:
    """Upper-case name of a button, or ``"UNKNOWN"``."""
    try:
        return ButtonId(button_id).name
    except ValueError:
        return "UNKNOWN"


class ButtonMapper:
    """Maps logical buttons to input channels of an :class:`InputHandler`."""

    def __init__(self, handler: InputHandler) -> None:
        self._handler = handler
        self._button_map: list[tuple[ButtonId, int]] = []

    def _channel(self, button_id: ButtonId) -> Optional[int]:
        for mapped_id, channel in self._button_map:
            if mapped_id == button_id:
                return channel
        return None

    def _mask(self, buttons: Iterable[ButtonId]) -> int:
        mask = 0
        for button_id in buttons:
            channel = self._channel(button_id)
            if channel is not None:
                mask |= 1 << channel
        return mask

    def map_button(self, button_id: ButtonId, channel: int) -> None:
        self._button_map.append((ButtonId(button_id), channel))

    def set_button_action(self, button_id: ButtonId, event: InputEvent, action: Callable[[], None]) -> None:
        """Run ``action`` on ``event`` of a mapped button; unmapped buttons are ignored."""
        channel = self._channel(button_id)
        if channel is not None:
            self._handler.register_callback(channel, event, lambda _channel, _event: action())

    def define_combo(self, name: str, buttons: Iterable[ButtonId], action: Callable[[], None]) -> ButtonCombination:
        """Register an immediate combination of the mapped ``buttons``."""
        combo = ButtonCombination(mask=self._mask(buttons), name=name, callback=action, hold_time_ms=0)
        self._handler.register_combination(combo)
        return combo

    def is_button_pressed(self, button_id: ButtonId) -> bool:
        channel = self._channel(button_id)
        return channel is not None and self._handler.is_pressed(channel)