"""Buttons read through a parallel-in/serial-out shift register, with debouncing and events."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import IntFlag
from typing import Callable, Optional, Protocol

_UINT32 = 0xFFFFFFFF


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class PinBus(Protocol):
    """Digital pin access used to drive a shift register."""

    def set_pin_mode(self, pin: int, output: bool) -> None: ...

    def write(self, pin: int, high: bool) -> None: ...

    def read(self, pin: int) -> bool: ...

    def delay_us(self, microseconds: int) -> None: ...


class ButtonSource(Protocol):
    """Anything that can report a word of raw button bits."""

    def begin(self) -> None: ...

    def read_bits(self, num_bits: int) -> int: ...


class ShiftRegisterInput:
    """Reads a chain of parallel-load shift registers bit by bit.

    The first bit shifted out ends up as the most significant bit of the result.
    """

    DEFAULT_NUM_BITS = 8
    DEFAULT_CLOCK_DELAY_US = 5
    DEFAULT_LOAD_DELAY_US = 5

    def __init__(
        self,
        bus: PinBus,
        load_pin: int,
        clock_pin: int,
        data_pin: int,
        num_bits: int = DEFAULT_NUM_BITS,
    ) -> None:
        self._bus = bus
        self.load_pin = load_pin
        self.clock_pin = clock_pin
        self.data_pin = data_pin
        self._num_bits = num_bits
        self.clock_delay_us = self.DEFAULT_CLOCK_DELAY_US
        self.load_delay_us = self.DEFAULT_LOAD_DELAY_US
        self._last_read_value = 0

    @property
    def num_bits(self) -> int:
        return self._num_bits

    @property
    def last_read_value(self) -> int:
        """The full word captured by the most recent read."""
        return self._last_read_value

    def begin(self) -> None:
        """Configure the pins and leave the clock low and the load line high."""
        self._bus.set_pin_mode(self.load_pin, True)
        self._bus.set_pin_mode(self.clock_pin, True)
        self._bus.set_pin_mode(self.data_pin, False)
        self._bus.write(self.clock_pin, False)
        self._bus.write(self.load_pin, True)

    def read8(self) -> int:
        return self.read_bits(min(self._num_bits, 8))

    def read16(self) -> int:
        return self.read_bits(min(self._num_bits, 16))

    def read32(self) -> int:
        return self.read_bits(self._num_bits)

    def read_bits(self, num_bits: int) -> int:
        """Latch and shift in the register, returning its low ``num_bits`` bits."""
        num_bits = min(num_bits, 32, self._num_bits)
        self._last_read_value = self._shift_in()
        if num_bits < 32:
            return self._last_read_value & ((1 << num_bits) - 1)
        return self._last_read_value

    def read_bit(self, bit_index: int) -> bool:
        """Read the register and return one bit; indexes past the width read as ``False``."""
        if bit_index >= self._num_bits:
            return False
        return bool((self.read_bits(self._num_bits) >> bit_index) & 1)

    def _pulse_load(self) -> None:
        self._bus.write(self.load_pin, False)
        if self.load_delay_us > 0:
            self._bus.delay_us(self.load_delay_us)
        self._bus.write(self.load_pin, True)

    def _pulse_clock(self) -> None:
        self._bus.write(self.clock_pin, True)
        if self.clock_delay_us > 0:
            self._bus.delay_us(self.clock_delay_us)
        self._bus.write(self.clock_pin, False)
        if self.clock_delay_us > 0:
            self._bus.delay_us(self.clock_delay_us)

    def _shift_in(self) -> int:
        data = 0
        self._pulse_load()
        for _ in range(self._num_bits):
            data = (data << 1) & _UINT32
            if self._bus.read(self.data_pin):
                data |= 1
            self._pulse_clock()
        return data


class ButtonEvent(IntFlag):
    NONE = 0
    PRESSED = 1
    RELEASED = 2
    LONG_PRESS = 4
    REPEAT = 8


@dataclass
class ButtonState:
    """Debounce and event bookkeeping for one button."""

    current: bool = False
    previous: bool = False
    debounced: bool = False
    last_change_time: int = 0
    pressed_time: int = 0
    last_repeat_time: int = 0
    long_press_triggered: bool = False
    events: ButtonEvent = ButtonEvent.NONE


class ButtonManager:
    """Polls a button source and turns raw bits into debounced presses and events.

    Events accumulate until they are read with one of the ``was_*`` methods or
    :meth:`take_events`. Buttons outside the configured range read as released.
    """

    MAX_BUTTONS = 32
    DEFAULT_DEBOUNCE_MS = 50
    DEFAULT_LONG_PRESS_MS = 1000
    DEFAULT_REPEAT_DELAY_MS = 500
    DEFAULT_REPEAT_RATE_MS = 100

    def __init__(
        self,
        source: Optional[ButtonSource],
        num_buttons: int = 8,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._source = source
        self._num_buttons = min(num_buttons, self.MAX_BUTTONS)
        self._clock = clock or _monotonic_ms
        self._states = [ButtonState() for _ in range(self.MAX_BUTTONS)]
        self.debounce_ms = self.DEFAULT_DEBOUNCE_MS
        self.long_press_ms = self.DEFAULT_LONG_PRESS_MS
        self.repeat_delay_ms = self.DEFAULT_REPEAT_DELAY_MS
        self.repeat_rate_ms = self.DEFAULT_REPEAT_RATE_MS
        self.inverted = True
        self._last_read_value = 0

    @property
    def num_buttons(self) -> int:
        return self._num_buttons

    @property
    def last_read_value(self) -> int:
        """Raw bits of the last poll, after inversion."""
        return self._last_read_value

    def begin(self) -> None:
        if self._source is not None:
            self._source.begin()

    def update(self) -> None:
        """Poll the source once and update every button."""
        if self._source is None:
            return
        now = self._clock()
        raw = self._source.read_bits(self._num_buttons)
        if self.inverted:
            raw = ~raw & _UINT32
        self._last_read_value = raw
        for button in range(self._num_buttons):
            self._update_button(button, bool((raw >> button) & 1), now)

    def _update_button(self, button: int, pressed: bool, now: int) -> None:
        state = self._states[button]
        state.current = pressed
        self._debounce(state, pressed, now)

        if state.debounced != state.previous:
            state.previous = state.debounced
            if state.debounced:
                state.events |= ButtonEvent.PRESSED
                state.pressed_time = now
                state.long_press_triggered = False
                state.last_repeat_time = now
            else:
                state.events |= ButtonEvent.RELEASED
                state.pressed_time = 0

        self._process_held(state, now)

    def _debounce(self, state: ButtonState, pressed: bool, now: int) -> None:
        if pressed != state.debounced:
            if (now - state.last_change_time) & _UINT32 >= self.debounce_ms:
                state.debounced = pressed
                state.last_change_time = now
        else:
            state.last_change_time = now

    def _process_held(self, state: ButtonState, now: int) -> None:
        if not (state.debounced and state.pressed_time > 0):
            return
        duration = (now - state.pressed_time) & _UINT32
        if not state.long_press_triggered and duration >= self.long_press_ms:
            state.events |= ButtonEvent.LONG_PRESS
            state.long_press_triggered = True
        if duration >= self.repeat_delay_ms:
            if (now - state.last_repeat_time) & _UINT32 >= self.repeat_rate_ms:
                state.events |= ButtonEvent.REPEAT
                state.last_repeat_time = now

    def _in_range(self, button: int) -> bool:
        return 0 <= button < self._num_buttons

    def _take(self, button: int, event: ButtonEvent) -> bool:
        if not self._in_range(button):
            return False
        state = self._states[button]
        happened = bool(state.events & event)
        state.events &= ~event
        return happened

    def is_pressed(self, button: int) -> bool:
        return self._in_range(button) and self._states[button].debounced

    def is_released(self, button: int) -> bool:
        return not self.is_pressed(button)

    def was_pressed(self, button: int) -> bool:
        return self._take(button, ButtonEvent.PRESSED)

    def was_released(self, button: int) -> bool:
        return self._take(button, ButtonEvent.RELEASED)

    def was_long_pressed(self, button: int) -> bool:
        return self._take(button, ButtonEvent.LONG_PRESS)

    def was_repeated(self, button: int) -> bool:
        return self._take(button, ButtonEvent.REPEAT)

    def take_events(self, button: int) -> ButtonEvent:
        """Return and clear all pending events of ``button``."""
        if not self._in_range(button):
            return ButtonEvent.NONE
        state = self._states[button]
        events, state.events = state.events, ButtonEvent.NONE
        return events

    def clear_events(self, button: int) -> None:
        if self._in_range(button):
            self._states[button].events = ButtonEvent.NONE

    def clear_all_events(self) -> None:
        for state in self._states[: self._num_buttons]:
            state.events = ButtonEvent.NONE

    def pressed_mask(self) -> int:
        """Bit mask with one bit set for every button held down."""
        mask = 0
        for button, state in enumerate(self._states[: self._num_buttons]):
            if state.debounced:
                mask |= 1 << button
        return mask

    def changed_mask(self) -> int:
        """Bit mask of buttons whose debounced state differs from the recorded previous one."""
        mask = 0
        for button, state in enumerate(self._states[: self._num_buttons]):
            if state.debounced != state.previous:
                mask |= 1 << button
        return mask

    def button_state(self, button: int) -> ButtonState:
        """The bookkeeping of ``button``; an empty state when it is out of range."""
        if not self._in_range(button):
            return ButtonState()
        return self._states[button]