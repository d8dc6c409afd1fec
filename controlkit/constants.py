"""Tuning values shared by the controller firmware components."""

from __future__ import annotations

from typing import Final


class SerialDefaults:
    """Serial console settings."""

    BAUD_RATE: Final = 115200
    INIT_TIMEOUT_MS: Final = 5000
    INIT_DELAY_MS: Final = 1000


class Timing:
    """Periodic task intervals."""

    HEARTBEAT_INTERVAL_MS: Final = 1000
    DISPLAY_UPDATE_INTERVAL_MS: Final = 50
    INPUT_POLL_INTERVAL_MS: Final = 10
    DEBUG_PRINT_INTERVAL_MS: Final = 1000
    WATCHDOG_TIMEOUT_MS: Final = 10000
    STATE_TRANSITION_DELAY_MS: Final = 100


class Hardware:
    """Pin assignments and button timing."""

    DEFAULT_LED_PIN: Final = 2
    LED_BUILTIN_ESP32: Final = 2
    LED_BUILTIN_ESP32S3: Final = 48

    DEBOUNCE_DELAY_MS: Final = 50
    LONG_PRESS_DURATION_MS: Final = 1000
    DOUBLE_CLICK_WINDOW_MS: Final = 500


class DisplayDefaults:
    """Display brightness and text sizes."""

    DEFAULT_BRIGHTNESS: Final = 255
    MIN_BRIGHTNESS: Final = 0
    MAX_BRIGHTNESS: Final = 255
    TEXT_SIZE_SMALL: Final = 1
    TEXT_SIZE_NORMAL: Final = 1
    TEXT_SIZE_LARGE: Final = 2


class Memory:
    """Heap thresholds and stack sizes in bytes."""

    MIN_FREE_HEAP_WARNING: Final = 10240
    MIN_FREE_HEAP_CRITICAL: Final = 4096
    STACK_SIZE_DEFAULT: Final = 4096
    STACK_SIZE_LARGE: Final = 8192


class Communication:
    """Messaging timeouts and limits."""

    MESSAGE_TIMEOUT_MS: Final = 5000
    RETRY_DELAY_MS: Final = 1000
    MAX_RETRIES: Final = 3
    MAX_MESSAGE_SIZE: Final = 256


class SystemDefaults:
    """Firmware identity and start-up behaviour."""

    VERSION: Final = "1.0.0"
    STARTUP_SCREEN_DURATION_MS: Final = 2000