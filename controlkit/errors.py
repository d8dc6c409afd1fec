"""Status codes shared by the controller components and the exceptions they map to."""

from __future__ import annotations

from enum import IntEnum


class HalStatus(IntEnum):
    """Result codes reported by hardware-facing components."""

    OK = 0
    ERROR = 1
    BUSY = 2
    TIMEOUT = 3
    INVALID_PARAM = 4
    NOT_SUPPORTED = 5
    HARDWARE_ERROR = 6
    NOT_INITIALIZED = 7


class HalError(Exception):
    """Base error for a failed operation; carries the status that describes it."""

    default_status: HalStatus | int = HalStatus.ERROR

    def __init__(self, message: str | None = None, status: HalStatus | int | None = None) -> None:
        self.status = self.default_status if status is None else status
        super().__init__(message if message is not None else error_to_string(self.status))


class BusyError(HalError):
    """The component is busy with another operation."""

    default_status = HalStatus.BUSY


class StatusTimeoutError(HalError, TimeoutError):
    """The operation did not finish in time."""

    default_status = HalStatus.TIMEOUT


class InvalidParamError(HalError, ValueError):
    """An argument was out of range or referred to something unknown."""

    default_status = HalStatus.INVALID_PARAM


class NotSupportedError(HalError):
    """The operation is not supported by this component."""

    default_status = HalStatus.NOT_SUPPORTED


class HardwareError(HalError):
    """The underlying device reported a failure."""

    default_status = HalStatus.HARDWARE_ERROR


class NotInitializedError(HalError):
    """The component was used before it was initialised."""

    default_status = HalStatus.NOT_INITIALIZED


_ERRORS_BY_STATUS: dict[int, type[HalError]] = {
    HalStatus.ERROR: HalError,
    HalStatus.BUSY: BusyError,
    HalStatus.TIMEOUT: StatusTimeoutError,
    HalStatus.INVALID_PARAM: InvalidParamError,
    HalStatus.NOT_SUPPORTED: NotSupportedError,
    HalStatus.HARDWARE_ERROR: HardwareError,
    HalStatus.NOT_INITIALIZED: NotInitializedError,
}


def error_to_string(error_code: int) -> str:
    """Return the symbolic name of a status code, or ``"UNKNOWN"``."""
    try:
        return HalStatus(error_code).name
    except ValueError:
        return "UNKNOWN"


def raise_for_status(status: int) -> None:
    """Raise the exception matching ``status``; do nothing for ``OK``."""
    if status == HalStatus.OK:
        return
    error_class = _ERRORS_BY_STATUS.get(status)
    if error_class is None:
        raise HalError(status=status)
    raise error_class(status=HalStatus(status))