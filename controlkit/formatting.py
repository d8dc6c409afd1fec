"""Text formatting helpers for small displays, serial consoles and logs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, TextIO

_UINT32 = 0xFFFFFFFF
_CELL_LIMIT = 63


def _low_bits(value: int, bits: int) -> str:
    if bits <= 0:
        return ""
    return format(value & ((1 << bits) - 1), f"0{bits}b")


def format_hex(value: int, digits: int = 0) -> str:
    """Format ``value`` as ``0x`` plus upper-case hex digits.

    With ``digits`` 0 the width is picked from the value: 2, 4, 6 or 8.
    An explicit width keeps only that many low digits.
    """
    value &= _UINT32
    if digits == 0:
        if value > 0xFFFFFF:
            digits = 8
        elif value > 0xFFFF:
            digits = 6
        elif value > 0xFF:
            digits = 4
        else:
            digits = 2
    text = format(value, f"0{digits}X")[-digits:]
    return "0x" + text


def format_binary(value: int, bits: int = 8) -> str:
    """Format the low ``bits`` of ``value`` as ``0b`` plus binary digits."""
    return "0b" + _low_bits(value & _UINT32, bits)


def format_time(millis: int) -> str:
    """Format a millisecond duration as ``HH:MM:SS.mmm``, ``MM:SS.mmm`` or ``S.mmm s``."""
    seconds, ms = divmod(millis, 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours:02d}:{minutes % 60:02d}:{seconds % 60:02d}.{ms:03d}"
    if minutes > 0:
        return f"{minutes:02d}:{seconds % 60:02d}.{ms:03d}"
    return f"{seconds}.{ms:03d} s"


def format_uptime(seconds: int) -> str:
    """Format an uptime in seconds as ``Nd HHh MMm SSs``, ``HH:MM:SS`` or ``MM:SS``."""
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if days > 0:
        return f"{days}d {hours:02d}h {minutes:02d}m {secs:02d}s"
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_bytes(nbytes: int) -> str:
    """Format a byte count using B, KB, MB or GB (powers of 1024)."""
    units = ("B", "KB", "MB", "GB")
    size = float(nbytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{nbytes} {units[0]}"
    return f"{size:.2f} {units[unit_index]}"


def format_percentage(percent: int) -> str:
    """Format a percentage, clamped to 0..100."""
    percent = max(0, min(percent, 100))
    return f"{percent}%"


def format_temperature(celsius: float, use_fahrenheit: bool = False) -> str:
    """Format a Celsius temperature, optionally converted to Fahrenheit."""
    if use_fahrenheit:
        return f"{celsius * 9.0 / 5.0 + 32.0:.1f}°F"
    return f"{celsius:.1f}°C"


def format_voltage(volts: float) -> str:
    """Format a voltage; below one volt it is shown in millivolts."""
    if volts < 1.0:
        return f"{volts * 1000:.0f} mV"
    return f"{volts:.2f} V"


def format_frequency(hz: int) -> str:
    """Format a frequency in Hz, kHz or MHz."""
    if hz >= 1_000_000:
        return f"{hz / 1_000_000.0:.2f} MHz"
    if hz >= 1000:
        return f"{hz / 1000.0:.2f} kHz"
    return f"{hz} Hz"


def bool_to_string(value: bool) -> str:
    """Return ``"true"`` or ``"false"``."""
    return "true" if value else "false"


def pad_left(text: str, total_width: int, pad_char: str = " ") -> str:
    """Pad ``text`` on the left up to ``total_width`` characters."""
    if len(text) >= total_width:
        return text
    return pad_char * (total_width - len(text)) + text


def pad_right(text: str, total_width: int, pad_char: str = " ") -> str:
    """Pad ``text`` on the right up to ``total_width`` characters."""
    if len(text) >= total_width:
        return text
    return text + pad_char * (total_width - len(text))


def center(text: str, total_width: int, pad_char: str = " ") -> str:
    """Center ``text``; an odd leftover goes to the right side."""
    if len(text) >= total_width:
        return text
    left = (total_width - len(text)) // 2
    right = total_width - len(text) - left
    return pad_char * left + text + pad_char * right


def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    """Shorten ``text`` to ``max_length`` characters, ending in ``suffix`` when it fits."""
    if len(text) <= max_length:
        return text
    if max_length > len(suffix):
        return text[: max_length - len(suffix)] + suffix
    return text[:max_length]


def format_array(values: Iterable[int], separator: str = ", ") -> str:
    """Format integers as a bracketed list joined by ``separator``."""
    return "[" + separator.join(f"{int(v):d}" for v in values) + "]"


def progress_bar(percent: int, width: int = 10) -> str:
    """Draw a text progress bar such as ``[===-------]``."""
    percent = max(0, min(percent, 100))
    filled = width * percent // 100
    return "[" + "=" * filled + "-" * (width - filled) + "]"


def bitmap(value: int, bits: int = 8) -> str:
    """Draw the low ``bits`` of ``value``, most significant first, as ``#`` and ``.``."""
    return _low_bits(value, bits).replace("1", "#").replace("0", ".")


def format_log_entry(level: str, tag: str, message: str, timestamp: int = 0) -> str:
    """Format a log line, prefixed by the formatted timestamp when it is non-zero."""
    entry = f"[{level}] [{tag}] {message}"
    if timestamp > 0:
        return f"{format_time(timestamp)} {entry}"
    return entry


def format_debug_dump(data: bytes, offset: int = 0) -> str:
    """Produce a hex dump with 16 bytes per line and an ASCII column."""
    lines = []
    length = len(data)
    for start in range(0, length, 16):
        chunk = data[start : start + 16]
        hex_part = "".join(f"{b:02X} " for b in chunk) + "   " * (16 - len(chunk))
        ascii_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        line = f"{offset + start:04X}: {hex_part} |{ascii_part}"
        if start + 16 < length:
            line += "|\n"
        lines.append(line)
    return "".join(lines)


def format_stack_trace(addresses: Sequence[int]) -> str:
    """List return addresses, one per numbered line."""
    body = "".join(f"  #{i}: {address:#x}\n" for i, address in enumerate(addresses))
    return "Stack trace:\n" + body


class Alignment(Enum):
    """Horizontal alignment of a table cell."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class Column:
    """A table column: header text, width in characters and alignment."""

    header: str
    width: int
    alignment: Alignment = Alignment.LEFT


class TableFormatter:
    """Writes fixed-width text tables to a stream."""

    def __init__(self, max_columns: int = 8) -> None:
        self.max_columns = max_columns
        self._columns: list[Column] = []

    @property
    def columns(self) -> tuple[Column, ...]:
        return tuple(self._columns)

    def add_column(self, column: Column) -> None:
        """Append a column; columns beyond ``max_columns`` are ignored."""
        if len(self._columns) < self.max_columns:
            self._columns.append(column)

    def print_header(self, output: TextIO) -> None:
        self._print_cells(output, [column.header for column in self._columns])

    def print_separator(self, output: TextIO) -> None:
        output.write("+" + "".join("-" * column.width + "+" for column in self._columns) + "\n")

    def print_row(self, output: TextIO, values: Sequence[str]) -> None:
        self._print_cells(output, values)

    def _print_cells(self, output: TextIO, values: Sequence[str]) -> None:
        cells = (self._cell(value, column) for column, value in zip(self._columns, values))
        output.write("|" + "".join(cell + "|" for cell in cells) + "\n")

    @staticmethod
    def _cell(value: str, column: Column) -> str:
        text = truncate(value[:_CELL_LIMIT], column.width, "..")
        if column.alignment is Alignment.RIGHT:
            return pad_left(text, column.width)
        if column.alignment is Alignment.CENTER:
            return center(text, column.width)
        return pad_right(text, column.width)