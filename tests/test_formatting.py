import io

import pytest

from controlkit.formatting import (
    Alignment,
    Column,
    TableFormatter,
    bitmap,
    bool_to_string,
    center,
    format_array,
    format_binary,
    format_bytes,
    format_debug_dump,
    format_frequency,
    format_hex,
    format_log_entry,
    format_percentage,
    format_stack_trace,
    format_temperature,
    format_time,
    format_uptime,
    format_voltage,
    pad_left,
    pad_right,
    progress_bar,
    truncate,
)


@pytest.mark.parametrize(
    "value, width",
    [(0, 2), (0xFF, 2), (0x100, 4), (0xFFFF, 4), (0x10000, 6), (0x1000000, 8), (0xFFFFFFFF, 8)],
)
def test_format_hex_auto_width(value, width):
    text = format_hex(value)
    assert text.startswith("0x")
    assert len(text) == width + 2
    assert int(text, 16) == value


def test_format_hex_explicit_digits_keeps_low_digits():
    assert format_hex(0xABCD, 2) == format_hex(0xCD, 2)
    assert len(format_hex(0x1, 8)) == 10
    assert format_hex(0xABCD, 4)[2:].isupper()


@pytest.mark.parametrize("value, bits", [(0, 8), (5, 8), (0xAA, 8), (0x1234, 16), (3, 4)])
def test_format_binary_round_trip(value, bits):
    text = format_binary(value, bits)
    assert text.startswith("0b")
    assert len(text) == bits + 2
    assert int(text, 2) == value


def test_format_binary_keeps_low_bits():
    assert format_binary(0x1FF, 8) == format_binary(0xFF, 8)


def _parse_time(text):
    if text.endswith(" s"):
        seconds, ms = text[:-2].split(".")
        return int(seconds) * 1000 + int(ms)
    clock, ms = text.split(".")
    parts = [int(p) for p in clock.split(":")]
    total = 0
    for part in parts:
        total = total * 60 + part
    return total * 1000 + int(ms)


@pytest.mark.parametrize("millis", [0, 999, 1500, 59_999, 61_000, 3_599_999, 3_600_000, 90_061_005])
def test_format_time_round_trip(millis):
    assert _parse_time(format_time(millis)) == millis


def test_format_time_shapes():
    assert format_time(1500).endswith(" s")
    assert format_time(61_000).count(":") == 1
    assert format_time(3_600_000).count(":") == 2


def _parse_uptime(text):
    if "d" in text:
        days, hours, minutes, secs = (int(p[:-1]) for p in text.split())
        return ((days * 24 + hours) * 60 + minutes) * 60 + secs
    total = 0
    for part in text.split(":"):
        total = total * 60 + int(part)
    return total


@pytest.mark.parametrize("seconds", [0, 59, 61, 3599, 3600, 86399, 86400, 200_000])
def test_format_uptime_round_trip(seconds):
    assert _parse_uptime(format_uptime(seconds)) == seconds


def test_format_uptime_shapes():
    assert format_uptime(59).count(":") == 1
    assert format_uptime(3600).count(":") == 2
    assert "d " in format_uptime(86400)


def test_format_bytes_plain():
    assert format_bytes(512) == "512 B"
    assert format_bytes(0).endswith(" B")


@pytest.mark.parametrize(
    "nbytes, unit, power",
    [(1024, "KB", 1), (1536, "KB", 1), (5 * 1024 * 1024, "MB", 2), (3 * 1024**3, "GB", 3)],
)
def test_format_bytes_units(nbytes, unit, power):
    number, shown_unit = format_bytes(nbytes).split()
    assert shown_unit == unit
    assert float(number) * 1024**power == pytest.approx(nbytes, rel=0.01)


def test_format_percentage_clamps():
    assert format_percentage(42) == "42%"
    assert format_percentage(150) == format_percentage(100)


def test_format_temperature():
    celsius = format_temperature(21.25)
    assert celsius.endswith("°C")
    assert float(celsius[:-2]) == pytest.approx(21.2, abs=0.06)
    fahrenheit = format_temperature(100.0, True)
    assert fahrenheit.endswith("°F")
    assert float(fahrenheit[:-2]) == pytest.approx(212.0)


def test_format_voltage():
    low = format_voltage(0.5)
    assert low.endswith(" mV")
    assert float(low.split()[0]) == pytest.approx(500)
    high = format_voltage(3.3)
    assert high.endswith(" V")
    assert float(high.split()[0]) == pytest.approx(3.3)


@pytest.mark.parametrize(
    "hz, unit, scale",
    [(500, "Hz", 1), (1000, "kHz", 1000), (44_100, "kHz", 1000), (2_000_000, "MHz", 1_000_000)],
)
def test_format_frequency(hz, unit, scale):
    number, shown_unit = format_frequency(hz).split()
    assert shown_unit == unit
    assert float(number) * scale == pytest.approx(hz)


def test_bool_to_string():
    assert bool_to_string(True) == "true"
    assert bool_to_string(False) == "false"


def test_pad_left_and_right():
    left = pad_left("ab", 5, "*")
    right = pad_right("ab", 5, "*")
    assert len(left) == len(right) == 5
    assert left.endswith("ab") and left.strip("*") == "ab"
    assert right.startswith("ab") and right.strip("*") == "ab"


def test_padding_leaves_long_text_alone():
    assert pad_left("abcdef", 3) == "abcdef"
    assert pad_right("abcdef", 3) == "abcdef"
    assert center("abcdef", 3) == "abcdef"


@pytest.mark.parametrize("text, width", [("ab", 5), ("ab", 6), ("x", 10)])
def test_center_distribution(text, width):
    result = center(text, width, "*")
    assert len(result) == width
    left = len(result) - len(result.lstrip("*"))
    right = len(result) - len(result.rstrip("*"))
    assert 0 <= right - left <= 1
    assert result.strip("*") == text


def test_truncate():
    result = truncate("hello world", 8)
    assert len(result) == 8
    assert result.endswith("...")
    assert "hello world".startswith(result[:-3])
    assert truncate("short", 8) == "short"
    assert truncate("hello world", 2) == "he"


def test_format_array():
    values = [1, -2, 30]
    text = format_array(values)
    assert text[0] == "[" and text[-1] == "]"
    assert [int(x) for x in text[1:-1].split(", ")] == values
    assert format_array([]) == "[]"
    assert format_array([4, 5], ";").count(";") == 1


def test_progress_bar():
    assert progress_bar(100, 10) == "[" + "=" * 10 + "]"
    assert progress_bar(0, 10) == "[" + "-" * 10 + "]"
    assert progress_bar(150, 10) == progress_bar(100, 10)
    half = progress_bar(50, 20)
    assert len(half) == 22
    assert half.count("=") == half.count("-")


@pytest.mark.parametrize("value, bits", [(0xA5, 8), (0, 8), (0x3C3C, 16)])
def test_bitmap_matches_binary(value, bits):
    expected = format_binary(value, bits)[2:].replace("1", "#").replace("0", ".")
    assert bitmap(value, bits) == expected


def test_format_log_entry():
    plain = format_log_entry("WARN", "Net", "link down")
    assert plain.startswith("[WARN]")
    assert plain.endswith("link down")
    timed = format_log_entry("WARN", "Net", "link down", 1500)
    assert timed.startswith(format_time(1500))
    assert timed.endswith(plain)


def test_debug_dump_single_line():
    dump = format_debug_dump(b"Hello\x00")
    assert dump.startswith("0000: ")
    assert dump.endswith(" |Hello.")
    assert "\n" not in dump


def test_debug_dump_multiple_lines_align():
    data = bytes(range(40))
    lines = format_debug_dump(data, offset=0x100).split("\n")
    assert len(lines) == 3
    assert lines[0].startswith("0100: ")
    assert lines[1].startswith("0110: ")
    assert lines[0].endswith("|") and lines[1].endswith("|")
    assert not lines[2].endswith("|")
    assert len({line.index(" |") for line in lines}) == 1


def test_stack_trace():
    addresses = [0x400D1234, 0x400D5678]
    text = format_stack_trace(addresses)
    assert text.startswith("Stack trace:\n")
    entries = text.splitlines()[1:]
    assert len(entries) == 2
    assert [int(e.split(": ")[1], 16) for e in entries] == addresses


def _table():
    table = TableFormatter()
    table.add_column(Column("Name", 6))
    table.add_column(Column("Value", 8, Alignment.RIGHT))
    table.add_column(Column("Mid", 7, Alignment.CENTER))
    return table


def test_table_header_and_separator_widths():
    table = _table()
    out = io.StringIO()
    table.print_separator(out)
    table.print_header(out)
    separator, header = out.getvalue().splitlines()
    assert len(separator) == len(header)
    assert header.startswith("|Name")
    assert "Value|" in header


def test_table_row_truncation_and_alignment():
    table = _table()
    out = io.StringIO()
    table.print_row(out, ["verylongname", "42", "ab"])
    cells = out.getvalue().rstrip("\n").split("|")[1:-1]
    assert cells[0].endswith("..") and len(cells[0]) == 6
    assert cells[1].endswith("42") and len(cells[1]) == 8
    assert cells[2].strip() == "ab" and len(cells[2]) == 7


def test_table_column_limit():
    table = TableFormatter(max_columns=2)
    for name in ("a", "b", "c"):
        table.add_column(Column(name, 3))
    assert [c.header for c in table.columns] == ["a", "b"]