import io

import pytest

from controlkit.logger import LogLevel, Logger, level_to_string


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def _make(now=1000):
    stream = io.StringIO()
    clock = FakeClock(now)
    logger = Logger(stream, clock)
    return logger, stream, clock


def _lines_after_banner(stream):
    return stream.getvalue().splitlines()[3:]


def test_level_strings():
    assert level_to_string(LogLevel.DEBUG) == "DEBUG"
    assert level_to_string(LogLevel.WARNING) == "WARN"
    assert level_to_string(LogLevel.CRITICAL) == "CRIT"
    assert level_to_string(LogLevel.NONE) == "UNKNOWN"


def test_nothing_written_before_init():
    logger, stream, _ = _make()
    logger.info("App", "hello")
    logger.log_raw("raw")
    assert stream.getvalue() == ""


def test_init_prints_banner_once():
    logger, stream, _ = _make()
    logger.init()
    logger.init()
    assert stream.getvalue().count("Logger Initialized") == 1
    assert logger.initialized


def test_default_level_filters_debug():
    logger, stream, _ = _make()
    logger.init()
    logger.debug("App", "hidden")
    logger.info("App", "shown")
    lines = _lines_after_banner(stream)
    assert len(lines) == 1
    assert lines[0].endswith("shown")
    assert logger.level == LogLevel.INFO


def test_set_level():
    logger, stream, _ = _make()
    logger.init()
    logger.set_level(LogLevel.ERROR)
    logger.warning("App", "hidden")
    logger.error("App", "bad")
    logger.critical("App", "worse")
    lines = _lines_after_banner(stream)
    assert len(lines) == 2
    assert f"[{level_to_string(LogLevel.ERROR)}]" in lines[0]
    assert f"[{level_to_string(LogLevel.CRITICAL)}]" in lines[1]


def test_level_none_silences_everything():
    logger, stream, _ = _make()
    logger.init()
    logger.set_level(LogLevel.NONE)
    logger.critical("App", "silent")
    assert _lines_after_banner(stream) == []


def test_timestamp_counts_from_init():
    logger, stream, clock = _make(now=1000)
    logger.init()
    clock.now = 3500
    logger.info("App", "tick")
    line = _lines_after_banner(stream)[0]
    stamp = line.split(" [")[0]
    assert len(stamp) == 10
    assert float(stamp) == pytest.approx((3500 - 1000) / 1000)


def test_tag_included_and_omitted():
    logger, stream, _ = _make()
    logger.init()
    logger.info("Radio", "up")
    logger.info(None, "no tag")
    tagged, untagged = _lines_after_banner(stream)
    assert "[Radio] up" in tagged
    assert untagged.count("[") == 1
    assert untagged.endswith("no tag")


def test_printf_arguments():
    logger, stream, _ = _make()
    logger.init()
    logger.warning("Mem", "heap %u of %u", 512, 4096)
    line = _lines_after_banner(stream)[0]
    assert line.endswith("heap 512 of 4096")


def test_long_messages_truncated():
    logger, stream, _ = _make()
    logger.init()
    logger.info("App", "a" * 300)
    line = _lines_after_banner(stream)[0]
    assert line.endswith("a" * 255)
    assert "a" * 256 not in line


def test_log_raw_after_init():
    logger, stream, _ = _make()
    logger.init()
    logger.log_raw("plain text")
    assert _lines_after_banner(stream) == ["plain text"]


def test_generic_log_respects_level():
    logger, stream, _ = _make()
    logger.init()
    logger.log(LogLevel.DEBUG, "App", "hidden")
    logger.log(LogLevel.WARNING, "App", "seen")
    lines = _lines_after_banner(stream)
    assert len(lines) == 1
    assert "[WARN] [App] seen" in lines[0]