"""Tests for text cleaning, timed calls and pipeline observers."""

import logging
import time

import pytest

from ragroute.src.utils.concurrency import CallTimeoutError, call_with_timeout, fan_out
from ragroute.src.utils.observer import LoggingObserver, MultiObserver, RecordingObserver
from ragroute.src.utils.text_utils import clean_text, preview


class TestCleanText:
    """Normalisation applied before chunking."""

    def test_collapses_whitespace_but_keeps_paragraphs(self) -> None:
        raw = "  first   line \t here \n\n\n\n second\tparagraph  "

        assert clean_text(raw) == "first line here\n\nsecond paragraph"

    def test_removes_control_and_zero_width_characters(self) -> None:
        raw = chr(0xFEFF) + "Zero" + chr(0x200B) + "width" + chr(0x07) + " text"

        assert clean_text(raw) == "Zerowidth text"

    def test_normalises_to_nfc(self) -> None:
        decomposed = "Cafe" + chr(0x0301)

        assert clean_text(decomposed) == "Caf" + chr(0x00E9)

    def test_normalises_line_endings(self) -> None:
        assert clean_text("a\r\nb\rc") == "a\nb\nc"

    def test_preview_truncates(self) -> None:
        assert preview("short") == "short"
        assert preview("word " * 40, width=10) == "word word" + "…"


class TestCallWithTimeout:
    def test_returns_result(self) -> None:
        assert call_with_timeout(lambda: 42, timeout=1.0) == 42

    def test_propagates_exceptions(self) -> None:
        def boom():
            raise KeyError("x")

        with pytest.raises(KeyError):
            call_with_timeout(boom, timeout=1.0)

    def test_overrun_raises_without_waiting(self) -> None:
        t_start = time.perf_counter()

        with pytest.raises(CallTimeoutError) as exc_info:
            call_with_timeout(lambda: time.sleep(0.5), timeout=0.05, label="slow")

        assert time.perf_counter() - t_start < 0.4
        assert exc_info.value.label == "slow"
        assert isinstance(exc_info.value, TimeoutError)


class TestFanOut:
    def test_collects_results_and_failures_in_key_order(self) -> None:
        # Arrange
        def fail():
            raise ValueError("bad")

        calls = {"b": lambda: 2, "a": fail, "c": lambda: 3}

        # Act
        outcome = fan_out(calls, timeout=1.0)

        # Assert
        assert list(outcome.results) == ["b", "c"]
        assert list(outcome.failures) == ["a"]
        assert not outcome.all_failed

    def test_runs_concurrently(self) -> None:
        calls = {str(i): (lambda: time.sleep(0.2)) for i in range(4)}

        t_start = time.perf_counter()
        outcome = fan_out(calls, timeout=2.0)

        assert time.perf_counter() - t_start < 0.6
        assert len(outcome.results) == 4

    def test_many_calls_share_one_deadline(self) -> None:
        calls = {str(i): (lambda: time.sleep(0.3)) for i in range(12)}

        outcome = fan_out(calls, timeout=0.6)

        assert outcome.failures == {}
        assert len(outcome.results) == 12

    def test_timeouts_are_failures(self) -> None:
        outcome = fan_out({"slow": lambda: time.sleep(0.5)}, timeout=0.05)

        assert isinstance(outcome.failures["slow"], CallTimeoutError)
        assert outcome.all_failed

    def test_no_calls(self) -> None:
        outcome = fan_out({}, timeout=1.0)

        assert outcome.results == {} and outcome.failures == {}
        assert not outcome.all_failed


class TestObservers:
    def test_recording_observer_keeps_events(self) -> None:
        observer = RecordingObserver()

        observer.emit("route.decided", sources=["docs"])
        observer.emit("ask.completed", total_ms=1.0)

        assert observer.names() == ["route.decided", "ask.completed"]
        assert observer.named("route.decided")[0].fields == {"sources": ["docs"]}
        observer.clear()
        assert observer.events == []

    def test_logging_observer_levels(self) -> None:
        records = []

        class _Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = logging.getLogger("ragroute.tests.events")
        logger.addHandler(_Collect())
        logger.setLevel(logging.DEBUG)
        observer = LoggingObserver(logger)

        observer.emit("augment.completed", passages=2)
        observer.emit("source.failed", source="web")

        assert [r.levelno for r in records] == [logging.INFO, logging.WARNING]
        assert "[source.failed] source='web'" in records[1].getMessage()

    def test_multi_observer_forwards(self) -> None:
        first, second = RecordingObserver(), RecordingObserver()

        MultiObserver(first, second).emit("memory.evicted", role="user")

        assert first.names() == second.names() == ["memory.evicted"]
