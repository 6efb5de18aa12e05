from __future__ import annotations

import logging
import threading
import time

import pytest

from swornkit.debounce import debouncer_by_key


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_rapid_calls_run_only_the_last_function() -> None:
    debounce = debouncer_by_key(20)
    calls: list[int] = []
    for i in range(3):
        debounce("root")(lambda i=i: calls.append(i))

    assert _wait_for(lambda: calls == [2])
    time.sleep(0.05)
    assert calls == [2]
    debounce.shutdown()


def test_keys_are_independent() -> None:
    debounce = debouncer_by_key(10)
    calls: list[str] = []
    debounce("a")(lambda: calls.append("a"))
    debounce("b")(lambda: calls.append("b"))
    assert _wait_for(lambda: sorted(calls) == ["a", "b"])
    debounce.shutdown()


def test_cancel_prevents_execution() -> None:
    debounce = debouncer_by_key(30)
    calls: list[str] = []
    cancel = debounce("root")(lambda: calls.append("ran"))
    assert debounce.pending() == {"root"}
    cancel()
    assert debounce.pending() == set()
    time.sleep(0.08)
    assert calls == []


def test_function_scheduled_while_running_is_held_until_done() -> None:
    debounce = debouncer_by_key(5)
    started = threading.Event()
    release = threading.Event()
    calls: list[str] = []

    def slow() -> None:
        started.set()
        release.wait(2)
        calls.append("first")

    debounce("root")(slow)
    assert started.wait(2)

    debounce("root")(lambda: calls.append("second"))
    debounce("root")(lambda: calls.append("third"))
    time.sleep(0.03)
    # Nothing overlaps the running function.
    assert calls == []

    release.set()
    assert _wait_for(lambda: calls == ["first", "third"])
    debounce.shutdown()


def test_failing_function_is_logged_and_does_not_block_the_key(
    caplog: pytest.LogCaptureFixture,
) -> None:
    debounce = debouncer_by_key(5)
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    debounce("root")(broken)
    assert _wait_for(lambda: "boom" in caplog.text)
    debounce("root")(lambda: calls.append("ok"))
    assert _wait_for(lambda: calls == ["ok"])
    debounce.shutdown()


def test_shutdown_cancels_pending_timers() -> None:
    debounce = debouncer_by_key(30)
    calls: list[str] = []
    debounce("a")(lambda: calls.append("a"))
    debounce("b")(lambda: calls.append("b"))
    debounce.shutdown()
    time.sleep(0.08)
    assert calls == []
    assert debounce.pending() == set()


def test_cancel_while_running_keeps_the_running_function() -> None:
    debounce = debouncer_by_key(5)
    started = threading.Event()
    release = threading.Event()
    calls: list[str] = []

    def slow() -> None:
        started.set()
        release.wait(2)
        calls.append("first")

    cancel_running = debounce("root")(slow)
    assert started.wait(2)
    cancel_running()

    cancel_held = debounce("root")(lambda: calls.append("held"))
    cancel_held()

    release.set()
    assert _wait_for(lambda: calls == ["first"])
    time.sleep(0.05)
    assert calls == ["first"]
    assert debounce.pending() == set()
    debounce.shutdown()


def test_schedule_from_inside_the_running_function_runs_afterwards() -> None:
    debounce = debouncer_by_key(5)
    calls: list[str] = []

    def first() -> None:
        calls.append("first")
        debounce("root")(lambda: calls.append("follow-up"))
        # The follow-up is held, not started alongside this call.
        assert debounce.pending() == set()

    debounce("root")(first)
    assert _wait_for(lambda: calls == ["first", "follow-up"])
    debounce.shutdown()


def test_schedule_racing_the_held_reschedule_keeps_the_newest() -> None:
    logger = logging.getLogger("swornkit.tests.debounce_race")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    debounce = debouncer_by_key(30, logger)
    started = threading.Event()
    release = threading.Event()
    calls: list[str] = []

    class ScheduleOnRearm(logging.Handler):
        fired = False

        def emit(self, record: logging.LogRecord) -> None:
            if self.fired or not record.getMessage().startswith(
                "Triggering held function"
            ):
                return
            self.fired = True
            debounce("k")(lambda: calls.append("newest"))

    handler = ScheduleOnRearm()
    logger.addHandler(handler)
    try:

        def slow() -> None:
            started.set()
            release.wait(2)
            calls.append("first")

        debounce("k")(slow)
        assert started.wait(2)
        debounce("k")(lambda: calls.append("held"))
        release.set()

        assert _wait_for(lambda: "newest" in calls)
        time.sleep(0.05)
        assert calls == ["first", "newest"]
    finally:
        logger.removeHandler(handler)
        debounce.shutdown()
