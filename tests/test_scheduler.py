"""Coalescing and error-handling behaviour of the refresh scheduler.

Worker threads are replaced with a fake that only runs when the test says
so, which makes the in-flight window deterministic.
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from graphcalc.display import RasterDisplay
from graphcalc.frame import prepare_frame
from graphcalc.scheduler import PassResult, RefreshScheduler


@pytest.fixture
def threads():
    started = []

    class _FakeThread:
        def __init__(self, target, args=(), name=None):
            self._target = target
            self._args = args
            self.name = name
            self.daemon = False

        def start(self) -> None:
            started.append(self)

        def run(self) -> None:
            self._target(*self._args)

    with patch("graphcalc.scheduler.threading.Thread", _FakeThread):
        yield started


def frame(formula: str = "x"):
    return prepare_frame(formula, "", "-1..1", (8, 8))


def test_idle_request_starts_a_daemon_worker(threads) -> None:
    scheduler = RefreshScheduler(RasterDisplay())
    state = frame()

    assert scheduler.request(state) is True
    assert scheduler.busy
    assert len(threads) == 1
    assert threads[0].daemon
    assert threads[0].name == "graphcalc-refresh"
    assert scheduler.wait(0) is False

    threads[0].run()
    assert not scheduler.busy
    assert scheduler.wait(0) is True


def test_requests_while_busy_coalesce_to_the_latest(threads) -> None:
    display = RasterDisplay()
    scheduler = RefreshScheduler(display)
    first, second, third = frame("x"), frame("2*x"), frame("3*x")

    assert scheduler.request(first) is True
    assert scheduler.request(second) is False
    assert scheduler.request(third) is False
    assert second.raster.released
    assert len(threads) == 1

    threads[0].run()
    assert display.state is first
    assert len(threads) == 2
    assert threads[1]._args[0] is third

    threads[1].run()
    assert display.state is third
    assert first.raster.released
    assert not third.raster.released
    assert display.frame_count == 2
    assert scheduler.wait(0)


def test_failed_pass_keeps_previous_frame(threads, caplog) -> None:
    display = RasterDisplay()
    scheduler = RefreshScheduler(display)
    good, bad = frame("x"), frame("2*x")

    scheduler.request(good)
    threads[0].run()

    with patch.object(bad, "run", side_effect=RuntimeError("boom")):
        scheduler.request(bad)
        with caplog.at_level(logging.ERROR, logger="graphcalc.scheduler"):
            threads[1].run()

    assert "Refresh pass failed" in caplog.text
    assert display.state is good
    assert display.error == "boom"
    assert bad.raster.released
    assert not good.raster.released
    assert not scheduler.busy


def test_on_complete_receives_results(threads) -> None:
    results: list[PassResult] = []
    scheduler = RefreshScheduler(RasterDisplay(), on_complete=results.append)
    state = frame()

    scheduler.request(state)
    threads[0].run()

    assert len(results) == 1
    assert results[0].ok
    assert results[0].state is state
    assert results[0].elapsed_s >= 0.0


def test_callback_errors_do_not_wedge_the_scheduler(threads) -> None:
    def explode(result: PassResult) -> None:
        raise ValueError("callback failed")

    scheduler = RefreshScheduler(RasterDisplay(), on_complete=explode)
    scheduler.request(frame())
    with pytest.raises(ValueError, match="callback failed"):
        threads[0].run()
    assert not scheduler.busy
    assert scheduler.request(frame()) is True
