"""Single-worker refresh scheduling with coalesced pending requests."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .display import RasterDisplay
from .output_state import OutputState

__all__ = ["PassResult", "RefreshScheduler"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class PassResult:
    """Outcome of one background pass."""

    state: OutputState
    error: Optional[BaseException] = None
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class RefreshScheduler:
    """Run one render pass at a time on a background thread.

    Requests made while a pass is in flight are coalesced into a single
    pending slot (the most recent request wins); when the pass completes the
    pending request, if any, is started. Successful passes are presented on
    ``display``; a failed pass releases its raster and leaves the previous
    image displayed.

    When a request is made from inside a running asyncio loop (for example a
    notebook kernel), completion is delivered back onto that loop with
    ``call_soon_threadsafe``; otherwise it runs on the worker thread.

    Parameters
    ----------
    display:
        Receives finished frames and errors.
    on_complete:
        Optional callback invoked with each :class:`PassResult` after the
        display has been updated.
    """

    def __init__(
        self,
        display: RasterDisplay,
        *,
        on_complete: Optional[Callable[[PassResult], Any]] = None,
    ) -> None:
        self._display = display
        self._on_complete = on_complete
        self._lock = threading.Lock()
        self._busy = False
        self._pending: Optional[OutputState] = None
        self._idle = threading.Event()
        self._idle.set()

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def request(self, state: OutputState) -> bool:
        """Start a pass for ``state``, or park it as the pending request.

        Returns
        -------
        bool
            True if a pass was started, False if the request was coalesced.
        """
        with self._lock:
            if self._busy:
                dropped, self._pending = self._pending, state
                if dropped is not None:
                    dropped.raster.release()
                logger.debug("Refresh coalesced into pending slot (dropped=%s)", dropped is not None)
                return False
            self._busy = True
            self._idle.clear()
        self._start(state)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no pass is running or pending; False on timeout."""
        return self._idle.wait(timeout)

    def _start(self, state: OutputState) -> None:
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        worker = threading.Thread(target=self._work, args=(state, loop), name="graphcalc-refresh")
        worker.daemon = True
        worker.start()

    def _work(self, state: OutputState, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        started = time.perf_counter()
        try:
            state.run()
        except Exception as exc:
            logger.exception("Refresh pass failed")
            result = PassResult(state, exc, time.perf_counter() - started)
        else:
            result = PassResult(state, None, time.perf_counter() - started)
            if logger.isEnabledFor(logging.INFO):
                logger.info("Refresh pass finished in %.1f ms", result.elapsed_s * 1e3)

        if loop is not None:
            loop.call_soon_threadsafe(self._finish, result)
        else:
            self._finish(result)

    def _finish(self, result: PassResult) -> None:
        try:
            if result.ok:
                self._display.present(result.state)
            else:
                if result.state.raster is not self._display.raster:
                    result.state.raster.release()
                self._display.fail(result.error)
            if self._on_complete is not None:
                self._on_complete(result)
        finally:
            with self._lock:
                pending, self._pending = self._pending, None
                if pending is None:
                    self._busy = False
                    self._idle.set()
            if pending is not None:
                logger.debug("Re-issuing pending refresh")
                self._start(pending)
