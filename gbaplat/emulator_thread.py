"""Runs the emulator core on a background thread at a limited frame rate."""

from __future__ import annotations

import threading
from typing import Any, Callable

from gbaplat.frame_limiter import FrameLimiter

_FRAMES_PER_SECOND = 59.7275


class EmulatorThread:
    """Drives ``core.run_for_one_frame()`` from a worker thread."""

    def __init__(self, core: Any, *, frame_limiter: FrameLimiter | None = None) -> None:
        self.core = core
        self._limiter = frame_limiter if frame_limiter is not None else FrameLimiter()
        self._limiter.reset(_FRAMES_PER_SECOND)
        self._thread: threading.Thread | None = None
        self._running = threading.Event()
        self.paused = False
        self.frame_rate_callback: Callable[[float], None] = lambda fps: None
        self.per_frame_callback: Callable[[], None] = lambda: None

    @property
    def frame_limiter(self) -> FrameLimiter:
        return self._limiter

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def fast_forward(self) -> bool:
        return self._limiter.fast_forward

    @fast_forward.setter
    def fast_forward(self, enabled: bool) -> None:
        self._limiter.fast_forward = enabled

    def start(self) -> None:
        """Start the worker thread if it is not already running."""
        if self._running.is_set():
            return
        self._running.set()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the worker thread and wait for it to finish."""
        if not self._running.is_set():
            return
        self._running.clear()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> EmulatorThread:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _loop(self) -> None:
        self._limiter.reset()
        while self._running.is_set():
            self._limiter.run(self._advance, self._report)

    def _advance(self) -> None:
        if not self.paused:
            self.per_frame_callback()
            self.core.run_for_one_frame()

    def _report(self, fps: float) -> None:
        if self.paused:
            fps = 0.0
        self.frame_rate_callback(fps)