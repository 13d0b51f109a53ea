from __future__ import annotations

import os
import signal
import threading
from collections.abc import Callable
from types import FrameType
from typing import Any

from diffs.diagnostics import CaptureSession
from diffs.logging import get_logger

logger = get_logger("signals")

WATCHED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalWatcher:
    """Flushes diagnostic capture and exits when the process is interrupted.

    `exit` defaults to `os._exit`: once the capture streams are closed nothing
    else on the interrupted stack gets to run.
    """

    def __init__(
        self,
        capture: CaptureSession,
        *,
        exit: Callable[[int], Any] = os._exit,
        exit_code: int = 1,
    ) -> None:
        self.capture = capture
        self._exit = exit
        self._exit_code = exit_code
        self._previous: dict[int, Any] = {}
        self._fired = False

    @property
    def armed(self) -> bool:
        return bool(self._previous)

    def arm(self) -> None:
        if self.armed:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.warning("Signal watcher can only be armed from the main thread")
            return

        for sig in WATCHED_SIGNALS:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle)

    def disarm(self) -> None:
        previous, self._previous = self._previous, {}
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        if self._fired:
            return

        self._fired = True
        logger.info("Received %s, stopping diagnostics", signal.Signals(signum).name)
        try:
            self.capture.stop()
        finally:
            self._exit(self._exit_code)
