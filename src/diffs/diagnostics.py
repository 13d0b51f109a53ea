from __future__ import annotations

import cProfile
import json
import marshal
import os
import sys
import threading
import time
from pathlib import Path
from types import FrameType
from typing import IO, Any, TextIO

from diffs.config import GlobalOptions
from diffs.logging import get_logger

logger = get_logger("diagnostics")


class ExecutionTracer:
    """Records Python call/return events as Chrome trace-event JSON.

    The output is an array of `B`/`E` duration events and can be opened in
    Perfetto or chrome://tracing. Hooks go through `sys.settrace`, leaving
    the profiler hook free for `cProfile`.
    """

    def __init__(self, sink: TextIO) -> None:
        self._sink = sink
        self._lock = threading.RLock()
        self._pid = os.getpid()
        self._origin = time.perf_counter_ns()
        self._count = 0
        self._closed = False
        self._previous: Any = None
        self._previous_thread: Any = None

        self._sink.write("[\n")

    @property
    def event_count(self) -> int:
        return self._count

    def install(self) -> None:
        self._previous = sys.gettrace()
        self._previous_thread = threading.gettrace()
        threading.settrace(self._on_call)
        sys.settrace(self._on_call)

    def close(self) -> None:
        # Signal handlers re-enter here from inside `_emit` on the same thread.
        with self._lock:
            self._closed = True
            if self._sink.closed:
                return

            sys.settrace(self._previous)
            threading.settrace(self._previous_thread)
            self._sink.write("\n]\n")
            self._sink.close()

    def _on_call(self, frame: FrameType, event: str, arg: Any) -> Any:
        if event != "call" or self._closed:
            return None

        frame.f_trace_lines = False
        self._emit("B", frame)
        return self._on_frame_event

    def _on_frame_event(self, frame: FrameType, event: str, arg: Any) -> Any:
        if event == "return":
            self._emit("E", frame)
        return self._on_frame_event

    def _emit(self, phase: str, frame: FrameType) -> None:
        code = frame.f_code
        record = {
            "name": code.co_qualname,
            "cat": code.co_filename,
            "ph": phase,
            "ts": (time.perf_counter_ns() - self._origin) / 1000,
            "pid": self._pid,
            "tid": threading.get_ident(),
        }
        line = json.dumps(record)
        with self._lock:
            if self._closed:
                return
            self._sink.write(",\n" + line if self._count else line)
            self._count += 1


class CpuProfile:
    """cProfile session whose stats land in `pstats` format on close."""

    def __init__(self, sink: IO[bytes]) -> None:
        self._sink = sink
        self._profiler = cProfile.Profile()

    def install(self) -> None:
        self._profiler.enable()

    def close(self) -> None:
        if self._sink.closed:
            return

        self._profiler.disable()
        self._profiler.create_stats()
        try:
            marshal.dump(self._profiler.stats, self._sink)
        finally:
            self._sink.close()


class CaptureSession:
    """Owns the optional trace and CPU profile streams for one run.

    Each stop is single-shot: the active stream is closed under the lock and
    only then cleared, so the normal teardown and the signal watcher may both
    call `stop`, nested or not, and each stream is flushed once.
    """

    def __init__(self, options: GlobalOptions) -> None:
        self.options = options
        self._trace: ExecutionTracer | None = None
        self._profile: CpuProfile | None = None
        self._lock = threading.RLock()

    @property
    def tracing(self) -> bool:
        return self._trace is not None

    @property
    def profiling(self) -> bool:
        return self._profile is not None

    def start(self) -> None:
        if self.options.trace is not None:
            self.start_trace(self.options.trace)
        if self.options.cpu is not None:
            self.start_profile(self.options.cpu)

    def start_trace(self, path: Path) -> None:
        with self._lock:
            if self._trace is not None:
                raise RuntimeError("Execution trace already started")

            tracer = ExecutionTracer(path.open("w", encoding="utf-8"))
            tracer.install()
            self._trace = tracer

        logger.debug("Writing execution trace to %s", path)

    def start_profile(self, path: Path) -> None:
        with self._lock:
            if self._profile is not None:
                raise RuntimeError("CPU profile already started")

            profile = CpuProfile(path.open("wb"))
            profile.install()
            self._profile = profile

        logger.debug("Writing CPU profile to %s", path)

    def stop_trace(self) -> None:
        # Cleared only after the close, so a signal landing mid-stop still
        # finds the tracer and flushes it before the process exits.
        with self._lock:
            tracer = self._trace
            if tracer is None:
                return

            tracer.close()
            self._trace = None

        logger.debug("Execution trace stopped after %d events", tracer.event_count)

    def stop_profile(self) -> None:
        with self._lock:
            profile = self._profile
            if profile is None:
                return

            profile.close()
            self._profile = None

        logger.debug("CPU profile stopped")

    def stop(self) -> None:
        self.stop_trace()
        self.stop_profile()
