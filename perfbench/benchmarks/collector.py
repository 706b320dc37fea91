from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass

import pandas as pd

UNSET = 0

RESULT_COLUMNS = [
    "benchmark",
    "loop",
    "row_count",
    "thread_count",
    "access_pattern",
    "operation",
    "total_time_ms",
    "avg_time_ms",
]


def current_millis() -> int:
    return int(time.time() * 1000)


class AtomicLong:
    """Integer cell whose read-modify-write operations are serialised by a lock."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def compare_and_set(self, expected: int, value: int) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            return True

    def add_and_get(self, delta: int) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def decrement_and_get(self) -> int:
        return self.add_and_get(-1)


class TimingRecorder:
    """Start/end timestamps of one iteration, in epoch milliseconds."""

    def __init__(self, clock=current_millis) -> None:
        self._clock = clock
        self.start_time = AtomicLong(UNSET)
        self.end_time = AtomicLong(UNSET)

    def reset(self) -> None:
        self.start_time.set(UNSET)
        self.end_time.set(UNSET)

    def mark_start(self) -> bool:
        # earliest task wins; later callers leave the timestamp alone
        return self.start_time.compare_and_set(UNSET, self._clock())

    def mark_end(self) -> None:
        self.end_time.set(self._clock())

    def total_time(self) -> int:
        end = self.end_time.get()
        if end == UNSET:
            return 0
        return end - self.start_time.get()

    def avg_time(self, thread_count: int) -> int:
        return self.total_time() // thread_count


class CompletionTracker:
    """Pending operation counter plus a single-use completion signal.

    Every decrement that observes the counter at or below zero records the end
    timestamp, so under concurrent decrements near zero the recorded end time
    approximates the last operation rather than pinning it exactly.
    """

    def __init__(self, timing: TimingRecorder) -> None:
        self._timing = timing
        self.pending_operations = AtomicLong(0)
        self._done = threading.Event()

    def reset(self, row_count: int) -> None:
        self.pending_operations.set(row_count)
        self._done = threading.Event()
        if row_count <= 0:
            # nothing to wait for in an empty workload
            self._done.set()

    def notify_operation_complete(self) -> None:
        if self.pending_operations.decrement_and_get() <= 0:
            self._timing.mark_end()
            self._done.set()

    def is_complete(self) -> bool:
        return self._done.is_set()

    def await_completion(self) -> None:
        self._done.wait()


@dataclass
class IterationResult:
    benchmark: str
    loop: int
    row_count: int
    thread_count: int
    access_pattern: str | None
    operation: str | None
    total_time_ms: int
    avg_time_ms: int


class ResultCollector:
    """In-memory record of the iterations a benchmark has reported."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: list[IterationResult] = []

    def add(self, result: IterationResult) -> None:
        with self._lock:
            self._results.append(result)

    def results(self) -> list[IterationResult]:
        with self._lock:
            return list(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def build_dataframe(self) -> pd.DataFrame:
        rows = [asdict(result) for result in self.results()]
        if not rows:
            return pd.DataFrame(columns=RESULT_COLUMNS)
        return pd.DataFrame(rows, columns=RESULT_COLUMNS)

    def mean_total_time(self) -> float:
        df = self.build_dataframe()
        if df.empty:
            return 0.0
        return float(df["total_time_ms"].mean())
