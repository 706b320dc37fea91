from __future__ import annotations

import abc
import logging
import threading

from .collector import CompletionTracker, IterationResult, ResultCollector, TimingRecorder
from .config import BenchmarkConfig, random_keys
from .load import partition_workload
from .task import PerfTestTask

LOGGER = logging.getLogger("perfbench.benchmark.harness")


class PerfTestBase(abc.ABC):
    """Loop coordinator shared by every benchmark.

    Each loop resets the timing state, starts one task per partition of the
    rows, waits until ``row_count`` operations have been reported, stops the
    tasks and prints one result line. ``init`` and ``destroy`` bracket the
    whole run; ``destroy`` runs even when a loop fails.

    The wait has no timeout: if the tasks report fewer than ``row_count``
    operations the run hangs.
    """

    def __init__(self, config: BenchmarkConfig | None = None) -> None:
        self.config = (config or BenchmarkConfig()).validate()
        self.random_keys = random_keys(self.config.row_count)
        self.timing = TimingRecorder()
        self.tracker = CompletionTracker(self.timing)
        self.collector = ResultCollector()

    @property
    def name(self) -> str:
        return type(self).__name__

    def init(self) -> None:
        pass

    def destroy(self) -> None:
        pass

    @abc.abstractmethod
    def create_perf_test_task(self, start: int, end: int) -> PerfTestTask:
        ...

    def run(self) -> list[IterationResult]:
        self.init()
        try:
            for loop in range(1, self.config.loop_count + 1):
                self.run_loop(loop)
        finally:
            self.destroy()
        return self.collector.results()

    def run_loop(self, loop: int) -> IterationResult:
        self.reset_fields()
        self._run_perf_test_tasks()

        total_time = self.timing.total_time()
        avg_time = self.timing.avg_time(self.config.thread_count)
        result = IterationResult(
            benchmark=self.name,
            loop=loop,
            row_count=self.config.row_count,
            thread_count=self.config.thread_count,
            access_pattern=_access_pattern(self.config),
            operation=_operation(self.config),
            total_time_ms=total_time,
            avg_time_ms=avg_time,
        )
        self.print_run_result(loop, total_time, avg_time, self.config.labels())
        self.collector.add(result)
        return result

    def reset_fields(self) -> None:
        self.timing.reset()
        self.tracker.reset(self.config.row_count)

    def notify_operation_complete(self) -> None:
        self.tracker.notify_operation_complete()

    def print_result(self, message: str) -> None:
        print(f"{self.name}: {message}", flush=True)

    def print_run_result(self, loop: int, total_time: int, avg_time: int, labels: str) -> None:
        self.print_result(
            f"loop: {loop}, row count: {self.config.row_count}, "
            f"thread count: {self.config.thread_count}{labels}, "
            f"total time: {total_time} ms, avg time: {avg_time} ms"
        )

    def _run_perf_test_tasks(self) -> None:
        tasks = [
            self.create_perf_test_task(task_range.start, task_range.end)
            for task_range in partition_workload(self.config.row_count, self.config.thread_count)
        ]

        for task in tasks:
            if task.need_create_thread():
                threading.Thread(target=task.run, name=task.name).start()
            else:
                LOGGER.debug("task %s is driven by a background resource", task.name)

        self.tracker.await_completion()

        for task in tasks:
            try:
                task.stop_perf_test()
            except Exception:  # noqa: BLE001
                LOGGER.exception("failed to stop task %s", task.name)


def _access_pattern(config: BenchmarkConfig) -> str | None:
    if config.is_random is None:
        return None
    return "random" if config.is_random else "serial"


def _operation(config: BenchmarkConfig) -> str | None:
    if config.is_random is None:
        return None
    return "write" if config.write() else "read"
