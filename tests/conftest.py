"""
Shared benchmark doubles for the harness tests.

``CountingBenchmark`` notifies once per row from dedicated threads and records
every lifecycle hook it sees, so tests can assert on ordering and counts.
"""

import queue
import threading

import pytest

from perfbench.benchmarks.config import BenchmarkConfig
from perfbench.benchmarks.harness import PerfTestBase
from perfbench.benchmarks.task import PerfTestTask


class CountingTask(PerfTestTask):
    def start_perf_test(self):
        self.benchmark.record(("start", self.name))
        for _ in range(self.start, self.end):
            self.notify_operation_complete()

    def stop_perf_test(self):
        self.benchmark.record(("stop", self.name))


class CountingBenchmark(PerfTestBase):
    task_class = CountingTask

    def __init__(self, config=None):
        super().__init__(config)
        self.events = []
        self.tasks = []
        self._events_lock = threading.Lock()

    def record(self, event):
        with self._events_lock:
            self.events.append(event)

    def count(self, kind):
        with self._events_lock:
            return sum(1 for event in self.events if event[0] == kind)

    def init(self):
        self.record(("init",))

    def destroy(self):
        self.record(("destroy",))

    def create_perf_test_task(self, start, end):
        task = self.task_class(self, start, end)
        self.tasks.append(task)
        return task


class BackgroundTask(PerfTestTask):
    """Task picked up by a worker the benchmark started in ``init``."""

    def __init__(self, benchmark, start, end):
        super().__init__(benchmark, start, end)
        benchmark.inbox.put(self)

    def start_perf_test(self):
        for _ in range(self.start, self.end):
            self.notify_operation_complete()

    def need_create_thread(self):
        return False


class BackgroundBenchmark(PerfTestBase):
    def __init__(self, config=None):
        super().__init__(config)
        self.inbox = queue.Queue()
        self.worker = None
        self.threads_seen = set()

    def init(self):
        self.worker = threading.Thread(target=self._serve, name="background-worker", daemon=True)
        self.worker.start()

    def destroy(self):
        self.inbox.put(None)
        self.worker.join(timeout=5.0)

    def _serve(self):
        while True:
            task = self.inbox.get()
            if task is None:
                return
            self.threads_seen.add(threading.current_thread().name)
            task.run()

    def create_perf_test_task(self, start, end):
        return BackgroundTask(self, start, end)


@pytest.fixture
def small_config():
    return BenchmarkConfig(loop_count=3, row_count=100, thread_count=4, is_random=True, is_write=True)


@pytest.fixture
def counting_benchmark_cls():
    return CountingBenchmark


@pytest.fixture
def counting_task_cls():
    return CountingTask


@pytest.fixture
def background_benchmark_cls():
    return BackgroundBenchmark
