from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .harness import PerfTestBase

LOGGER = logging.getLogger("perfbench.benchmark.task")


class PerfTestTask(abc.ABC):
    """Work over one [start, end) range of rows, owned by a single thread.

    Subclasses put the benchmark body in ``start_perf_test`` and must call
    ``notify_operation_complete`` once per finished row. A body that raises is
    logged and swallowed here; it does not notify on its own, so rows it never
    reported keep the iteration waiting.
    """

    def __init__(self, benchmark: "PerfTestBase", start: int, end: int) -> None:
        self.benchmark = benchmark
        self.start = start
        self.end = end
        self.name = f"{type(self).__name__}-{start}"

    def run(self) -> None:
        self.benchmark.timing.mark_start()
        try:
            self.start_perf_test()
        except Exception:  # noqa: BLE001
            LOGGER.exception("task %s failed", self.name)

    @abc.abstractmethod
    def start_perf_test(self) -> None:
        ...

    def stop_perf_test(self) -> None:
        pass

    def need_create_thread(self) -> bool:
        return True

    def notify_operation_complete(self) -> None:
        self.benchmark.notify_operation_complete()

    def keys(self):
        """Row keys for this range: the shared random permutation or 1-based serial ids."""
        if self.benchmark.config.random():
            return self.benchmark.random_keys[self.start : self.end]
        return range(self.start + 1, self.end + 1)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} [{self.start}, {self.end})>"
