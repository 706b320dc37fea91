from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaskRange:
    """Half-open slice [start, end) of the row index space handed to one task."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def __iter__(self):
        return iter(range(self.start, self.end))


def partition_workload(total: int, thread_count: int) -> list[TaskRange]:
    """Split ``total`` rows into ``thread_count`` contiguous ranges.

    Every range but the last holds ``total // thread_count`` rows; the last one
    also takes the remainder. ``thread_count`` must be at least 1.
    """
    avg = total // thread_count
    ranges = []
    for i in range(thread_count):
        start = i * avg
        end = total if i == thread_count - 1 else (i + 1) * avg
        ranges.append(TaskRange(start=start, end=end))
    return ranges
