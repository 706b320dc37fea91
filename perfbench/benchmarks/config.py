from __future__ import annotations

import os
import random
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import BenchmarkConfigError

PERF_TEST_BASE_DIR = Path(".") / "target" / "perf-test-data"

DEFAULT_LOOP_COUNT = 5
DEFAULT_ROW_COUNT = 5000


def default_thread_count() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class BenchmarkConfig:
    """Parameters of a benchmark run; fixed before the first loop starts."""

    loop_count: int = DEFAULT_LOOP_COUNT
    row_count: int = DEFAULT_ROW_COUNT
    thread_count: int = field(default_factory=default_thread_count)
    is_random: bool | None = None
    is_write: bool | None = None

    def random(self) -> bool:
        return bool(self.is_random)

    def write(self) -> bool:
        # unspecified means write, matching the operation label
        return self.is_write is not False

    def validate(self) -> "BenchmarkConfig":
        if self.loop_count < 0:
            raise BenchmarkConfigError(f"loop_count must be >= 0, got {self.loop_count}")
        if self.row_count < 0:
            raise BenchmarkConfigError(f"row_count must be >= 0, got {self.row_count}")
        if self.thread_count < 1:
            raise BenchmarkConfigError(f"thread_count must be >= 1, got {self.thread_count}")
        return self

    def labels(self) -> str:
        """Access pattern and operation labels as they appear in result lines."""
        if self.is_random is None:
            return ""
        label = " random " if self.is_random else " serial "
        return label + ("write" if self.write() else "read")


def random_keys(row_count: int, rng: random.Random | None = None) -> tuple[int, ...]:
    """Return a shuffled permutation of the keys 1..row_count."""
    keys = list(range(1, row_count + 1))
    (rng or random).shuffle(keys)
    return tuple(keys)


def join_dirs(*dirs: str, base_dir: Path | str = PERF_TEST_BASE_DIR) -> Path:
    path = Path(base_dir)
    for item in dirs:
        path = path / item
    return path
