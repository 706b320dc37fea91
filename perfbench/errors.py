from __future__ import annotations


class PerfBenchError(Exception):
    """Base class for errors raised by the benchmark harness."""


class BenchmarkConfigError(PerfBenchError):
    """Raised when a benchmark configuration cannot be run."""


class TargetUnavailableError(PerfBenchError):
    """Raised when the benchmarked system cannot be reached."""


__all__ = [
    "PerfBenchError",
    "BenchmarkConfigError",
    "TargetUnavailableError",
]
