from .benchmarks import BenchmarkConfig, PerfTestBase, PerfTestTask
from .errors import BenchmarkConfigError, PerfBenchError, TargetUnavailableError

__version__ = "0.1.0"

__all__ = [
    "BenchmarkConfig",
    "BenchmarkConfigError",
    "PerfBenchError",
    "PerfTestBase",
    "PerfTestTask",
    "TargetUnavailableError",
]
