"""
Benchmark harness core.

This package partitions a fixed workload across worker threads, tracks
completion through a shared pending-operation counter, and times each loop
from the first task start to the last reported operation.
"""

from .collector import CompletionTracker, IterationResult, ResultCollector, TimingRecorder
from .config import BenchmarkConfig
from .harness import PerfTestBase
from .load import TaskRange, partition_workload
from .main import main
from .task import PerfTestTask

__all__ = [
    "BenchmarkConfig",
    "CompletionTracker",
    "IterationResult",
    "PerfTestBase",
    "PerfTestTask",
    "ResultCollector",
    "TaskRange",
    "TimingRecorder",
    "main",
    "partition_workload",
]
