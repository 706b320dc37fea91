from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict

from ..errors import PerfBenchError
from .config import (
    DEFAULT_LOOP_COUNT,
    DEFAULT_ROW_COUNT,
    PERF_TEST_BASE_DIR,
    BenchmarkConfig,
    default_thread_count,
)
from .docker_control import DEFAULT_READY_TIMEOUT_S, parse_port_mappings
from .harness import PerfTestBase

LOGGER = logging.getLogger("perfbench.benchmark")


def _sqlite_factory(config: BenchmarkConfig, args: argparse.Namespace) -> PerfTestBase:
    from ..targets.sqlite import SqliteBenchmark

    return SqliteBenchmark(
        config,
        db_path=Path(args.data_dir) / "sqlite" / "perf_test.db",
        keep_database=args.keep_data,
    )


def _kafka_factory(config: BenchmarkConfig, args: argparse.Namespace) -> PerfTestBase:
    from ..targets.kafka import KafkaBenchmark

    return KafkaBenchmark(config, broker=args.broker, topic=args.topic)


BENCHMARKS: Dict[str, Callable[[BenchmarkConfig, argparse.Namespace], PerfTestBase]] = {
    "sqlite": _sqlite_factory,
    "kafka": _kafka_factory,
}


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"invalid {name} value {value!r}; defaulting to {default}", file=sys.stderr)
        return default


def _env_bool(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    print(f"invalid {name} value {value!r}; ignoring", file=sys.stderr)
    return None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-threaded performance test harness")
    parser.add_argument(
        "--benchmark",
        choices=sorted(BENCHMARKS),
        default=os.environ.get("PERF_BENCHMARK", "sqlite"),
    )
    parser.add_argument(
        "--loop-count", type=int, default=_env_int("PERF_LOOP_COUNT", DEFAULT_LOOP_COUNT)
    )
    parser.add_argument(
        "--row-count", type=int, default=_env_int("PERF_ROW_COUNT", DEFAULT_ROW_COUNT)
    )
    parser.add_argument(
        "--thread-count",
        type=int,
        default=_env_int("PERF_THREAD_COUNT", default_thread_count()),
        help="Worker threads; defaults to the number of CPUs",
    )
    access = parser.add_mutually_exclusive_group()
    access.add_argument("--random", dest="is_random", action="store_true", default=None)
    access.add_argument("--serial", dest="is_random", action="store_false", default=None)
    operation = parser.add_mutually_exclusive_group()
    operation.add_argument("--write", dest="is_write", action="store_true", default=None)
    operation.add_argument("--read", dest="is_write", action="store_false", default=None)
    parser.add_argument("--broker", default=os.environ.get("KAFKA_BROKER", "localhost:9092"))
    parser.add_argument("--topic", default=os.environ.get("PERF_KAFKA_TOPIC", "perfbench"))
    parser.add_argument(
        "--data-dir",
        default=os.environ.get("PERF_DATA_DIR", str(PERF_TEST_BASE_DIR)),
        help="Directory for benchmark data files",
    )
    parser.add_argument(
        "--keep-data",
        action="store_true",
        help="Keep data files after the run",
    )
    parser.add_argument(
        "--target-image",
        default=os.environ.get("PERF_TARGET_IMAGE"),
        help="Docker image of the system under test, started around the run",
    )
    parser.add_argument(
        "--target-env",
        default=os.environ.get("PERF_TARGET_ENV", "{}"),
        help="JSON encoded dict of environment variables for the target container",
    )
    parser.add_argument(
        "--target-port",
        action="append",
        default=[],
        help="Port mapping container:host for the target container (repeatable)",
    )
    parser.add_argument(
        "--target-network",
        default=os.environ.get("PERF_TARGET_NETWORK"),
        help="Docker network to attach the target container to",
    )
    parser.add_argument(
        "--target-ready-timeout",
        type=float,
        default=os.environ.get("PERF_TARGET_READY_TIMEOUT", str(DEFAULT_READY_TIMEOUT_S)),
        help="Seconds to wait for the target container's ports to accept connections",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PERF_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    args = parser.parse_args(argv)
    if args.benchmark not in BENCHMARKS:
        parser.error(
            f"invalid benchmark {args.benchmark!r} (choose from {', '.join(sorted(BENCHMARKS))})"
        )
    try:
        args.target_env = json.loads(args.target_env)
    except ValueError as exc:
        parser.error(f"--target-env is not valid JSON: {exc}")
    if not isinstance(args.target_env, dict):
        parser.error("--target-env must be a JSON object")
    try:
        args.target_ports = parse_port_mappings(args.target_port)
    except ValueError as exc:
        parser.error(str(exc))
    if args.is_random is None:
        args.is_random = _env_bool("PERF_RANDOM")
    if args.is_write is None:
        args.is_write = _env_bool("PERF_WRITE")
    return args


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> BenchmarkConfig:
    return BenchmarkConfig(
        loop_count=args.loop_count,
        row_count=args.row_count,
        thread_count=args.thread_count,
        is_random=args.is_random,
        is_write=args.is_write,
    ).validate()


def target_scope(args: argparse.Namespace) -> contextlib.AbstractContextManager:
    if not args.target_image:
        return contextlib.nullcontext()

    from .docker_control import TargetContainer, TargetSettings

    LOGGER.info("Target image: %s", args.target_image)
    return TargetContainer(
        TargetSettings(
            image=args.target_image,
            environment={str(k): str(v) for k, v in args.target_env.items()},
            ports=args.target_ports,
            network=args.target_network or None,
            ready_timeout_s=args.target_ready_timeout,
        )
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = build_config(args)
        benchmark = BENCHMARKS[args.benchmark](config, args)
        LOGGER.info(
            "Running %s (loops=%d, rows=%d, threads=%d)",
            benchmark.name,
            config.loop_count,
            config.row_count,
            config.thread_count,
        )
        with target_scope(args):
            benchmark.run()
    except PerfBenchError:
        LOGGER.exception("benchmark %s failed", args.benchmark)
        return 1

    LOGGER.info(
        "%s: %d loop(s), mean total time %.1f ms",
        benchmark.name,
        len(benchmark.collector),
        benchmark.collector.mean_total_time(),
    )
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
