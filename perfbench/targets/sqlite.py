from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from ..benchmarks.config import BenchmarkConfig, join_dirs
from ..benchmarks.harness import PerfTestBase
from ..benchmarks.task import PerfTestTask

LOGGER = logging.getLogger("perfbench.targets.sqlite")

TABLE_NAME = "perf_test"
BUSY_TIMEOUT_S = 30.0


def connect(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(
        str(path), timeout=BUSY_TIMEOUT_S, isolation_level=None, check_same_thread=False
    )
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


class SqliteBenchmark(PerfTestBase):
    """Row-at-a-time inserts or point reads against a SQLite file."""

    def __init__(
        self,
        config: BenchmarkConfig | None = None,
        db_path: Path | str | None = None,
        keep_database: bool = False,
    ) -> None:
        super().__init__(config)
        self.db_path = Path(db_path) if db_path else join_dirs("sqlite", "perf_test.db")
        self.keep_database = keep_database

    def init(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Preparing %s", self.db_path)
        conn = connect(self.db_path)
        try:
            conn.execute(f"DROP TABLE IF EXISTS {TABLE_NAME}")
            conn.execute(f"CREATE TABLE {TABLE_NAME} (pk INTEGER PRIMARY KEY, f1 TEXT, f2 INTEGER)")
            if not self.config.write():
                conn.execute("BEGIN")
                conn.executemany(
                    f"INSERT INTO {TABLE_NAME} (pk, f1, f2) VALUES (?, ?, ?)",
                    ((key, f"value-{key}", key * 10) for key in range(1, self.config.row_count + 1)),
                )
                conn.execute("COMMIT")
        finally:
            conn.close()

    def destroy(self) -> None:
        if self.keep_database:
            return
        for suffix in ("", "-wal", "-shm"):
            path = self.db_path.with_name(self.db_path.name + suffix)
            if path.exists():
                path.unlink()
        LOGGER.info("Removed %s", self.db_path)

    def create_perf_test_task(self, start: int, end: int) -> PerfTestTask:
        return SqliteTask(self, start, end)


class SqliteTask(PerfTestTask):
    def __init__(self, benchmark: SqliteBenchmark, start: int, end: int) -> None:
        super().__init__(benchmark, start, end)
        self._conn: sqlite3.Connection | None = None
        self._stopped = False
        self._conn_lock = threading.Lock()

    def start_perf_test(self) -> None:
        if self.start == self.end:
            return
        with self._conn_lock:
            # a stop that already ran must not be followed by a fresh connection
            if self._stopped:
                return
            self._conn = connect(self.benchmark.db_path)
        if self.benchmark.config.write():
            self._write()
        else:
            self._read()

    def _write(self) -> None:
        conn = self._conn
        for key in self.keys():
            conn.execute(
                f"INSERT OR REPLACE INTO {TABLE_NAME} (pk, f1, f2) VALUES (?, ?, ?)",
                (key, f"value-{key}", key * 10),
            )
            self.notify_operation_complete()

    def _read(self) -> None:
        conn = self._conn
        for key in self.keys():
            row = conn.execute(f"SELECT f1, f2 FROM {TABLE_NAME} WHERE pk = ?", (key,)).fetchone()
            if row is None:
                LOGGER.warning("%s: row %d missing", self.name, key)
            self.notify_operation_complete()

    def stop_perf_test(self) -> None:
        with self._conn_lock:
            self._stopped = True
            if self._conn is not None:
                self._conn.close()
                self._conn = None
