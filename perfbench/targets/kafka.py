from __future__ import annotations

import json
import logging
import threading
import time
import uuid

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import NoBrokersAvailable

from ..benchmarks.config import BenchmarkConfig
from ..benchmarks.harness import PerfTestBase
from ..benchmarks.task import PerfTestTask
from ..errors import TargetUnavailableError

LOGGER = logging.getLogger("perfbench.targets.kafka")

DEFAULT_TOPIC = "perfbench"
CONNECT_DEADLINE_S = 60.0
POLL_TIMEOUT_MS_DEFAULT = 1_000


def _connect(factory, what: str):
    backoff = 1.0
    max_backoff = 10.0
    deadline = time.time() + CONNECT_DEADLINE_S

    while True:
        try:
            return factory()
        except NoBrokersAvailable as exc:
            if time.time() >= deadline:
                raise TargetUnavailableError(
                    f"failed to connect {what} to Kafka broker within {CONNECT_DEADLINE_S:.0f} seconds"
                ) from exc

            time.sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)


def create_producer(broker: str) -> KafkaProducer:
    return _connect(
        lambda: KafkaProducer(
            bootstrap_servers=broker,
            key_serializer=lambda v: v.encode("utf-8") if v else None,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        ),
        "producer",
    )


def create_consumer(broker: str, topic: str, group_id: str) -> KafkaConsumer:
    return _connect(
        lambda: KafkaConsumer(
            topic,
            bootstrap_servers=broker,
            group_id=group_id,
            value_deserializer=lambda v: json.loads(v.decode("utf-8")),
            key_deserializer=lambda v: v.decode("utf-8") if v else None,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        ),
        "consumer",
    )


def build_payload(key: int) -> dict:
    return {"id": key, "f1": f"value-{key}", "f2": key * 10}


class KafkaBenchmark(PerfTestBase):
    """Produce (write) or consume (read) ``row_count`` records per loop.

    Writes share one producer and count a row as done once its send future
    resolves, whether acknowledged or failed. Reads give every task its own
    consumer group replaying the topic from the earliest offset.
    """

    def __init__(
        self,
        config: BenchmarkConfig | None = None,
        broker: str = "localhost:9092",
        topic: str = DEFAULT_TOPIC,
        poll_timeout_ms: int = POLL_TIMEOUT_MS_DEFAULT,
    ) -> None:
        super().__init__(config)
        self.broker = broker
        self.topic = topic
        self.poll_timeout_ms = poll_timeout_ms
        self.producer: KafkaProducer | None = None

    def init(self) -> None:
        LOGGER.info("Connecting to %s (topic=%s)", self.broker, self.topic)
        self.producer = create_producer(self.broker)
        if not self.config.write():
            self._seed_topic()

    def destroy(self) -> None:
        if self.producer is None:
            return
        self.producer.flush()
        self.producer.close()
        self.producer = None

    def _seed_topic(self) -> None:
        LOGGER.info("Seeding %d records into %s", self.config.row_count, self.topic)
        for key in range(1, self.config.row_count + 1):
            self.producer.send(self.topic, key=str(key), value=build_payload(key))
        self.producer.flush()

    def create_perf_test_task(self, start: int, end: int) -> PerfTestTask:
        if self.config.write():
            return KafkaProduceTask(self, start, end)
        return KafkaConsumeTask(self, start, end)


class KafkaProduceTask(PerfTestTask):
    def start_perf_test(self) -> None:
        producer = self.benchmark.producer
        for key in self.keys():
            future = producer.send(self.benchmark.topic, key=str(key), value=build_payload(key))
            future.add_callback(self._on_sent)
            future.add_errback(self._on_failed, key)

    def _on_sent(self, _metadata) -> None:
        self.notify_operation_complete()

    def _on_failed(self, key: int, exc) -> None:
        LOGGER.warning("%s: send of record %d failed: %r", self.name, key, exc)
        self.notify_operation_complete()


class KafkaConsumeTask(PerfTestTask):
    def __init__(self, benchmark: KafkaBenchmark, start: int, end: int) -> None:
        super().__init__(benchmark, start, end)
        self._consumer: KafkaConsumer | None = None
        self._stop_event = threading.Event()
        self._consumer_lock = threading.Lock()

    def start_perf_test(self) -> None:
        if self.start == self.end:
            return
        group_id = f"perfbench-{self.name}-{uuid.uuid4().hex[:8]}"
        consumer = create_consumer(self.benchmark.broker, self.benchmark.topic, group_id)
        with self._consumer_lock:
            if self._stop_event.is_set():
                consumer.close()
                return
            self._consumer = consumer
        remaining = self.end - self.start
        while remaining > 0 and not self._stop_event.is_set():
            records = consumer.poll(
                timeout_ms=self.benchmark.poll_timeout_ms, max_records=remaining
            )
            for batch in records.values():
                for _message in batch:
                    if remaining <= 0:
                        break
                    remaining -= 1
                    self.notify_operation_complete()

    def stop_perf_test(self) -> None:
        with self._consumer_lock:
            self._stop_event.set()
            if self._consumer is not None:
                self._consumer.close()
                self._consumer = None
