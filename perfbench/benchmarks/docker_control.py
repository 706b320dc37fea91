"""
Docker-managed system under test.

``TargetContainer`` starts one container from an image, holds the benchmark
back until the container is up and every published host port accepts TCP
connections, and removes the container when the run ends.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable

import docker
from docker.errors import DockerException, NotFound
from docker.models.containers import Container

from ..errors import TargetUnavailableError

LOGGER = logging.getLogger("perfbench.benchmark.docker")

DEFAULT_READY_TIMEOUT_S = 60.0
LOG_TAIL_LINES = 20


@dataclass(frozen=True)
class TargetSettings:
    image: str
    environment: Dict[str, str] = field(default_factory=dict)
    ports: Dict[str, int] = field(default_factory=dict)
    network: str | None = None
    ready_timeout_s: float = DEFAULT_READY_TIMEOUT_S


class TargetContainer:
    def __init__(
        self,
        settings: TargetSettings,
        client=None,
        host: str = "127.0.0.1",
        poll_interval_s: float = 0.5,
        connect: Callable[..., socket.socket] = socket.create_connection,
    ) -> None:
        self.settings = settings
        self.host = host
        self._client = client or docker.from_env()
        self._poll_interval_s = poll_interval_s
        self._connect = connect
        self.container: Container | None = None

    def __enter__(self) -> "TargetContainer":
        self.start()
        try:
            self.wait_until_ready()
        except BaseException:
            self.remove()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()

    def start(self) -> None:
        name = f"perfbench-target-{int(time.time())}"
        LOGGER.info("Starting %s from %s", name, self.settings.image)
        try:
            self.container = self._client.containers.run(
                self.settings.image,
                name=name,
                detach=True,
                environment=dict(self.settings.environment),
                ports=dict(self.settings.ports) or None,
                network=self.settings.network,
                labels={"perfbench.role": "target"},
            )
        except DockerException as exc:
            raise TargetUnavailableError(f"failed to start {self.settings.image}") from exc

    def wait_until_ready(self) -> None:
        deadline = time.monotonic() + self.settings.ready_timeout_s
        while True:
            state = self._state()
            if state in {"exited", "dead", "unhealthy"}:
                raise TargetUnavailableError(
                    f"target container is {state}:\n{self.logs_tail()}"
                )
            closed = [
                host_port
                for container_port, host_port in self.settings.ports.items()
                if container_port.endswith("/tcp") and not self._port_open(host_port)
            ]
            if state in {"running", "healthy"} and not closed:
                LOGGER.info("Target ready (%s)", state)
                return
            if time.monotonic() >= deadline:
                raise TargetUnavailableError(
                    f"target not ready within {self.settings.ready_timeout_s:.0f}s "
                    f"(state={state}, closed ports={closed}):\n{self.logs_tail()}"
                )
            time.sleep(self._poll_interval_s)

    def remove(self) -> None:
        if self.container is None:
            return
        try:
            self.container.remove(force=True)
        except NotFound:
            pass
        except DockerException:
            LOGGER.exception("failed to remove target container %s", self.container.name)
        self.container = None

    def logs_tail(self) -> str:
        try:
            return self.container.logs(tail=LOG_TAIL_LINES).decode("utf-8", "replace")
        except DockerException:
            return "<logs unavailable>"

    def _state(self) -> str:
        # a health check, when the image defines one, outranks the plain status
        self.container.reload()
        state = self.container.attrs.get("State", {})
        health = state.get("Health")
        if health:
            return health.get("Status", "starting")
        return state.get("Status", "created")

    def _port_open(self, port: int) -> bool:
        try:
            with self._connect((self.host, port), timeout=1.0):
                return True
        except OSError:
            return False


def parse_port_mappings(values: Iterable[str]) -> Dict[str, int]:
    """Turn ``container:host`` strings into the port dict the Docker SDK expects."""
    ports: Dict[str, int] = {}
    for value in values:
        container_port, sep, host_port = value.partition(":")
        if not sep or not container_port or not host_port.isdigit():
            raise ValueError(f"invalid port mapping {value!r}; expected container:host")
        if "/" not in container_port:
            container_port = f"{container_port}/tcp"
        ports[container_port] = int(host_port)
    return ports
