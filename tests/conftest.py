"""Fixtures compartidas: cliente MQTT falso, store en memoria, settings."""

from __future__ import annotations

import time
from types import SimpleNamespace
from typing import Callable, List, Optional

import pytest

from common.config import Settings


def make_settings(**overrides) -> Settings:
    values = dict(
        endpoint="https://project.supabase.co",
        key="service-key",
        host="broker.example.com",
        port=8883,
        username="station",
        password="secret",
        tls=True,
        tls_insecure=False,
        qos=0,
        reconnect_interval_ms=1000,
        reconnect_max_ms=30000,
        reconnect_factor=1.0,
        subscribe_timeout=10.0,
        queue_size=1000,
        persist_retry_attempts=1,
        store_timeout=5.0,
        metrics_port=None,
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeMQTTClient:
    """Imita la superficie de paho.mqtt.Client que usa la sesión.

    Los callbacks se disparan de forma sincrónica: loop_start() entrega el
    CONNACK y subscribe() entrega el SUBACK.
    """

    def __init__(
        self,
        connect_error: Optional[BaseException] = None,
        connack: int = 0,
        suback: Optional[tuple] = (0,),
        on_connect_attempt: Optional[Callable[[], None]] = None,
    ):
        self.connect_error = connect_error
        self.connack = connack
        self.suback = suback
        self.on_connect_attempt = on_connect_attempt

        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None

        self.connect_calls = 0
        self.loop_start_calls = 0
        self.loop_stop_calls = 0
        self.disconnect_calls = 0
        self.subscriptions: List[tuple] = []

    def connect(self, host, port, keepalive=60):
        self.connect_calls += 1
        if self.on_connect_attempt is not None:
            self.on_connect_attempt()
        if self.connect_error is not None:
            raise self.connect_error

    def loop_start(self):
        self.loop_start_calls += 1
        self.on_connect(self, None, {}, self.connack, None)

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))
        if self.suback is not None:
            self.on_subscribe(self, None, 1, list(self.suback), None)
        return 0, 1

    def loop_stop(self):
        self.loop_stop_calls += 1

    def disconnect(self):
        self.disconnect_calls += 1

    # Helpers de test
    def deliver(self, topic: str, payload: bytes) -> None:
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))

    def drop(self, rc: int = 7) -> None:
        self.on_disconnect(self, None, {}, rc, None)


class ListStore:
    """Store en memoria: guarda registros y asigna ids incrementales."""

    def __init__(self, fail_times: int = 0):
        self.records = []
        self.fail_times = fail_times
        self.calls = 0
        self.closed = False

    def insert(self, record):
        from station_ingest.errors import PersistError

        self.calls += 1
        if self.calls <= self.fail_times:
            raise PersistError("store unavailable")
        self.records.append(record)
        return len(self.records)

    def close(self):
        self.closed = True


@pytest.fixture
def list_store() -> ListStore:
    return ListStore()
