"""Entry point del bridge de ingesta.

Carga configuración (fatal si faltan credenciales del store), arma
store → sink → handler → cola → sesión y mantiene el proceso vivo hasta
SIGINT/SIGTERM.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional

from common.config import ConfigError, Settings, get_settings

from .metrics import start_metrics_server
from .mqtt import (
    BrokerOptions,
    MessageHandler,
    MessageQueue,
    ReconnectBackoff,
    SubscriptionSession,
    build_mqtt_client,
)
from .persistence import PersistenceSink, create_sink, create_store

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def build_session(
    settings: Settings,
    sink: Optional[PersistenceSink] = None,
) -> SubscriptionSession:
    """Arma el pipeline completo a partir de la configuración."""
    if sink is None:
        sink = create_sink(create_store(settings), retry_attempts=settings.persist_retry_attempts)
    handler = MessageHandler(sink)
    message_queue = MessageQueue(handler, max_queue_size=settings.queue_size)

    return SubscriptionSession(
        options=BrokerOptions.from_settings(settings),
        message_queue=message_queue,
        backoff=ReconnectBackoff.from_settings(settings),
        client_factory=build_mqtt_client,
        qos=settings.qos,
        subscribe_timeout=settings.subscribe_timeout,
    )


def run(settings: Settings, stop_event: Optional[threading.Event] = None) -> None:
    """Corre la sesión hasta que `stop_event` se setee."""
    stop_event = stop_event or threading.Event()

    if settings.metrics_port:
        start_metrics_server(settings.metrics_port)

    sink = create_sink(create_store(settings), retry_attempts=settings.persist_retry_attempts)
    session = build_session(settings, sink)
    session.start()
    logger.info("[MAIN] MQTT subscriber started. Waiting for messages...")

    try:
        while not stop_event.wait(1.0):
            pass
    finally:
        try:
            session.shutdown()
        finally:
            # Libera el cliente httpx / engine SQLAlchemy
            sink.close()
        logger.info("[MAIN] Bye")


def main() -> int:
    try:
        settings = get_settings()
    except ConfigError as e:
        configure_logging()
        logger.error("[MAIN] Configuration error: %s", e)
        return 2

    configure_logging(settings.log_level)
    logger.info(
        "[MAIN] Config: broker=%s:%d tls=%s store=%s reconnect_interval=%dms",
        settings.host,
        settings.port,
        settings.tls,
        settings.endpoint.split("@")[-1],
        settings.reconnect_interval_ms,
    )

    stop_event = threading.Event()

    def _request_stop(signum, _frame):
        logger.info("[MAIN] Signal %d received, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    try:
        run(settings, stop_event)
    except ConfigError as e:
        logger.error("[MAIN] Configuration error: %s", e)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
