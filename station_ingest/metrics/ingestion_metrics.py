"""Métricas de ingesta expuestas para Prometheus.

Los contadores se registran siempre; el exporter HTTP solo arranca si
METRICS_PORT está configurado.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

MESSAGES_TOTAL = Counter(
    "station_ingest_messages_total",
    "Messages handled by the ingestion bridge",
    ["status"],  # persisted, decode_error, persist_error, processing_error, dropped
)

SESSION_CONNECTED = Gauge(
    "station_ingest_session_subscribed",
    "1 while the broker session is subscribed to the topic",
)

RECONNECT_ATTEMPTS = Counter(
    "station_ingest_reconnect_attempts_total",
    "Broker reconnect attempts scheduled",
)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
    logger.info("[METRICS] Exporter listening on :%d", port)
