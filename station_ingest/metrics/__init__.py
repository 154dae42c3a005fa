"""Métricas Prometheus del bridge."""

from .ingestion_metrics import (
    MESSAGES_TOTAL,
    RECONNECT_ATTEMPTS,
    SESSION_CONNECTED,
    start_metrics_server,
)

__all__ = [
    "MESSAGES_TOTAL",
    "RECONNECT_ATTEMPTS",
    "SESSION_CONNECTED",
    "start_metrics_server",
]
