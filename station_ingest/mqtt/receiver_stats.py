"""Estadísticas del receptor MQTT."""

from __future__ import annotations

import threading


class ReceiverStats:
    """Contadores por resultado de mensaje.

    Se actualizan desde el thread de paho (received/dropped) y desde el
    worker (resto), por eso van con lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.received = 0
        self.processed = 0
        self.decode_failed = 0
        self.persist_failed = 0
        self.failed = 0
        self.dropped = 0
        self.last_message_at: float = 0

    def incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"decode_failed={self.decode_failed} persist_failed={self.persist_failed} "
            f"failed={self.failed} dropped={self.dropped}"
        )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "received": self.received,
                "processed": self.processed,
                "decode_failed": self.decode_failed,
                "persist_failed": self.persist_failed,
                "failed": self.failed,
                "dropped": self.dropped,
                "last_message_at": self.last_message_at,
            }
