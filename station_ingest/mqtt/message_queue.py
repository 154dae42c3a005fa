"""Cola acotada entre el callback de paho y el procesamiento.

El thread de red de paho solo encola (~0.01ms) y retorna, así un insert
lento no bloquea el keep-alive. Un único worker procesa en orden de
llegada: nunca dos mensajes de la misma sesión a la vez.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime
from typing import Optional, Tuple

from ..core.domain.sensor_record import utc_now
from ..metrics import MESSAGES_TOTAL
from .message_handler import MessageHandler

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

_Item = Tuple[str, bytes, datetime]


class MessageQueue:
    """Queue + worker único para MessageHandler."""

    def __init__(
        self,
        handler: MessageHandler,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self._handler = handler
        self._queue: "queue.Queue[_Item]" = queue.Queue(maxsize=max_queue_size)
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._worker_loop,
            daemon=True,
            name="ingest-worker",
        )
        self._worker.start()
        logger.info("[QUEUE] Started worker queue_max=%d", self._queue.maxsize)

    def stop(self, timeout: float = 5.0) -> None:
        """Detiene el worker. Lo que quede en cola se pierde."""
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        pending = self._queue.qsize()
        if pending:
            logger.warning("[QUEUE] Stopped with %d unprocessed message(s)", pending)
        logger.info("[QUEUE] Stopped")

    def enqueue(self, topic: str, payload: bytes) -> bool:
        """Encola un mensaje. Retorna False si la cola está llena."""
        stats = self._handler.stats
        stats.incr("received")
        stats.last_message_at = time.time()
        try:
            self._queue.put_nowait((topic, payload, utc_now()))
            return True
        except queue.Full:
            stats.incr("dropped")
            MESSAGES_TOTAL.labels(status="dropped").inc()
            logger.warning(
                "[QUEUE] Queue full, dropped message (topic=%s size=%d)", topic, len(payload),
            )
            return False

    def drain(self) -> int:
        """Procesa en el thread actual todo lo encolado. Uso en tests/shutdown."""
        count = 0
        while True:
            try:
                topic, payload, received_at = self._queue.get_nowait()
            except queue.Empty:
                return count
            try:
                self._handler.handle(topic, payload, received_at)
                count += 1
            finally:
                self._queue.task_done()

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                topic, payload, received_at = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                self._handler.handle(topic, payload, received_at)
            finally:
                self._queue.task_done()

    @property
    def stats(self) -> dict:
        return self._handler.stats.to_dict()

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()
