"""Handler de mensajes MQTT: Decoder → Normalizer → Sink."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from ..core.domain.sensor_record import CanonicalSensorRecord, RawMeasurement, utc_now
from ..core.normalization import normalize
from ..errors import DecodeError, PersistError
from ..metrics import MESSAGES_TOTAL
from ..persistence.sink import PersistenceSink
from ..persistence.stores import RecordId
from .decoder import decode_payload
from .receiver_stats import ReceiverStats

logger = logging.getLogger(__name__)

STATS_LOG_EVERY = 100


class MessageHandler:
    """Procesa un mensaje del broker de punta a punta.

    Ningún error por mensaje sale de `handle`: se loguea, se cuenta y el
    mensaje se descarta. El estado de la sesión no se toca.
    """

    def __init__(
        self,
        sink: PersistenceSink,
        stats: Optional[ReceiverStats] = None,
        decoder: Callable[[bytes], RawMeasurement] = decode_payload,
        normalizer: Callable[..., CanonicalSensorRecord] = normalize,
    ):
        self._sink = sink
        self._stats = stats or ReceiverStats()
        self._decode = decoder
        self._normalize = normalizer

    def handle(
        self,
        topic: str,
        payload: bytes,
        received_at: Optional[datetime] = None,
    ) -> Optional[RecordId]:
        """Procesa un mensaje. Retorna el id persistido o None si se descartó."""
        try:
            return self._handle(topic, payload, received_at or utc_now())
        except Exception as e:
            logger.exception("[HANDLER] Processing error: %s (topic=%s size=%d)", e, topic, len(payload))
            self._stats.incr("failed")
            MESSAGES_TOTAL.labels(status="processing_error").inc()
            return None

    def _handle(self, topic: str, payload: bytes, received_at: datetime) -> Optional[RecordId]:
        t0 = time.monotonic()

        # 1. Decodificar
        try:
            raw = self._decode(payload)
        except DecodeError as e:
            logger.warning(
                "[HANDLER] Dropping malformed payload: %s (topic=%s size=%d)",
                e.reason, topic, e.payload_size,
            )
            self._stats.incr("decode_failed")
            MESSAGES_TOTAL.labels(status="decode_error").inc()
            return None

        logger.debug("[HANDLER] Received data: %s (topic=%s)", raw, topic)

        # 2. Normalizar (nunca falla)
        record = self._normalize(raw, recorded_at=received_at)

        # 3. Persistir
        try:
            record_id = self._sink.persist(record)
        except PersistError as e:
            logger.error(
                "[HANDLER] Dropping record, persist failed: %s (topic=%s size=%d)",
                e.reason, topic, len(payload),
            )
            self._stats.incr("persist_failed")
            MESSAGES_TOTAL.labels(status="persist_error").inc()
            return None

        self._stats.incr("processed")
        MESSAGES_TOTAL.labels(status="persisted").inc()
        logger.debug(
            "[HANDLER] OK id=%s ms=%.1f", record_id, (time.monotonic() - t0) * 1000,
        )

        # Log periódico
        if self._stats.processed % STATS_LOG_EVERY == 0:
            logger.info("[HANDLER] %s", self._stats)

        return record_id

    @property
    def stats(self) -> ReceiverStats:
        return self._stats
