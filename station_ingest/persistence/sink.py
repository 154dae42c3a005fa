"""Sink de persistencia: una fila por registro canónico."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..core.domain.sensor_record import CanonicalSensorRecord
from ..errors import PersistError
from .retry import RetryConfig, RetryExecutor
from .stores import RecordId, RecordStore

logger = logging.getLogger(__name__)


class PersistenceSink:
    """Envuelve el insert del store.

    No hay dead-letter: si el insert falla (tras los reintentos
    configurados, por defecto ninguno) se propaga PersistError y el
    llamador descarta el registro.
    """

    def __init__(
        self,
        store: RecordStore,
        retry: Optional[RetryExecutor] = None,
    ):
        self._store = store
        self._retry = retry or RetryExecutor(
            RetryConfig(max_attempts=1, retryable_exceptions=(PersistError,))
        )
        self._persisted = 0
        self._failed = 0
        self._lock = threading.Lock()

    def persist(self, record: CanonicalSensorRecord) -> RecordId:
        try:
            record_id = self._retry.execute(self._store.insert, record)
        except PersistError:
            with self._lock:
                self._failed += 1
            raise
        except Exception as e:
            # Store que no envuelve sus errores
            with self._lock:
                self._failed += 1
            raise PersistError(f"Unexpected store error: {e!r}", e) from e

        with self._lock:
            self._persisted += 1
        logger.debug("[SINK] Persisted id=%s recorded_at=%s", record_id, record.recorded_at.isoformat())
        return record_id

    def close(self) -> None:
        try:
            self._store.close()
        except Exception as e:
            logger.warning("[SINK] Error closing store: %s", e)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "persisted": self._persisted,
                "failed": self._failed,
                "retry": self._retry.stats,
            }


def create_sink(store: RecordStore, retry_attempts: int = 1) -> PersistenceSink:
    """Factory: sink con retry opcional (1 = sin reintentos)."""
    config = RetryConfig(
        max_attempts=max(1, retry_attempts),
        retryable_exceptions=(PersistError,),
    )
    if config.max_attempts > 1:
        logger.info("[SINK] Persist retry enabled: max_attempts=%d", config.max_attempts)
    return PersistenceSink(store, RetryExecutor(config))
