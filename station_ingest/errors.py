"""Excepciones del bridge de ingesta.

Errores por mensaje (decode/persist) nunca salen del handler: se loguean
y el mensaje se descarta. Solo ConfigError detiene el arranque.
"""

from __future__ import annotations

from typing import Optional

from common.config import ConfigError


class IngestError(Exception):
    """Base de errores de ingesta."""


class DecodeError(IngestError):
    """Payload que no es un objeto JSON plano."""

    def __init__(self, reason: str, payload_size: int):
        self.reason = reason
        self.payload_size = payload_size
        super().__init__(f"{reason} (payload_size={payload_size})")


class PersistError(IngestError):
    """El store no aceptó el registro (caído, rechazado o timeout)."""

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        self.reason = reason
        self.cause = cause
        super().__init__(reason)


class TransportError(IngestError):
    """Fallo de conexión o suscripción con el broker."""


__all__ = [
    "ConfigError",
    "IngestError",
    "DecodeError",
    "PersistError",
    "TransportError",
]
