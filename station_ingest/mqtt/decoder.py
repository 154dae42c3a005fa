"""Decoder de payloads MQTT.

Aísla los fallos de payload malformado del resto del pipeline: todo lo que
no sea un objeto JSON plano se convierte en DecodeError.
"""

from __future__ import annotations

import logging

import orjson
from pydantic import TypeAdapter, ValidationError

from ..core.domain.sensor_record import RawMeasurement
from ..errors import DecodeError

logger = logging.getLogger(__name__)

_FLAT_MAPPING = TypeAdapter(RawMeasurement)


def decode_payload(payload: bytes) -> RawMeasurement:
    """Parsea el payload a un mapping plano clave → número/str/None.

    Raises:
        DecodeError: si no es JSON UTF-8 válido, no es un objeto, o
            contiene objetos/arrays anidados.
    """
    size = len(payload)

    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}", size) from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected JSON object, got {type(data).__name__}", size)

    try:
        return _FLAT_MAPPING.validate_python(data)
    except ValidationError as e:
        # Solo el primer error; el payload completo puede ser grande
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"][:1])
        raise DecodeError(f"Non-flat value at {location!r}: {first['msg']}", size) from e
