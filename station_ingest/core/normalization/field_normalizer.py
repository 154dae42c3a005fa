"""Normalizador de campos de la estación.

El firmware de cada despliegue usa convenciones distintas de mayúsculas y
separadores (p.ej. `wind.Direction` vs `wind_speed`). Se acepta cualquier
variante en la entrada y se produce siempre el esquema fijo.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from ..domain.sensor_record import CanonicalSensorRecord, RawMeasurement, utc_now

logger = logging.getLogger(__name__)


# Clave normalizada → campo canónico
FIELD_BY_KEY: Dict[str, str] = {
    "temp": "temperature",
    "rh": "relative_humidity",
    "wind_direction": "wind_direction",
    "wind_speed": "wind_speed",
    "pressure": "pressure",
    "radiation": "radiation",
    "precipitation": "precipitation",
}


def normalize_key(key: str) -> str:
    """Minúsculas y cada `.` reemplazado por `_`."""
    return key.lower().replace(".", "_")


def _to_number(key: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if not isinstance(value, (int, float, str)):
        logger.warning("[NORMALIZER] Unsupported value type for %s: %s", key, type(value).__name__)
        return None

    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except ValueError:
        logger.warning("[NORMALIZER] Non-numeric value for %s: %r", key, value)
        return None
    except OverflowError:
        logger.warning("[NORMALIZER] Value out of range for %s", key)
        return None

    if not math.isfinite(number):
        logger.warning("[NORMALIZER] Non-finite value for %s: %r", key, value)
        return None
    return number


def normalize(
    raw: RawMeasurement,
    recorded_at: Optional[datetime] = None,
) -> CanonicalSensorRecord:
    """Convierte una medición cruda en registro canónico.

    Nunca falla: claves desconocidas se descartan con warning, campos
    ausentes quedan en None.
    """
    fields: Dict[str, Optional[float]] = {}

    for key, value in raw.items():
        field_name = FIELD_BY_KEY.get(normalize_key(key))
        if field_name is None:
            logger.warning("[NORMALIZER] Unknown key: %s", key)
            continue
        fields[field_name] = _to_number(key, value)

    return CanonicalSensorRecord(
        recorded_at=recorded_at or utc_now(),
        **fields,
    )
