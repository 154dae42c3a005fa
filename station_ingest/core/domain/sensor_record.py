"""Modelo de dominio para lecturas de la estación meteorológica."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Mapping plano tal como llega del broker (una lectura, un mensaje).
RawValue = Optional[Union[int, float, str]]
RawMeasurement = Dict[str, RawValue]

# Columna del store → campo canónico
COLUMN_BY_FIELD = {
    "temperature": "temp",
    "relative_humidity": "rh",
    "wind_direction": "wind_direction",
    "wind_speed": "wind_speed",
    "pressure": "pressure",
    "radiation": "radiation",
    "precipitation": "precipitation",
}

CANONICAL_FIELDS = tuple(COLUMN_BY_FIELD)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CanonicalSensorRecord(BaseModel):
    """Registro canónico persistido por cada lectura.

    Los siete campos de medición siempre están presentes (posiblemente
    None). `recorded_at` lo asigna el bridge al ingerir, no el sensor.
    """

    model_config = ConfigDict(frozen=True)

    temperature: Optional[float] = None
    relative_humidity: Optional[float] = None
    wind_direction: Optional[float] = None
    wind_speed: Optional[float] = None
    pressure: Optional[float] = None
    radiation: Optional[float] = None
    precipitation: Optional[float] = None
    recorded_at: datetime = Field(default_factory=utc_now)

    def measurements(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in CANONICAL_FIELDS}

    def to_row(self) -> Dict[str, Any]:
        """Convierte a fila de la tabla awsdata."""
        row: Dict[str, Any] = {
            COLUMN_BY_FIELD[name]: value
            for name, value in self.measurements().items()
        }
        row["created_at"] = self.recorded_at
        return row

    def to_json_row(self) -> Dict[str, Any]:
        """Fila con timestamp ISO-8601, para stores HTTP."""
        row = self.to_row()
        row["created_at"] = self.recorded_at.isoformat()
        return row
