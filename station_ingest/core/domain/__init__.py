"""Modelos de dominio."""

from .sensor_record import (
    CANONICAL_FIELDS,
    COLUMN_BY_FIELD,
    CanonicalSensorRecord,
    RawMeasurement,
)

__all__ = [
    "CANONICAL_FIELDS",
    "COLUMN_BY_FIELD",
    "CanonicalSensorRecord",
    "RawMeasurement",
]
