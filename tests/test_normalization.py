"""Tests del normalizador de campos y del registro canónico."""

import logging
from datetime import datetime, timezone

import pytest

from station_ingest.core.domain import CANONICAL_FIELDS, CanonicalSensorRecord
from station_ingest.core.normalization import normalize, normalize_key


RECORDED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestKeyMapping:
    """Mapeo de claves del firmware al esquema fijo."""

    def test_mixed_keys_map_to_canonical_fields(self):
        record = normalize({"Temp": 21.5, "wind.Direction": 180})

        assert record.measurements() == {
            "temperature": 21.5,
            "relative_humidity": None,
            "wind_direction": 180,
            "wind_speed": None,
            "pressure": None,
            "radiation": None,
            "precipitation": None,
        }

    def test_full_firmware_payload(self):
        record = normalize({
            "Temp": 18.2,
            "Rh": 64,
            "wind.Direction": 270,
            "wind.Speed": 3.4,
            "pressure": 1013.2,
            "radiation": 512,
            "precipitation": 0.2,
        })

        assert record.temperature == 18.2
        assert record.relative_humidity == 64
        assert record.wind_direction == 270
        assert record.wind_speed == 3.4
        assert record.pressure == 1013.2
        assert record.radiation == 512
        assert record.precipitation == 0.2

    @pytest.mark.parametrize("key", ["TEMP", "temp", "Temp", "tEmP"])
    def test_case_insensitive(self, key):
        assert normalize({key: 5}).temperature == 5

    @pytest.mark.parametrize("key", ["wind.speed", "WIND.SPEED", "Wind_Speed", "wind_speed"])
    def test_dot_and_underscore_are_equivalent(self, key):
        assert normalize({key: 2.5}).wind_speed == 2.5

    def test_every_dot_is_replaced(self):
        assert normalize_key("Wind.Speed.Avg") == "wind_speed_avg"


class TestUnknownKeys:
    """Claves desconocidas: se descartan con warning, sin error."""

    def test_unknown_key_is_dropped(self):
        record = normalize({"Foo": 1, "Temp": 5})

        assert record.temperature == 5
        others = {k: v for k, v in record.measurements().items() if k != "temperature"}
        assert all(v is None for v in others.values())
        assert "Foo" not in record.model_dump()

    def test_unknown_key_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            normalize({"Foo": 1})

        assert "Unknown key: Foo" in caplog.text

    def test_payload_timestamp_is_not_used(self):
        record = normalize({"timestamp": "2020-01-01T00:00:00Z", "Temp": 1}, recorded_at=RECORDED_AT)

        assert record.recorded_at == RECORDED_AT


class TestTotality:
    """normalize nunca falla y siempre retorna los siete campos."""

    @pytest.mark.parametrize("raw", [
        {},
        {"Temp": None},
        {"Temp": "not-a-number"},
        {"Temp": float("nan")},
        {"Rh": float("inf")},
        {"": 1, ".": 2, "...": 3},
        {"pressure": True},
        {"Temp": 10**400},
        {"Temp": "1" + "0" * 400},
    ])
    def test_always_returns_complete_record(self, raw):
        record = normalize(raw)

        assert isinstance(record, CanonicalSensorRecord)
        assert set(record.measurements()) == set(CANONICAL_FIELDS)
        for value in record.measurements().values():
            assert value is None or isinstance(value, float)

    def test_empty_mapping_gives_all_nulls(self):
        record = normalize({})

        assert all(v is None for v in record.measurements().values())

    def test_numeric_string_is_read_as_number(self):
        assert normalize({"Temp": " 21.5 "}).temperature == 21.5

    def test_non_numeric_value_becomes_null_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            record = normalize({"Temp": "n/a"})

        assert record.temperature is None
        assert "Non-numeric value for Temp" in caplog.text

    def test_int_too_large_for_float_becomes_null(self, caplog):
        with caplog.at_level(logging.WARNING):
            record = normalize({"Temp": 10**400, "rh": 40})

        assert record.temperature is None
        assert record.relative_humidity == 40.0
        assert "Value out of range for Temp" in caplog.text


class TestCanonicalRecord:
    """Conversión del registro a fila de la tabla awsdata."""

    def test_recorded_at_defaults_to_now_utc(self):
        before = datetime.now(timezone.utc)
        record = normalize({"Temp": 1})

        assert record.recorded_at >= before
        assert record.recorded_at.tzinfo is not None

    def test_to_row_uses_store_columns(self):
        record = normalize({"Temp": 21.5, "Rh": 40}, recorded_at=RECORDED_AT)

        assert record.to_row() == {
            "temp": 21.5,
            "rh": 40.0,
            "wind_direction": None,
            "wind_speed": None,
            "pressure": None,
            "radiation": None,
            "precipitation": None,
            "created_at": RECORDED_AT,
        }

    def test_to_json_row_serializes_timestamp(self):
        record = normalize({"Temp": 21.5}, recorded_at=RECORDED_AT)

        assert record.to_json_row()["created_at"] == "2026-03-01T12:00:00+00:00"
