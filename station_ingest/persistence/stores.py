"""Stores de persistencia para registros canónicos.

Dos backends, mismo contrato `insert(record) -> id`:
- RestRecordStore: API REST de Supabase (PostgREST) vía httpx
- SqlRecordStore: inserción directa con SQLAlchemy Core
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx
from sqlalchemy import Column, DateTime, Float, Integer, MetaData, Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from common.config import ConfigError, Settings
from common.db import get_engine

from ..core.domain.sensor_record import CanonicalSensorRecord
from ..errors import PersistError

logger = logging.getLogger(__name__)

TABLE_NAME = "awsdata"

RecordId = Any

metadata = MetaData()

awsdata = Table(
    TABLE_NAME,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("temp", Float, nullable=True),
    Column("rh", Float, nullable=True),
    Column("wind_direction", Float, nullable=True),
    Column("wind_speed", Float, nullable=True),
    Column("pressure", Float, nullable=True),
    Column("radiation", Float, nullable=True),
    Column("precipitation", Float, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class RecordStore(Protocol):
    def insert(self, record: CanonicalSensorRecord) -> RecordId: ...

    def close(self) -> None: ...


class RestRecordStore:
    """Inserta filas vía REST (Supabase / PostgREST).

    POST {endpoint}/rest/v1/awsdata con `Prefer: return=representation`
    para recuperar el id asignado.
    """

    def __init__(
        self,
        endpoint: str,
        key: str,
        table: str = TABLE_NAME,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        self._url = f"{endpoint.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Prefer": "return=representation",
        }
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    def insert(self, record: CanonicalSensorRecord) -> RecordId:
        try:
            resp = self._client.post(
                self._url,
                json=[record.to_json_row()],
                headers=self._headers,
            )
            resp.raise_for_status()
            rows = resp.json()
        except httpx.HTTPStatusError as e:
            raise PersistError(
                f"Store rejected insert: status={e.response.status_code} body={e.response.text[:200]}",
                e,
            ) from e
        except httpx.HTTPError as e:
            raise PersistError(f"Store unreachable: {e!r}", e) from e
        except ValueError as e:
            raise PersistError(f"Invalid store response: {e}", e) from e

        if not rows:
            # RLS puede ocultar la fila insertada; la inserción igual ocurrió
            logger.warning("[STORE] Insert accepted without representation (url=%s)", self._url)
            return None
        return rows[0].get("id")

    def close(self) -> None:
        self._client.close()


class SqlRecordStore:
    """Inserta filas directamente en la tabla awsdata."""

    def __init__(self, engine: Engine, table: Table = awsdata):
        self._engine = engine
        self._table = table

    def insert(self, record: CanonicalSensorRecord) -> RecordId:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(self._table.insert().values(**record.to_row()))
                return result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            raise PersistError(f"Database insert failed: {e.__class__.__name__}: {e}", e) from e

    def close(self) -> None:
        self._engine.dispose()


def create_store(settings: Settings) -> RecordStore:
    """Elige backend según el esquema del endpoint."""
    if settings.endpoint.startswith(("http://", "https://")):
        store = RestRecordStore(
            endpoint=settings.endpoint,
            key=settings.key,
            timeout=settings.store_timeout,
        )
        logger.info("[STORE] Using REST store: %s", store.url)
        return store

    try:
        engine = get_engine(settings)
    except ArgumentError as e:
        raise ConfigError(f"SUPABASE_URL is neither http(s) nor a database URL: {e}") from e

    logger.info("[STORE] Using SQL store")
    return SqlRecordStore(engine)
