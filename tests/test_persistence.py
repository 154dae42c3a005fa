"""Tests de persistencia: stores REST/SQL, sink y retry."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import create_engine, select

from common.config import ConfigError
from conftest import ListStore, make_settings
from station_ingest.core.normalization import normalize
from station_ingest.errors import PersistError
from station_ingest.persistence import (
    PersistenceSink,
    RestRecordStore,
    RetryConfig,
    RetryExecutor,
    SqlRecordStore,
    awsdata,
    create_sink,
    create_store,
    metadata,
)


RECORDED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def record():
    return normalize({"Temp": 21.5, "Rh": 40, "wind.Speed": 3.2}, recorded_at=RECORDED_AT)


@pytest.fixture
def sqlite_engine():
    engine = create_engine("sqlite://")
    metadata.create_all(engine)
    yield engine
    engine.dispose()


def rest_store(handler) -> RestRecordStore:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RestRecordStore("https://project.supabase.co/", "anon-key", client=client)


# =============================================================================
# SQL STORE
# =============================================================================

class TestSqlRecordStore:

    def test_insert_returns_primary_key(self, sqlite_engine, record):
        store = SqlRecordStore(sqlite_engine)

        assert store.insert(record) == 1
        assert store.insert(record) == 2

    def test_row_matches_record(self, sqlite_engine, record):
        SqlRecordStore(sqlite_engine).insert(record)

        with sqlite_engine.connect() as conn:
            row = conn.execute(select(awsdata)).mappings().one()

        assert row["temp"] == 21.5
        assert row["rh"] == 40
        assert row["wind_speed"] == 3.2
        assert row["wind_direction"] is None
        assert row["created_at"].replace(tzinfo=None) == RECORDED_AT.replace(tzinfo=None)

    def test_missing_table_raises_persist_error(self, record):
        store = SqlRecordStore(create_engine("sqlite://"))

        with pytest.raises(PersistError, match="Database insert failed"):
            store.insert(record)


# =============================================================================
# REST STORE
# =============================================================================

class TestRestRecordStore:

    def test_insert_posts_row_and_returns_id(self, record):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=[{"id": 7}])

        store = rest_store(handler)

        assert store.insert(record) == 7
        assert seen["url"] == "https://project.supabase.co/rest/v1/awsdata"
        assert seen["headers"]["apikey"] == "anon-key"
        assert seen["headers"]["authorization"] == "Bearer anon-key"
        assert seen["headers"]["prefer"] == "return=representation"
        assert seen["body"] == [{
            "temp": 21.5,
            "rh": 40.0,
            "wind_direction": None,
            "wind_speed": 3.2,
            "pressure": None,
            "radiation": None,
            "precipitation": None,
            "created_at": "2026-03-01T12:00:00+00:00",
        }]

    def test_rejected_insert(self, record):
        store = rest_store(lambda request: httpx.Response(409, json={"message": "duplicate key"}))

        with pytest.raises(PersistError, match="status=409"):
            store.insert(record)

    def test_unreachable_store(self, record):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PersistError, match="Store unreachable"):
            rest_store(handler).insert(record)

    def test_timeout(self, record):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(PersistError):
            rest_store(handler).insert(record)

    def test_insert_without_representation(self, record):
        store = rest_store(lambda request: httpx.Response(201, json=[]))

        assert store.insert(record) is None


# =============================================================================
# SINK
# =============================================================================

class TestPersistenceSink:

    def test_persist_returns_store_id(self, list_store, record):
        sink = PersistenceSink(list_store)

        assert sink.persist(record) == 1
        assert sink.stats["persisted"] == 1

    def test_no_retry_by_default(self, record):
        store = ListStore(fail_times=1)
        sink = create_sink(store)

        with pytest.raises(PersistError):
            sink.persist(record)

        assert store.calls == 1
        assert sink.stats["failed"] == 1

    def test_opt_in_retry(self, record):
        store = ListStore(fail_times=2)
        delays = []
        retry = RetryExecutor(
            RetryConfig(max_attempts=3, base_delay=0.1, jitter=False, retryable_exceptions=(PersistError,)),
            sleep=delays.append,
        )
        sink = PersistenceSink(store, retry)

        assert sink.persist(record) == 1
        assert store.calls == 3
        assert delays == [0.1, 0.2]
        assert sink.stats["retry"]["total_retries"] == 2

    def test_retry_exhausted(self, record):
        store = ListStore(fail_times=5)
        retry = RetryExecutor(
            RetryConfig(max_attempts=2, base_delay=0, jitter=False, retryable_exceptions=(PersistError,)),
            sleep=lambda s: None,
        )

        with pytest.raises(PersistError):
            PersistenceSink(store, retry).persist(record)

        assert store.calls == 2

    def test_unexpected_store_error_is_wrapped(self, record):
        class BrokenStore(ListStore):
            def insert(self, record):
                raise RuntimeError("driver bug")

        with pytest.raises(PersistError, match="Unexpected store error"):
            PersistenceSink(BrokenStore()).persist(record)

    def test_close_closes_store(self, list_store):
        PersistenceSink(list_store).close()

        assert list_store.closed is True


# =============================================================================
# FACTORY
# =============================================================================

class TestCreateStore:

    def test_http_endpoint_uses_rest_store(self):
        store = create_store(make_settings(endpoint="https://project.supabase.co"))
        try:
            assert isinstance(store, RestRecordStore)
            assert store.url == "https://project.supabase.co/rest/v1/awsdata"
        finally:
            store.close()

    def test_database_url_uses_sql_store(self):
        store = create_store(make_settings(endpoint="sqlite://"))
        try:
            assert isinstance(store, SqlRecordStore)
        finally:
            store.close()

    def test_unparsable_endpoint_is_config_error(self):
        with pytest.raises(ConfigError):
            create_store(make_settings(endpoint="not a url"))
