"""Persistencia de registros canónicos."""

from .retry import RetryConfig, RetryExecutor
from .sink import PersistenceSink, create_sink
from .stores import (
    TABLE_NAME,
    RecordStore,
    RestRecordStore,
    SqlRecordStore,
    awsdata,
    create_store,
    metadata,
)

__all__ = [
    "RetryConfig",
    "RetryExecutor",
    "PersistenceSink",
    "create_sink",
    "TABLE_NAME",
    "RecordStore",
    "RestRecordStore",
    "SqlRecordStore",
    "awsdata",
    "create_store",
    "metadata",
]
