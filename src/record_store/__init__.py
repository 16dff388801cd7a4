"""Key-by-collection JSON document store and its `/api/{collection}[/{id}]` router."""

from record_store.adapter import DocumentStore
from record_store.errors import (
    DuplicateId,
    InvalidCollection,
    InvalidDocument,
    RecordNotFound,
    RecordStoreError,
)

__all__ = [
    "DocumentStore",
    "DuplicateId",
    "InvalidCollection",
    "InvalidDocument",
    "RecordNotFound",
    "RecordStoreError",
]
