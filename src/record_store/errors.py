"""Errors raised by the document store, each carrying the HTTP status it maps to."""

from fastapi import status


class RecordStoreError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCollection(RecordStoreError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, collection: str):
        super().__init__(f"Invalid collection name: {collection!r}")
        self.collection = collection


class InvalidDocument(RecordStoreError):
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateId(RecordStoreError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"Record with id {record_id} already exists in {collection}")
        self.collection = collection
        self.record_id = record_id


class RecordNotFound(RecordStoreError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"Record {record_id} not found in {collection}")
        self.collection = collection
        self.record_id = record_id
