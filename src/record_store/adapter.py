"""
SQLite-backed JSON document store keyed by collection and id.

All collections share one table; a collection exists as soon as it holds a
document. Documents come back in insertion order.
"""

import json
import logging
import re
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, List

from record_store.errors import DuplicateId, InvalidCollection, InvalidDocument, RecordNotFound

logger = logging.getLogger(__name__)

COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _record_key(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidDocument(f"Record id must be a string or an integer, got {type(value).__name__}")
    key = str(value)
    if not key:
        raise InvalidDocument("Record id must not be empty")
    return key


class DocumentStore:
    """Generic document CRUD over one SQLite file"""

    def __init__(self, db_path: str = "records.db"):
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _check_collection(self, collection: str) -> str:
        if not COLLECTION_NAME_PATTERN.match(collection or ""):
            raise InvalidCollection(collection)
        return collection

    def _serialize_document(self, document: Dict[str, Any]) -> str:
        """Serialize document to JSON string"""
        def json_serializer(obj):
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        try:
            return json.dumps(document, default=json_serializer, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise InvalidDocument(f"Document is not serializable: {e}") from e

    def _deserialize_document(self, json_str: str) -> Dict[str, Any]:
        return json.loads(json_str)

    def init_collections(self) -> None:
        """Create the documents table if it does not exist yet."""
        conn = self._get_connection()
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    document TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
            ''')
            conn.commit()
            logger.info(f"Document store initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Error initializing document store: {e}")
            raise
        finally:
            conn.close()

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        self._check_collection(collection)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT document FROM documents WHERE collection = ? ORDER BY rowid",
                (collection,),
            ).fetchall()
            return [self._deserialize_document(row["document"]) for row in rows]
        finally:
            conn.close()

    def get_document(self, collection: str, record_id: str) -> Dict[str, Any]:
        self._check_collection(collection)
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT document FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise RecordNotFound(collection, record_id)
        return self._deserialize_document(row["document"])

    def create_document(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new document, assigning an ``id`` when it has none.

        Raises:
            DuplicateId: a document with the same id already exists in the collection
        """
        self._check_collection(collection)
        document = dict(document)
        if document.get("id") in (None, ""):
            document["id"] = uuid.uuid4().hex
        record_id = _record_key(document["id"])

        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO documents (collection, id, document) VALUES (?, ?, ?)",
                (collection, record_id, self._serialize_document(document)),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateId(collection, record_id) from e
        finally:
            conn.close()

        logger.info(f"Created {collection}/{record_id}")
        return document

    def replace_document(self, collection: str, record_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace an existing document wholesale; its ``id`` is forced to ``record_id``.

        Raises:
            RecordNotFound: no document with that id
        """
        self._check_collection(collection)
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT document FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
            if row is None:
                raise RecordNotFound(collection, record_id)

            # keep the id's original JSON type (an integer id stays an integer)
            existing_id = self._deserialize_document(row["document"]).get("id", record_id)
            document = {**document, "id": existing_id}
            conn.execute(
                "UPDATE documents SET document = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE collection = ? AND id = ?",
                (self._serialize_document(document), collection, record_id),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Updated {collection}/{record_id}")
        return document

    def delete_document(self, collection: str, record_id: str) -> None:
        self._check_collection(collection)
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            )
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()
        if not deleted:
            raise RecordNotFound(collection, record_id)
        logger.info(f"Deleted {collection}/{record_id}")
