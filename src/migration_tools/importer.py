"""
One-shot import of an exported data file into the record store over HTTP.

Each item is created with POST. Only when the server answers 409 (the id is
taken) and the item carries an id is the item re-sent as a PUT replacement.
Every other failure is final for that item.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

logger = logging.getLogger(__name__)

COLLECTIONS = (
    "tqm_users",
    "tqm_records",
    "rd_machines",
    "rd_projects",
    "rd_tasks",
    "rd_changes",
    "rd_history",
    "rd_messages",
)

# older exports used these keys
LEGACY_COLLECTIONS = {
    "users": "tqm_users",
    "records": "tqm_records",
}

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


class OutcomeKind(str, Enum):
    """Enumeration of what happened to one imported item"""
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportOutcome:
    kind: OutcomeKind
    record_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def created(cls, record_id: Optional[str]) -> "ImportOutcome":
        return cls(OutcomeKind.CREATED, record_id)

    @classmethod
    def updated(cls, record_id: str) -> "ImportOutcome":
        return cls(OutcomeKind.UPDATED, record_id)

    @classmethod
    def failed(cls, record_id: Optional[str], reason: str) -> "ImportOutcome":
        return cls(OutcomeKind.FAILED, record_id, reason)


@dataclass
class ImportSummary:
    created: int = 0
    updated: int = 0
    failed: int = 0
    failures: List[Tuple[str, Optional[str], str]] = field(default_factory=list)

    def record(self, collection: str, outcome: ImportOutcome) -> None:
        if outcome.kind is OutcomeKind.CREATED:
            self.created += 1
        elif outcome.kind is OutcomeKind.UPDATED:
            self.updated += 1
        else:
            self.failed += 1
            self.failures.append((collection, outcome.record_id, outcome.reason or "unknown error"))


def merge_legacy_collections(data: Dict[str, Any]) -> Dict[str, List[Any]]:
    """
    Collections to import, in import order, with legacy keys folded in.

    Items under a legacy key are appended after the items already present
    under its replacement key. Keys that are not lists are ignored.
    """
    merged: Dict[str, List[Any]] = {}
    for collection in COLLECTIONS:
        items = data.get(collection)
        merged[collection] = list(items) if isinstance(items, list) else []
    for legacy_key, collection in LEGACY_COLLECTIONS.items():
        items = data.get(legacy_key)
        if isinstance(items, list):
            merged[collection].extend(items)
            logger.info(f"Merged {len(items)} legacy '{legacy_key}' items into '{collection}'")
    return merged


def load_export(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    logger.info(f"Loaded {path} with keys: {', '.join(data.keys())}")
    return data


def _describe_failure(response: requests.Response) -> str:
    return f"HTTP {response.status_code} - {response.text[:200]}"


class RecordImporter:
    """Pushes exported collections into a running record store."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def import_item(self, collection: str, item: Any) -> ImportOutcome:
        record_id = str(item["id"]) if isinstance(item, dict) and item.get("id") not in (None, "") else None

        try:
            response = self.session.post(
                f"{self.base_url}/api/{collection}",
                json=item,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return ImportOutcome.failed(record_id, f"create failed: {e}")

        if response.ok:
            return ImportOutcome.created(record_id)
        if response.status_code != requests.codes.conflict or record_id is None:
            return ImportOutcome.failed(record_id, f"create failed: {_describe_failure(response)}")

        try:
            response = self.session.put(
                f"{self.base_url}/api/{collection}/{record_id}",
                json=item,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return ImportOutcome.failed(record_id, f"update failed: {e}")

        if response.ok:
            return ImportOutcome.updated(record_id)
        return ImportOutcome.failed(record_id, f"update failed: {_describe_failure(response)}")

    def import_all(self, data: Dict[str, Any]) -> ImportSummary:
        """Import every known collection in order, one item at a time."""
        summary = ImportSummary()
        for collection, items in merge_legacy_collections(data).items():
            if not items:
                continue
            logger.info(f"Importing {collection} ({len(items)} items)")
            for item in items:
                outcome = self.import_item(collection, item)
                if outcome.kind is OutcomeKind.FAILED:
                    logger.error(f"Import failed for {collection} id={outcome.record_id}: {outcome.reason}")
                summary.record(collection, outcome)

        logger.info(
            f"Import finished: {summary.created} created, {summary.updated} updated, {summary.failed} failed"
        )
        return summary
