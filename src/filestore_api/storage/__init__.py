from filestore_api.storage.archive import ArchiveExporter
from filestore_api.storage.categories import CategoryRegistry
from filestore_api.storage.file_store import (
    BatchDeleteError,
    BatchDeleteResult,
    CategoryStats,
    DeleteResult,
    FileStore,
    StorageStats,
    StoreConfig,
    StoredFile,
)
from filestore_api.storage.sanitizer import derive_stored_name, is_safe_segment, original_name_from_stored
from filestore_api.storage.thumbnails import ThumbnailGenerator
from filestore_api.storage.upload_gate import GateDecision, RejectionReason, UploadGate

__all__ = [
    "ArchiveExporter",
    "BatchDeleteError",
    "BatchDeleteResult",
    "CategoryRegistry",
    "CategoryStats",
    "DeleteResult",
    "FileStore",
    "GateDecision",
    "RejectionReason",
    "StorageStats",
    "StoreConfig",
    "StoredFile",
    "ThumbnailGenerator",
    "UploadGate",
    "derive_stored_name",
    "is_safe_segment",
    "original_name_from_stored",
]
