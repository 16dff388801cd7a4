####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from typing import Any, List, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from filestore_api.storage.file_store import BatchDeleteResult, StorageStats, StoredFile

UPLOADS_URL_PREFIX = "/uploads"


def file_url(category: str, stored_name: str) -> str:
    return f"{UPLOADS_URL_PREFIX}/{quote(category)}/{quote(stored_name)}"


def thumbnail_url(category: str, stored_name: str, thumbnail_dir_name: str) -> str:
    return f"{UPLOADS_URL_PREFIX}/{quote(category)}/{quote(thumbnail_dir_name)}/{quote(stored_name)}"


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either spelling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadResponse(CamelModel):
    """Response model for `POST /upload`."""
    success: bool = True
    system: str = Field(description="Category the file was stored under.")
    folder: str = Field(description="Same as `system`; the category directory the file landed in.")
    file_name: str = Field(
        description="Name the client uploaded the file with.",
        json_schema_extra={"example": "inspection report.jpg"},
    )
    safe_name: str = Field(
        description="Derived on-disk name, unique within the category. Use it to list, delete or download.",
        json_schema_extra={"example": "1718000000000-3fa1_inspection_report.jpg"},
    )
    file_size: int = Field(description="The size of the file in bytes.")
    file_type: str = Field(description="Media type of the stored file.")
    upload_time: datetime
    url: str = Field(json_schema_extra={"example": "/uploads/TQM/1718000000000-3fa1_inspection_report.jpg"})
    path: str = Field(description="Same as `url`.")
    thumbnail_url: Optional[str] = Field(
        None,
        description="Preview URL; null when the upload is not an image or no preview could be made.",
    )

    @classmethod
    def from_stored(cls, stored: StoredFile, thumbnail_dir_name: str) -> "UploadResponse":
        url = file_url(stored.category, stored.stored_name)
        return cls(
            system=stored.category,
            folder=stored.category,
            file_name=stored.original_name,
            safe_name=stored.stored_name,
            file_size=stored.size_bytes,
            file_type=stored.media_type,
            upload_time=stored.created_at,
            url=url,
            path=url,
            thumbnail_url=(
                thumbnail_url(stored.category, stored.stored_name, thumbnail_dir_name)
                if stored.has_thumbnail
                else None
            ),
        )


class FileListItem(CamelModel):
    file_name: str
    original_name: str
    file_size: int
    file_type: str
    upload_time: datetime
    url: str
    thumbnail_url: Optional[str] = None
    is_image: bool

    @classmethod
    def from_stored(cls, stored: StoredFile, thumbnail_dir_name: str) -> "FileListItem":
        return cls(
            file_name=stored.stored_name,
            original_name=stored.original_name,
            file_size=stored.size_bytes,
            file_type=stored.media_type,
            upload_time=stored.modified_at,
            url=file_url(stored.category, stored.stored_name),
            thumbnail_url=(
                thumbnail_url(stored.category, stored.stored_name, thumbnail_dir_name)
                if stored.has_thumbnail
                else None
            ),
            is_image=stored.is_image,
        )


class FileListResponse(CamelModel):
    """Response model for `GET /files/{category}`, newest first."""
    success: bool = True
    files: List[FileListItem]


class DeleteFileResponse(CamelModel):
    """Response model for `DELETE /files/{category}/{fileName}`."""
    success: bool = True
    message: str
    thumbnail_error: Optional[str] = Field(
        None,
        description="Set when the file was deleted but its thumbnail could not be.",
    )


class BatchDeleteItem(BaseModel):
    system: str = Field(description="Category of the file.", json_schema_extra={"example": "TQM"})
    filename: str = Field(description="Stored name of the file.")


class BatchDeleteRequest(BaseModel):
    """Request body for `POST /files/batch-delete`."""
    files: List[BatchDeleteItem] = Field(min_length=1)


class BatchDeleteErrorItem(BaseModel):
    system: str
    filename: str
    error: str


class BatchDeleteResponse(CamelModel):
    success: bool = True
    deleted_count: int
    errors: Optional[List[BatchDeleteErrorItem]] = Field(
        None,
        description="Per-item failures; omitted when every item was deleted.",
    )

    @classmethod
    def from_result(cls, result: BatchDeleteResult) -> "BatchDeleteResponse":
        return cls(
            deleted_count=result.deleted_count,
            errors=[
                BatchDeleteErrorItem(system=e.category, filename=e.stored_name, error=e.message)
                for e in result.errors
            ]
            or None,
        )


class CategoryStatsItem(CamelModel):
    system: str
    file_count: int
    total_size: int


class StorageStatsResponse(CamelModel):
    """Response model for `GET /storage/stats`."""
    success: bool = True
    systems: List[CategoryStatsItem]
    total_size: int
    total_files: int

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "systems": [{"system": "TQM", "fileCount": 2, "totalSize": 2048}],
                "totalSize": 2048,
                "totalFiles": 2,
            }
        },
    )

    @classmethod
    def from_stats(cls, stats: StorageStats) -> "StorageStatsResponse":
        return cls(
            systems=[
                CategoryStatsItem(system=s.category, file_count=s.file_count, total_size=s.total_size_bytes)
                for s in stats.categories
            ],
            total_size=stats.total_size_bytes,
            total_files=stats.total_files,
        )


class BackupRequest(BaseModel):
    """Request body for `POST /backup/create`."""
    data: Any = Field(description="Application data written to data.json inside the archive.")


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    categories: List[str]
    upload_root: str
