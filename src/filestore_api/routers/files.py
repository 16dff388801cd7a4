from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Path,
    UploadFile,
    status,
)
from fastapi.responses import FileResponse

from filestore_api.dependencies import get_file_store, get_settings, get_upload_gate
from filestore_api.schemas import (
    BatchDeleteRequest,
    BatchDeleteResponse,
    DeleteFileResponse,
    FileListItem,
    FileListResponse,
    StorageStatsResponse,
    UploadResponse,
)
from filestore_api.settings import Settings
from filestore_api.storage import FileStore, UploadGate, original_name_from_stored

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None, description="The file to store"),
    system: Optional[str] = Form(None, description="Category to store the file under"),
    settings: Settings = Depends(get_settings),
    store: FileStore = Depends(get_file_store),
    gate: UploadGate = Depends(get_upload_gate),
) -> UploadResponse:
    """
    Store one uploaded file under a category.

    The category, media type and size are all checked before anything is
    written. Images additionally get a thumbnail; a thumbnail that cannot be
    produced leaves `thumbnailUrl` null without failing the upload.
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    category = store.registry.require(system or settings.default_category)

    # the multipart parser already knows the size; refuse before reading it back
    gate.check(file.content_type, file.size or 0)
    content = await file.read()
    media_type = gate.check(file.content_type, len(content))

    stored = await store.put(
        category,
        original_name=file.filename or "",
        media_type=media_type,
        content=content,
        size_bytes=len(content),
    )
    return UploadResponse.from_stored(stored, settings.thumbnail_dir_name)


@router.get("/files/{category}", response_model=FileListResponse)
async def list_files(
    category: str = Path(..., description="Category to list"),
    settings: Settings = Depends(get_settings),
    store: FileStore = Depends(get_file_store),
) -> FileListResponse:
    """List the stored files of a category, most recently modified first."""
    files = await store.list_files(category)
    return FileListResponse(
        files=[FileListItem.from_stored(f, settings.thumbnail_dir_name) for f in files]
    )


@router.delete("/files/{category}/{file_name}", response_model=DeleteFileResponse)
async def delete_file(
    category: str = Path(..., description="Category of the file"),
    file_name: str = Path(..., description="Stored name of the file"),
    store: FileStore = Depends(get_file_store),
) -> DeleteFileResponse:
    """Delete a stored file and its thumbnail."""
    result = await store.delete(category, file_name)
    return DeleteFileResponse(
        message=f"Deleted {category}/{file_name}",
        thumbnail_error=result.thumbnail_error,
    )


@router.post(
    "/files/batch-delete",
    response_model=BatchDeleteResponse,
    response_model_exclude_none=True,
)
async def batch_delete_files(
    body: BatchDeleteRequest,
    store: FileStore = Depends(get_file_store),
) -> BatchDeleteResponse:
    """
    Delete many files, each independently.

    Items that fail are listed in `errors` with their reason; the rest are
    deleted regardless. The response is 200 even when some items failed.
    """
    result = await store.batch_delete((item.system, item.filename) for item in body.files)
    return BatchDeleteResponse.from_result(result)


@router.get("/storage/stats", response_model=StorageStatsResponse)
async def storage_stats(store: FileStore = Depends(get_file_store)) -> StorageStatsResponse:
    """File counts and sizes per category, from a fresh directory scan."""
    stats = await store.stats()
    return StorageStatsResponse.from_stats(stats)


@router.get("/download/{category}/{file_name}", response_class=FileResponse)
async def download_file(
    category: str = Path(..., description="Category of the file"),
    file_name: str = Path(..., description="Stored name of the file"),
    store: FileStore = Depends(get_file_store),
) -> FileResponse:
    """Stream a stored file back as an attachment named after its original upload name."""
    path = await store.locate(category, file_name)
    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=original_name_from_stored(file_name),
    )
