from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from filestore_api.dependencies import get_file_store
from filestore_api.schemas import HealthResponse
from filestore_api.storage import FileStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(store: FileStore = Depends(get_file_store)) -> HealthResponse:
    """Liveness probe; reports the configured categories and upload root."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        categories=list(store.registry.list_categories()),
        upload_root=str(store.root),
    )
