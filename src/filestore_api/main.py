from textwrap import dedent
import logging
from pathlib import Path, PurePath
from typing import Optional, Union

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from starlette.types import Scope

from filestore_api.errors import (
    FileStoreError,
    handle_broad_exceptions,
    handle_domain_error,
    handle_pydantic_validation_errors,
    handle_request_validation_errors,
)
from filestore_api.routers.backup import router as backup_router
from filestore_api.routers.files import router as files_router
from filestore_api.routers.health import router as health_router
from filestore_api.schemas import UPLOADS_URL_PREFIX
from filestore_api.settings import Settings
from filestore_api.storage import ArchiveExporter, FileStore, StoreConfig, UploadGate
from record_store import DocumentStore, RecordStoreError
from record_store.router import router as records_router

# Set up logging
logger = logging.getLogger(__name__)


class UploadFiles(StaticFiles):
    """
    Serves the upload tree read-only.

    Hidden entries are never served: a name starting with ``.`` is either an
    in-progress ``.<name>.part`` write or a directory. The one hidden
    directory reachable from outside is the thumbnail directory.
    """

    def __init__(self, *, thumbnail_dir_name: str, **kwargs):
        super().__init__(**kwargs)
        self.thumbnail_dir_name = thumbnail_dir_name

    async def get_response(self, path: str, scope: Scope):
        parts = PurePath(path).parts
        if parts:
            *directories, name = parts
            hidden_directory = any(
                d.startswith(".") and d != self.thumbnail_dir_name for d in directories
            )
            if name.startswith(".") or hidden_directory:
                raise HTTPException(status_code=404)
        return await super().get_response(path, scope)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="Files API",
        summary="Categorized file uploads, thumbnails and backups",
        version="v1",
        description=dedent(
            """\
        Stores uploaded files under a fixed set of categories ("systems"),
        renders thumbnails for images, and exports everything as one zip.

        | Area | Routes |
        | --- | --- |
        | Files | `/upload`, `/files/{category}`, `/files/batch-delete`, `/download/...` |
        | Admin | `/storage/stats`, `/backup/create`, `/health` |
        | Records | `/api/{collection}[/{id}]` |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    file_store = FileStore(StoreConfig.from_settings(settings))
    file_store.ensure_layout()
    document_store = DocumentStore(settings.records_db_path)
    document_store.init_collections()

    app.state.settings = settings
    app.state.file_store = file_store
    app.state.upload_gate = UploadGate(settings.allowed_media_types, settings.max_upload_size_bytes)
    app.state.archive_exporter = ArchiveExporter(file_store)
    app.state.document_store = document_store

    app.include_router(files_router, tags=["files"])
    app.include_router(backup_router, tags=["backup"])
    app.include_router(health_router, tags=["health"])
    app.include_router(records_router)

    app.add_exception_handler(FileStoreError, handle_domain_error)
    app.add_exception_handler(RecordStoreError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_errors)
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    # mounts come after the routes so they never shadow an API path
    app.mount(
        UPLOADS_URL_PREFIX,
        UploadFiles(directory=settings.upload_dir, thumbnail_dir_name=settings.thumbnail_dir_name),
        name="uploads",
    )
    if settings.static_dir is not None:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="frontend")

    logger.info(
        f"{settings.app_name} ready: uploads at {settings.upload_dir}, "
        f"{len(settings.categories)} categories, records in {settings.records_db_path}"
    )
    return app


def create_static_app(directory: Union[str, Path]) -> FastAPI:
    """A bare static file server for a built front-end; no API routes."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.mount("/", StaticFiles(directory=directory, html=True), name="static")
    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
