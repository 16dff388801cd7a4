"""Request-scoped access to the services ``create_app`` attaches to ``app.state``."""

from fastapi import Request

from filestore_api.settings import Settings
from filestore_api.storage import ArchiveExporter, FileStore, UploadGate


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store


def get_upload_gate(request: Request) -> UploadGate:
    return request.app.state.upload_gate


def get_archive_exporter(request: Request) -> ArchiveExporter:
    return request.app.state.archive_exporter
