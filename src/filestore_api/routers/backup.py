import logging
from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from filestore_api.dependencies import get_archive_exporter, get_settings
from filestore_api.schemas import BackupRequest
from filestore_api.settings import Settings
from filestore_api.storage import ArchiveExporter

logger = logging.getLogger(__name__)

router = APIRouter()


def attachment_header(filename: str) -> str:
    """``Content-Disposition`` value, RFC 5987 encoded when the name is not plain ASCII."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def backup_filename(prefix: str, now: datetime) -> str:
    return f"{prefix}_{now.strftime('%Y-%m-%d')}.zip"


@router.post(
    "/backup/create",
    response_class=StreamingResponse,
    responses={200: {"content": {"application/zip": {}}}},
)
def create_backup(
    body: BackupRequest,
    settings: Settings = Depends(get_settings),
    exporter: ArchiveExporter = Depends(get_archive_exporter),
) -> StreamingResponse:
    """
    Stream a zip holding `data.json` (the request's `data`) and every stored file.

    The archive is compressed as it is sent. If reading a stored file fails
    partway through, the stream is aborted instead of being finished, so the
    client never receives a truncated archive that looks complete.
    """
    stream = exporter.export(body.data)
    filename = backup_filename(settings.backup_name_prefix, datetime.now())
    logger.info(f"Streaming backup {filename}")
    return StreamingResponse(
        stream,
        media_type="application/zip",
        headers={"Content-Disposition": attachment_header(filename)},
    )
