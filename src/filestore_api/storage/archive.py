"""
Streaming full-backup archives.

An archive holds one ``data.json`` member with the caller's payload plus one
``uploads/<category>/<stored name>`` member per stored file. Thumbnails are
derived data and are left out. The zip is produced incrementally: bytes go to
the consumer as each member is compressed, so memory use does not grow with
the size of the upload tree.
"""

import json
import logging
import os
import time
import zipfile
from pathlib import Path
from typing import Any, Iterator, List, Tuple

from filestore_api.errors import CodecError
from filestore_api.storage.file_store import FileStore, StoredFile
from filestore_api.utils.decorators import timed_operation

logger = logging.getLogger(__name__)

DATA_MEMBER = "data.json"
UPLOADS_PREFIX = "uploads"
CHUNK_SIZE = 64 * 1024

# zip timestamps cannot predate 1980
_ZIP_EPOCH = time.mktime((1980, 1, 1, 0, 0, 0, 0, 0, -1))


class _ChunkSink:
    """Write-only, non-seekable buffer that ``ZipFile`` streams into."""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _zip_info(arcname: str, stat: os.stat_result) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(arcname, date_time=time.localtime(max(stat.st_mtime, _ZIP_EPOCH))[:6])
    info.file_size = stat.st_size
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = (stat.st_mode & 0xFFFF) << 16
    return info


class ArchiveExporter:
    def __init__(self, store: FileStore, chunk_size: int = CHUNK_SIZE):
        self.store = store
        self.chunk_size = chunk_size

    def export(self, payload: Any) -> Iterator[bytes]:
        """
        Serialize ``payload`` and snapshot the store, then return the byte stream.

        Failures that can be detected up front (payload not JSON-serializable,
        upload root unreadable) raise here, before a single byte is produced.
        Failures while streaming raise from the iterator and abort it.

        Raises:
            CodecError: ``payload`` cannot be serialized
            StorageIOError: a category directory cannot be scanned
        """
        try:
            data = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CodecError(f"Backup payload is not serializable: {e}") from e
        members = self.store.snapshot()
        logger.info(f"Exporting backup with {len(members)} stored files")
        return self._stream(data, members)

    @timed_operation(lambda path: f"{path.stat().st_size} bytes written to {path}")
    def export_to_path(self, payload: Any, destination: Path) -> Path:
        """Write a complete archive to ``destination``; nothing is left there on failure."""
        destination = Path(destination)
        tmp_path = destination.with_name(f".{destination.name}.part")
        try:
            with open(tmp_path, "wb") as f:
                for chunk in self.export(payload):
                    f.write(chunk)
            os.replace(tmp_path, destination)
        except BaseException:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        return destination

    def _stream(self, data: bytes, members: List[Tuple[StoredFile, Path]]) -> Iterator[bytes]:
        sink = _ChunkSink()
        written = 0
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            zf.writestr(DATA_MEMBER, data)
            yield sink.drain()

            for stored, path in members:
                arcname = f"{UPLOADS_PREFIX}/{stored.category}/{stored.stored_name}"
                try:
                    source = open(path, "rb")
                except FileNotFoundError:
                    logger.warning(f"{stored.category}/{stored.stored_name} was removed before it could be archived")
                    continue
                except OSError as e:
                    raise CodecError(f"Cannot read {arcname}: {e}") from e

                with source:
                    try:
                        info = _zip_info(arcname, os.fstat(source.fileno()))
                        with zf.open(info, mode="w", force_zip64=True) as member:
                            while True:
                                chunk = source.read(self.chunk_size)
                                if not chunk:
                                    break
                                member.write(chunk)
                                pending = sink.drain()
                                if pending:
                                    yield pending
                    except OSError as e:
                        raise CodecError(f"Failed to archive {arcname}: {e}") from e
                written += 1
                pending = sink.drain()
                if pending:
                    yield pending

        # central directory
        yield sink.drain()
        logger.info(f"Backup archive complete: {written} files plus {DATA_MEMBER}")
