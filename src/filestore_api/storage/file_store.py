"""
Categorized local file store.

Layout on disk::

    <root>/
    ├── TQM/
    │   ├── 1718000000000-3fa1_report.pdf     # primary files
    │   └── .thumbnails/
    │       └── 1718000000000-3fa1_photo.jpg  # preview, same name as its source
    ├── RD_Nexus/
    └── ...

A thumbnail is associated with its source purely by position: same stored
name, the category's hidden thumbnail directory. Every path that removes a
primary file also removes that sibling.

Operations touching the same ``(category, stored name)`` are serialized with a
per-key ``asyncio.Lock``; unrelated names proceed concurrently.
"""

import asyncio
import logging
import mimetypes
import os
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import aiofiles
import aiofiles.os

from filestore_api.errors import FileStoreError, NotFound, StorageIOError
from filestore_api.storage.categories import CategoryRegistry
from filestore_api.storage.sanitizer import derive_stored_name, is_safe_segment, original_name_from_stored
from filestore_api.storage.thumbnails import ThumbnailGenerator
from filestore_api.storage.upload_gate import normalize_media_type
from filestore_api.utils.concurrency import run_bounded
from filestore_api.utils.decorators import timed_operation

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoreConfig:
    """Everything a :class:`FileStore` needs, fixed at construction."""
    root: Path
    categories: Tuple[str, ...]
    allowed_media_types: Mapping[str, str] = field(default_factory=dict)
    image_media_types: FrozenSet[str] = frozenset()
    max_upload_size_bytes: int = 50 * 1024 * 1024
    thumbnail_dir_name: str = ".thumbnails"
    thumbnail_size: int = 200
    thumbnail_quality: int = 80
    batch_concurrency: int = 3

    @classmethod
    def from_settings(cls, settings) -> "StoreConfig":
        return cls(
            root=Path(settings.upload_dir),
            categories=tuple(settings.categories),
            allowed_media_types=dict(settings.allowed_media_types),
            image_media_types=frozenset(settings.image_media_types),
            max_upload_size_bytes=settings.max_upload_size_bytes,
            thumbnail_dir_name=settings.thumbnail_dir_name,
            thumbnail_size=settings.thumbnail_size,
            thumbnail_quality=settings.thumbnail_quality,
            batch_concurrency=settings.batch_concurrency,
        )


@dataclass(frozen=True)
class StoredFile:
    category: str
    stored_name: str
    original_name: str
    size_bytes: int
    media_type: str
    created_at: datetime
    modified_at: datetime
    has_thumbnail: bool
    is_image: bool


@dataclass(frozen=True)
class DeleteResult:
    category: str
    stored_name: str
    # Set when the primary file went away but its thumbnail could not be removed.
    thumbnail_error: Optional[str] = None


@dataclass(frozen=True)
class BatchDeleteError:
    category: str
    stored_name: str
    message: str


@dataclass
class BatchDeleteResult:
    deleted_count: int = 0
    errors: List[BatchDeleteError] = field(default_factory=list)


@dataclass(frozen=True)
class CategoryStats:
    category: str
    file_count: int
    total_size_bytes: int


@dataclass(frozen=True)
class StorageStats:
    categories: Tuple[CategoryStats, ...]
    total_files: int
    total_size_bytes: int


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class FileStore:
    """
    Owns one upload root with a directory per category.

    Features:
    - put: atomic write-then-rename, thumbnail for images
    - list: newest first, tolerant of files vanishing mid-scan
    - delete / batch delete: thumbnail removed alongside, per-item isolation
    - stats: full scan, no cached counters
    """

    def __init__(self, config: StoreConfig, thumbnails: Optional[ThumbnailGenerator] = None):
        self.config = config
        self.root = Path(config.root)
        self.registry = CategoryRegistry(config.categories)
        self.thumbnails = thumbnails or ThumbnailGenerator(
            config.image_media_types,
            size=config.thumbnail_size,
            quality=config.thumbnail_quality,
        )
        self._image_media_types = frozenset(normalize_media_type(t) for t in config.image_media_types)
        self._media_types_by_extension: Dict[str, str] = {}
        for media_type, extension in config.allowed_media_types.items():
            self._media_types_by_extension.setdefault(extension.lower(), normalize_media_type(media_type))
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()

    # =========================================================================
    # LAYOUT
    # =========================================================================

    def category_dir(self, category: str) -> Path:
        return self.root / self.registry.require(category)

    def thumbnail_dir(self, category: str) -> Path:
        return self.category_dir(category) / self.config.thumbnail_dir_name

    def file_path(self, category: str, stored_name: str) -> Path:
        """
        Resolve a primary file path.

        Raises:
            InvalidCategory: unknown category
            NotFound: ``stored_name`` cannot name a stored file (traversal, hidden entry)
        """
        directory = self.category_dir(category)
        if not is_safe_segment(stored_name) or stored_name.startswith("."):
            raise NotFound(category, stored_name)
        return directory / stored_name

    def thumbnail_path(self, category: str, stored_name: str) -> Path:
        return self.thumbnail_dir(category) / stored_name

    def ensure_layout(self) -> None:
        """Create the root, every category directory and its thumbnail directory."""
        for category in self.registry.list_categories():
            self.thumbnail_dir(category).mkdir(parents=True, exist_ok=True)
        logger.info(f"Upload directories ensured at {self.root} for {len(self.registry)} categories")

    def _lock_for(self, category: str, stored_name: str) -> asyncio.Lock:
        key = (category, stored_name)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_image(self, media_type: Optional[str]) -> bool:
        return normalize_media_type(media_type) in self._image_media_types

    def media_type_for(self, stored_name: str) -> str:
        extension = os.path.splitext(stored_name)[1].lower()
        if extension in self._media_types_by_extension:
            return self._media_types_by_extension[extension]
        guessed, _ = mimetypes.guess_type(stored_name)
        return guessed or DEFAULT_MEDIA_TYPE

    def _stored_name_for(self, original_name: str, media_type: str) -> str:
        stored_name = derive_stored_name(original_name)
        if not os.path.splitext(stored_name)[1]:
            stored_name += self.config.allowed_media_types.get(media_type, "")
        return stored_name

    # =========================================================================
    # FILE OPERATIONS
    # =========================================================================

    async def put(
        self,
        category: str,
        original_name: str,
        media_type: str,
        content: bytes,
        size_bytes: Optional[int] = None,
    ) -> StoredFile:
        """
        Store ``content`` under a freshly derived name in ``category``.

        Media type and size policy belong to the upload gate and must already
        have been checked; only the category is re-validated here.

        Raises:
            InvalidCategory: unknown category
            StorageIOError: the write or rename failed; no partial file is left behind
        """
        self.registry.require(category)
        if size_bytes is not None and size_bytes != len(content):
            raise ValueError(f"Declared size {size_bytes} does not match content length {len(content)}")

        media_type = normalize_media_type(media_type) or DEFAULT_MEDIA_TYPE
        stored_name = self._stored_name_for(original_name, media_type)
        final_path = self.category_dir(category) / stored_name
        tmp_path = final_path.with_name(f".{stored_name}.part")

        try:
            await aiofiles.os.makedirs(self.thumbnail_dir(category), exist_ok=True)
            async with self._lock_for(category, stored_name):
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(content)
                await aiofiles.os.replace(tmp_path, final_path)
                stat = await aiofiles.os.stat(final_path)
        except OSError as e:
            await self._discard(tmp_path)
            raise StorageIOError(f"Failed to store {original_name!r} in {category}: {e}") from e

        logger.info(f"Stored {category}/{stored_name} ({len(content) / 1024:.2f} KB, {media_type})")

        thumbnail = None
        if self.thumbnails.applies_to(media_type):
            thumbnail = await asyncio.to_thread(
                self.thumbnails.generate,
                final_path,
                self.thumbnail_path(category, stored_name),
                media_type,
            )

        return StoredFile(
            category=category,
            stored_name=stored_name,
            original_name=original_name,
            size_bytes=stat.st_size,
            media_type=media_type,
            created_at=_timestamp(getattr(stat, "st_birthtime", stat.st_ctime)),
            modified_at=_timestamp(stat.st_mtime),
            has_thumbnail=thumbnail is not None,
            is_image=self.is_image(media_type),
        )

    async def list_files(self, category: str) -> List[StoredFile]:
        """Stored files of ``category``, most recently modified first."""
        self.registry.require(category)
        return await asyncio.to_thread(self._scan, category)

    async def locate(self, category: str, stored_name: str) -> Path:
        """Path of an existing primary file, for streaming it back out."""
        path = self.file_path(category, stored_name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFound(category, stored_name)
        return path

    async def delete(self, category: str, stored_name: str) -> DeleteResult:
        """
        Remove a stored file and, best effort, its thumbnail.

        Raises:
            InvalidCategory: unknown category
            NotFound: no such file; nothing on disk is touched
            StorageIOError: the primary file exists but could not be removed
        """
        path = self.file_path(category, stored_name)
        async with self._lock_for(category, stored_name):
            if not await aiofiles.os.path.isfile(path):
                raise NotFound(category, stored_name)
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError as e:
                raise NotFound(category, stored_name) from e
            except OSError as e:
                raise StorageIOError(f"Failed to delete {category}/{stored_name}: {e}") from e
            thumbnail_error = await self._remove_thumbnail(category, stored_name)

        logger.info(f"Deleted {category}/{stored_name}")
        return DeleteResult(category=category, stored_name=stored_name, thumbnail_error=thumbnail_error)

    @timed_operation(lambda result: f"{result.deleted_count} deleted, {len(result.errors)} failed")
    async def batch_delete(self, items: Iterable[Tuple[str, str]]) -> BatchDeleteResult:
        """
        Delete every ``(category, stored name)`` pair independently.

        Not transactional: each item succeeds or fails on its own and failures
        are reported per item, never raised.
        """
        items = list(items)

        async def _delete(item: Tuple[str, str]) -> DeleteResult:
            return await self.delete(*item)

        outcomes = await run_bounded(_delete, items, self.config.batch_concurrency)

        result = BatchDeleteResult()
        for (category, stored_name), outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, FileStoreError):
                    logger.error(f"Unexpected error deleting {category}/{stored_name}: {outcome!r}")
                message = getattr(outcome, "message", None) or str(outcome) or type(outcome).__name__
                result.errors.append(BatchDeleteError(category, stored_name, message))
            else:
                result.deleted_count += 1

        return result

    @timed_operation(
        lambda stats: f"{stats.total_files} files, {stats.total_size_bytes} bytes in {len(stats.categories)} categories"
    )
    async def stats(self) -> StorageStats:
        """Per-category and overall file counts and sizes from a fresh scan."""

        async def _category_stats(category: str) -> CategoryStats:
            files = await self.list_files(category)
            return CategoryStats(
                category=category,
                file_count=len(files),
                total_size_bytes=sum(f.size_bytes for f in files),
            )

        outcomes = await run_bounded(_category_stats, self.registry.list_categories(), self.config.batch_concurrency)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        return StorageStats(
            categories=tuple(outcomes),
            total_files=sum(s.file_count for s in outcomes),
            total_size_bytes=sum(s.total_size_bytes for s in outcomes),
        )

    def snapshot(self) -> List[Tuple[StoredFile, Path]]:
        """Every stored file with its path, category by category. Blocking."""
        return [
            (stored, self.root / category / stored.stored_name)
            for category in self.registry.list_categories()
            for stored in self._scan(category)
        ]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _scan(self, category: str) -> List[StoredFile]:
        directory = self.root / category
        thumbnail_dir = directory / self.config.thumbnail_dir_name
        try:
            iterator = os.scandir(directory)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageIOError(f"Failed to scan {category}: {e}") from e

        files = []
        with iterator:
            for entry in iterator:
                # hidden entries: the thumbnail directory and in-flight .part files
                if entry.name.startswith("."):
                    continue
                try:
                    if not entry.is_file():
                        continue
                    stat = entry.stat()
                except FileNotFoundError:
                    logger.debug(f"{category}/{entry.name} vanished during scan, skipping")
                    continue
                media_type = self.media_type_for(entry.name)
                files.append(
                    StoredFile(
                        category=category,
                        stored_name=entry.name,
                        original_name=original_name_from_stored(entry.name),
                        size_bytes=stat.st_size,
                        media_type=media_type,
                        created_at=_timestamp(getattr(stat, "st_birthtime", stat.st_ctime)),
                        modified_at=_timestamp(stat.st_mtime),
                        has_thumbnail=(thumbnail_dir / entry.name).is_file(),
                        is_image=self.is_image(media_type),
                    )
                )

        files.sort(key=lambda f: (f.modified_at, f.stored_name), reverse=True)
        return files

    async def _remove_thumbnail(self, category: str, stored_name: str) -> Optional[str]:
        try:
            await aiofiles.os.remove(self.thumbnail_path(category, stored_name))
        except FileNotFoundError:
            return None
        except OSError as e:
            message = f"Failed to delete thumbnail of {category}/{stored_name}: {e}"
            logger.warning(message)
            return message
        return None

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not clean up partial upload {path}: {e}")
