"""
Bulk download of the files listed in an exported manifest.

Manifest format::

    {"totalFiles": 2, "exportedAt": "2026-01-13T08:00:00Z",
     "files": [{"folder": "tqm_records", "name": "a.pdf", "url": "https://..."}, ...]}

Each file lands at ``<output>/<folder>/<name>``. Files already present are
skipped, so an interrupted run can simply be started again.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import requests

from filestore_api.storage.sanitizer import is_safe_segment
from filestore_api.utils.concurrency import run_bounded

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ManifestEntry:
    folder: str
    name: str
    url: str


@dataclass
class DownloadReport:
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    total_bytes: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return self.downloaded

    def add(self, label: str, outcome: Union[Optional[int], BaseException]) -> None:
        """``outcome`` is bytes written, ``None`` for a skipped file, or the error that stopped it."""
        if isinstance(outcome, BaseException):
            self.failed += 1
            self.failures.append((label, str(outcome) or type(outcome).__name__))
        elif outcome is None:
            self.skipped += 1
        else:
            self.downloaded += 1
            self.total_bytes += outcome


def safe_relative_path(*parts: str) -> Path:
    """
    Join slash-separated ``parts`` into a relative path, refusing traversal.

    Raises:
        ValueError: a segment is empty, ``.``, ``..`` or otherwise not a plain name
    """
    segments = [segment for part in parts for segment in part.split("/")]
    for segment in segments:
        if not is_safe_segment(segment):
            raise ValueError(f"Unsafe path segment {segment!r} in {'/'.join(parts)!r}")
    return Path(*segments)


def discard_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Could not remove partial download {path}: {e}")


def load_manifest(path: Union[str, Path]) -> Tuple[List[ManifestEntry], Dict[str, Any]]:
    """Entries of a manifest file plus its header fields (``totalFiles``, ``exportedAt``)."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    files = data.get("files") if isinstance(data, dict) else None
    if not isinstance(files, list):
        raise ValueError(f"{path} has no 'files' list")
    entries = [ManifestEntry(folder=str(item["folder"]), name=str(item["name"]), url=str(item["url"])) for item in files]
    header = {key: value for key, value in data.items() if key != "files"}
    logger.info(f"Manifest {path}: {len(entries)} files, exported at {header.get('exportedAt', 'unknown')}")
    return entries, header


class ManifestDownloader:
    def __init__(
        self,
        output_dir: Union[str, Path],
        session: Optional[requests.Session] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = 60.0,
    ):
        self.output_dir = Path(output_dir)
        self.session = session or requests.Session()
        self.concurrency = concurrency
        self.timeout = timeout

    def target_path(self, entry: ManifestEntry) -> Path:
        return self.output_dir / safe_relative_path(entry.folder, entry.name)

    def download_one(self, entry: ManifestEntry) -> Optional[int]:
        """
        Fetch one entry. Returns bytes written, or ``None`` when the file already exists.

        Raises:
            ValueError: the entry would resolve outside the output directory
            requests.RequestException: the transfer failed (nothing is left on disk)
        """
        destination = self.target_path(entry)
        if destination.exists():
            logger.info(f"Already present, skipping {entry.folder}/{entry.name}")
            return None

        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = destination.with_name(f".{destination.name}.part")
        written = 0
        try:
            with self.session.get(entry.url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(tmp_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
            os.replace(tmp_path, destination)
        except BaseException:
            discard_partial(tmp_path)
            raise

        logger.info(f"Downloaded {entry.folder}/{entry.name} ({written / 1024 / 1024:.2f} MB)")
        return written

    async def download_all(self, entries: Iterable[ManifestEntry]) -> DownloadReport:
        entries = list(entries)

        async def _download(entry: ManifestEntry) -> Optional[int]:
            return await asyncio.to_thread(self.download_one, entry)

        outcomes = await run_bounded(_download, entries, self.concurrency)

        report = DownloadReport()
        for entry, outcome in zip(entries, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Failed {entry.folder}/{entry.name}: {outcome}")
            report.add(f"{entry.folder}/{entry.name}", outcome)

        logger.info(
            f"Manifest download finished: {report.downloaded} downloaded, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    def run(self, entries: Iterable[ManifestEntry]) -> DownloadReport:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return asyncio.run(self.download_all(entries))
