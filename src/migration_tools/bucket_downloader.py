"""Mirror selected prefixes of an S3-compatible bucket to a local directory."""

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from filestore_api.utils.concurrency import run_bounded
from migration_tools.downloads import DEFAULT_CONCURRENCY, DownloadReport, discard_partial, safe_relative_path

logger = logging.getLogger(__name__)

MANIFEST_NAME = "file-manifest.json"


@dataclass(frozen=True)
class BucketObject:
    key: str
    folder: str
    size: int


def create_s3_client(region: Optional[str] = None, endpoint_url: Optional[str] = None) -> BaseClient:
    return boto3.client("s3", region_name=region, endpoint_url=endpoint_url)


class BucketDownloader:
    """
    Lists every object below a set of prefixes, records them in
    ``file-manifest.json`` and downloads the ones not already on disk.
    Local paths mirror the object keys.
    """

    def __init__(
        self,
        s3_client: BaseClient,
        bucket: str,
        output_dir: Union[str, Path],
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.s3_client = s3_client
        self.bucket = bucket
        self.output_dir = Path(output_dir)
        self.concurrency = concurrency

    def list_objects(self, prefixes: Iterable[str]) -> List[BucketObject]:
        """Objects under each prefix, in prefix order. A prefix that cannot be listed contributes nothing."""
        objects: List[BucketObject] = []
        for prefix in prefixes:
            folder = prefix.strip("/")
            found = 0
            try:
                paginator = self.s3_client.get_paginator("list_objects_v2")
                for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{folder}/"):
                    for obj in page.get("Contents", []):
                        # zero-byte "folder" placeholders
                        if obj["Key"].endswith("/"):
                            continue
                        objects.append(BucketObject(key=obj["Key"], folder=folder, size=obj.get("Size", 0)))
                        found += 1
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to list {self.bucket}/{folder}: {e}")
                continue
            logger.info(f"Found {found} objects under {folder}/")
        return objects

    def write_manifest(self, objects: List[BucketObject]) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = self.output_dir / MANIFEST_NAME
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump([asdict(obj) for obj in objects], f, ensure_ascii=False, indent=2)
        logger.info(f"Manifest of {len(objects)} objects written to {manifest_path}")
        return manifest_path

    def local_path(self, obj: BucketObject) -> Path:
        return self.output_dir / safe_relative_path(obj.key)

    def download_one(self, obj: BucketObject) -> Optional[int]:
        """Returns bytes written, or ``None`` when the file already exists locally."""
        destination = self.local_path(obj)
        if destination.exists():
            logger.info(f"Already present, skipping {obj.key}")
            return None

        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = destination.with_name(f".{destination.name}.part")
        try:
            self.s3_client.download_file(self.bucket, obj.key, str(tmp_path))
            os.replace(tmp_path, destination)
        except BaseException:
            discard_partial(tmp_path)
            raise

        size = destination.stat().st_size
        logger.info(f"Downloaded {obj.key} ({size / 1024 / 1024:.2f} MB)")
        return size

    async def download_all(self, objects: Iterable[BucketObject]) -> DownloadReport:
        objects = list(objects)

        async def _download(obj: BucketObject) -> Optional[int]:
            return await asyncio.to_thread(self.download_one, obj)

        outcomes = await run_bounded(_download, objects, self.concurrency)

        report = DownloadReport()
        for obj, outcome in zip(objects, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Failed {obj.key}: {outcome}")
            report.add(obj.key, outcome)
        return report

    def run(self, prefixes: Iterable[str]) -> DownloadReport:
        objects = self.list_objects(prefixes)
        self.write_manifest(objects)
        report = asyncio.run(self.download_all(objects))
        logger.info(
            f"Bucket download finished: {report.downloaded} downloaded, {report.skipped} skipped, "
            f"{report.failed} failed, {report.total_bytes / 1024 / 1024:.2f} MB"
        )
        return report
