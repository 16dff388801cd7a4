import json
from pathlib import Path

from migration_tools.bucket_downloader import MANIFEST_NAME, BucketDownloader
from tests.consts import TEST_BUCKET_NAME


def _seed(s3_client):
    objects = {
        "tqm_records/a.pdf": b"a" * 10,
        "tqm_records/2024/b.pdf": b"b" * 20,
        "tqm_records/": b"",
        "rd_tasks/c.txt": b"c" * 5,
        "unrelated/x.bin": b"x",
    }
    for key, body in objects.items():
        s3_client.put_object(Bucket=TEST_BUCKET_NAME, Key=key, Body=body)


def test__list_objects__skips_folder_markers(mocked_aws, tmp_path: Path):
    _seed(mocked_aws)
    downloader = BucketDownloader(mocked_aws, TEST_BUCKET_NAME, tmp_path)

    objects = downloader.list_objects(["tqm_records", "rd_tasks/", "empty"])

    assert sorted(o.key for o in objects) == ["rd_tasks/c.txt", "tqm_records/2024/b.pdf", "tqm_records/a.pdf"]


def test__run__downloads_and_writes_manifest(mocked_aws, tmp_path: Path):
    _seed(mocked_aws)
    downloader = BucketDownloader(mocked_aws, TEST_BUCKET_NAME, tmp_path, concurrency=3)

    report = downloader.run(["tqm_records", "rd_tasks"])

    assert (report.downloaded, report.skipped, report.failed) == (3, 0, 0)
    assert report.total_bytes == 35
    assert (tmp_path / "tqm_records" / "2024" / "b.pdf").read_bytes() == b"b" * 20
    manifest = json.loads((tmp_path / MANIFEST_NAME).read_text(encoding="utf-8"))
    assert {entry["key"] for entry in manifest} == {"tqm_records/a.pdf", "tqm_records/2024/b.pdf", "rd_tasks/c.txt"}
    assert not (tmp_path / "unrelated").exists()


def test__run__second_pass_skips_existing(mocked_aws, tmp_path: Path):
    _seed(mocked_aws)
    downloader = BucketDownloader(mocked_aws, TEST_BUCKET_NAME, tmp_path)
    downloader.run(["tqm_records"])

    report = downloader.run(["tqm_records"])

    assert (report.downloaded, report.skipped, report.failed) == (0, 2, 0)


def test__run__missing_bucket_reports_nothing(mocked_aws, tmp_path: Path):
    downloader = BucketDownloader(mocked_aws, "no-such-bucket", tmp_path)

    report = downloader.run(["tqm_records"])

    assert (report.downloaded, report.skipped, report.failed) == (0, 0, 0)
    assert json.loads((tmp_path / MANIFEST_NAME).read_text(encoding="utf-8")) == []
