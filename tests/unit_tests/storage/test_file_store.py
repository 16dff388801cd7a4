import asyncio
import logging
import os
from pathlib import Path

import pytest

from filestore_api.errors import InvalidCategory, NotFound, StorageIOError
from filestore_api.storage import FileStore
from tests.consts import TEST_PDF_CONTENT, TEST_PDF_CONTENT_TYPE, TEST_PDF_NAME


def _visible_entries(directory: Path):
    return sorted(p.name for p in directory.iterdir() if not p.name.startswith("."))


async def test__put__then_list_includes_entry(store: FileStore):
    stored = await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    files = await store.list_files("TQM")

    assert [f.stored_name for f in files] == [stored.stored_name]
    assert files[0].size_bytes == len(TEST_PDF_CONTENT)
    assert files[0].media_type == "application/pdf"
    assert (store.root / "TQM" / stored.stored_name).read_bytes() == TEST_PDF_CONTENT


async def test__put__leaves_no_temporary_files(store: FileStore):
    await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert not [p for p in (store.root / "TQM").iterdir() if p.name.endswith(".part")]


async def test__put__jpeg_gets_thumbnail_at_derived_path(store: FileStore, jpeg_bytes: bytes):
    stored = await store.put("RD_Nexus", "site photo.jpg", "image/jpeg", jpeg_bytes)

    assert stored.has_thumbnail
    assert stored.is_image
    assert store.thumbnail_path("RD_Nexus", stored.stored_name).is_file()
    assert store.thumbnail_path("RD_Nexus", stored.stored_name) == (
        store.root / "RD_Nexus" / ".thumbnails" / stored.stored_name
    )


async def test__put__pdf_has_no_thumbnail(store: FileStore):
    stored = await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert not stored.has_thumbnail
    assert not stored.is_image
    assert list((store.root / "TQM" / ".thumbnails").iterdir()) == []


async def test__put__corrupt_image_is_stored_without_thumbnail(store: FileStore):
    stored = await store.put("TQM", "broken.png", "image/png", b"definitely not a png")

    assert not stored.has_thumbnail
    assert (store.root / "TQM" / stored.stored_name).is_file()
    assert list((store.root / "TQM" / ".thumbnails").iterdir()) == []


async def test__put__appends_extension_when_name_has_none(store: FileStore):
    stored = await store.put("TQM", "scan", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert stored.stored_name.endswith("_scan.pdf")


async def test__put__unknown_category_touches_nothing(store: FileStore):
    with pytest.raises(InvalidCategory):
        await store.put("HR", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert not (store.root / "HR").exists()


async def test__put__creates_category_directory_lazily(store: FileStore):
    (store.root / "DCO" / ".thumbnails").rmdir()
    (store.root / "DCO").rmdir()

    await store.put("DCO", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert len(_visible_entries(store.root / "DCO")) == 1


async def test__put__write_failure_raises_and_cleans_up(store: FileStore, monkeypatch):
    async def _failing_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("aiofiles.os.replace", _failing_replace)

    with pytest.raises(StorageIOError):
        await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert os.listdir(store.root / "TQM") == [".thumbnails"]


async def test__put__concurrent_same_name_gives_distinct_stored_names(store: FileStore):
    results = await asyncio.gather(
        *(store.put("KPI", "same.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT) for _ in range(20))
    )

    names = {r.stored_name for r in results}
    assert len(names) == 20
    assert len(_visible_entries(store.root / "KPI")) == 20


async def test__list__newest_first(store: FileStore):
    first = await store.put("TQM", "first.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    second = await store.put("TQM", "second.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    os.utime(store.root / "TQM" / first.stored_name, (1_700_000_000, 1_700_000_000))
    os.utime(store.root / "TQM" / second.stored_name, (1_600_000_000, 1_600_000_000))

    files = await store.list_files("TQM")

    assert [f.stored_name for f in files] == [first.stored_name, second.stored_name]


async def test__list__excludes_thumbnails_and_partial_files(store: FileStore, jpeg_bytes: bytes):
    stored = await store.put("TQM", "photo.jpg", "image/jpeg", jpeg_bytes)
    (store.root / "TQM" / ".in-flight.pdf.part").write_bytes(b"partial")

    files = await store.list_files("TQM")

    assert [f.stored_name for f in files] == [stored.stored_name]
    assert files[0].has_thumbnail


async def test__list__missing_category_directory_is_empty(store: FileStore):
    (store.root / "KPI" / ".thumbnails").rmdir()
    (store.root / "KPI").rmdir()

    assert await store.list_files("KPI") == []


async def test__list__tolerates_entries_vanishing_mid_scan(store: FileStore, monkeypatch):
    kept = await store.put("TQM", "kept.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    gone = await store.put("TQM", "gone.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    real_scandir = os.scandir

    class _VanishingEntries:
        def __init__(self, path):
            self._inner = real_scandir(path)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self._inner.close()

        def __iter__(self):
            for entry in self._inner:
                if entry.name == gone.stored_name:
                    os.remove(entry.path)
                yield entry

    monkeypatch.setattr("filestore_api.storage.file_store.os.scandir", _VanishingEntries)

    files = await store.list_files("TQM")

    assert [f.stored_name for f in files] == [kept.stored_name]


async def test__delete__removes_file_and_thumbnail(store: FileStore, jpeg_bytes: bytes):
    stored = await store.put("TQM", "photo.jpg", "image/jpeg", jpeg_bytes)

    result = await store.delete("TQM", stored.stored_name)

    assert result.thumbnail_error is None
    assert await store.list_files("TQM") == []
    assert not store.thumbnail_path("TQM", stored.stored_name).exists()


async def test__delete__missing_file_is_not_found_and_mutates_nothing(store: FileStore):
    stored = await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    before = sorted(str(p) for p in store.root.rglob("*"))

    with pytest.raises(NotFound):
        await store.delete("TQM", "1700000000000-abcd_missing.pdf")

    assert sorted(str(p) for p in store.root.rglob("*")) == before
    assert (store.root / "TQM" / stored.stored_name).exists()


@pytest.mark.parametrize("name", ["..", ".thumbnails", "../TQM", "a/b"])
async def test__delete__rejects_names_outside_category(store: FileStore, name: str):
    with pytest.raises(NotFound):
        await store.delete("TQM", name)

    assert (store.root / "TQM" / ".thumbnails").is_dir()


async def test__delete__thumbnail_failure_is_reported_not_raised(store: FileStore, jpeg_bytes: bytes, monkeypatch):
    stored = await store.put("TQM", "photo.jpg", "image/jpeg", jpeg_bytes)
    real_remove = os.remove

    def _remove(path, *args, **kwargs):
        if Path(path).parent.name == ".thumbnails":
            raise PermissionError(13, "Permission denied")
        return real_remove(path, *args, **kwargs)

    monkeypatch.setattr("aiofiles.os.remove", _wrap_async(_remove))

    result = await store.delete("TQM", stored.stored_name)

    assert result.thumbnail_error is not None
    assert not (store.root / "TQM" / stored.stored_name).exists()


def _wrap_async(func):
    async def _run(*args, **kwargs):
        return func(*args, **kwargs)
    return _run


async def test__delete__concurrent_deletes_of_one_name(store: FileStore):
    stored = await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    outcomes = await asyncio.gather(
        store.delete("TQM", stored.stored_name),
        store.delete("TQM", stored.stored_name),
        return_exceptions=True,
    )

    assert sum(isinstance(o, NotFound) for o in outcomes) == 1
    assert sum(not isinstance(o, BaseException) for o in outcomes) == 1


async def test__batch_delete__reports_per_item_errors(store: FileStore):
    stored = [
        await store.put(category, f"file{i}.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
        for i, category in enumerate(["TQM", "TQM", "DCO"])
    ]
    items = [
        ("TQM", stored[0].stored_name),
        ("HR", "whatever.pdf"),
        ("TQM", stored[1].stored_name),
        ("DCO", "1700000000000-abcd_missing.pdf"),
        ("DCO", stored[2].stored_name),
    ]

    result = await store.batch_delete(items)

    assert result.deleted_count == 3
    assert len(result.errors) == 2
    assert {(e.category, e.stored_name) for e in result.errors} == {
        ("HR", "whatever.pdf"),
        ("DCO", "1700000000000-abcd_missing.pdf"),
    }
    assert "Invalid category" in next(e.message for e in result.errors if e.category == "HR")
    assert await store.list_files("TQM") == []
    assert await store.list_files("DCO") == []


async def test__batch_delete__empty_batch(store: FileStore):
    result = await store.batch_delete([])

    assert result.deleted_count == 0
    assert result.errors == []


async def test__batch_delete__logs_duration_with_counts(store: FileStore, caplog):
    stored = await store.put("TQM", "a.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    with caplog.at_level(logging.INFO, logger="filestore_api.utils.decorators"):
        await store.batch_delete([("TQM", stored.stored_name), ("TQM", "1700000000000-abcd_gone.pdf")])

    assert any(
        "FileStore.batch_delete finished in" in r.getMessage() and r.getMessage().endswith("1 deleted, 1 failed")
        for r in caplog.records
    )


async def test__stats__totals_match_listing(store: FileStore, jpeg_bytes: bytes):
    await store.put("TQM", "a.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)
    await store.put("TQM", "b.jpg", "image/jpeg", jpeg_bytes)
    await store.put("KPI", "c.pdf", TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    stats = await store.stats()

    assert [s.category for s in stats.categories] == list(store.registry.list_categories())
    assert stats.total_files == sum(s.file_count for s in stats.categories) == 3
    assert stats.total_size_bytes == sum(s.total_size_bytes for s in stats.categories)
    assert stats.total_size_bytes == 2 * len(TEST_PDF_CONTENT) + len(jpeg_bytes)
    for category_stats in stats.categories:
        listed = await store.list_files(category_stats.category)
        assert category_stats.file_count == len(listed)
        assert category_stats.total_size_bytes == sum(f.size_bytes for f in listed)


async def test__locate__existing_and_missing(store: FileStore):
    stored = await store.put("TQM", TEST_PDF_NAME, TEST_PDF_CONTENT_TYPE, TEST_PDF_CONTENT)

    assert (await store.locate("TQM", stored.stored_name)).read_bytes() == TEST_PDF_CONTENT
    with pytest.raises(NotFound):
        await store.locate("TQM", "nope.pdf")
