import logging

import pytest

from filestore_api.utils.decorators import timed_operation

LOGGER = "filestore_api.utils.decorators"


def test__timed_operation__sync_logs_summary(caplog):
    @timed_operation(lambda written: f"{written} bytes")
    def write_backup() -> int:
        return 42

    with caplog.at_level(logging.INFO, logger=LOGGER):
        assert write_backup() == 42

    [record] = caplog.records
    assert record.levelno == logging.INFO
    assert "write_backup finished in" in record.getMessage()
    assert record.getMessage().endswith(": 42 bytes")


async def test__timed_operation__async_logs_summary(caplog):
    @timed_operation(lambda counts: f"{counts[0]} deleted, {counts[1]} failed")
    async def delete_many():
        return (3, 2)

    with caplog.at_level(logging.INFO, logger=LOGGER):
        assert await delete_many() == (3, 2)

    [record] = caplog.records
    assert record.getMessage().endswith(": 3 deleted, 2 failed")


def test__timed_operation__without_summary(caplog):
    @timed_operation()
    def scan():
        return None

    with caplog.at_level(logging.INFO, logger=LOGGER):
        scan()

    [record] = caplog.records
    assert record.getMessage().endswith("s")
    assert ":" not in record.getMessage().split("finished in")[1]


async def test__timed_operation__failure_is_logged_and_reraised(caplog):
    @timed_operation(lambda result: "never summarized")
    async def stats():
        raise OSError("disk gone")

    with caplog.at_level(logging.INFO, logger=LOGGER):
        with pytest.raises(OSError, match="disk gone"):
            await stats()

    [record] = caplog.records
    assert record.levelno == logging.ERROR
    assert "stats failed after" in record.getMessage()
    assert "disk gone" in record.getMessage()


def test__timed_operation__keeps_wrapped_metadata():
    @timed_operation()
    def export_to_path():
        """Write the archive."""

    assert export_to_path.__name__ == "export_to_path"
    assert export_to_path.__doc__ == "Write the archive."
