"""Settings, store and API client wired to a temporary upload root."""
import pytest
from fastapi.testclient import TestClient

from filestore_api.main import create_app
from filestore_api.settings import Settings
from filestore_api.storage import FileStore, StoreConfig
from tests.consts import TEST_CATEGORIES, TEST_MAX_UPLOAD_SIZE_BYTES


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "uploads",
        categories=list(TEST_CATEGORIES),
        max_upload_size_bytes=TEST_MAX_UPLOAD_SIZE_BYTES,
        records_db_path=str(tmp_path / "records.db"),
    )


@pytest.fixture
def store(settings: Settings) -> FileStore:
    file_store = FileStore(StoreConfig.from_settings(settings))
    file_store.ensure_layout()
    return file_store


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
