import pytest
from pydantic import ValidationError

from filestore_api.settings import DEFAULT_CATEGORIES, Settings
from filestore_api.storage import StoreConfig


def test__defaults():
    settings = Settings()

    assert settings.categories == DEFAULT_CATEGORIES
    assert settings.default_category == "TQM"
    assert settings.max_upload_size_bytes == 50 * 1024 * 1024
    assert settings.thumbnail_size == 200
    assert settings.thumbnail_quality == 80
    assert settings.batch_concurrency == 3
    assert len(settings.allowed_media_types) == 11


def test__environment_overrides(monkeypatch):
    monkeypatch.setenv("CATEGORIES", '["QA", "OPS"]')
    monkeypatch.setenv("DEFAULT_CATEGORY", "OPS")
    monkeypatch.setenv("MAX_UPLOAD_SIZE_BYTES", "1024")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")

    settings = Settings()

    assert settings.categories == ["QA", "OPS"]
    assert settings.default_category == "OPS"
    assert settings.max_upload_size_bytes == 1024
    assert settings.log_level == "DEBUG"
    assert settings.aws_region == "eu-west-1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"categories": []},
        {"categories": ["TQM", ".."]},
        {"categories": ["TQM", "a/b"]},
        {"categories": ["TQM", ".thumbnails"]},
        {"categories": ["TQM", "TQM"]},
        {"categories": ["KPI"]},
        {"max_upload_size_bytes": 0},
        {"batch_concurrency": -1},
    ],
)
def test__invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test__store_config_from_settings(tmp_path):
    settings = Settings(upload_dir=tmp_path, categories=["TQM", "KPI"], batch_concurrency=5)

    config = StoreConfig.from_settings(settings)

    assert config.root == tmp_path
    assert config.categories == ("TQM", "KPI")
    assert config.batch_concurrency == 5
    assert "image/png" in config.image_media_types
