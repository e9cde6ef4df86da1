from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr

from harvester.config import DEFAULT_STORAGE_HOST, AppConfig, ConfigError, load_config
from harvester.utils.secrets import require_secret, secret_value


def test_defaults(tmp_path):
    config = AppConfig(_env_file=None, APP_LOG_PATH=str(tmp_path / "app.log"))

    assert config.environment == "development"
    assert config.effective_log_level == "DEBUG"
    assert config.vendor_max_retries == 5
    assert config.vendor_backoff_cap_seconds == 30.0
    assert config.media_fetch_attempts == 3
    assert config.webp_quality == 85
    assert config.initial_pagination_batches == 3
    assert config.media_storage_host == DEFAULT_STORAGE_HOST
    assert config.storage_endpoint == f"https://{DEFAULT_STORAGE_HOST}"
    assert config.has_media_storage is False
    assert config.scrapecreator_api_key is None


def test_relative_log_path_is_resolved(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = AppConfig(_env_file=None, APP_LOG_PATH="logs/app.log")

    assert config.log_path == (tmp_path / "logs" / "app.log").resolve()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("https://storage.example.com/", "storage.example.com"),
        ("http://minio.local:9000", "minio.local:9000"),
        ("  cdn.example.com ", "cdn.example.com"),
        ("", DEFAULT_STORAGE_HOST),
    ],
)
def test_storage_host_is_stripped(tmp_path, value, expected):
    config = AppConfig(_env_file=None, APP_LOG_PATH=str(tmp_path / "app.log"), MEDIA_STORAGE_HOST=value)

    assert config.media_storage_host == expected


def test_endpoint_override_wins(tmp_path):
    config = AppConfig(
        _env_file=None,
        APP_LOG_PATH=str(tmp_path / "app.log"),
        MEDIA_STORAGE_ENDPOINT_URL="http://localhost:9000",
    )

    assert config.storage_endpoint == "http://localhost:9000"


def test_backoff_base_cannot_exceed_cap(tmp_path):
    with pytest.raises(ConfigError):
        AppConfig(
            _env_file=None,
            APP_LOG_PATH=str(tmp_path / "app.log"),
            APP_VENDOR_BACKOFF_BASE_SECONDS=60,
            APP_VENDOR_BACKOFF_CAP_SECONDS=30,
        )


def test_load_config_reads_environment(tmp_path, monkeypatch):
    log_path = tmp_path / "nested" / "logs" / "harvester.log"
    monkeypatch.setenv("APP_ENVIRONMENT", "production")
    monkeypatch.setenv("APP_LOG_PATH", str(log_path))
    monkeypatch.setenv("SCRAPECREATOR_API_KEY", "  sc-key  ")
    monkeypatch.setenv("GOOGLE_CLOUD_MEDIA_BUCKET_NAME", "legacy-bucket")

    config = load_config(tmp_path / "missing.env")

    assert config.environment == "production"
    assert config.effective_log_level == "INFO"
    assert config.media_bucket_name == "legacy-bucket"
    assert secret_value(config.scrapecreator_api_key) == "sc-key"
    assert log_path.parent.is_dir()


def test_load_config_reads_env_file(tmp_path, monkeypatch):
    env_file = tmp_path / "harvester.env"
    env_file.write_text("APP_ENVIRONMENT=staging\nAPP_WEBP_QUALITY=70\n", encoding="utf-8")
    monkeypatch.setenv("APP_LOG_PATH", str(tmp_path / "app.log"))

    config = load_config(env_file)

    assert config.environment == "staging"
    assert config.webp_quality == 70


def test_invalid_environment_raises_config_error(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_ENVIRONMENT", "moon")
    monkeypatch.setenv("APP_LOG_PATH", str(tmp_path / "app.log"))

    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(Path(tmp_path / "missing.env"))


def test_secret_helpers():
    assert secret_value(None) is None
    assert secret_value("   ") is None
    assert secret_value(SecretStr(" abc ")) == "abc"
    assert require_secret(SecretStr("abc"), "X_KEY") == "abc"
    with pytest.raises(ConfigError, match="X_KEY is required"):
        require_secret(SecretStr(""), "X_KEY")
