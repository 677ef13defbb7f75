from __future__ import annotations

import pytest

from app.config import get_app_settings, get_onboarding_settings
from db.config import is_supported_database_url, normalize_database_url, resolve_database_url

_ONBOARDING_VARS = (
    "ONBOARDING_MAX_BATCH_SIZE",
    "ONBOARDING_INSERT_CHUNK_SIZE",
    "ONBOARDING_QUEUE_NAME",
    "ONBOARDING_MAX_ATTEMPTS",
    "ONBOARDING_BACKOFF_SECONDS",
    "ONBOARDING_TIMEOUT_SECONDS",
    "ONBOARDING_WORKER_CONCURRENCY",
    "ONBOARDING_ACTION",
    "APP_DEBUG",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ONBOARDING_VARS:
        monkeypatch.delenv(name, raising=False)
    get_onboarding_settings.cache_clear()
    get_app_settings.cache_clear()
    yield
    get_onboarding_settings.cache_clear()
    get_app_settings.cache_clear()


class TestOnboardingSettings:
    def test_defaults(self) -> None:
        settings = get_onboarding_settings()

        assert settings.max_batch_size == 1000
        assert settings.insert_chunk_size == 500
        assert settings.queue_name == "organization-onboarding"
        assert settings.max_attempts == 3
        assert settings.backoff_seconds == (10.0, 30.0, 60.0)
        assert settings.timeout_seconds == 300.0
        assert settings.action_path is None

    def test_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("ONBOARDING_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("ONBOARDING_BACKOFF_SECONDS", "1, 2,4")
        monkeypatch.setenv("ONBOARDING_QUEUE_NAME", "onboarding-eu")
        monkeypatch.setenv("ONBOARDING_ACTION", "crm.hooks:welcome")

        settings = get_onboarding_settings()

        assert settings.max_attempts == 5
        assert settings.backoff_seconds == (1.0, 2.0, 4.0)
        assert settings.queue_name == "onboarding-eu"
        assert settings.action_path == "crm.hooks:welcome"

    def test_malformed_values_fall_back_to_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("ONBOARDING_MAX_BATCH_SIZE", "lots")
        monkeypatch.setenv("ONBOARDING_BACKOFF_SECONDS", "10,soon")
        monkeypatch.setenv("ONBOARDING_MAX_ATTEMPTS", "0")

        settings = get_onboarding_settings()

        assert settings.max_batch_size == 1000
        assert settings.backoff_seconds == (10.0, 30.0, 60.0)
        assert settings.max_attempts == 1


class TestAppSettings:
    def test_debug_flag(self, monkeypatch) -> None:
        monkeypatch.setenv("APP_DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = get_app_settings()

        assert settings.debug is True
        assert settings.log_level == "DEBUG"


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("postgres://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
            ("postgresql://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
            ("postgresql+psycopg://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
            ("sqlite:///./local.db", "sqlite:///./local.db"),
        ],
    )
    def test_normalize(self, raw, expected) -> None:
        assert normalize_database_url(raw) == expected

    def test_mysql_is_not_supported(self) -> None:
        assert is_supported_database_url("mysql://u:p@db/app") is False

    def test_direct_url_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@primary/app")
        monkeypatch.setenv("LOCAL_DATABASE_URL", "sqlite:///./local.db")

        assert resolve_database_url() == "postgresql+psycopg://u:p@primary/app"

    def test_local_url_used_outside_cloud(self, monkeypatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "local")
        monkeypatch.setenv("CLOUD_DATABASE_URL", "postgres://u:p@cloud/app")
        monkeypatch.setenv("LOCAL_DATABASE_URL", "sqlite:///./local.db")

        assert resolve_database_url() == "sqlite:///./local.db"
