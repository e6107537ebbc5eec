"""Tests for configuration management."""

import pytest

from knowledge_ingestion.config import (
    Environment,
    ProcessingLogSettings,
    RetrySettings,
    Settings,
    StorageSettings,
)


def test_defaults(monkeypatch):
    """Test default settings."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)

    assert settings.environment == Environment.DEVELOPMENT
    assert settings.database_url.startswith("sqlite+aiosqlite")
    assert settings.retry.max_attempts == 3
    assert settings.ingestion.max_parallel_tasks == 4
    assert settings.retrieval.default_top_k == 10
    assert settings.retrieval.default_score_threshold == 0.3
    assert settings.server.port == 8004


def test_nested_settings_read_environment(monkeypatch):
    """Test nested settings pick up their prefixed variables."""
    monkeypatch.setenv("INGESTION_MAX_PARALLEL_TASKS", "8")
    monkeypatch.setenv("RABBITMQ_QUEUE_NAME", "custom-queue")
    monkeypatch.setenv("RETRIEVAL_DEFAULT_TOP_K", "3")

    settings = Settings(_env_file=None)

    assert settings.ingestion.max_parallel_tasks == 8
    assert settings.rabbitmq.queue_name == "custom-queue"
    assert settings.retrieval.default_top_k == 3


def test_environment_parsing():
    """Test environment strings are case-insensitive and fall back to development."""
    assert Settings(environment="PRODUCTION", _env_file=None).environment == Environment.PRODUCTION
    assert Settings(environment="nonsense", _env_file=None).environment == Environment.DEVELOPMENT


def test_invalid_log_level():
    """Test log level validation."""
    with pytest.raises(ValueError):
        Settings(log_level="verbose", _env_file=None)


def test_log_level_is_uppercased():
    assert Settings(log_level="debug", _env_file=None).log_level == "DEBUG"


def test_storage_is_configured(monkeypatch):
    """Test storage configuration detection."""
    monkeypatch.delenv("STORAGE_ACCOUNT_NAME", raising=False)
    monkeypatch.delenv("STORAGE_CONNECTION_STRING", raising=False)

    assert StorageSettings().is_configured is False
    assert StorageSettings(connection_string="UseDevelopmentStorage=true").is_configured is True
    assert StorageSettings(account_name="acct", use_managed_identity=True).is_configured is True
    assert StorageSettings(account_name="acct", use_managed_identity=False).is_configured is False


def test_retry_settings_validation():
    with pytest.raises(ValueError):
        RetrySettings(max_attempts=0)


def test_processing_log_retention_validation():
    with pytest.raises(ValueError):
        ProcessingLogSettings(retention_days=0)


def test_production_rejects_sqlite():
    """Test production validation."""
    settings = Settings(
        environment="production",
        database_url="sqlite+aiosqlite:///./knowledge.db",
        storage=StorageSettings(connection_string="UseDevelopmentStorage=true"),
        _env_file=None,
    )

    with pytest.raises(ValueError, match="PostgreSQL"):
        settings.validate_production_settings()


def test_production_rejects_debug():
    settings = Settings(environment="production", debug=True, _env_file=None)

    with pytest.raises(ValueError, match="DEBUG"):
        settings.validate_production_settings()


def test_production_accepts_complete_configuration():
    settings = Settings(
        environment="production",
        database_url="postgresql+asyncpg://user:pass@db/knowledge",
        storage=StorageSettings(connection_string="UseDevelopmentStorage=true"),
        _env_file=None,
    )

    settings.validate_production_settings()
