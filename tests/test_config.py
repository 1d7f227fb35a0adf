import pytest
from pydantic import ValidationError

from scopelog.config import Settings, get_settings


def test_defaults() -> None:
    settings = get_settings()
    assert settings.environment == "development"
    assert settings.log_level is None
    assert settings.log_file is None
    assert settings.log_format is None
    assert not settings.is_production


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "Production")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("LOG_FILE", "/var/log/orders.log")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.is_production
    assert settings.log_level == "error"
    assert settings.log_format == "json"
    assert settings.log_file == "/var/log/orders.log"


def test_dotenv_file_is_read(tmp_path) -> None:
    # conftest chdirs into tmp_path
    (tmp_path / ".env").write_text("LOG_LEVEL=info\n", encoding="utf-8")
    assert Settings().log_level == "info"


def test_unknown_level_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValidationError):
        Settings()
