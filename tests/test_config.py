import pytest

from butler.config import Settings, get_settings, reset_settings_cache
from butler.core.db import load_schema_sql


def test_defaults(monkeypatch):
    for name in (
        "DATABASE_URL",
        "BUTLER_HOTEL_NAME",
        "BUTLER_TASK_CONFIDENCE_THRESHOLD",
        "BUTLER_ESCALATION_LOW_CONFIDENCE",
        "BUTLER_ESCALATION_REPEAT_COUNT",
        "BUTLER_ESCALATION_HISTORY_WINDOW",
        "WEBHOOK_RATE_LIMIT",
        "WHATSAPP_APP_SECRET",
        "TWILIO_AUTH_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings == Settings()
    assert settings.task_confidence_threshold == 0.6
    assert settings.webhook_rate_limit == "60/minute"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://butler@localhost/butler")
    monkeypatch.setenv("BUTLER_HOTEL_NAME", "Seaside Inn")
    monkeypatch.setenv("BUTLER_ESCALATION_LOW_CONFIDENCE", "0.4")
    monkeypatch.setenv("BUTLER_ESCALATION_REPEAT_COUNT", "3")
    monkeypatch.setenv("WHATSAPP_APP_SECRET", "s3cret")

    settings = get_settings()

    assert settings.database_url == "postgresql://butler@localhost/butler"
    assert settings.hotel_name == "Seaside Inn"
    assert settings.escalation_low_confidence == 0.4
    assert settings.escalation_repeat_count == 3
    assert settings.whatsapp_app_secret == "s3cret"


def test_settings_are_cached_until_reset(monkeypatch):
    monkeypatch.setenv("BUTLER_HOTEL_NAME", "First")
    first = get_settings()
    monkeypatch.setenv("BUTLER_HOTEL_NAME", "Second")
    assert get_settings() is first

    reset_settings_cache()
    assert get_settings().hotel_name == "Second"


def test_out_of_range_threshold_is_rejected(monkeypatch):
    monkeypatch.setenv("BUTLER_TASK_CONFIDENCE_THRESHOLD", "1.5")
    with pytest.raises(RuntimeError, match="between 0 and 1"):
        get_settings()


def test_schema_defines_tables():
    sql = load_schema_sql()
    for table in ("conversations", "messages", "guests", "reservations", "tasks", "approval_queue"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in sql


def test_print_config_masks_secrets(monkeypatch, tmp_path):
    from tools.print_config import get_runtime_config

    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = get_runtime_config()

    assert config["settings"]["twilio_auth_token"] == "***"
    assert config["logging"]["log_level"] == "DEBUG"
    assert config["logging"]["log_dir"] == str(tmp_path)
