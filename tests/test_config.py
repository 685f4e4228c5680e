from support_inbox.config import (
    DEFAULT_DATABASE_URL,
    get_settings,
    reset_settings_cache,
)

ENV_VARS = (
    "DATABASE_URL",
    "INBOX_CSV_PATH",
    "CONVERSATION_WINDOW_HOURS",
    "CORS_ORIGINS",
    "REPLY_RATE_LIMIT",
    "SSE_KEEPALIVE_SECONDS",
)


def test_defaults(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()

    settings = get_settings()

    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.conversation_window_hours == 24.0
    assert settings.cors_origins == ()
    assert settings.reply_rate_limit == "30/minute"
    assert settings.sse_keepalive_seconds == 15.0
    reset_settings_cache()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("INBOX_CSV_PATH", "/data/messages.csv")
    monkeypatch.setenv("CONVERSATION_WINDOW_HOURS", "12")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173, https://inbox.example.com,")
    monkeypatch.setenv("REPLY_RATE_LIMIT", "5/second")
    reset_settings_cache()

    settings = get_settings()

    assert settings.database_url == "sqlite+pysqlite:///:memory:"
    assert settings.csv_path == "/data/messages.csv"
    assert settings.conversation_window_hours == 12.0
    assert settings.cors_origins == ("http://localhost:5173", "https://inbox.example.com")
    assert settings.reply_rate_limit == "5/second"
    assert get_settings() is settings
    reset_settings_cache()
