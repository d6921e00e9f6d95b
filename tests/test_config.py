from pathlib import Path

from app.core.config import Settings, parse_overrides


def test_parse_overrides():
    raw = "http://localhost:39191=>http://consumer-connector:9191/; broken ;=>x; http://localhost:19191 => http://provider:9191"
    assert parse_overrides(raw) == [
        ("http://localhost:39191", "http://consumer-connector:9191"),
        ("http://localhost:19191", "http://provider:9191"),
    ]
    assert parse_overrides("") == []


def test_defaults():
    settings = Settings()
    assert settings.api_prefix == "/api"
    assert settings.entry_timeout_seconds == 5.0
    assert settings.negotiation_suffix == "/api/trusted-participants"


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NODE_NAME", "trustee")
    monkeypatch.setenv("ENTRY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("COMPLETION_RETRIES", "5")
    monkeypatch.setenv("SELF_MANAGEMENT_URL", "http://trustee:9193/management/v3/")
    monkeypatch.setenv("CONSUMER_ADDRESS_OVERRIDES", "http://localhost:39191=>http://consumer:9191")
    monkeypatch.setenv("TRUSTED_PARTICIPANTS_FILE", "trusted.json")
    monkeypatch.setenv("CORS_ORIGINS", "http://ui:3000, http://localhost:3000")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.node_name == "trustee"
    assert settings.entry_timeout_seconds == 2.5
    assert settings.completion_retries == 5
    assert settings.self_management_url == "http://trustee:9193/management/v3"
    assert settings.address_overrides == {
        "consumer": [("http://localhost:39191", "http://consumer:9191")],
        "provider": [],
    }
    assert settings.trusted_participants_file == Path("trusted.json")
    assert settings.cors_origins == ["http://ui:3000", "http://localhost:3000"]
    assert settings.log_level == "DEBUG"


def test_from_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("API_PREFIX", raising=False)
    (tmp_path / ".env").write_text("API_PREFIX=/edc/\n")

    try:
        assert Settings.from_env().api_prefix == "/edc"
    finally:
        monkeypatch.delenv("API_PREFIX", raising=False)
