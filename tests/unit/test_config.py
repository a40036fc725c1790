from pathlib import Path

import pytest

from pixelprotocol.utils.config import DEFAULT_API_URL, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PIXEL_PROTOCOL_API_URL",
        "PIXEL_PROTOCOL_CREDENTIALS",
        "PIXEL_PROTOCOL_TIMEOUT",
        "PIXEL_PROTOCOL_USERNAME_PREFIX",
        "PIXEL_PROTOCOL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.api_url == DEFAULT_API_URL
    assert settings.timeout == 30.0
    assert settings.username_prefix == "Player"
    assert settings.credentials_path.name == "credentials.json"
    assert settings.log_level == "WARNING"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PIXEL_PROTOCOL_API_URL", "https://arena.example/api/")
    monkeypatch.setenv("PIXEL_PROTOCOL_CREDENTIALS", str(tmp_path / "creds.json"))
    monkeypatch.setenv("PIXEL_PROTOCOL_TIMEOUT", "5")
    monkeypatch.setenv("PIXEL_PROTOCOL_USERNAME_PREFIX", "Hero")
    monkeypatch.setenv("PIXEL_PROTOCOL_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.api_url == "https://arena.example/api"
    assert settings.credentials_path == Path(tmp_path / "creds.json")
    assert settings.timeout == 5.0
    assert settings.username_prefix == "Hero"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_invalid_timeout(monkeypatch, value):
    monkeypatch.setenv("PIXEL_PROTOCOL_TIMEOUT", value)
    with pytest.raises(ValueError, match="PIXEL_PROTOCOL_TIMEOUT"):
        load_settings()
