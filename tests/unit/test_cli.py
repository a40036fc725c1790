"""CLI tests run against the fake arena through typer's CliRunner."""

import importlib
from importlib.metadata import PackageNotFoundError

import pytest
from rich.console import Console
from typer.testing import CliRunner

from helpers.fake_arena import BASE_URL, ScriptedFight

from pixelprotocol.models import SessionStatus
from pixelprotocol.session import SessionManager
from pixelprotocol.utils.api_client import ArenaApi
from pixelprotocol.utils.credential_store import PLAYER_ID_KEY, InMemoryCredentialStore
from pixelprotocol.utils.transport import Transport

# the package re-exports the Typer object under the module's name
cli_app = importlib.import_module("pixelprotocol.cli.app")
runner = CliRunner()


@pytest.fixture
def cli_store(monkeypatch, arena):
    store = InMemoryCredentialStore()

    def fake_create_session(settings, **kwargs):
        transport = Transport(BASE_URL, credentials=store, http_client=arena.client())
        return SessionManager(ArenaApi(transport), store, username_factory=lambda: "CliPlayer")

    monkeypatch.setattr(cli_app, "create_session", fake_create_session)
    monkeypatch.setattr(cli_app, "load_dotenv", lambda: None)
    monkeypatch.setattr(cli_app, "configure_logging", lambda level: None)
    monkeypatch.setattr(cli_app, "console", Console(width=200))
    return store


def test_status_provisions_player(cli_store, arena):
    result = runner.invoke(cli_app.app, ["status"])

    assert result.exit_code == 0, result.output
    assert "CliPlayer#1" in result.output
    assert "No heroes yet" in result.output
    assert arena.count("POST", "/api/player") == 1


def test_identity_is_reused_between_commands(cli_store, arena):
    runner.invoke(cli_app.app, ["status"])
    runner.invoke(cli_app.app, ["status"])
    assert arena.count("POST", "/api/player") == 1


def test_create_hero_and_fight(cli_store, arena):
    result = runner.invoke(cli_app.app, ["create-hero", "Dragon Slayer", "Conquered the dragons"])
    assert result.exit_code == 0, result.output
    assert "Dragon Slayer" in result.output

    hero_id = next(iter(arena.heroes))
    arena.fight_script[hero_id] = ScriptedFight(outcome=2, elo_gain=-12)
    result = runner.invoke(cli_app.app, ["fight", hero_id])

    assert result.exit_code == 0, result.output
    assert "Defeat!" in result.output
    assert "ELO Change: -12" in result.output
    assert "now has ELO 988" in result.output


def test_fights_lists_history(cli_store, arena):
    runner.invoke(cli_app.app, ["create-hero", "Knight", "Brave"])
    hero_id = next(iter(arena.heroes))
    runner.invoke(cli_app.app, ["fight", hero_id])

    result = runner.invoke(cli_app.app, ["fights", hero_id, "--limit", "5"])

    assert result.exit_code == 0, result.output
    assert "Victory" in result.output


def test_blank_hero_is_an_error(cli_store, arena):
    result = runner.invoke(cli_app.app, ["create-hero", "   ", "desc"])
    assert result.exit_code == 1
    assert "Hero title must not be empty" in result.output
    assert arena.count("POST", "/api/hero") == 0


def test_unknown_hero_fight_is_an_error(cli_store):
    result = runner.invoke(cli_app.app, ["fight", "nope"])
    assert result.exit_code == 1
    assert "not in the current roster" in result.output


def test_bootstrap_failure_is_reported(cli_store, arena):
    arena.fail("POST", "/api/player", 500, "database down")
    result = runner.invoke(cli_app.app, ["status"])
    assert result.exit_code == 1
    assert "database down" in result.output


def test_image_download(cli_store, arena, tmp_path):
    arena.images["h1"] = b"\x89PNG"
    out = tmp_path / "hero.png"

    result = runner.invoke(cli_app.app, ["image", "h1", "--out", str(out)])

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == b"\x89PNG"


def test_missing_image_is_a_warning(cli_store, tmp_path):
    result = runner.invoke(cli_app.app, ["image", "h404", "--out", str(tmp_path / "x.png")])
    assert result.exit_code == 0
    assert "No image available" in result.output


def test_forget(cli_store):
    runner.invoke(cli_app.app, ["status"])
    assert cli_store.get(PLAYER_ID_KEY) is not None

    result = runner.invoke(cli_app.app, ["forget"])

    assert result.exit_code == 0, result.output
    assert cli_store.get(PLAYER_ID_KEY) is None


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert "Pixel Protocol" in result.output


def test_version_when_not_installed(monkeypatch):
    def missing(name):
        raise PackageNotFoundError(name)

    monkeypatch.setattr(cli_app, "package_version", missing)
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert "not installed" in result.output


def test_invalid_timeout_setting_is_reported(cli_store, monkeypatch):
    monkeypatch.setenv("PIXEL_PROTOCOL_TIMEOUT", "soon")

    result = runner.invoke(cli_app.app, ["status"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "PIXEL_PROTOCOL_TIMEOUT" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_status_without_player_is_an_error(cli_store, monkeypatch):
    async def bootstrap_without_player(self):
        return SessionStatus.READY

    monkeypatch.setattr(SessionManager, "bootstrap", bootstrap_without_player)

    result = runner.invoke(cli_app.app, ["status"])

    assert result.exit_code == 1
    assert "no active player" in result.output
