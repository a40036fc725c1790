"""Pytest configuration: fake arena server and session fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

# Add tests directory to Python path for test helpers
_tests_path = Path(__file__).parent
if str(_tests_path) not in sys.path:
    sys.path.insert(0, str(_tests_path))

from helpers.fake_arena import BASE_URL, FakeArena  # noqa: E402

from pixelprotocol.session import FightOrchestrator, SessionManager  # noqa: E402
from pixelprotocol.utils.api_client import ArenaApi  # noqa: E402
from pixelprotocol.utils.credential_store import (  # noqa: E402
    PLAYER_ID_KEY,
    PLAYER_SECRET_KEY,
    InMemoryCredentialStore,
)
from pixelprotocol.utils.transport import Transport  # noqa: E402


@pytest.fixture
def arena() -> FakeArena:
    return FakeArena()


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def transport(arena: FakeArena, credentials: InMemoryCredentialStore) -> Transport:
    return Transport(BASE_URL, credentials=credentials, http_client=arena.client())


@pytest.fixture
def session(transport: Transport, credentials: InMemoryCredentialStore) -> SessionManager:
    return SessionManager(
        ArenaApi(transport),
        credentials,
        username_factory=lambda: "Player1700000000000",
    )


@pytest.fixture
def orchestrator(session: SessionManager) -> FightOrchestrator:
    return FightOrchestrator(session)


@pytest.fixture
def remember_player(credentials: InMemoryCredentialStore) -> Callable[[dict], None]:
    """Store a server-side player's identity as if a previous run had created it."""

    def _remember(player: dict) -> None:
        credentials.set(PLAYER_ID_KEY, player["ID"])
        credentials.set(PLAYER_SECRET_KEY, player["Secret"])

    return _remember
