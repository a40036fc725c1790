"""Client session and fight orchestration."""

from pixelprotocol.session.manager import (
    IdentityStorageError,
    InvalidHeroError,
    SessionManager,
    SessionNotReadyError,
    create_session,
)
from pixelprotocol.session.fight import (
    FightInProgressError,
    FightOrchestrator,
    UnknownHeroError,
)

__all__ = [
    "create_session",
    "FightInProgressError",
    "FightOrchestrator",
    "IdentityStorageError",
    "InvalidHeroError",
    "SessionManager",
    "SessionNotReadyError",
    "UnknownHeroError",
]
