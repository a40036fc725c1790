"""Player session: identity bootstrap, hero roster and hero creation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from loguru import logger

from pixelprotocol.models import Hero, Player, SessionStatus
from pixelprotocol.utils.api_client import ArenaApi
from pixelprotocol.utils.config import ClientSettings
from pixelprotocol.utils.credential_store import (
    PLAYER_ID_KEY,
    PLAYER_SECRET_KEY,
    CredentialStore,
    FileCredentialStore,
)
from pixelprotocol.utils.transport import (
    ArenaError,
    Transport,
    TransportError,
    UnauthenticatedError,
)


class SessionNotReadyError(ArenaError):
    """Raised when an operation needs a bootstrapped session."""

    def __init__(self, operation: str, status: SessionStatus) -> None:
        super().__init__(f"{operation} requires a ready session (status: {status.value})")
        self.operation = operation
        self.status = status


class InvalidHeroError(ArenaError, ValueError):
    """Raised when a hero's title or description is blank."""


class IdentityStorageError(ArenaError):
    """Raised when the player identity cannot be written to the credential store."""

    def __init__(self, player_id: str, cause: OSError) -> None:
        super().__init__(f"Could not store credentials for player {player_id}: {cause}")
        self.player_id = player_id



def default_username_factory(prefix: str = "Player") -> Callable[[], str]:
    def make_username() -> str:
        return f"{prefix}{int(time.time() * 1000)}"

    return make_username


class SessionManager:
    """Owns the active player, the hero roster and the selected hero.

    The view layer reads state through the properties and changes it only
    through the coroutines below. A fresh instance starts ``UNINITIALIZED``;
    call :meth:`bootstrap` once at startup.
    """

    def __init__(
        self,
        api: ArenaApi,
        credentials: CredentialStore,
        *,
        username_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.api = api
        self._credentials = credentials
        self._username_factory = username_factory or default_username_factory()

        self._status = SessionStatus.UNINITIALIZED
        self._error: Optional[BaseException] = None
        self._player: Optional[Player] = None
        self._heroes: List[Hero] = []
        self._selected_hero: Optional[Hero] = None
        self._bootstrap_lock = asyncio.Lock()

        # The transport asks us for the secret so it is never sent without a player.
        self.api.transport.set_secret_provider(self._current_secret)

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def error(self) -> Optional[BaseException]:
        """Failure captured when bootstrap ended in ``ERRORED``."""
        return self._error

    @property
    def player(self) -> Optional[Player]:
        return self._player

    @property
    def heroes(self) -> Tuple[Hero, ...]:
        return tuple(self._heroes)

    @property
    def selected_hero(self) -> Optional[Hero]:
        return self._selected_hero

    @property
    def is_ready(self) -> bool:
        return self._status is SessionStatus.READY

    def _current_secret(self) -> Optional[str]:
        if self._player is None:
            return None
        return self._player.secret_token or None

    def ensure_ready(self, operation: str) -> None:
        if self._status is not SessionStatus.READY:
            raise SessionNotReadyError(operation, self._status)

    def find_hero(self, hero_id: str) -> Optional[Hero]:
        for hero in self._heroes:
            if hero.id == hero_id:
                return hero
        return None

    async def close(self) -> None:
        await self.api.close()

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Identity

    def _adopt_player(self, player: Player) -> None:
        try:
            self._credentials.set(PLAYER_ID_KEY, player.id)
            if player.secret_token:
                self._credentials.set(PLAYER_SECRET_KEY, player.secret_token)
        except OSError as exc:
            raise IdentityStorageError(player.id, exc) from exc

        previous = self._player
        if previous is not None and previous.id != player.id:
            # heroes of the previous identity are not ours any more
            self._heroes = []
            self._selected_hero = None
        self._player = player
        logger.info(f"Active player is {player.display_handle} ({player.id})")

    async def provision_new_player(self) -> Player:
        """Create a brand new player and make it the active identity."""
        username = self._username_factory()
        logger.info(f"Provisioning new player {username!r}")
        player = await self.api.create_player(username)
        if not player.secret_token:
            raise TransportError("/player", "created player carries no secret")
        self._adopt_player(player)
        return player

    async def _fetch_stored_player(self, player_id: str) -> Player:
        endpoint = f"/player/{player_id}"
        stored_secret = self._credentials.get(PLAYER_SECRET_KEY)
        if not stored_secret:
            raise UnauthenticatedError(endpoint, None, "no stored player secret")
        player = await self.api.get_player(player_id)
        if player.id != player_id:
            raise TransportError(endpoint, f"server returned player {player.id}")
        if not player.secret_token:
            player = replace(player, secret_token=stored_secret)
        return player

    async def _acquire_player(self) -> Player:
        stored_id = self._credentials.get(PLAYER_ID_KEY)
        if not stored_id:
            logger.debug("No stored player identity")
            return await self.provision_new_player()

        try:
            player = await self._fetch_stored_player(stored_id)
        except ArenaError as exc:
            # one recovery attempt: a fresh identity replaces the unusable one
            logger.warning(f"Stored player {stored_id} is unusable ({exc}); provisioning a new one")
            return await self.provision_new_player()

        self._adopt_player(player)
        return player

    async def bootstrap(self) -> SessionStatus:
        """Acquire or create the player identity, then load its heroes.

        Safe to call more than once: a ready session returns immediately and
        concurrent calls share one run. A failed provisioning attempt, or an
        identity that cannot be stored, ends in ``ERRORED``; the failure is
        kept in :attr:`error`. Unexpected exceptions also leave ``ERRORED``
        behind before they propagate.
        """
        async with self._bootstrap_lock:
            if self._status is SessionStatus.READY:
                return self._status

            self._status = SessionStatus.BOOTSTRAPPING
            self._error = None
            try:
                await self._acquire_player()
                await self.refresh_heroes()
            except ArenaError as exc:
                logger.error(f"Session bootstrap failed: {exc}")
                self._error = exc
                self._status = SessionStatus.ERRORED
                return self._status
            except BaseException as exc:
                # never stay in BOOTSTRAPPING
                self._error = exc
                self._status = SessionStatus.ERRORED
                raise

            self._status = SessionStatus.READY
            return self._status

    def forget_identity(self) -> None:
        """Drop the stored identity; the next bootstrap provisions a new player."""
        self._credentials.delete(PLAYER_ID_KEY)
        self._credentials.delete(PLAYER_SECRET_KEY)
        self._player = None
        self._heroes = []
        self._selected_hero = None
        self._error = None
        self._status = SessionStatus.UNINITIALIZED

    # Heroes

    async def refresh_heroes(self) -> Tuple[Hero, ...]:
        """Replace the roster with the server's list for the active player.

        Any failure leaves an empty roster rather than a stale one.
        """
        player = self._player
        if player is None:
            return self.heroes

        try:
            fetched = await self.api.list_player_heroes(player.id)
        except ArenaError as exc:
            logger.warning(f"Failed to refresh heroes for {player.id}: {exc}")
            fetched = []

        if self._player is not player:
            logger.debug("Active player changed during roster refresh; discarding result")
            return self.heroes

        owned = [hero for hero in fetched if hero.owner_player_id == player.id]
        if len(owned) != len(fetched):
            logger.warning(
                f"Dropped {len(fetched) - len(owned)} hero(es) not owned by {player.id}"
            )
        self._heroes = owned

        if self._selected_hero is not None:
            self._selected_hero = self.find_hero(self._selected_hero.id)
        return self.heroes

    async def create_hero(self, title: str, description: str) -> Hero:
        """Create a hero for the active player and reload the roster.

        Blank input is rejected before any request. Remote failures propagate.
        """
        self.ensure_ready("create_hero")
        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise InvalidHeroError("Hero title must not be empty")
        if not description:
            raise InvalidHeroError("Hero description must not be empty")

        hero = await self.api.create_hero(title, description)
        logger.info(f"Created hero {hero.title!r} ({hero.id})")

        owner = hero.owner
        if owner is not None:
            current = self._player
            if not owner.secret_token and current is not None and owner.id == current.id:
                owner = replace(owner, secret_token=current.secret_token)
            if owner.secret_token and owner != current:
                self._adopt_player(owner)

        await self.refresh_heroes()
        return hero

    def select_hero(self, hero: Optional[Hero]) -> None:
        self._selected_hero = hero

    async def load_hero_image(self, hero_id: str) -> Optional[bytes]:
        """Return the hero's image, or ``None`` if it cannot be loaded."""
        try:
            return await self.api.get_hero_image(hero_id)
        except ArenaError as exc:
            logger.warning(f"Hero image for {hero_id} unavailable: {exc}")
            return None


def create_session(
    settings: ClientSettings,
    *,
    credentials: Optional[CredentialStore] = None,
    transport: Optional[Transport] = None,
) -> SessionManager:
    """Wire a session from settings: credential file, transport and API."""
    store = credentials or FileCredentialStore(settings.credentials_path)
    transport = transport or Transport(
        settings.api_url, credentials=store, timeout=settings.timeout
    )
    return SessionManager(
        ArenaApi(transport),
        store,
        username_factory=default_username_factory(settings.username_prefix),
    )
