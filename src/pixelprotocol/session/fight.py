"""Fight lifecycle on top of a :class:`SessionManager`."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, FrozenSet, Optional, Set

from loguru import logger

from pixelprotocol.models import Fight, FightPage, FightResult
from pixelprotocol.session.manager import SessionManager
from pixelprotocol.utils.api_client import DEFAULT_FIGHT_PAGE
from pixelprotocol.utils.transport import ArenaError


class FightInProgressError(ArenaError):
    """Raised when a hero already has a fight request outstanding."""

    def __init__(self, hero_id: str) -> None:
        super().__init__(f"Hero {hero_id} is already fighting")
        self.hero_id = hero_id


class UnknownHeroError(ArenaError, LookupError):
    """Raised when a hero id is not in the active player's roster."""

    def __init__(self, hero_id: str) -> None:
        super().__init__(f"Hero {hero_id} is not in the current roster")
        self.hero_id = hero_id


class FightOrchestrator:
    """Starts fights and applies their rating changes to the roster.

    At most one fight request is outstanding per hero; different heroes
    fight independently.
    """

    def __init__(self, session: SessionManager) -> None:
        self.session = session
        self._in_flight: Set[str] = set()
        self._last_results: Dict[str, FightResult] = {}

    @property
    def pending_fights(self) -> FrozenSet[str]:
        return frozenset(self._in_flight)

    def is_fighting(self, hero_id: str) -> bool:
        return hero_id in self._in_flight

    def last_result(self, hero_id: str) -> Optional[FightResult]:
        return self._last_results.get(hero_id)

    async def start_fight(self, hero_id: str, *, timeout: Optional[float] = None) -> FightResult:
        """Request a fight for ``hero_id`` and apply the rating delta.

        Args:
            hero_id: Hero from the current roster
            timeout: Optional limit in seconds; on expiry the request is
                cancelled and ``asyncio.TimeoutError`` propagates

        Raises:
            SessionNotReadyError: bootstrap has not finished
            UnknownHeroError: the hero is not in the roster
            FightInProgressError: the hero already has a fight outstanding
            ArenaError: the request failed; the roster is left untouched
        """
        self.session.ensure_ready("start_fight")
        if self.session.find_hero(hero_id) is None:
            raise UnknownHeroError(hero_id)
        if hero_id in self._in_flight:
            raise FightInProgressError(hero_id)

        self._in_flight.add(hero_id)
        try:
            request = self.session.api.start_fight(hero_id)
            if timeout is not None:
                result = await asyncio.wait_for(request, timeout)
            else:
                result = await request
        except ArenaError as exc:
            logger.warning(f"Fight for hero {hero_id} failed: {exc}")
            raise
        finally:
            self._in_flight.discard(hero_id)

        if result.fight.attacker_hero_id != hero_id:
            logger.warning(
                f"Fight {result.fight.id} names attacker {result.fight.attacker_hero_id}, "
                f"expected {hero_id}"
            )
        self._apply_rating_delta(hero_id, result.rating_delta)
        self._last_results[hero_id] = result
        return result

    def _apply_rating_delta(self, hero_id: str, delta: int) -> None:
        # resolved again: the roster may have been replaced while the request was pending
        hero = self.session.find_hero(hero_id)
        if hero is None:
            logger.warning(f"Hero {hero_id} left the roster before its fight resolved")
            return
        before = hero.rating
        hero.rating = before + delta
        logger.debug(f"Hero {hero_id} rating {before} -> {hero.rating}")

    async def fight_history(
        self,
        hero_id: str,
        last_id: Optional[str] = None,
        limit: int = DEFAULT_FIGHT_PAGE,
    ) -> FightPage:
        """Return one page of fights, newest first, starting after ``last_id``."""
        return await self.session.api.list_hero_fights(hero_id, last_id=last_id, limit=limit)

    async def iter_fight_history(
        self, hero_id: str, *, page_size: int = DEFAULT_FIGHT_PAGE
    ) -> AsyncIterator[Fight]:
        """Yield every fight of a hero, following the pagination cursor."""
        cursor: Optional[str] = None
        while True:
            page = await self.fight_history(hero_id, last_id=cursor, limit=page_size)
            for fight in page.fights:
                yield fight
            next_cursor = page.next_cursor or (page.fights[-1].id if page.fights else None)
            if not page.has_more or not next_cursor or next_cursor == cursor:
                return
            cursor = next_cursor

    async def get_fight(self, hero_id: str, fight_id: str) -> Fight:
        return await self.session.api.get_fight(hero_id, fight_id)
