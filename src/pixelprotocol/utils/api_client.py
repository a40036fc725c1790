"""Typed endpoint wrappers for the Pixel Protocol arena API."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, TypeVar

from loguru import logger

from pixelprotocol.models import (
    Fight,
    FightPage,
    FightResult,
    Hero,
    MalformedPayload,
    Player,
)
from pixelprotocol.utils.transport import Transport, TransportError

T = TypeVar("T")

MAX_FIGHT_PAGE = 100
DEFAULT_FIGHT_PAGE = 20


def _parse(endpoint: str, data: Any, parser: Callable[[Any], T]) -> T:
    try:
        return parser(data)
    except MalformedPayload as exc:
        raise TransportError(endpoint, f"malformed response: {exc}") from exc


class ArenaApi:
    """One coroutine per remote operation. Errors come from :class:`Transport`."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def close(self) -> None:
        await self.transport.close()

    # Player endpoints

    async def create_player(self, username: str) -> Player:
        endpoint = "/player"
        data = await self.transport.send(endpoint, "POST", {"username": username})
        return _parse(endpoint, data, Player.from_dict)

    async def get_player(self, player_id: str) -> Player:
        """Fetch a player. Authenticates through the ``player_secret`` cookie."""
        endpoint = f"/player/{player_id}"
        data = await self.transport.send(endpoint, "GET")
        return _parse(endpoint, data, Player.from_dict)

    async def list_player_heroes(self, player_id: str) -> List[Hero]:
        endpoint = f"/player/{player_id}/heroes"
        data = await self.transport.send(endpoint, "GET", auth="required")
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransportError(endpoint, "malformed response: expected a list of heroes")
        return [_parse(endpoint, item, Hero.from_dict) for item in data]

    # Hero endpoints

    async def create_hero(self, title: str, description: str) -> Hero:
        endpoint = "/hero"
        data = await self.transport.send(
            endpoint,
            "POST",
            {"title": title, "description": description},
            auth="optional",
        )
        return _parse(endpoint, data, Hero.from_dict)

    async def get_hero(self, hero_id: str) -> Hero:
        endpoint = f"/hero/{hero_id}"
        data = await self.transport.send(endpoint, "GET", auth="required")
        return _parse(endpoint, data, Hero.from_dict)

    async def get_hero_image(self, hero_id: str) -> bytes:
        return await self.transport.fetch_bytes(f"/hero/{hero_id}/image")

    # Fight endpoints

    async def start_fight(self, hero_id: str) -> FightResult:
        endpoint = f"/hero/{hero_id}/fight"
        data = await self.transport.send(endpoint, "POST", auth="required")
        result = _parse(endpoint, data, FightResult.from_dict)
        logger.info(
            f"Fight {result.fight.id} for hero {hero_id}: "
            f"{result.fight.outcome.label} ({result.rating_delta:+d})"
        )
        return result

    async def list_hero_fights(
        self,
        hero_id: str,
        last_id: Optional[str] = None,
        limit: int = DEFAULT_FIGHT_PAGE,
    ) -> FightPage:
        if not 1 <= limit <= MAX_FIGHT_PAGE:
            raise ValueError(f"limit must be between 1 and {MAX_FIGHT_PAGE}, got {limit}")
        endpoint = f"/hero/{hero_id}/fights"
        params: dict[str, Any] = {"limit": limit}
        if last_id:
            params["last_id"] = last_id
        data = await self.transport.send(endpoint, "GET", params=params)
        return _parse(endpoint, data, FightPage.from_dict)

    async def get_fight(self, hero_id: str, fight_id: str) -> Fight:
        endpoint = f"/hero/{hero_id}/fight/{fight_id}"
        data = await self.transport.send(endpoint, "GET")
        return _parse(endpoint, data, Fight.from_dict)
