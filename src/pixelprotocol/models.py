"""Data models for players, heroes and fights."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


class MalformedPayload(ValueError):
    """Raised when a server payload does not match the expected shape."""


class FightOutcome(IntEnum):
    """Fight outcome from the attacker's point of view."""

    DRAW = 0
    VICTORY = 1
    DEFEAT = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


class SessionStatus(Enum):
    """Lifecycle of a client session."""

    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    ERRORED = "errored"


def _require(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    if not isinstance(data, Mapping):
        raise MalformedPayload(f"expected an object, got {type(data).__name__}")
    if key not in data:
        raise MalformedPayload(f"missing field {key!r}")
    value = data[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise MalformedPayload(f"field {key!r} has unexpected type bool")
    if not isinstance(value, kind):
        raise MalformedPayload(f"field {key!r} has unexpected type {type(value).__name__}")
    return value


def _require_integral(data: Mapping[str, Any], key: str) -> int:
    value = _require(data, key, (int, float))
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise MalformedPayload(f"field {key!r} is not a whole number: {value!r}")
        return int(value)
    return value


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, including nanosecond precision."""
    text = _FRACTION_RE.sub(r".\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MalformedPayload(f"invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Player:
    """Anonymous player identity. The secret token authenticates requests."""

    id: str
    display_name: str
    display_discriminator: int
    secret_token: str = field(repr=False)

    @property
    def display_handle(self) -> str:
        return f"{self.display_name}#{self.display_discriminator}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Player":
        return cls(
            id=_require(data, "ID", str),
            display_name=_require(data, "UserName", str),
            display_discriminator=int(_require(data, "UserNameSuffix", int)),
            # the secret is omitted when a player is embedded in someone else's hero
            secret_token=str(data.get("Secret") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ID": self.id,
            "UserName": self.display_name,
            "UserNameSuffix": self.display_discriminator,
            "Secret": self.secret_token,
        }


@dataclass
class Hero:
    """A player's hero. Only ``rating`` changes after creation."""

    id: str
    owner_player_id: str
    title: str
    description: str
    country: str
    rating: int
    owner: Optional[Player] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Hero":
        owner_data = data.get("Player") if isinstance(data, Mapping) else None
        return cls(
            id=_require(data, "ID", str),
            owner_player_id=_require(data, "PlayerID", str),
            title=_require(data, "Title", str),
            description=_require(data, "Description", str),
            country=str(data.get("Country") or ""),
            rating=_require_integral(data, "Elo"),
            owner=Player.from_dict(owner_data) if owner_data else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ID": self.id,
            "PlayerID": self.owner_player_id,
            "Title": self.title,
            "Description": self.description,
            "Country": self.country,
            "Elo": self.rating,
        }
        if self.owner is not None:
            payload["Player"] = self.owner.to_dict()
        return payload


@dataclass(frozen=True)
class Fight:
    """Immutable record of a resolved fight.

    The snapshots hold the combatants as they were when the fight was stored;
    their ratings are not the heroes' current ratings.
    """

    id: str
    attacker_hero_id: str
    attacker_snapshot: Hero
    defender_hero_id: str
    defender_snapshot: Hero
    timestamp: datetime
    outcome: FightOutcome
    narrative: str

    @property
    def paragraphs(self) -> List[str]:
        return [line for line in self.narrative.split("\n") if line.strip()]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Fight":
        raw_outcome = _require(data, "Outcome", int)
        try:
            outcome = FightOutcome(raw_outcome)
        except ValueError as exc:
            raise MalformedPayload(f"unknown fight outcome {raw_outcome!r}") from exc
        return cls(
            id=_require(data, "ID", str),
            attacker_hero_id=_require(data, "AttackerID", str),
            attacker_snapshot=Hero.from_dict(_require(data, "Attacker", dict)),
            defender_hero_id=_require(data, "DefenderID", str),
            defender_snapshot=Hero.from_dict(_require(data, "Defender", dict)),
            timestamp=parse_timestamp(_require(data, "Timestamp", str)),
            outcome=outcome,
            narrative=str(data.get("Transcript") or ""),
        )


@dataclass(frozen=True)
class FightResult:
    """Response to a fight request: the fight plus the attacker's rating change."""

    fight: Fight
    victory: bool
    rating_delta: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FightResult":
        return cls(
            fight=Fight.from_dict(_require(data, "fight", dict)),
            victory=_require(data, "victory", bool),
            rating_delta=int(_require(data, "elo_gain", int)),
        )


@dataclass(frozen=True)
class FightPage:
    """One page of a hero's fight history."""

    fights: List[Fight]
    has_more: bool
    next_cursor: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FightPage":
        raw_fights = _require(data, "fights", list)
        cursor = data.get("next_cursor") or None
        return cls(
            fights=[Fight.from_dict(item) for item in raw_fights],
            has_more=bool(data.get("has_more", False)),
            next_cursor=str(cursor) if cursor is not None else None,
        )
