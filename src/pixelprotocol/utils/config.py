"""Runtime configuration for the Pixel Protocol client.

All settings come from environment variables. The CLI loads a ``.env`` file
first, so the same names can live there.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_API_URL = "http://localhost:8080/api"
DEFAULT_CREDENTIALS_PATH = Path("~/.pixel-protocol/credentials.json")
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USERNAME_PREFIX = "Player"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class EnvVar:
    """Definition of an environment variable."""

    name: str
    description: str
    default: str | None = None


ENV_VARS: list[EnvVar] = [
    EnvVar(
        name="PIXEL_PROTOCOL_API_URL",
        description="Base URL of the arena API",
        default=DEFAULT_API_URL,
    ),
    EnvVar(
        name="PIXEL_PROTOCOL_CREDENTIALS",
        description="File that remembers the player identity between runs",
        default=str(DEFAULT_CREDENTIALS_PATH),
    ),
    EnvVar(
        name="PIXEL_PROTOCOL_TIMEOUT",
        description="Per-request timeout in seconds (fights can take a while)",
        default=str(DEFAULT_TIMEOUT_SECONDS),
    ),
    EnvVar(
        name="PIXEL_PROTOCOL_USERNAME_PREFIX",
        description="Prefix for generated player names",
        default=DEFAULT_USERNAME_PREFIX,
    ),
    EnvVar(
        name="PIXEL_PROTOCOL_LOG_LEVEL",
        description="Log level used by the CLI",
        default=DEFAULT_LOG_LEVEL,
    ),
]

ENV_VAR_MAP: dict[str, EnvVar] = {var.name: var for var in ENV_VARS}


@dataclass(frozen=True)
class ClientSettings:
    api_url: str = DEFAULT_API_URL
    credentials_path: Path = field(default_factory=lambda: DEFAULT_CREDENTIALS_PATH.expanduser())
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    username_prefix: str = DEFAULT_USERNAME_PREFIX
    log_level: str = DEFAULT_LOG_LEVEL


def _env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return ENV_VAR_MAP[name].default or ""
    return value.strip()


def load_settings() -> ClientSettings:
    """Build settings from the environment, falling back to defaults."""
    timeout_raw = _env("PIXEL_PROTOCOL_TIMEOUT")
    try:
        timeout = float(timeout_raw)
    except ValueError as exc:
        raise ValueError(
            f"PIXEL_PROTOCOL_TIMEOUT must be a number, got {timeout_raw!r}"
        ) from exc
    if timeout <= 0:
        raise ValueError(f"PIXEL_PROTOCOL_TIMEOUT must be positive, got {timeout_raw!r}")

    return ClientSettings(
        api_url=_env("PIXEL_PROTOCOL_API_URL").rstrip("/"),
        credentials_path=Path(_env("PIXEL_PROTOCOL_CREDENTIALS")).expanduser(),
        timeout=timeout,
        username_prefix=_env("PIXEL_PROTOCOL_USERNAME_PREFIX"),
        log_level=_env("PIXEL_PROTOCOL_LOG_LEVEL").upper(),
    )
