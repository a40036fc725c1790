"""HTTP transport for the arena API.

One ``httpx.AsyncClient`` per transport. Every request carries the
credential store entries as cookies; requests that need the player's secret
get it merged into the JSON body under ``_secret``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Literal, Mapping, Optional

import httpx
from loguru import logger

from pixelprotocol.utils.credential_store import CredentialStore

SECRET_FIELD = "_secret"

AuthMode = Literal["none", "optional", "required"]


class ArenaError(RuntimeError):
    """Base class for every error raised by the client."""


class TransportError(ArenaError):
    """No usable response: connection failure, timeout or malformed payload."""

    def __init__(self, endpoint: str, detail: str) -> None:
        super().__init__(f"{endpoint} failed: {detail}")
        self.endpoint = endpoint
        self.detail = detail


class DomainError(ArenaError):
    """The request reached the server (or was stopped locally) and was refused."""

    def __init__(self, endpoint: str, status: Optional[int], reason: str) -> None:
        if status is None:
            message = f"{endpoint} refused: {reason}"
        else:
            message = f"{endpoint} failed with status {status}: {reason}"
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
        self.reason = reason


class UnauthenticatedError(DomainError):
    """No credential available, or the server rejected the one we sent."""


class NotFoundError(DomainError):
    """The server reported the resource as missing."""


class RemoteRejectedError(DomainError):
    """Any other non-2xx response."""


def _error_for_status(endpoint: str, status: int, reason: str) -> DomainError:
    if status in (401, 403):
        return UnauthenticatedError(endpoint, status, reason)
    if status == 404:
        return NotFoundError(endpoint, status, reason)
    return RemoteRejectedError(endpoint, status, reason)


def _reason(response: httpx.Response) -> str:
    try:
        text = response.text.strip()
    except UnicodeDecodeError:
        text = ""
    return text or response.reason_phrase or f"HTTP {response.status_code}"


class Transport:
    """Executes requests against the arena API and classifies the results.

    The transport performs no retries; callers decide whether to try again.
    """

    def __init__(
        self,
        base_url: str,
        *,
        credentials: CredentialStore,
        secret_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._secret_provider = secret_provider
        self._owns_client = http_client is None
        self._http: Optional[httpx.AsyncClient] = http_client or httpx.AsyncClient(
            timeout=timeout
        )

    def set_secret_provider(self, provider: Optional[Callable[[], Optional[str]]]) -> None:
        """Install the callable that yields the active player's secret."""
        self._secret_provider = provider

    async def close(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
        self._http = None

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("Transport is closed")
        return self._http

    def _cookie_header(self) -> Dict[str, str]:
        pairs = [f"{name}={value}" for name, value in self._credentials.items()]
        return {"Cookie": "; ".join(pairs)} if pairs else {}

    def _current_secret(self) -> Optional[str]:
        if self._secret_provider is None:
            return None
        return self._secret_provider() or None

    def _build_body(
        self, endpoint: str, body: Optional[Mapping[str, Any]], auth: AuthMode
    ) -> Optional[Dict[str, Any]]:
        payload = dict(body) if body else {}
        if auth != "none":
            secret = self._current_secret()
            if secret:
                payload[SECRET_FIELD] = secret
            elif auth == "required":
                raise UnauthenticatedError(endpoint, None, "no player credential available")
        return payload or None

    async def _execute(
        self,
        endpoint: str,
        method: str,
        payload: Optional[Dict[str, Any]],
        params: Optional[Mapping[str, Any]],
    ) -> httpx.Response:
        http_client = self._ensure_http_client()
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")
        try:
            response = await http_client.request(
                method,
                url,
                json=payload,
                params=dict(params) if params else None,
                headers=self._cookie_header(),
            )
        except httpx.TimeoutException as exc:
            raise TransportError(endpoint, f"timed out ({exc.__class__.__name__})") from exc
        except httpx.HTTPError as exc:
            raise TransportError(endpoint, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            reason = _reason(response)
            logger.debug(f"{method} {url} -> {response.status_code}: {reason}")
            raise _error_for_status(endpoint, response.status_code, reason)
        return response

    async def send(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Mapping[str, Any]] = None,
        *,
        auth: AuthMode = "none",
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Send a JSON request and return the decoded response body.

        Args:
            endpoint: Path relative to the base URL, starting with ``/``
            method: HTTP method
            body: JSON object to send
            auth: ``"required"`` attaches the secret and fails fast with
                :class:`UnauthenticatedError` when there is none,
                ``"optional"`` attaches it only when available
            params: Query string parameters
        """
        payload = self._build_body(endpoint, body, auth)
        response = await self._execute(endpoint, method.upper(), payload, params)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(endpoint, "response was not valid JSON") from exc

    async def fetch_bytes(
        self, endpoint: str, *, params: Optional[Mapping[str, Any]] = None
    ) -> bytes:
        """GET a binary resource using cookies only."""
        response = await self._execute(endpoint, "GET", None, params)
        return response.content
