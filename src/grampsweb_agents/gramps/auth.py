"""JWT credential management for the Gramps Web API.

One TokenManager is created per configured backend and injected into the
client that uses it. The cached token is shared by every outbound call and
refreshed on demand; concurrent callers that find the token missing or
expired all await the same refresh.
"""
from __future__ import annotations

import asyncio
import base64
import json
import time
from typing import Any, Callable

import httpx

from grampsweb_agents.config import GrampsConfig
from grampsweb_agents.gramps.errors import AuthenticationError
from grampsweb_agents.logging import get_logger

logger = get_logger(__name__)

# Tokens are treated as expired this many seconds before their exp claim
TOKEN_EXPIRY_BUFFER = 30.0
# Lifetime assumed for tokens whose expiry cannot be decoded
DEFAULT_TOKEN_LIFETIME = 3600.0


def decode_jwt_payload(token: str) -> dict[str, Any] | None:
    """Decode the payload segment of a JWT without verifying it.

    Returns None if the token is not three dot-separated segments or the
    payload is not base64url-encoded JSON.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


class TokenManager:
    """Caches a bearer token and refreshes it with single-flight semantics.

    Example:
        >>> tokens = TokenManager(GrampsConfig.from_env())
        >>> token = await tokens.get_token()
    """

    def __init__(
        self,
        config: GrampsConfig,
        http: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            config: Backend credentials and URLs
            http: Shared HTTP client; one is created (and owned) if omitted
            clock: Wall-clock source in epoch seconds
        """
        self.config = config
        self._http = http or httpx.AsyncClient(timeout=config.timeout)
        self._owns_http = http is None
        self._clock = clock
        self._token: str | None = None
        self._expiry: float = 0.0
        self._refresh_task: asyncio.Task[str] | None = None

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def expiry(self) -> float:
        return self._expiry

    @property
    def has_valid_token(self) -> bool:
        return self._token is not None and self._clock() < self._expiry

    async def get_token(self) -> str:
        """Return a valid access token, refreshing if necessary."""
        if self._token is not None and self._clock() < self._expiry:
            return self._token

        if self._refresh_task is None:
            task = asyncio.ensure_future(self.refresh())
            task.add_done_callback(self._refresh_finished)
            self._refresh_task = task

        # shield: a cancelled waiter must not cancel the refresh others await
        return await asyncio.shield(self._refresh_task)

    async def force_refresh(self) -> str:
        """Discard the cached token and return a freshly issued one."""
        self.clear()
        return await self.get_token()

    def _refresh_finished(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        # Waiters may all have been cancelled; mark the outcome retrieved
        if not task.cancelled():
            task.exception()

    async def refresh(self) -> str:
        """Exchange username/password for a fresh token and cache it.

        Raises:
            AuthenticationError: If the exchange is rejected or fails
        """
        logger.debug("token_refresh_started", url=self.config.token_url)
        try:
            response = await self._http.post(
                self.config.token_url,
                data={
                    "username": self.config.username,
                    "password": self.config.password,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.TimeoutException as e:
            raise AuthenticationError(
                f"Failed to authenticate: token request timed out ({e})",
                status_code=None,
                endpoint=self.config.token_url,
            ) from e
        except httpx.HTTPError as e:
            raise AuthenticationError(
                f"Failed to authenticate: {e}",
                status_code=None,
                endpoint=self.config.token_url,
            ) from e

        if not response.is_success:
            logger.warning("token_refresh_rejected", status=response.status_code)
            raise AuthenticationError(
                f"Failed to authenticate: {response.status_code} "
                f"{response.reason_phrase}. {response.text}".strip(),
                status_code=response.status_code,
                endpoint=self.config.token_url,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError("Token response was not valid JSON") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("No access token in response")

        self._token = token
        self._expiry = self._extract_expiry(token)
        logger.info("token_refreshed", expires_at=self._expiry)
        return token

    def _extract_expiry(self, token: str) -> float:
        payload = decode_jwt_payload(token)
        exp = payload.get("exp") if payload else None
        if isinstance(exp, (int, float)) and not isinstance(exp, bool):
            return float(exp) - TOKEN_EXPIRY_BUFFER
        return self._clock() + DEFAULT_TOKEN_LIFETIME - TOKEN_EXPIRY_BUFFER

    def clear(self) -> None:
        """Drop the cached token so the next get_token() refreshes."""
        self._token = None
        self._expiry = 0.0
