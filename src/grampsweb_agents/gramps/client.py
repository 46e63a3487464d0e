"""
Gramps Web API client.

Async HTTP transport for a Gramps Web instance: bearer authentication via
an injected TokenManager, one retry after a 401, and typed errors for every
other failure.

Reference: https://gramps-project.github.io/gramps-web-api/
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from grampsweb_agents.config import GrampsConfig
from grampsweb_agents.gramps.auth import TokenManager
from grampsweb_agents.gramps.errors import (
    AuthenticationError,
    GrampsAPIError,
    NotFoundError,
    RequestTimeoutError,
)
from grampsweb_agents.gramps.models import Family, Person
from grampsweb_agents.logging import get_logger

logger = get_logger(__name__)

# Entity collection endpoints (append a handle for a single record)
ENDPOINTS = {
    "people": "/people/",
    "families": "/families/",
    "events": "/events/",
    "places": "/places/",
    "sources": "/sources/",
    "citations": "/citations/",
    "repositories": "/repositories/",
    "media": "/media/",
    "notes": "/notes/",
    "tags": "/tags/",
    "search": "/search/",
    "metadata": "/metadata/",
    "recent": "/recent/",
}

ENTITY_TYPES = (
    "people",
    "families",
    "events",
    "places",
    "sources",
    "citations",
    "repositories",
    "media",
    "notes",
)

_SINGULAR = {
    "person": "people",
    "family": "families",
    "event": "events",
    "place": "places",
    "source": "sources",
    "citation": "citations",
    "repository": "repositories",
    "note": "notes",
    "tag": "tags",
}

Params = dict[str, str | int | float | bool | None]


def normalize_entity_type(entity_type: str, allow_tags: bool = False) -> str:
    """Map singular or mixed-case entity names to the collection name.

    Raises:
        ValueError: If the entity type is unknown
    """
    key = entity_type.strip().lower()
    key = _SINGULAR.get(key, key)
    valid = ENTITY_TYPES + (("tags",) if allow_tags else ())
    if key not in valid:
        raise ValueError(f"Unknown entity type: {entity_type!r}. Valid types: {', '.join(valid)}")
    return key


def entity_endpoint(entity_type: str, handle: str | None = None, allow_tags: bool = False) -> str:
    path = ENDPOINTS[normalize_entity_type(entity_type, allow_tags)]
    return f"{path}{handle}" if handle else path


class GrampsWebClient:
    """Authenticated client for one Gramps Web backend.

    Example:
        config = GrampsConfig.from_env()
        async with GrampsWebClient(config) as client:
            person = await client.get_person("a1b2c3d4e5")
            print(person.gramps_id)
    """

    def __init__(
        self,
        config: GrampsConfig,
        tokens: TokenManager | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            config: Backend configuration
            tokens: Credential manager; built from config if omitted
            http: HTTP client; one is created (and owned) if omitted
        """
        self.config = config
        self._http = http or httpx.AsyncClient(
            timeout=config.timeout,
            headers={"Accept": "application/json"},
        )
        self._owns_http = http is None
        self.tokens = tokens or TokenManager(config, http=self._http)

    async def __aenter__(self) -> GrampsWebClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.tokens.close()
        if self._owns_http:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: Params | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Make an authenticated API request and return the decoded JSON body.

        A 401 response triggers one token refresh and one retry. An empty
        body decodes to ``{}``.

        Raises:
            AuthenticationError: If the retry after refresh is also rejected
            NotFoundError: On 404
            RequestTimeoutError: If the request exceeds its timeout
            GrampsAPIError: On any other non-2xx status or transport failure
        """
        url = f"{self.config.base_url}{path}"
        query = {k: _param_value(v) for k, v in (params or {}).items() if v is not None}
        timeout = timeout or self.config.timeout

        token = await self.tokens.get_token()
        response = await self._send(method, url, path, token, json_body, query, timeout)

        if response.status_code == 401:
            logger.info("auth_rejected_retrying", endpoint=path)
            token = await self.tokens.force_refresh()
            response = await self._send(method, url, path, token, json_body, query, timeout)
            if response.status_code == 401:
                raise AuthenticationError(
                    f"Request still unauthorized after token refresh: {_error_message(response)}",
                    endpoint=path,
                )

        if not response.is_success:
            self._raise_for_response(response, path)

        if not response.content:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise GrampsAPIError(
                f"Invalid JSON in response: {e}", response.status_code, path
            ) from e

    async def _send(
        self,
        method: str,
        url: str,
        path: str,
        token: str,
        json_body: Any,
        query: dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            return await self._http.request(
                method,
                url,
                params=query or None,
                json=json_body,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("request_timeout", endpoint=path, timeout=timeout)
            raise RequestTimeoutError(timeout, path) from e
        except httpx.HTTPError as e:
            raise GrampsAPIError(str(e) or type(e).__name__, None, path) from e

    def _raise_for_response(self, response: httpx.Response, path: str) -> None:
        if response.status_code == 404:
            raise NotFoundError("Resource", path, path)
        message = _error_message(response)
        logger.warning("api_error", endpoint=path, status=response.status_code, message=message)
        raise GrampsAPIError(message, response.status_code, path)

    # =========================================
    # HTTP verbs
    # =========================================

    async def get(self, path: str, params: Params | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, json_body=body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request("PUT", path, json_body=body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    # =========================================
    # Typed record access
    # =========================================

    async def get_person(self, handle: str) -> Person:
        """Get a person by handle. Raises NotFoundError if absent."""
        data = await self.get(entity_endpoint("people", handle))
        return Person.model_validate(data)

    async def get_family(self, handle: str) -> Family:
        """Get a family by handle. Raises NotFoundError if absent."""
        data = await self.get(entity_endpoint("families", handle))
        return Family.model_validate(data)


def _param_value(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    message = f"{response.status_code} {response.reason_phrase}".strip()
    if not response.content:
        return message
    try:
        parsed = response.json()
    except ValueError:
        return message
    if isinstance(parsed, dict):
        if parsed.get("detail"):
            return str(parsed["detail"])
        if parsed.get("message"):
            return str(parsed["message"])
        error = parsed.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return message
