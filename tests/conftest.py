"""Shared fixtures: an in-memory Gramps Web backend served over httpx.MockTransport."""
from __future__ import annotations

import base64
import json
import time
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from grampsweb_agents.config import GrampsConfig
from grampsweb_agents.gramps.client import GrampsWebClient

Route = Callable[[httpx.Request], httpx.Response]


def make_jwt(payload: dict[str, Any]) -> str:
    """Unsigned JWT carrying ``payload``."""

    def segment(obj: dict[str, Any]) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()

    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(payload)}.sig"


class FakeGrampsServer:
    """Minimal Gramps Web API: token endpoint plus people/families by handle.

    Extra endpoints are registered in ``routes`` keyed by (method, path).
    """

    def __init__(self) -> None:
        self.people: dict[str, dict[str, Any]] = {}
        self.families: dict[str, dict[str, Any]] = {}
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []
        self.token_requests = 0
        self.reject_credentials = False
        self.token = make_jwt({"exp": time.time() + 3600})

    def add_person(
        self,
        handle: str,
        first_name: str,
        surname: str = "",
        parent_families: tuple[str, ...] = (),
        families: tuple[str, ...] = (),
        gender: int = 2,
    ) -> dict[str, Any]:
        person = {
            "_class": "Person",
            "handle": handle,
            "gramps_id": f"I{handle.upper()}",
            "gender": gender,
            "primary_name": {
                "_class": "Name",
                "first_name": first_name,
                "surname_list": [{"_class": "Surname", "surname": surname, "primary": True}]
                if surname
                else [],
            },
            "parent_family_list": list(parent_families),
            "family_list": list(families),
        }
        self.people[handle] = person
        return person

    def add_family(
        self,
        handle: str,
        father: str | None = None,
        mother: str | None = None,
        children: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        family = {
            "_class": "Family",
            "handle": handle,
            "gramps_id": f"F{handle.upper()}",
            "father_handle": father,
            "mother_handle": mother,
            "child_ref_list": [
                {"_class": "ChildRef", "ref": c, "frel": "Birth", "mrel": "Birth"} for c in children
            ],
        }
        self.families[handle] = family
        return family

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/token/":
            self.token_requests += 1
            if self.reject_credentials:
                return httpx.Response(401, text="Invalid credentials")
            return httpx.Response(200, json={"access_token": self.token})

        route = self.routes.get((request.method, path))
        if route is not None:
            return route(request)

        if request.method == "GET":
            for prefix, store in (("/api/people/", self.people), ("/api/families/", self.families)):
                if path.startswith(prefix) and path != prefix:
                    record = store.get(path[len(prefix):])
                    if record is None:
                        return httpx.Response(404, json={"message": "Not Found"})
                    return httpx.Response(200, json=record)

        return httpx.Response(404, json={"message": "Not Found"})

    def fetched(self, prefix: str) -> list[str]:
        """Handles fetched with GET under ``/api/<prefix>/``, in request order."""
        base = f"/api/{prefix}/"
        return [
            r.url.path[len(base):]
            for r in self.requests
            if r.method == "GET" and r.url.path.startswith(base) and r.url.path != base
        ]

    def paths(self, method: str) -> list[str]:
        return [r.url.path for r in self.requests if r.method == method]

    def client(self, config: GrampsConfig) -> GrampsWebClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return GrampsWebClient(config, http=http)


@pytest.fixture
def config() -> GrampsConfig:
    return GrampsConfig(
        api_url="https://gramps.test/",
        username="owner",
        password="secret",
    )


@pytest.fixture
def server() -> FakeGrampsServer:
    return FakeGrampsServer()


@pytest.fixture
def client(server: FakeGrampsServer, config: GrampsConfig) -> GrampsWebClient:
    return server.client(config)
