"""Tests for JWT credential management."""
from __future__ import annotations

import asyncio
import gc
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import make_jwt
from grampsweb_agents.gramps.auth import (
    DEFAULT_TOKEN_LIFETIME,
    TOKEN_EXPIRY_BUFFER,
    TokenManager,
    decode_jwt_payload,
)
from grampsweb_agents.gramps.errors import AuthenticationError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def token_server(responses):
    """Transport answering token requests from ``responses`` in order (last one repeats)."""
    calls: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        # Let concurrent callers pile up behind the in-flight refresh
        await asyncio.sleep(0.01)
        response = responses[min(len(calls), len(responses)) - 1]
        return response() if callable(response) else response

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), calls


def ok(token: str):
    return lambda: httpx.Response(200, json={"access_token": token})


class TestDecodeJwtPayload:
    """Tests for decode_jwt_payload."""

    def test_decodes_payload(self):
        token = make_jwt({"exp": 1234, "sub": "owner"})
        assert decode_jwt_payload(token) == {"exp": 1234, "sub": "owner"}

    def test_wrong_segment_count(self):
        assert decode_jwt_payload("only.two") is None
        assert decode_jwt_payload("a.b.c.d") is None

    def test_invalid_base64_or_json(self):
        assert decode_jwt_payload("header.!!!not-base64!!!.sig") is None
        assert decode_jwt_payload("header.bm90IGpzb24.sig") is None  # "not json"

    def test_non_object_payload(self):
        assert decode_jwt_payload("header.WzEsMl0.sig") is None  # "[1,2]"


class TestTokenManager:
    """Tests for TokenManager."""

    @pytest.mark.asyncio
    async def test_token_cached_between_calls(self, config):
        """A valid token is reused without another exchange."""
        http, calls = token_server([ok(make_jwt({"exp": 5000}))])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        first = await tokens.get_token()
        second = await tokens.get_token()

        assert first == second
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_posts_form_encoded_credentials(self, config):
        http, calls = token_server([ok(make_jwt({"exp": 5000}))])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        await tokens.get_token()

        request = calls[0]
        assert request.method == "POST"
        assert str(request.url) == "https://gramps.test/api/token/"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert parse_qs(request.content.decode()) == {"username": ["owner"], "password": ["secret"]}

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, config):
        """Many callers racing on an empty cache trigger a single exchange."""
        token = make_jwt({"exp": 5000})
        http, calls = token_server([ok(token)])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        results = await asyncio.gather(*(tokens.get_token() for _ in range(10)))

        assert results == [token] * 10
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expiry_buffer(self, config):
        """Token is valid until 30 seconds before its exp claim."""
        clock = FakeClock()
        http, calls = token_server([ok(make_jwt({"exp": 2000})), ok(make_jwt({"exp": 9000}))])
        tokens = TokenManager(config, http=http, clock=clock)

        await tokens.get_token()
        assert tokens.expiry == 2000 - TOKEN_EXPIRY_BUFFER

        clock.now = 2000 - 31
        await tokens.get_token()
        assert len(calls) == 1

        clock.now = 2000 - 30
        await tokens.get_token()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_undecodable_token_gets_default_lifetime(self, config):
        """A token without a readable exp claim is trusted for an hour minus the buffer."""
        http, _ = token_server([ok("opaque-token")])
        tokens = TokenManager(config, http=http, clock=FakeClock(1000.0))

        assert await tokens.get_token() == "opaque-token"
        assert tokens.expiry == 1000.0 + DEFAULT_TOKEN_LIFETIME - TOKEN_EXPIRY_BUFFER

    @pytest.mark.asyncio
    async def test_non_numeric_exp_uses_default_lifetime(self, config):
        http, _ = token_server([ok(make_jwt({"exp": "tomorrow"}))])
        tokens = TokenManager(config, http=http, clock=FakeClock(1000.0))

        await tokens.get_token()

        assert tokens.expiry == 1000.0 + DEFAULT_TOKEN_LIFETIME - TOKEN_EXPIRY_BUFFER

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, config):
        http, _ = token_server([httpx.Response(401, text="Bad credentials")])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        with pytest.raises(AuthenticationError) as exc_info:
            await tokens.get_token()

        assert exc_info.value.status_code == 401
        assert "Failed to authenticate" in exc_info.value.message
        assert "Bad credentials" in exc_info.value.message
        assert not tokens.has_valid_token

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_next_call_retries(self, config):
        """A failed refresh fails all joined callers; the following call starts anew."""
        token = make_jwt({"exp": 5000})
        http, calls = token_server([lambda: httpx.Response(500), ok(token)])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        results = await asyncio.gather(
            *(tokens.get_token() for _ in range(3)), return_exceptions=True
        )
        assert len(calls) == 1
        assert all(isinstance(r, AuthenticationError) for r in results)

        assert await tokens.get_token() == token
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_access_token(self, config):
        http, _ = token_server([lambda: httpx.Response(200, json={"token_type": "bearer"})])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        with pytest.raises(AuthenticationError, match="No access token in response"):
            await tokens.get_token()

    @pytest.mark.asyncio
    async def test_network_failure_is_authentication_error(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        tokens = TokenManager(config, http=http, clock=FakeClock())

        with pytest.raises(AuthenticationError) as exc_info:
            await tokens.get_token()
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_force_refresh_replaces_valid_token(self, config):
        old, new = make_jwt({"exp": 5000, "n": 1}), make_jwt({"exp": 5000, "n": 2})
        http, calls = token_server([ok(old), ok(new)])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        assert await tokens.get_token() == old
        assert await tokens.force_refresh() == new
        assert await tokens.get_token() == new
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_clear_forces_refresh(self, config):
        old, new = make_jwt({"exp": 5000, "n": 1}), make_jwt({"exp": 5000, "n": 2})
        http, calls = token_server([ok(old), ok(new)])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        assert await tokens.get_token() == old
        tokens.clear()

        assert not tokens.has_valid_token
        assert tokens.expiry == 0.0
        assert await tokens.get_token() == new
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_without_waiters_is_retrieved(self, config):
        """A refresh failing after its only waiter was cancelled is not reported as unretrieved."""
        loop = asyncio.get_running_loop()
        reported: list[dict] = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))
        try:
            http, calls = token_server([lambda: httpx.Response(500)])
            tokens = TokenManager(config, http=http, clock=FakeClock())

            waiter = asyncio.ensure_future(tokens.get_token())
            await asyncio.sleep(0)
            refresh = tokens._refresh_task
            waiter.cancel()
            await asyncio.sleep(0.05)

            assert refresh is not None and refresh.done() and not refresh.cancelled()
            assert len(calls) == 1
            del refresh
            gc.collect()
            assert reported == []
        finally:
            loop.set_exception_handler(None)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_refresh(self, config):
        token = make_jwt({"exp": 5000})
        http, calls = token_server([ok(token)])
        tokens = TokenManager(config, http=http, clock=FakeClock())

        doomed = asyncio.ensure_future(tokens.get_token())
        survivor = asyncio.ensure_future(tokens.get_token())
        await asyncio.sleep(0)
        doomed.cancel()

        assert await survivor == token
        assert len(calls) == 1
