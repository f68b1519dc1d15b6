"""Unit tests for FirebaseDatabase and its factory functions."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from firebase_database_rest import (
    AuthProvider,
    DataCodec,
    FirebaseDatabase,
    RestApi,
    Timeout,
    WriteSizeLimit,
    create_database,
    create_database_from_credentials,
    create_unauthenticated_database,
)

MakeApi = Callable[..., RestApi]


class FakeAuth:
    """Auth provider whose token rotations are driven by the test."""

    def __init__(self, id_token: str | None = "initial"):
        self._id_token = id_token
        self._tokens: asyncio.Queue[str | None] = asyncio.Queue()
        self.aclose = AsyncMock()

    @property
    def id_token(self) -> str | None:
        return self._id_token

    async def rotate(self, token: str) -> None:
        self._id_token = token
        await self._tokens.put(token)

    async def fail(self) -> None:
        await self._tokens.put(None)

    async def id_token_stream(self) -> AsyncIterator[str]:
        while True:
            token = await self._tokens.get()
            if token is None:
                raise RuntimeError("refresh failed")
            yield token


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


# =============================================================================
# FirebaseDatabase
# =============================================================================


class TestFirebaseDatabase:
    def test_fake_auth_is_an_auth_provider(self) -> None:
        assert isinstance(FakeAuth(), AuthProvider)

    @pytest.mark.asyncio
    async def test_root_store(self, make_api: MakeApi) -> None:
        db = create_database(make_api())
        assert db.root_store.path == ""
        assert db.root_store.api is db.api
        assert db.auth is None

    @pytest.mark.asyncio
    async def test_create_store(self, make_api: MakeApi, requests: list[httpx.Request]) -> None:
        api = make_api(lambda request: httpx.Response(200, json={"x": 1}))
        db = create_database(api)

        store = db.create_store("users", DataCodec.identity())

        assert store.path == "users"
        assert await store.read("alice") == {"x": 1}
        assert requests[0].url.path == "/users/alice.json"

    @pytest.mark.asyncio
    async def test_token_rotation_reaches_requests(
        self, make_api: MakeApi, requests: list[httpx.Request]
    ) -> None:
        auth = FakeAuth()
        api = make_api(id_token=auth.id_token)

        async with create_database(api, auth) as db:
            await db.api.get("a")
            await auth.rotate("second")
            await _settle()
            await db.api.get("a")

        assert requests[0].url.params["auth"] == "initial"
        assert requests[1].url.params["auth"] == "second"

    @pytest.mark.asyncio
    async def test_dispose_closes_auth(self, make_api: MakeApi) -> None:
        auth = FakeAuth()
        db = create_database(make_api(), auth)
        await db.start()

        await db.dispose()

        auth.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_token_stream_failure_keeps_last_token(
        self, make_api: MakeApi, caplog: pytest.LogCaptureFixture
    ) -> None:
        auth = FakeAuth()
        db = create_database(make_api(id_token="initial"), auth)
        await db.start()

        await auth.fail()
        await _settle()

        assert db.api.id_token == "initial"
        assert "token updates stopped" in caplog.text
        await db.dispose()

    @pytest.mark.asyncio
    async def test_start_without_auth_is_noop(self, make_api: MakeApi) -> None:
        async with create_database(make_api()) as db:
            assert isinstance(db, FirebaseDatabase)


# =============================================================================
# Factories
# =============================================================================


class TestFactories:
    @pytest.mark.asyncio
    async def test_from_credentials(self) -> None:
        auth = FakeAuth("seed")
        client = httpx.AsyncClient()

        db = create_database_from_credentials(
            auth,
            "my-db",
            base_path="app",
            timeout=Timeout.s(30),
            write_size_limit=WriteSizeLimit.MEDIUM,
            client=client,
        )

        assert db.auth is auth
        assert db.api.client is client
        assert db.api.id_token == "seed"
        uri = db.api.build_uri("x")
        assert uri.host == "my-db.firebaseio.com"
        assert uri.path == "/app/x.json"
        assert uri.params["timeout"] == "30s"
        assert uri.params["writeSizeLimit"] == "medium"

        await db.dispose()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unauthenticated(self) -> None:
        db = create_unauthenticated_database("public-db")

        assert db.auth is None
        assert db.api.id_token is None
        assert db.api.timeout == Timeout.min(15)
        assert "auth" not in db.api.build_uri("x").params

        await db.dispose()
        assert db.api.client.is_closed
