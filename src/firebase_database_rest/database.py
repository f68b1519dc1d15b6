"""Database facade: a RestApi plus optional auth token wiring.

Two ways to create one:
- create_database(api, auth): wrap an existing RestApi
- create_database_from_credentials(auth, database, ...): build the RestApi too

When an auth provider is attached, start() follows its token stream and
pushes every rotated token into the RestApi.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

from .config import RestApiConfig
from .models import Timeout, WriteSizeLimit
from .rest_api import RestApi
from .store import DataCodec, FirebaseStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class AuthProvider(Protocol):
    """Source of ID tokens for the database.

    The provider owns sign-in and refresh; the database only consumes tokens.
    """

    @property
    def id_token(self) -> str | None:
        """The currently valid token."""
        ...

    def id_token_stream(self) -> AsyncIterator[str]:
        """Yield every new token as soon as the provider refreshed it."""
        ...


@dataclass
class DatabaseConfig:
    """Everything a FirebaseDatabase is built from."""

    api: RestApi
    auth: AuthProvider | None = None


class FirebaseDatabase:
    """Entry point bundling the RestApi, auth wiring and a root store."""

    def __init__(self, config: DatabaseConfig):
        self._api = config.api
        self._auth = config.auth
        self._token_task: asyncio.Task[None] | None = None
        self._root_store: FirebaseStore[Any] = FirebaseStore(self._api, [], DataCodec.identity())

    @property
    def api(self) -> RestApi:
        return self._api

    @property
    def auth(self) -> AuthProvider | None:
        return self._auth

    @property
    def root_store(self) -> FirebaseStore[Any]:
        return self._root_store

    async def start(self) -> None:
        """Begin following the auth provider's token stream."""
        if self._auth is None or self._token_task is not None:
            return
        self._token_task = asyncio.create_task(self._follow_tokens(self._auth))

    async def dispose(self) -> None:
        """Stop token updates and release the auth provider and HTTP client."""
        if self._token_task:
            self._token_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._token_task
            self._token_task = None

        aclose = getattr(self._auth, "aclose", None)
        if aclose is not None:
            await aclose()

        await self._api.close()

    def create_store(self, path: str, codec: DataCodec[T]) -> FirebaseStore[T]:
        """Create a typed store for the location ``path``."""
        return FirebaseStore(self._api, [path] if path else [], codec)

    async def _follow_tokens(self, auth: AuthProvider) -> None:
        try:
            async for token in auth.id_token_stream():
                self._api.set_id_token(token)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Auth token stream failed, token updates stopped: {e}")

    async def __aenter__(self) -> FirebaseDatabase:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()


def create_database(api: RestApi, auth: AuthProvider | None = None) -> FirebaseDatabase:
    """Create a database around an existing RestApi."""
    return FirebaseDatabase(DatabaseConfig(api=api, auth=auth))


def create_database_from_credentials(
    auth: AuthProvider,
    database: str,
    *,
    base_path: str = "",
    timeout: Timeout | None = None,
    write_size_limit: WriteSizeLimit = WriteSizeLimit.UNLIMITED,
    client: httpx.AsyncClient | None = None,
) -> FirebaseDatabase:
    """Create an authenticated database, seeded with the provider's current token.

    Args:
        auth: Provider of ID tokens
        database: Database name (the ``<name>.firebaseio.com`` subdomain)
        base_path: Location all paths are relative to
        timeout: Server-side read timeout (default 15 minutes)
        write_size_limit: Write size tier (default unlimited)
        client: httpx client to use; one is created and owned when omitted

    Returns:
        FirebaseDatabase following the provider's token rotation once started
    """
    config = RestApiConfig(
        database=database,
        base_path=base_path,
        write_size_limit=write_size_limit,
    )
    if timeout is not None:
        config.timeout = timeout
    api = RestApi.from_config(config, client=client, id_token=auth.id_token)
    return create_database(api, auth)


def create_unauthenticated_database(
    database: str,
    *,
    base_path: str = "",
    timeout: Timeout | None = None,
    write_size_limit: WriteSizeLimit = WriteSizeLimit.UNLIMITED,
    client: httpx.AsyncClient | None = None,
) -> FirebaseDatabase:
    """Create a database that sends no auth token (public rules only)."""
    config = RestApiConfig(
        database=database,
        base_path=base_path,
        write_size_limit=write_size_limit,
    )
    if timeout is not None:
        config.timeout = timeout
    return create_database(RestApi.from_config(config, client=client))
