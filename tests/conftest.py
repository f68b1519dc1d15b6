"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from firebase_database_rest import RestApi

Handler = Callable[[httpx.Request], httpx.Response]


def encode_sse(*events: tuple[str, Any]) -> bytes:
    """Encode (label, data) pairs as a text/event-stream body.

    Non-string data is JSON encoded, strings are sent verbatim.
    """
    chunks = []
    for label, data in events:
        payload = data if isinstance(data, str) else json.dumps(data)
        chunks.append(f"event: {label}\ndata: {payload}\n\n")
    return "".join(chunks).encode("utf-8")


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether the client closed it."""

    def __init__(self, *chunks: bytes, error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def requests() -> list[httpx.Request]:
    """Requests seen by the mock transport of make_api."""
    return []


@pytest.fixture
def make_api(requests: list[httpx.Request]) -> Callable[..., RestApi]:
    """Build a RestApi whose HTTP traffic is answered by ``handler``."""

    def _make(handler: Handler | None = None, **kwargs: Any) -> RestApi:
        def record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if handler is None:
                return httpx.Response(200, content=b"null")
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(record))
        kwargs.setdefault("database", "test-db")
        return RestApi(client=client, **kwargs)

    return _make


@pytest.fixture
def sse_body() -> Callable[..., bytes]:
    return encode_sse


@pytest.fixture
def make_stream() -> Callable[..., TrackingStream]:
    return TrackingStream
