"""Low-level REST client for the realtime database.

Maps every database operation onto one HTTPS request:
- Builds the request URL from the path, the session state and read modifiers
- Builds the request headers per call kind
- Decodes responses into DbResponse values or typed errors
- Decodes streaming reads (SSE) into StreamEvent values

The client holds no global state. The only mutable value shared between
concurrent requests is the auth token, read once when a request URL is built
and replaced through set_id_token() whenever the auth session rotates.
"""

from __future__ import annotations

import json
import logging
import posixpath
from urllib.parse import quote
from collections.abc import AsyncIterator
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import RestApiConfig
from .errors import DbDecodeError, DbError, DbTransportError
from .filter import Filter
from .models import (
    DbResponse,
    FormatMode,
    PrintMode,
    StreamEvent,
    StreamEventAuthRevoked,
    StreamEventPatch,
    StreamEventPut,
    StreamEventType,
    Timeout,
    WriteSizeLimit,
)
from .sse import ServerSentEvent, aiter_sse

logger = logging.getLogger(__name__)

EventModel = TypeVar("EventModel", bound=BaseModel)


class RestApi:
    """Asynchronous REST client bound to one database and base path.

    Usage:
        async with RestApi.from_config(RestApiConfig(database="my-db")) as api:
            api.set_id_token(token)
            response = await api.get("users/alice", e_tag=True)
            async for event in api.stream("users"):
                ...
    """

    SERVER_TIMESTAMP = {".sv": "timestamp"}

    def __init__(
        self,
        client: httpx.AsyncClient,
        database: str,
        base_path: str = "",
        id_token: str | None = None,
        timeout: Timeout | None = None,
        write_size_limit: WriteSizeLimit = WriteSizeLimit.UNLIMITED,
        owns_client: bool = False,
    ):
        self._client = client
        self._owns_client = owns_client
        self._database = database
        self._base_path = base_path
        self._id_token = id_token
        self._timeout = timeout or Timeout.min(15)
        self._write_size_limit = write_size_limit

    @classmethod
    def from_config(
        cls,
        config: RestApiConfig,
        client: httpx.AsyncClient | None = None,
        id_token: str | None = None,
    ) -> RestApi:
        """Create a client from configuration.

        When no httpx client is given, one is created and closed with the RestApi.
        """
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(config.http_timeout))
        return cls(
            client=client,
            database=config.database,
            base_path=config.base_path,
            id_token=id_token,
            timeout=config.timeout,
            write_size_limit=config.write_size_limit,
            owns_client=owns_client,
        )

    # =========================================================================
    # Endpoint identity and session state
    # =========================================================================

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def database(self) -> str:
        return self._database

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def id_token(self) -> str | None:
        return self._id_token

    @property
    def timeout(self) -> Timeout:
        return self._timeout

    @property
    def write_size_limit(self) -> WriteSizeLimit:
        return self._write_size_limit

    def set_id_token(self, id_token: str | None) -> None:
        """Replace the auth token used by all subsequently built requests."""
        logger.debug(f"Auth token {'updated' if id_token else 'cleared'}")
        self._id_token = id_token

    def configure(
        self,
        timeout: Timeout | None = None,
        write_size_limit: WriteSizeLimit | None = None,
    ) -> None:
        """Change the server timeout and/or write size limit of future requests."""
        if timeout is not None:
            self._timeout = timeout
        if write_size_limit is not None:
            self._write_size_limit = write_size_limit

    # =========================================================================
    # Requests
    # =========================================================================

    async def get(
        self,
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        format_mode: FormatMode = FormatMode.NORMAL,
        shallow: bool | None = None,
        filter: Filter | None = None,
        e_tag: bool = False,
    ) -> DbResponse:
        """Read the data at ``path``."""
        uri = self.build_uri(
            path,
            filter=filter,
            print_mode=print_mode,
            format_mode=format_mode,
            shallow=shallow,
        )
        return await self._send("GET", uri, headers=self.build_headers(e_tag=e_tag), e_tag=e_tag)

    async def post(
        self,
        body: dict[str, Any],
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        e_tag: bool = False,
    ) -> DbResponse:
        """Append ``body`` as a new child with a server-generated key."""
        uri = self.build_uri(path, print_mode=print_mode)
        headers = self.build_headers(has_body=True, e_tag=e_tag)
        return await self._send("POST", uri, headers=headers, body=body, e_tag=e_tag)

    async def put(
        self,
        body: dict[str, Any],
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        e_tag: bool = False,
        if_match: str | None = None,
    ) -> DbResponse:
        """Replace the data at ``path``, optionally only if its ETag matches ``if_match``."""
        uri = self.build_uri(path, print_mode=print_mode)
        headers = self.build_headers(has_body=True, e_tag=e_tag, if_match=if_match)
        return await self._send("PUT", uri, headers=headers, body=body, e_tag=e_tag)

    async def patch(
        self,
        body: dict[str, Any],
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        e_tag: bool = False,
    ) -> DbResponse:
        """Replace only the children of ``path`` named in ``body``."""
        uri = self.build_uri(path, print_mode=print_mode)
        headers = self.build_headers(has_body=True, e_tag=e_tag)
        return await self._send("PATCH", uri, headers=headers, body=body, e_tag=e_tag)

    async def delete(
        self,
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        e_tag: bool = False,
        if_match: str | None = None,
    ) -> DbResponse:
        """Remove the data at ``path``, optionally only if its ETag matches ``if_match``."""
        uri = self.build_uri(path, print_mode=print_mode)
        headers = self.build_headers(e_tag=e_tag, if_match=if_match)
        return await self._send("DELETE", uri, headers=headers, e_tag=e_tag)

    async def stream(
        self,
        path: str | None = None,
        *,
        print_mode: PrintMode = PrintMode.NORMAL,
        format_mode: FormatMode = FormatMode.NORMAL,
        shallow: bool | None = None,
        filter: Filter | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Subscribe to changes of the data at ``path``.

        Yields events until the server closes the connection. A ``cancel``
        event ends the iteration with a DbError. The connection is closed
        whenever the iteration ends, including when the caller stops early.
        """
        uri = self.build_uri(
            path,
            filter=filter,
            print_mode=print_mode,
            format_mode=format_mode,
            shallow=shallow,
        )
        logger.debug(f"Opening stream on {uri.path}")
        try:
            async with self._client.stream(
                "GET",
                uri,
                headers=self.build_headers(accept="text/event-stream"),
                timeout=self._stream_timeout(),
                follow_redirects=True,  # The server redirects streams to a serving node
            ) as response:
                if response.status_code >= 300:
                    await response.aread()
                    self._parse_response(response, e_tag=False)

                async for sse in aiter_sse(response.aiter_lines()):
                    logger.debug(f"Received event of type: {sse.event}")
                    event = self._decode_event(sse)
                    if event is not None:
                        yield event
        except httpx.RequestError as e:
            raise DbTransportError(f"Stream on {uri.path} failed: {e}") from e
        logger.debug(f"Stream on {uri.path} closed by server")

    async def close(self) -> None:
        """Close the underlying httpx client if this RestApi created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RestApi:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Request building
    # =========================================================================

    def build_uri(
        self,
        path: str | None,
        *,
        filter: Filter | None = None,
        print_mode: PrintMode = PrintMode.NORMAL,
        format_mode: FormatMode = FormatMode.NORMAL,
        shallow: bool | None = None,
    ) -> httpx.URL:
        """Build the full request URL for ``path``.

        The path is normalized like a POSIX path below the base path and gets
        the ``.json`` suffix. ``timeout`` and ``writeSizeLimit`` are always sent,
        the other parameters only when they differ from the server default.
        Filter parameters are merged last.
        """
        full_path = posixpath.normpath(f"/{self._base_path}/{path or ''}.json")
        full_path = "/" + full_path.lstrip("/")  # normpath keeps a leading "//"

        params: dict[str, str] = {}
        if self._id_token is not None:
            params["auth"] = self._id_token
        params["timeout"] = self._timeout.serialize()
        params["writeSizeLimit"] = self._write_size_limit.value
        if print_mode != PrintMode.NORMAL:
            params["print"] = print_mode.value
        if format_mode != FormatMode.NORMAL:
            params["format"] = format_mode.value
        if shallow is not None:
            params["shallow"] = "true" if shallow else "false"
        if filter is not None:
            params.update(filter.filters)

        # Keys may contain "?", "#" or "%", which must not be read as URL syntax
        encoded_path = quote(full_path, safe="/")
        return httpx.URL(f"https://{self._database}.firebaseio.com{encoded_path}", params=params)

    def build_headers(
        self,
        *,
        has_body: bool = False,
        e_tag: bool = False,
        if_match: str | None = None,
        accept: str | None = None,
    ) -> dict[str, str]:
        """Build request headers; absent options are omitted entirely."""
        headers = {"Accept": accept or "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if e_tag:
            headers["X-Firebase-ETag"] = "true"
        if if_match is not None:
            headers["if-match"] = if_match
        return headers

    # =========================================================================
    # Response decoding
    # =========================================================================

    async def _send(
        self,
        method: str,
        uri: httpx.URL,
        *,
        headers: dict[str, str],
        e_tag: bool,
        body: dict[str, Any] | None = None,
    ) -> DbResponse:
        logger.debug(f"Sending {method.lower()} request to {uri.path}")
        content = json.dumps(body) if body is not None else None
        try:
            response = await self._client.request(method, uri, headers=headers, content=content)
        except httpx.RequestError as e:
            raise DbTransportError(f"{method} {uri.path} failed: {e}") from e
        return self._parse_response(response, e_tag)

    def _parse_response(self, response: httpx.Response, e_tag: bool) -> DbResponse:
        tag = response.headers.get("ETag") if e_tag else None
        if response.status_code >= 300:
            raise DbError.from_json(self._decode_body(response), status_code=response.status_code)
        if response.status_code == 204:
            return DbResponse(data=None, e_tag=tag)
        return DbResponse(data=self._decode_body(response), e_tag=tag)

    def _decode_body(self, response: httpx.Response) -> Any:
        try:
            return json.loads(response.text)
        except json.JSONDecodeError as e:
            raise DbDecodeError(
                f"Invalid JSON in response with status {response.status_code}: {e}",
                raw=response.text,
                status_code=response.status_code,
            ) from e

    def _decode_event(self, sse: ServerSentEvent) -> StreamEvent | None:
        """Map a raw SSE event to a StreamEvent, None for events without payload."""
        match StreamEventType.from_label(sse.event):
            case StreamEventType.PUT:
                return self._decode_event_data(sse, StreamEventPut)
            case StreamEventType.PATCH:
                return self._decode_event_data(sse, StreamEventPatch)
            case StreamEventType.KEEP_ALIVE:
                return None
            case StreamEventType.CANCEL:
                raise DbError.from_stream_cancel(sse.data)
            case StreamEventType.AUTH_REVOKED:
                return StreamEventAuthRevoked()
            case StreamEventType.UNKNOWN:
                logger.warning(f"Ignoring unknown stream event type: {sse.event}")
                return None

    def _decode_event_data(
        self, sse: ServerSentEvent, model: type[EventModel]
    ) -> EventModel:
        try:
            payload = json.loads(sse.data)
        except json.JSONDecodeError as e:
            raise DbDecodeError(f"Invalid JSON in {sse.event} event: {e}", raw=sse.data) from e
        if not isinstance(payload, dict):
            raise DbDecodeError(f"Expected an object in {sse.event} event", raw=sse.data)
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DbDecodeError(f"Malformed {sse.event} event: {e}", raw=sse.data) from e

    def _stream_timeout(self) -> httpx.Timeout:
        # No read timeout: the server only sends keep-alive frames every 30s
        timeout = self._client.timeout
        return httpx.Timeout(
            connect=timeout.connect,
            read=None,
            write=timeout.write,
            pool=timeout.pool,
        )
