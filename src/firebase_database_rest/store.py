"""Typed collection access on top of RestApi.

A FirebaseStore binds a location in the database and a DataCodec. Each
child of that location is an entry, addressed by its key, converted from
and to JSON by the codec.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel

from .errors import DbDecodeError
from .filter import Filter
from .models import (
    PrintMode,
    StreamEvent,
    StreamEventAuthRevoked,
    StreamEventPatch,
    StreamEventPut,
)
from .rest_api import RestApi

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DataCodec(Generic[T]):
    """Conversion between stored JSON and entry values."""

    from_json: Callable[[Any], T]
    to_json: Callable[[T], dict[str, Any]]
    patch_data: Callable[[T, dict[str, Any]], T]

    @classmethod
    def identity(cls) -> DataCodec[Any]:
        """Codec that passes raw JSON through; patches merge into a copy."""
        return cls(
            from_json=lambda json: json,
            to_json=lambda data: data,
            patch_data=lambda data, fields: {**data, **fields},
        )


# =============================================================================
# Store events
# =============================================================================


class StoreEventReset(BaseModel):
    """The whole collection was replaced."""

    type: Literal["reset"] = "reset"
    data: dict[str, Any]


class StoreEventPut(BaseModel):
    """Entry ``key`` was created or replaced."""

    type: Literal["put"] = "put"
    key: str
    value: Any


class StoreEventDelete(BaseModel):
    type: Literal["delete"] = "delete"
    key: str


class StoreEventPatch(BaseModel):
    """Fields of entry ``key`` were updated; apply with DataCodec.patch_data."""

    type: Literal["patch"] = "patch"
    key: str
    fields: dict[str, Any]


class StoreEventInvalidPath(BaseModel):
    """A change below entry level that the store cannot represent."""

    type: Literal["invalid_path"] = "invalid_path"
    path: str


class StoreEventAuthRevoked(BaseModel):
    type: Literal["auth_revoked"] = "auth_revoked"


StoreEvent = (
    StoreEventReset
    | StoreEventPut
    | StoreEventDelete
    | StoreEventPatch
    | StoreEventInvalidPath
    | StoreEventAuthRevoked
)


def _child_key(path: str) -> str | None:
    """Return ``key`` for a stream path of the form ``/key``."""
    key = path.strip("/")
    if not key or "/" in key:
        return None
    return key


class FirebaseStore(Generic[T]):
    """CRUD and live updates for the entries below one location."""

    def __init__(self, api: RestApi, sub_paths: list[str], codec: DataCodec[T]):
        self._api = api
        self._sub_paths = list(sub_paths)
        self._codec = codec

    @property
    def api(self) -> RestApi:
        return self._api

    @property
    def codec(self) -> DataCodec[T]:
        return self._codec

    @property
    def path(self) -> str:
        return "/".join(self._sub_paths)

    def sub_store(self, path: str, codec: DataCodec[Any]) -> FirebaseStore[Any]:
        """Create a store for the location ``path`` below this one."""
        return FirebaseStore(self._api, [*self._sub_paths, path], codec)

    # =========================================================================
    # Reads
    # =========================================================================

    async def keys(self) -> list[str]:
        """List the keys of all entries without downloading their data."""
        response = await self._api.get(self.path, shallow=True)
        return list(self._as_object(response.data))

    async def all(self) -> dict[str, T]:
        response = await self._api.get(self.path)
        return self._decode_all(response.data)

    async def read(self, key: str) -> T | None:
        """Read one entry, None if it does not exist."""
        response = await self._api.get(self._entry_path(key))
        if response.data is None:
            return None
        return self._codec.from_json(response.data)

    async def query(self, filter: Filter) -> dict[str, T]:
        """Read the entries selected by ``filter``."""
        response = await self._api.get(self.path, filter=filter)
        return self._decode_all(response.data)

    # =========================================================================
    # Writes
    # =========================================================================

    async def write(
        self,
        key: str,
        data: T,
        *,
        silent: bool = False,
        if_match: str | None = None,
    ) -> T | None:
        """Create or replace an entry.

        Returns the entry as stored by the server, or None when ``silent``.
        With ``if_match`` the write only applies if the entry's ETag matches.
        """
        response = await self._api.put(
            self._codec.to_json(data),
            self._entry_path(key),
            print_mode=PrintMode.SILENT if silent else PrintMode.NORMAL,
            if_match=if_match,
        )
        if silent or response.data is None:
            return None
        return self._codec.from_json(response.data)

    async def create(self, data: T) -> str:
        """Add an entry under a server-generated key and return that key."""
        response = await self._api.post(self._codec.to_json(data), self.path)
        payload = self._as_object(response.data)
        if "name" not in payload:
            raise DbDecodeError("Create response has no generated key", raw=str(response.data))
        return payload["name"]

    async def update(
        self,
        key: str,
        fields: dict[str, Any],
        current: T | None = None,
    ) -> T | None:
        """Update some fields of an entry.

        When the caller passes the ``current`` value, the locally patched value
        is returned; otherwise None.
        """
        await self._api.patch(fields, self._entry_path(key), print_mode=PrintMode.SILENT)
        if current is None:
            return None
        return self._codec.patch_data(current, fields)

    async def delete(self, key: str, *, if_match: str | None = None) -> None:
        await self._api.delete(
            self._entry_path(key),
            print_mode=PrintMode.SILENT,
            if_match=if_match,
        )

    # =========================================================================
    # Streams
    # =========================================================================

    async def stream_all(self, filter: Filter | None = None) -> AsyncIterator[StoreEvent]:
        """Follow changes of all entries (optionally filtered)."""
        async for event in self._api.stream(self.path, filter=filter):
            for store_event in self._map_collection_event(event):
                yield store_event

    async def stream_entry(self, key: str) -> AsyncIterator[StoreEvent]:
        """Follow changes of a single entry."""
        async for event in self._api.stream(self._entry_path(key)):
            yield self._map_entry_event(key, event)

    def _map_collection_event(self, event: StreamEvent) -> list[StoreEvent]:
        match event:
            case StreamEventAuthRevoked():
                return [StoreEventAuthRevoked()]
            case StreamEventPut(path="/", data=data):
                return [StoreEventReset(data=self._decode_all(data))]
            case StreamEventPut(path=path, data=data) if (key := _child_key(path)):
                return [self._entry_changed(key, data)]
            case StreamEventPatch(path="/", data=data):
                return [self._entry_changed(k, v) for k, v in self._as_object(data).items()]
            case StreamEventPatch(path=path, data=data) if (key := _child_key(path)):
                return [StoreEventPatch(key=key, fields=self._as_object(data))]
            case _:
                logger.debug(f"Unsupported change path in store {self.path!r}: {event.path}")
                return [StoreEventInvalidPath(path=event.path)]

    def _map_entry_event(self, key: str, event: StreamEvent) -> StoreEvent:
        match event:
            case StreamEventAuthRevoked():
                return StoreEventAuthRevoked()
            case StreamEventPut(path="/", data=data):
                return self._entry_changed(key, data)
            case StreamEventPatch(path="/", data=data):
                return StoreEventPatch(key=key, fields=self._as_object(data))
            case _:
                return StoreEventInvalidPath(path=event.path)

    def _entry_changed(self, key: str, data: Any) -> StoreEvent:
        if data is None:
            return StoreEventDelete(key=key)
        return StoreEventPut(key=key, value=self._codec.from_json(data))

    def _entry_path(self, key: str) -> str:
        return "/".join([*self._sub_paths, key])

    def _decode_all(self, data: Any) -> dict[str, T]:
        return {key: self._codec.from_json(value) for key, value in self._as_object(data).items()}

    @staticmethod
    def _as_object(data: Any) -> dict[str, Any]:
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DbDecodeError(f"Expected an object, got {type(data).__name__}", raw=str(data))
        return data
