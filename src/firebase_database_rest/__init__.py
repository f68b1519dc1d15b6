"""Async client for the Firebase Realtime Database REST API.

Layers:
- RestApi: request building, response decoding and event streams
- FirebaseStore: typed entries below one location
- FirebaseDatabase: RestApi plus auth token wiring
"""

from .config import RestApiConfig
from .database import (
    AuthProvider,
    DatabaseConfig,
    FirebaseDatabase,
    create_database,
    create_database_from_credentials,
    create_unauthenticated_database,
)
from .errors import DbDecodeError, DbError, DbTransportError, FirebaseDatabaseError
from .filter import Filter, FilterBuilder
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
from .rest_api import RestApi
from .store import (
    DataCodec,
    FirebaseStore,
    StoreEvent,
    StoreEventAuthRevoked,
    StoreEventDelete,
    StoreEventInvalidPath,
    StoreEventPatch,
    StoreEventPut,
    StoreEventReset,
)

__all__ = [
    # Protocol client
    "RestApi",
    "RestApiConfig",
    "DbResponse",
    "PrintMode",
    "FormatMode",
    "WriteSizeLimit",
    "Timeout",
    "Filter",
    "FilterBuilder",
    # Stream events
    "StreamEvent",
    "StreamEventType",
    "StreamEventPut",
    "StreamEventPatch",
    "StreamEventAuthRevoked",
    # Errors
    "FirebaseDatabaseError",
    "DbError",
    "DbDecodeError",
    "DbTransportError",
    # Facade
    "FirebaseDatabase",
    "DatabaseConfig",
    "AuthProvider",
    "create_database",
    "create_database_from_credentials",
    "create_unauthenticated_database",
    "FirebaseStore",
    "DataCodec",
    "StoreEvent",
    "StoreEventReset",
    "StoreEventPut",
    "StoreEventDelete",
    "StoreEventPatch",
    "StoreEventInvalidPath",
    "StoreEventAuthRevoked",
]
