"""Error taxonomy of the REST client.

Three kinds of failure reach callers, all derived from FirebaseDatabaseError:
- DbError: the server answered with a structured error (or cancelled a stream)
- DbDecodeError: a body or event payload was not the expected JSON
- DbTransportError: no usable response arrived (connect, timeout, DNS, redirect loop)
"""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any


class FirebaseDatabaseError(Exception):
    """Base class for all errors raised by this package."""


class DbError(FirebaseDatabaseError):
    """Structured error returned by the database."""

    def __init__(
        self,
        message: str,
        code: int | str | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    @classmethod
    def from_json(cls, payload: Any, status_code: int | None = None) -> DbError:
        """Build from an error body such as ``{"error": "Permission denied"}``.

        A ``null`` body falls back to the HTTP status text, any other non-object
        body to its JSON text.
        """
        if isinstance(payload, dict):
            message = payload.get("error", payload.get("message"))
            if message is None:
                message = json.dumps(payload)
        elif isinstance(payload, str):
            message = payload
        elif payload is None and status_code is not None:
            message = _status_text(status_code)
        else:
            message = json.dumps(payload)
        return cls(str(message), code=status_code, payload=payload)

    @classmethod
    def from_stream_cancel(cls, data: str) -> DbError:
        """Build from the data of a ``cancel`` stream event.

        The server normally sends a JSON string; anything else is kept verbatim.
        """
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            payload = data
        error = cls.from_json(payload)
        error.code = "cancel"
        return error

    def __repr__(self) -> str:
        return f"DbError(code={self.code!r}, message={self.message!r})"


class DbDecodeError(FirebaseDatabaseError, ValueError):
    """A response body or stream payload could not be decoded."""

    def __init__(self, message: str, raw: str, status_code: int | None = None):
        super().__init__(message)
        self.raw = raw
        self.status_code = status_code


class DbTransportError(FirebaseDatabaseError, ConnectionError):
    """The request got no usable response (connection, timeout, redirect loop...)."""


def _status_text(status_code: int) -> str:
    try:
        return f"HTTP {status_code} {HTTPStatus(status_code).phrase}"
    except ValueError:
        return f"HTTP {status_code}"
