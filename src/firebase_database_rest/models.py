"""Value types for the REST protocol layer.

Request modifiers (print/format/write size tier, timeout), the decoded
response envelope and the typed events produced by a streaming read.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


class PrintMode(str, Enum):
    """Value of the ``print`` query parameter."""

    NORMAL = "normal"
    PRETTY = "pretty"
    SILENT = "silent"  # Writes answer 204 without echoing the data


class FormatMode(str, Enum):
    """Value of the ``format`` query parameter."""

    NORMAL = "normal"
    EXPORT = "export"  # Include priority information


class WriteSizeLimit(str, Enum):
    """Server-side cap on the size of a single write."""

    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    UNLIMITED = "unlimited"


class TimeoutUnit(str, Enum):
    MILLISECONDS = "ms"
    SECONDS = "s"
    MINUTES = "min"


# The server rejects anything above 15 minutes.
_TIMEOUT_LIMITS = {
    TimeoutUnit.MILLISECONDS: 15 * 60 * 1000,
    TimeoutUnit.SECONDS: 15 * 60,
    TimeoutUnit.MINUTES: 15,
}

_TIMEOUT_PATTERN = re.compile(r"^(\d+)(ms|s|min)$")


@dataclass(frozen=True)
class Timeout:
    """Server-side read timeout, sent as the ``timeout`` query parameter.

    Use the unit constructors instead of building one directly:

        Timeout.ms(500)
        Timeout.s(10)
        Timeout.min(15)
    """

    value: int
    unit: TimeoutUnit

    def __post_init__(self) -> None:
        limit = _TIMEOUT_LIMITS[self.unit]
        if not 0 < self.value <= limit:
            raise ValueError(
                f"Timeout must be between 1 and {limit}{self.unit.value}, got {self.value}"
            )

    @classmethod
    def ms(cls, value: int) -> Timeout:
        return cls(value, TimeoutUnit.MILLISECONDS)

    @classmethod
    def s(cls, value: int) -> Timeout:
        return cls(value, TimeoutUnit.SECONDS)

    @classmethod
    def min(cls, value: int) -> Timeout:
        return cls(value, TimeoutUnit.MINUTES)

    @classmethod
    def parse(cls, text: str) -> Timeout:
        """Parse a serialized timeout such as ``10s`` or ``15min``."""
        match = _TIMEOUT_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid timeout: {text!r}")
        return cls(int(match.group(1)), TimeoutUnit(match.group(2)))

    def serialize(self) -> str:
        return f"{self.value}{self.unit.value}"

    def __str__(self) -> str:
        return self.serialize()


class DbResponse(BaseModel):
    """Decoded result of a successful request.

    ``data`` is None only for an empty (204) response, ``e_tag`` only
    carries a value when the request asked for ETag tracking.
    """

    data: Any = None
    e_tag: str | None = None


# =============================================================================
# Stream events
# =============================================================================


class StreamEventType(str, Enum):
    """Event labels sent by the server on a streaming read."""

    PUT = "put"
    PATCH = "patch"
    KEEP_ALIVE = "keep-alive"
    CANCEL = "cancel"
    AUTH_REVOKED = "auth_revoked"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str) -> StreamEventType:
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN


class StreamEventPut(BaseModel):
    """Data at ``path`` was replaced by ``data`` (null means deleted)."""

    type: Literal["put"] = "put"
    path: str
    data: Any = None


class StreamEventPatch(BaseModel):
    """The children of ``path`` listed in ``data`` were replaced."""

    type: Literal["patch"] = "patch"
    path: str
    data: Any = None


class StreamEventAuthRevoked(BaseModel):
    """The credential of the stream expired; the caller must reconnect."""

    type: Literal["auth_revoked"] = "auth_revoked"


StreamEvent = StreamEventPut | StreamEventPatch | StreamEventAuthRevoked
