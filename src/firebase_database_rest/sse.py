"""Server-Sent Events (SSE) wire decoding.

Turns the lines of a ``text/event-stream`` body into raw events:

    event: put
    data: {"path": "/", "data": {"a": 1}}
    <blank line dispatches the event>

Lines starting with ``:`` are comments. Multiple ``data:`` lines are joined
with newlines. An event that is not terminated by a blank line before the
stream ends is dropped.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass


@dataclass(frozen=True)
class ServerSentEvent:
    """A single dispatched SSE event."""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


class _EventBuffer:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.event: str | None = None
        self.data: list[str] = []
        self.id: str | None = None
        self.retry: int | None = None
        self.touched = False

    def feed(self, field: str, value: str) -> None:
        match field:
            case "event":
                self.event = value
            case "data":
                self.data.append(value)
            case "id":
                if "\0" not in value:
                    self.id = value
            case "retry":
                if value.isdigit():
                    self.retry = int(value)
            case _:
                return
        self.touched = True

    def dispatch(self) -> ServerSentEvent | None:
        if not self.touched:
            return None
        event = ServerSentEvent(
            event=self.event or "message",
            data="\n".join(self.data),
            id=self.id,
            retry=self.retry,
        )
        self.reset()
        return event


async def aiter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Decode an async iterator of body lines into ServerSentEvents."""
    buffer = _EventBuffer()
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            event = buffer.dispatch()
            if event is not None:
                yield event
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]  # One optional space after the colon
        buffer.feed(field, value)
