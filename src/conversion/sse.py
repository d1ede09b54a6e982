"""Decoder for ``text/event-stream`` bodies.

Byte decoding and line splitting are left to the transport: ``aiter_sse``
takes an async iterator of text lines, e.g. ``httpx.Response.aiter_lines()``,
and assembles them into events.
"""

from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncGenerator, AsyncIterator, List, Optional


@dataclass
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEDecoder:
    def __init__(self) -> None:
        self._event: Optional[str] = None
        self._data: List[str] = []
        self._last_event_id: Optional[str] = None
        self._retry: Optional[int] = None

    def decode(self, line: str) -> Optional[ServerSentEvent]:
        """Consume one line; return an event when a blank line completes it."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data and self._event is None:
            return None
        event = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_event_id,
            retry=self._retry,
        )
        self._event = None
        self._data = []
        return event


async def aiter_sse(lines: AsyncGenerator[str, None]) -> AsyncIterator[ServerSentEvent]:
    """Yield events from a line stream, lazily and once.

    An event still open when the lines run out never saw its terminating
    blank line and is dropped.
    """
    decoder = SSEDecoder()
    async with aclosing(lines):
        async for line in lines:
            event = decoder.decode(line)
            if event is not None:
                yield event
