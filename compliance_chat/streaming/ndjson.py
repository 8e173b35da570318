"""NDJSON decoding of streamed chat answers.

Each line of the answer body is one JSON object, either
``{"type": "chunk", "content": ...}`` or ``{"type": "references", "data": [...]}``.
Reads may split or merge lines arbitrarily; the decoder carries the
incomplete tail of the buffer over to the next read so the decoded events
do not depend on where the byte boundaries fall.
"""

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterator
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from compliance_chat.exceptions import StreamTimeoutError
from compliance_chat.models.schemas import EVENT_TYPES, ProtocolEvent

logger = logging.getLogger(__name__)

_event_adapter: TypeAdapter[ProtocolEvent] = TypeAdapter(ProtocolEvent)


class ByteStream(Protocol):
    """Anything with a pull-based ``read() -> (bytes, done)``."""

    async def read(self) -> tuple[bytes, bool]: ...


def parse_event(line: str) -> ProtocolEvent | None:
    """Parse a single NDJSON line into a protocol event.

    Args:
        line: One line without its terminator.

    Returns:
        The parsed event, or None if the line is blank, malformed or of an
        unknown type.
    """
    text = line.strip()
    if not text:
        return None

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping malformed stream line ({e}): {text[:80]!r}")
        return None

    if not isinstance(payload, dict) or payload.get("type") not in EVENT_TYPES:
        logger.debug(f"Skipping stream line of unknown type: {text[:80]!r}")
        return None

    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        logger.warning(f"Skipping invalid {payload['type']} event: {e.error_count()} error(s)")
        return None


class NDJSONDecoder:
    """Incremental line decoder for one stream.

    A fresh decoder must be used for every stream.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[ProtocolEvent]:
        """Add bytes and return the events of every completed line."""
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        events = []
        for line in lines:
            event = parse_event(line.removesuffix("\r"))
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[ProtocolEvent]:
        """Parse whatever is left once the stream has ended."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        event = parse_event(remainder)
        return [event] if event is not None else []


async def iter_events(
    stream: ByteStream,
    idle_timeout: float | None = None,
) -> AsyncIterator[ProtocolEvent]:
    """Yield protocol events from a byte stream in arrival order.

    Args:
        stream: Pull-based byte source.
        idle_timeout: Seconds a single read may take before the stream is
            considered stalled. None waits indefinitely.

    Yields:
        Protocol events, one per valid line.

    Raises:
        StreamTimeoutError: If a read exceeds idle_timeout.
        TransportError: If the underlying stream fails.
    """
    decoder = NDJSONDecoder()
    while True:
        try:
            data, done = await asyncio.wait_for(stream.read(), timeout=idle_timeout)
        except TimeoutError as e:
            raise StreamTimeoutError(idle_timeout or 0.0) from e

        for event in decoder.feed(data):
            yield event

        if done:
            for event in decoder.flush():
                yield event
            return
