"""Server-Sent Events decoding for streaming provider responses.

Raw bytes arrive in arbitrary chunk sizes. SSEParser buffers them and only
decodes complete frames, so the decoded event sequence does not depend on
where the transport happened to split the stream.

Two framing styles exist among the vendors:
- BLANK_LINE: frames separated by an empty line (OpenAI, Anthropic)
- LINE: one ``data:`` line per frame (Gemini with ``alt=sse``)
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Optional, Union

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class FrameDelimiter(str, Enum):
    """How frames are separated in the byte stream."""

    BLANK_LINE = "blank_line"
    LINE = "line"

    @property
    def separator(self) -> bytes:
        return b"\n\n" if self is FrameDelimiter.BLANK_LINE else b"\n"


@dataclass(frozen=True)
class SSEEvent:
    """One decoded frame.

    ``data`` is the JSON-decoded payload. ``done`` marks the ``[DONE]``
    sentinel, which carries no data.
    """

    data: Any = None
    event: Optional[str] = None
    done: bool = False


class SSEParser:
    """Incremental byte-buffer to SSEEvent decoder."""

    def __init__(self, delimiter: FrameDelimiter = FrameDelimiter.BLANK_LINE):
        self._delimiter = delimiter
        self._separator = delimiter.separator
        self._buffer = bytearray()

    @property
    def delimiter(self) -> FrameDelimiter:
        return self._delimiter

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a delimiter (inspection in tests)."""
        return bytes(self._buffer)

    def feed(self, chunk: Union[bytes, str]) -> list[SSEEvent]:
        """Append a chunk and return every event completed by it."""
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        if not chunk:
            return []

        self._buffer.extend(chunk)
        if b"\r" in self._buffer:
            self._normalize_newlines()

        events = []
        while True:
            pos = self._buffer.find(self._separator)
            if pos == -1:
                break
            frame = bytes(self._buffer[:pos])
            del self._buffer[: pos + len(self._separator)]
            event = self._parse_frame(frame)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SSEEvent]:
        """Best-effort parse of the unterminated tail at end of stream."""
        tail = bytes(self._buffer).strip()
        self._buffer.clear()
        if not tail:
            return []

        event = self._parse_frame(tail)
        if event is not None:
            return [event]

        # Some vendors send a bare JSON body (typically an error) without framing
        text = tail.decode("utf-8", errors="replace").strip()
        if text.startswith("{"):
            try:
                return [SSEEvent(data=json.loads(text))]
            except json.JSONDecodeError:
                logger.debug(f"Discarding unparseable stream tail ({len(tail)} bytes)")
        return []

    def parse_all(self, chunks: Iterable[Union[bytes, str]]) -> list[SSEEvent]:
        """Feed every chunk then flush.

        For bodies already held in memory (fixtures, tests); live responses
        go through aiter_sse_events().
        """
        events = []
        for chunk in chunks:
            events.extend(self.feed(chunk))
        events.extend(self.flush())
        return events

    def _normalize_newlines(self) -> None:
        data = bytes(self._buffer)
        # A trailing CR may be the first half of a CRLF split across chunks
        tail = b""
        if data.endswith(b"\r"):
            data, tail = data[:-1], b"\r"
        data = data.replace(b"\r\n", b"\n").replace(b"\r", b"\n")
        self._buffer = bytearray(data + tail)

    def _parse_frame(self, frame: bytes) -> Optional[SSEEvent]:
        text = frame.decode("utf-8", errors="replace")

        event_type = None
        data_lines = []
        for line in text.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, sep, value = line.partition(":")
            if not sep:
                continue
            if value.startswith(" "):
                value = value[1:]
            if field == "event":
                event_type = value.strip() or None
            elif field == "data":
                data_lines.append(value)

        if not data_lines:
            return None

        payload = "\n".join(data_lines).strip()
        if not payload:
            return None
        if payload == DONE_SENTINEL:
            return SSEEvent(event=event_type, done=True)

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed SSE frame: {payload[:80]}")
            return None

        return SSEEvent(data=data, event=event_type)


async def aiter_sse_events(
    chunks: AsyncIterable[bytes],
    delimiter: FrameDelimiter = FrameDelimiter.BLANK_LINE,
) -> AsyncIterator[SSEEvent]:
    """Decode an async byte stream into events, flushing the tail at the end."""
    parser = SSEParser(delimiter)
    async for chunk in chunks:
        for event in parser.feed(chunk):
            yield event
    for event in parser.flush():
        yield event
