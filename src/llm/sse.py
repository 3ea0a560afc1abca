"""
Incremental parser for server-sent event streams.

Vendor streams arrive as arbitrary byte chunks; an event line may be split
across receive boundaries, so partial lines are buffered until the newline
arrives.
"""

import codecs
import json
import logging
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


class SSEBuffer:
    """Accumulates raw chunks and yields complete ``data:`` payloads."""

    def __init__(self) -> None:
        self._buffer = ""
        # Holds the bytes of a character split across chunks
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    def feed(self, chunk: bytes | str) -> Iterator[str]:
        """Add a chunk and yield every complete ``data:`` payload it finishes."""
        if self.done:
            return
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        for line in lines:
            payload = self._data_payload(line)
            if payload is None:
                continue
            if payload == DONE_MARKER:
                self.done = True
                return
            yield payload

    def flush(self) -> Iterator[str]:
        """Yield a trailing payload left without a newline at connection close."""
        self._buffer += self._decoder.decode(b"", final=True)
        if self.done or not self._buffer:
            return
        payload = self._data_payload(self._buffer)
        self._buffer = ""
        if payload is not None and payload != DONE_MARKER:
            yield payload

    @staticmethod
    def _data_payload(line: str) -> Optional[str]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return None
        return line[5:].strip()


def decode_event(payload: str) -> Optional[dict[str, Any]]:
    """Decode one event payload, discarding it if it is not a JSON object."""
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse SSE chunk: {payload[:200]}")
        return None
    return event if isinstance(event, dict) else None
