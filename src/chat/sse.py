"""Server-sent event framing helpers.

``SSEFrameDecoder`` turns raw upstream bytes into ``data:`` payloads as
lines complete, so frames split across network reads are reassembled
without buffering the whole response.
"""

import json
from typing import Any

from src.video_rag.errors import StreamFrameError

DEFAULT_MAX_BUFFER_BYTES = 1024 * 1024


def format_sse_event(payload: dict[str, Any]) -> str:
    """Encode one outgoing event as an SSE ``data:`` frame.

    Examples:
        >>> format_sse_event({"done": True})
        'data: {"done": true}\\n\\n'
    """
    return f"data: {json.dumps(payload)}\n\n"


class SSEFrameDecoder:
    """Incremental line-oriented decoder for ``data:`` frames.

    Bytes are accumulated until a newline arrives; each complete line that
    starts with ``data:`` yields its payload. Comments, ``event:``/``id:``
    fields and blank separator lines are ignored.
    """

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        self.max_buffer_bytes = max_buffer_bytes
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[str]:
        """Add bytes and return payloads of every line completed by them.

        Raises:
            StreamFrameError: If an unterminated line grows past the buffer limit.
        """
        self._buffer.extend(data)

        payloads: list[str] = []
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            payload = self._parse_line(line)
            if payload is not None:
                payloads.append(payload)

        if len(self._buffer) > self.max_buffer_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            raise StreamFrameError(
                f"Upstream frame exceeds {self.max_buffer_bytes} bytes (got {size})"
            )
        return payloads

    def flush(self) -> list[str]:
        """Return the payload of a trailing line that never got a newline."""
        line = bytes(self._buffer)
        self._buffer.clear()
        payload = self._parse_line(line)
        return [payload] if payload is not None else []

    @staticmethod
    def _parse_line(line: bytes) -> str | None:
        text = line.decode("utf-8", errors="replace").rstrip("\r")
        if not text.startswith("data:"):
            return None
        payload = text[len("data:") :]
        if payload.startswith(" "):
            payload = payload[1:]
        return payload
