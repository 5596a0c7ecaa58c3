import codecs
import json
import logging
from typing import Callable

from pydantic import ValidationError

from shared.models.chat import ContentEvent, DoneEvent

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class SSELineParser:
    """Incremental parser for an OpenAI-style server-sent-events body.

    Bytes arrive in arbitrary slices: multi-byte characters and lines may be
    split across them. Only complete lines are parsed; the unfinished tail is
    carried over to the next feed() and dropped at the end of the stream.
    """

    def __init__(self, extract_delta: Callable[[dict], str | None], logger: logging.Logger) -> None:
        self._extract_delta = extract_delta
        self.logging = logger
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[ContentEvent | DoneEvent]:
        """Consume one slice of the body and return the events it completes.

        Args:
            data (bytes): Raw bytes as read from the upstream response.

        Returns:
            list[ContentEvent | DoneEvent]: Events in stream order.
        """
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")

        events: list[ContentEvent | DoneEvent] = []
        for line in lines:
            event = self._parse_line(line.strip())
            if event is not None:
                events.append(event)
        return events

    def _parse_line(self, line: str) -> ContentEvent | DoneEvent | None:
        # blank separators, comments and other fields carry no content
        if not line.startswith(DATA_PREFIX):
            return None

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_MARKER:
            return DoneEvent()

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            self.logging.warning("Skipping malformed stream line: %s", data[:200])
            return None
        if not isinstance(chunk, dict):
            self.logging.warning("Skipping unexpected stream payload: %s", data[:200])
            return None

        try:
            content = self._extract_delta(chunk)
            if content:
                return ContentEvent(content=content)
        except (KeyError, IndexError, TypeError, AttributeError, ValidationError) as exc:
            self.logging.warning("Skipping stream line with unexpected shape (%s): %s", exc, data[:200])
        return None
