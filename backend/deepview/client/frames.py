"""
Incremental SSE frame parser.

Feeds raw byte chunks in arrival order and returns the decoded JSON payloads
of complete `data:` lines. Chunk boundaries may fall anywhere, including in
the middle of a multi-byte character or a JSON object: bytes are decoded
incrementally and a line is only acted on once its `\\n` has arrived.
"""

import codecs
import logging
from typing import Any, List

import orjson

logger = logging.getLogger(__name__)

# Constants
SSE_DATA_PREFIX = "data: "
SSE_DONE_SIGNAL = "[DONE]"


class FrameParser:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> List[Any]:
        """Consume one network chunk; return the payloads it completed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain(final=False)

    def finish(self) -> List[Any]:
        """Flush leftover text at end of stream with the same line rules.

        Unparseable leftovers are dropped here; this is the only place a
        malformed frame is discarded without waiting for more data.
        """
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        if not self._buffer.strip():
            self._buffer = ""
            return []
        if not self._buffer.endswith("\n"):
            self._buffer += "\n"
        payloads = self._drain(final=True)
        self._buffer = ""
        return payloads

    @property
    def pending(self) -> str:
        """Buffered text not yet consumed"""
        return self._buffer

    def _drain(self, final: bool) -> List[Any]:
        payloads: List[Any] = []

        while not self.done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break

            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]

            if line.endswith("\r"):
                line = line[:-1]
            if line.startswith(":") or line.strip() == "":
                continue
            if not line.startswith(SSE_DATA_PREFIX):
                continue

            data = line[len(SSE_DATA_PREFIX):].strip()
            if data == SSE_DONE_SIGNAL:
                self.done = True
                break

            try:
                payloads.append(orjson.loads(data))
            except orjson.JSONDecodeError as e:
                if final or "\n" in self._buffer:
                    # Later frames already arrived behind it; this line cannot be completed
                    logger.debug(f"Dropping unparseable frame: {e}")
                    continue
                # Push back and wait for the next read
                self._buffer = line + "\n" + self._buffer
                break

        return payloads
