"""
Line framing for provider byte streams.

Network reads split the response body at arbitrary byte offsets: a single
``data: {...}`` line, or a single multi-byte UTF-8 character, may arrive in
two (or more) chunks. ``FrameDecoder`` keeps the unconsumed tail between
chunks so that only complete lines are ever handed to the event parser.
"""

import codecs
from typing import AsyncIterable, AsyncIterator, List


class FrameDecoder:
    """Incremental bytes -> lines decoder with a persistent tail buffer.

    ``feed()`` returns every line completed by the chunk (terminators
    removed); ``flush()`` returns the final unterminated line, if any.
    A ``\\r`` preceding the ``\\n`` is dropped, so CRLF-framed streams work.
    """

    def __init__(self, encoding: str = "utf-8"):
        # errors="replace" only matters for genuinely invalid bytes; a
        # character split across chunks is held until it completes
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._tail = ""

    @property
    def pending(self) -> str:
        """Text received after the last line break."""
        return self._tail

    def feed(self, chunk: bytes) -> List[str]:
        text = self._decoder.decode(chunk)
        if not text:
            return []

        buffer = self._tail + text
        *lines, self._tail = buffer.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def flush(self) -> List[str]:
        buffer = self._tail + self._decoder.decode(b"", final=True)
        self._tail = ""
        if buffer.endswith("\r"):
            buffer = buffer[:-1]
        return [buffer] if buffer else []


async def decode_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Turn a stream of byte chunks into a stream of complete lines."""
    decoder = FrameDecoder()
    async for chunk in chunks:
        for line in decoder.feed(chunk):
            yield line
    for line in decoder.flush():
        yield line
