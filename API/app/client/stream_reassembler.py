"""
Reassembly of a streamed generation into one result document.

The provider emits server-sent events; each ``data: `` line carries one JSON
chunk whose ``candidates[0].content.parts[0].text`` is the next fragment of
the generated text. Fragments are concatenated while the stream runs and the
concatenation is parsed exactly once, after the stream ends.
"""
from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, Callable, Iterable

from app.core.json_parser import InvalidResultFormatError, parse_result_document
from app.core.logging import DOMAIN_STREAM, get_domain_logger
from app.core.settings import settings
from app.schemas.homework import AIResultDocument

logger = get_domain_logger(__name__, DOMAIN_STREAM)

DATA_PREFIX = "data: "


class StreamTooLargeError(InvalidResultFormatError):
    def __init__(self, limit: int):
        super().__init__(f"AI response exceeded {limit} characters")
        self.limit = limit


def extract_fragment(line: str) -> str | None:
    """Return the text fragment carried by one event line, or None if it carries none."""
    if not line.startswith(DATA_PREFIX):
        return None
    raw = line[len(DATA_PREFIX):].strip()
    if not raw:
        return None
    try:
        chunk = json.loads(raw)
        text = chunk["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def accumulate(buffer: str, line: str) -> str:
    """Tolerant accumulator: never raises on a malformed line, it just leaves the buffer alone."""
    fragment = extract_fragment(line)
    if fragment is None:
        return buffer
    return buffer + fragment


class StreamReassembler:
    def __init__(
        self,
        max_chars: int | None = None,
        on_fragment: Callable[[str], None] | None = None,
    ):
        self.max_chars = settings.stream_max_chars if max_chars is None else max_chars
        self.on_fragment = on_fragment
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._text = ""
        self.fragments = 0
        self.finished = False

    @property
    def text(self) -> str:
        return self._text

    def _consume_line(self, line: str) -> None:
        updated = accumulate(self._text, line)
        if len(updated) == len(self._text):
            return
        self.fragments += 1
        self._text = updated
        if self.max_chars and len(self._text) > self.max_chars:
            raise StreamTooLargeError(self.max_chars)
        if self.on_fragment is not None:
            self.on_fragment(self._text)

    def feed(self, chunk: bytes | str) -> None:
        if self.finished:
            raise RuntimeError("Reassembler already finished")
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        data = self._pending + chunk
        *lines, self._pending = data.split("\n")
        for line in lines:
            self._consume_line(line.rstrip("\r"))

    def finish(self) -> AIResultDocument:
        """Flush the last line and validate the whole buffer; all-or-nothing."""
        if not self.finished:
            tail = self._pending + self._decoder.decode(b"", final=True)
            self._pending = ""
            self.finished = True
            if tail:
                self._consume_line(tail.rstrip("\r"))
        try:
            return parse_result_document(self._text)
        except InvalidResultFormatError:
            logger.warning("Stream ended with unparsable text | fragments=%d chars=%d", self.fragments, len(self._text))
            raise


def reassemble_lines(lines: Iterable[str]) -> AIResultDocument:
    buffer = ""
    for line in lines:
        buffer = accumulate(buffer, line.rstrip("\r\n"))
    return parse_result_document(buffer)


async def reassemble(
    chunks: AsyncIterable[bytes],
    on_fragment: Callable[[str], None] | None = None,
    max_chars: int | None = None,
) -> AIResultDocument:
    reassembler = StreamReassembler(max_chars=max_chars, on_fragment=on_fragment)
    async for chunk in chunks:
        reassembler.feed(chunk)
    return reassembler.finish()
