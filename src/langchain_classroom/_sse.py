"""
Incremental decoder for the chat-completion Server-Sent Events (SSE) stream.

Turns a chunked response body into the ordered text deltas of the assistant
reply. Chunk boundaries may split lines, JSON payloads and multi-byte
characters; keep-alive comments and blank separators are skipped, and the
`data: [DONE]` line ends the stream.
"""

from __future__ import annotations

import codecs
import contextlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator

from langchain_classroom._errors import EmptyResponse

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
DEFAULT_ENCODING = "utf-8"


class SSELineKind(str, Enum):
    BLANK = "blank"
    COMMENT = "comment"
    DATA = "data"
    TERMINATOR = "terminator"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """
    One logical SSE line, already stripped of its line terminator.
    """

    line: str
    kind: SSELineKind

    @property
    def data(self) -> str:
        """Trimmed payload after the `data: ` prefix; empty for non-data lines."""
        if self.kind in (SSELineKind.DATA, SSELineKind.TERMINATOR):
            return self.line[len(DATA_PREFIX):].strip()
        return ""


class TransientParseGap(ValueError):
    """A data line whose JSON could not be parsed yet. Never leaves this module."""


def classify_line(line: str) -> SSEEvent:
    if line.endswith("\r"):
        line = line[:-1]
    if not line.strip():
        return SSEEvent(line=line, kind=SSELineKind.BLANK)
    if line.startswith(":"):
        return SSEEvent(line=line, kind=SSELineKind.COMMENT)
    if not line.startswith(DATA_PREFIX):
        return SSEEvent(line=line, kind=SSELineKind.OTHER)
    if line[len(DATA_PREFIX):].strip() == DONE_SENTINEL:
        return SSEEvent(line=line, kind=SSELineKind.TERMINATOR)
    return SSEEvent(line=line, kind=SSELineKind.DATA)


def _delta_text(payload: Any) -> str | None:
    """choices[0].delta.content when it is a non-empty string."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice0 = choices[0]
    if not isinstance(choice0, dict):
        return None
    delta = choice0.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamingChatDecoder:
    """
    Push-style core of the stream decoder.

    feed() takes raw chunks in arrival order and returns the deltas they
    complete; finish() is called once at end of stream. After a terminator
    line has been seen `done` is True and further input is ignored.
    """

    def __init__(self, encoding: str | None = None) -> None:
        self._decoder = codecs.getincrementaldecoder(encoding or DEFAULT_ENCODING)(errors="replace")
        self._buffer = ""
        self.done = False

    @property
    def pending(self) -> str:
        """Decoded text not consumed yet."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain(final_flush=False)

    def finish(self) -> list[str]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        deltas = self._drain(final_flush=True)
        self._buffer = ""
        self.done = True
        return deltas

    def _drain(self, *, final_flush: bool) -> list[str]:
        deltas: list[str] = []
        while not self.done:
            idx = self._buffer.find("\n")
            if idx == -1:
                if not final_flush or not self._buffer:
                    break
                line, self._buffer = self._buffer, ""
            else:
                line, self._buffer = self._buffer[:idx], self._buffer[idx + 1:]

            try:
                text = self._process_line(line, final_flush=final_flush)
            except TransientParseGap:
                # Put the line back in front of the unconsumed remainder and wait for more bytes.
                if line.endswith("\r"):
                    line = line[:-1]
                self._buffer = line + "\n" + self._buffer
                break
            if text:
                deltas.append(text)
        return deltas

    def _process_line(self, line: str, *, final_flush: bool) -> str | None:
        event = classify_line(line)
        if event.kind is SSELineKind.TERMINATOR:
            self.done = True
            return None
        if event.kind is not SSELineKind.DATA:
            return None

        try:
            payload = json.loads(event.data)
        except ValueError:
            if not final_flush:
                raise TransientParseGap(event.data) from None
            logging.debug("SSE: dropping unparseable line at end of stream: %.200r", event.line)
            return None
        return _delta_text(payload)


def iter_text_deltas(chunks: Iterable[bytes], *, encoding: str | None = None) -> Iterator[str]:
    """
    Decode an iterable of byte chunks into text deltas.

    Stops at `data: [DONE]` without pulling further chunks.
    """
    decoder = StreamingChatDecoder(encoding)
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.finish()


async def aiter_text_deltas(chunks: AsyncIterable[bytes], *, encoding: str | None = None) -> AsyncIterator[str]:
    """Async twin of iter_text_deltas."""
    decoder = StreamingChatDecoder(encoding)
    async for chunk in chunks:
        for text in decoder.feed(chunk):
            yield text
        if decoder.done:
            return
    for text in decoder.finish():
        yield text


def _known_encoding(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    try:
        codecs.lookup(name)
    except LookupError:
        return False
    return True


def _response_encoding(response: Any) -> str:
    # httpx.Response.encoding already falls back to utf-8 for unknown charsets.
    for name in (getattr(response, "encoding", None), getattr(response, "charset_encoding", None)):
        if _known_encoding(name):
            return name
    return DEFAULT_ENCODING


def _no_content(response: Any) -> bool:
    return getattr(response, "status_code", 200) == 204


class DeltaStream:
    """
    Handle over one streamed response: iterate it for text deltas.

    The sequence is lazy and single-use. The response is closed when the
    sequence is exhausted, when the terminator is seen, when the caller stops
    iterating early, or on error. close() is idempotent and never raises.
    """

    def __init__(self, response: Any) -> None:
        self._response = response
        self._encoding = _response_encoding(response)
        self._started = False
        self._closed = False
        if _no_content(response):
            self.close()
            raise EmptyResponse(status_code=204)

    def __iter__(self) -> Iterator[str]:
        if self._started:
            raise RuntimeError("DeltaStream can only be iterated once")
        self._started = True
        return self._iter()

    def _iter(self) -> Iterator[str]:
        received = 0

        def chunks() -> Iterator[bytes]:
            nonlocal received
            for chunk in self._response.iter_bytes():
                received += len(chunk)
                yield chunk

        try:
            with contextlib.closing(chunks()) as source:
                yield from iter_text_deltas(source, encoding=self._encoding)
            if received == 0:
                raise EmptyResponse(status_code=getattr(self._response, "status_code", 200))
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._response.close()
        except Exception as e:
            logging.debug("SSE: ignoring error while closing stream: %r", e)

    def __enter__(self) -> DeltaStream:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class AsyncDeltaStream:
    """
    Async twin of DeltaStream over `aiter_bytes()` / `aclose()`.

    A 204 response is reported on first iteration, after which the response
    has been closed.
    """

    def __init__(self, response: Any) -> None:
        self._response = response
        self._encoding = _response_encoding(response)
        self._started = False
        self._closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("AsyncDeltaStream can only be iterated once")
        self._started = True
        return self._aiter()

    async def _aiter(self) -> AsyncIterator[str]:
        received = 0

        async def chunks() -> AsyncIterator[bytes]:
            nonlocal received
            async for chunk in self._response.aiter_bytes():
                received += len(chunk)
                yield chunk

        try:
            if _no_content(self._response):
                raise EmptyResponse(status_code=204)
            async with contextlib.aclosing(chunks()) as source:
                async for text in aiter_text_deltas(source, encoding=self._encoding):
                    yield text
            if received == 0:
                raise EmptyResponse(status_code=getattr(self._response, "status_code", 200))
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        except Exception as e:
            logging.debug("SSE: ignoring error while closing stream: %r", e)

    async def __aenter__(self) -> AsyncDeltaStream:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()


def open_delta_stream(response: Any) -> DeltaStream:
    """Open a delta stream over an httpx.Response opened with Client.stream()."""
    return DeltaStream(response)


def open_async_delta_stream(response: Any) -> AsyncDeltaStream:
    """Open a delta stream over an httpx.Response opened with AsyncClient.stream()."""
    return AsyncDeltaStream(response)
