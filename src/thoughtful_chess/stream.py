"""
Long-lived NDJSON streams over aiohttp.

- NdjsonDecoder: splits raw chunks on newlines, carrying partial lines over to
  the next chunk, and parses each non-empty line as one JSON object.
- StreamClient.open(): one connection per call, returning a StreamHandle.
  on_event fires once per record in stream order; on_error fires at most once
  on transport failure. There is no automatic reconnection.
- ReconnectingStream: opt-in wrapper with the same open() contract that
  reconnects with bounded exponential backoff before giving up.

Cancelling a handle is idempotent and silences all later callbacks for that
connection.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from .config import SETTINGS
from .errors import StreamError

log = logging.getLogger("stream")

Record = dict[str, Any]
EventCallback = Callable[[Record], None]
ErrorCallback = Callable[[BaseException], None]

# Failures that end one connection; anything else is a programming error.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, StreamError)


def parse_line(line: bytes) -> Optional[Record]:
    """Parse one NDJSON line; return None for blank lines and protocol noise."""
    text = line.strip()
    if not text:
        return None
    try:
        record = json.loads(text)
    except ValueError:  # JSONDecodeError and UnicodeDecodeError
        log.debug("Skipping invalid JSON: %r", text[:200])
        return None
    if not isinstance(record, dict):
        log.debug("Skipping non-object record: %r", text[:200])
        return None
    return record


class NdjsonDecoder:
    """Incremental newline-delimited JSON decoder."""

    def __init__(self):
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        return self._buffer

    def feed(self, chunk: bytes) -> list[Record]:
        *lines, self._buffer = (self._buffer + chunk).split(b"\n")
        records = []
        for line in lines:
            record = parse_line(line)
            if record is not None:
                records.append(record)
        return records


class StreamHandle:
    """Cancel handle for one open stream.

    `runner` is called with the handle and its coroutine becomes the stream task
    on the running loop.
    """

    def __init__(self, label: str, runner: Callable[["StreamHandle"], Awaitable[None]]):
        self.label = label
        self._cancelled = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(runner(self))

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if not self._task.done():
            self._task.cancel()
        log.debug("%s stream cancelled", self.label)

    async def wait(self) -> None:
        """Wait for the underlying task to finish (used by shutdown and tests)."""
        await asyncio.gather(self._task, return_exceptions=True)


def _safe_call(fn: Callable[..., None], arg: Any, label: str) -> None:
    try:
        fn(arg)
    except Exception:
        log.exception("%s stream callback failed", label)


class StreamClient:
    def __init__(self, session: aiohttp.ClientSession, headers: dict[str, str] | None = None,
                 connect_timeout_s: float | None = None, read_timeout_s: float | None = None):
        self._session = session
        self._headers = {"Accept": "application/x-ndjson", **(headers or {})}
        self._timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=connect_timeout_s or SETTINGS.connect_timeout_s,
            # the server sends a keepalive newline every few seconds; silence means a dead connection
            sock_read=read_timeout_s or SETTINGS.stream_read_timeout_s,
        )

    def open(self, url: str, on_event: EventCallback, on_error: ErrorCallback, label: str = "stream") -> StreamHandle:
        return StreamHandle(label, lambda handle: self._run(url, on_event, on_error, handle))

    async def run(self, url: str, on_event: EventCallback, handle: StreamHandle) -> None:
        """Read one connection to the end, delivering records; raises on transport failure."""
        decoder = NdjsonDecoder()
        async with self._session.get(url, headers=self._headers, timeout=self._timeout) as resp:
            if resp.status != 200:
                raise StreamError(f"Stream connection failed: {resp.status}", status=resp.status)
            log.info("%s stream connected: %s", handle.label, url)
            async for chunk in resp.content.iter_any():
                for record in decoder.feed(chunk):
                    if handle.cancelled:
                        return
                    _safe_call(on_event, record, handle.label)
        if decoder.pending.strip():
            log.debug("%s stream ended with unterminated line dropped", handle.label)
        log.info("%s stream closed by server", handle.label)

    async def _run(self, url: str, on_event: EventCallback, on_error: ErrorCallback, handle: StreamHandle) -> None:
        try:
            await self.run(url, on_event, handle)
        except TRANSPORT_ERRORS as exc:
            if handle.cancelled:
                return
            log.warning("%s stream failed: %s", handle.label, exc)
            _safe_call(on_error, exc, handle.label)


class ReconnectingStream:
    """StreamClient wrapper that retries failed connections with backoff.

    The attempt counter resets once a connection delivers a record, so only
    consecutive failures count toward max_attempts. on_error fires once, after
    the last attempt fails.
    """

    def __init__(self, client: StreamClient, max_attempts: int | None = None,
                 base_delay_s: float | None = None, max_delay_s: float | None = None):
        self._client = client
        self.max_attempts = SETTINGS.reconnect_attempts if max_attempts is None else max_attempts
        self.base_delay_s = SETTINGS.reconnect_base_s if base_delay_s is None else base_delay_s
        self.max_delay_s = SETTINGS.reconnect_max_s if max_delay_s is None else max_delay_s

    def backoff_delay(self, attempt: int) -> float:
        delay = self.base_delay_s * (2 ** attempt) * (0.8 + 0.4 * random.random())
        return min(delay, self.max_delay_s)

    def open(self, url: str, on_event: EventCallback, on_error: ErrorCallback, label: str = "stream") -> StreamHandle:
        return StreamHandle(label, lambda handle: self._supervise(url, on_event, on_error, handle))

    async def _supervise(self, url: str, on_event: EventCallback, on_error: ErrorCallback, handle: StreamHandle) -> None:
        attempt = 0
        while not handle.cancelled:
            seen = False

            def deliver(record: Record) -> None:
                nonlocal seen
                seen = True
                on_event(record)

            try:
                await self._client.run(url, deliver, handle)
                return
            except TRANSPORT_ERRORS as exc:
                if handle.cancelled:
                    return
                if seen:
                    attempt = 0
                if attempt >= self.max_attempts:
                    log.error("%s stream failed after %d reconnect attempts: %s", handle.label, attempt, exc)
                    _safe_call(on_error, exc, handle.label)
                    return
                delay = self.backoff_delay(attempt)
                attempt += 1
                log.warning("%s stream failed (%s); reconnecting in %.1fs (attempt %d/%d)",
                            handle.label, exc, delay, attempt, self.max_attempts)
                await asyncio.sleep(delay)
