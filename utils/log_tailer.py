# utils/log_tailer.py
from __future__ import annotations

import asyncio
import codecs
import logging
import os
from typing import Awaitable, BinaryIO, Callable

from watchfiles import awatch

from exceptions import FatalError, LogWatcherError

log = logging.getLogger(__name__)

LineCallback = Callable[[str], Awaitable[None]]

class LogTailer:
    """
    Follows an append-only log file and hands every new line to ``on_line``.

    The byte cursor starts at 0, so the whole existing file is replayed on the
    first read. A trailing line without its newline is held back until the
    rest of it arrives. Truncation is not detected: if the file shrinks,
    nothing is read until it grows past the old cursor again.
    """

    def __init__(
        self,
        path: str,
        on_line: LineCallback,
        *,
        use_polling: bool = False,
        poll_interval: float = 1.0,
        retry_interval: float = 1.0,
        max_open_attempts: int = 0,
    ):
        self.path = path
        self.on_line = on_line
        self.use_polling = use_polling
        self.poll_interval = poll_interval
        self.retry_interval = retry_interval
        self.max_open_attempts = max_open_attempts
        self.cursor = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._handle: BinaryIO | None = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        """Wait until the log exists and is readable, then keep it open."""
        attempt = 0
        while True:
            attempt += 1
            try:
                self._handle = open(self.path, "rb")
                log.info("[tail] opened %s", self.path)
                return
            except OSError as e:
                if self.max_open_attempts and attempt >= self.max_open_attempts:
                    raise LogWatcherError(f"log file not readable after {attempt} attempts: {e}") from e
                if attempt == 1:
                    log.warning("[tail] waiting for %s: %s", self.path, e)
            await asyncio.sleep(self.retry_interval)

    def _read_region(self) -> str:
        assert self._handle is not None
        size = os.fstat(self._handle.fileno()).st_size
        if size <= self.cursor:
            return ""
        self._handle.seek(self.cursor)
        data = self._handle.read(size - self.cursor)
        self.cursor += len(data)
        return self._decoder.decode(data)

    async def read_new_lines(self) -> int:
        """Process whatever was appended since the last call. Returns the number of lines dispatched."""
        async with self._lock:
            if self._handle is None:
                return 0
            try:
                text = self._read_region()
            except OSError:
                log.exception("[tail] error reading %s", self.path)
                return 0

            # the last piece has no newline yet; keep it for the next append
            lines = (self._pending + text).split("\n")
            self._pending = lines.pop()

            count = 0
            for line in lines:
                if not line.strip():
                    continue
                try:
                    await self.on_line(line.rstrip("\r"))
                except FatalError:
                    raise
                except Exception:
                    log.exception("[tail] error handling line: %r", line)
                count += 1
            return count

    async def _notifications(self):
        if self.use_polling:
            while True:
                await asyncio.sleep(self.poll_interval)
                yield
        else:
            async for _changes in awatch(self.path):
                yield

    async def watch(self) -> None:
        """Open, replay, then follow the file forever."""
        await self.open()
        await self.read_new_lines()
        log.info("[tail] following %s (%s)", self.path, "polling" if self.use_polling else "fs events")
        async for _ in self._notifications():
            await self.read_new_lines()
        raise LogWatcherError(f"stopped receiving change notifications for {self.path}")
