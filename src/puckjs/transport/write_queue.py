"""Serialized, chunked writes to the UART TX characteristic."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..protocol import CHUNK_SIZE, split_into_chunks

_LOGGER = logging.getLogger(__name__)

ChunkWriter = Callable[[bytes], Awaitable[None]]


@dataclass
class WriteRequest:
    """One caller write, consumed chunk by chunk."""

    chunks: deque[bytes]
    on_complete: Callable[[], None] | None = None

    @property
    def remaining(self) -> bytes:
        """Payload bytes not yet handed to the transport."""
        return b"".join(self.chunks)


class WriteQueue:
    """FIFO of write requests drained one chunk at a time.

    A GATT characteristic accepts a single outstanding write, so the next
    chunk is only issued after the previous one succeeded. Requests are
    never interleaved: all chunks of one request reach the transport before
    the first chunk of the next.

    If a chunk write fails, every queued request is dropped without its
    completion callback and ``on_error`` is called once.
    """

    def __init__(
            self,
            writer: ChunkWriter,
            on_error: Callable[[Exception], None],
            chunk_size: int = CHUNK_SIZE,
    ):
        """Initialize write queue.

        Args:
            writer: Coroutine function writing one chunk to the transport
            on_error: Called with the exception when a chunk write fails
            chunk_size: Maximum bytes per chunk (default: 16)
        """
        self.writer = writer
        self.on_error = on_error
        self.chunk_size = chunk_size

        self._requests: deque[WriteRequest] = deque()
        self._task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._requests)

    @property
    def in_flight(self) -> bool:
        """True while the queue is being drained."""
        return self._task is not None

    def enqueue(self, payload: bytes, on_complete: Callable[[], None] | None = None) -> None:
        """Add a write request to the tail of the queue.

        Args:
            payload: Bytes to send
            on_complete: Called once, after the last chunk was written
        """
        chunks = deque(split_into_chunks(payload, self.chunk_size))
        self._requests.append(WriteRequest(chunks=chunks, on_complete=on_complete))

        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._drain())

    def clear(self) -> None:
        """Drop all pending requests and stop draining."""
        task, self._task = self._task, None
        self._requests.clear()
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _drain(self) -> None:
        try:
            while self._requests:
                request = self._requests[0]

                if request.chunks:
                    chunk = request.chunks.popleft()
                    _LOGGER.debug("Sending %r", chunk)
                    try:
                        await self.writer(chunk)
                    except Exception as e:
                        _LOGGER.warning("Send error, dropping %d queued write(s): %s", len(self._requests), e)
                        self._requests.clear()
                        self._task = None
                        self.on_error(e)
                        return
                    _LOGGER.debug("Sent")

                if not request.chunks:
                    self._requests.popleft()
                    if request.on_complete is not None:
                        try:
                            request.on_complete()
                        except Exception:
                            _LOGGER.exception("Write completion callback failed")
        finally:
            if self._task is asyncio.current_task():
                self._task = None
