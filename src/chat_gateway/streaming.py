"""
Streamed response state machine.

One ``ChatStream`` drives one response: it forwards upstream chunks as
NDJSON frames, interleaves heartbeat frames, and cuts the stream off when
the upstream goes quiet for too long.

    INITIALIZING -> STREAMING -> COMPLETED | FAILED | TIMED_OUT

Three tasks run while streaming (upstream pump, heartbeat timer,
inactivity watchdog). They only ever put items on a bounded queue; the
``frames`` generator is the single reader of that queue and the only
writer of output, and it cancels the three tasks on every exit path.

The upstream may still be opening when the stream starts. Heartbeats and
the watchdog then already cover the wait for the first chunk.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Optional, Union

from .core.errors import InactivityTimeout
from .models.response import StreamChunk

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 8.0
INACTIVITY_TIMEOUT = 120.0
QUEUE_SIZE = 64

_TIMED_OUT = object()
_UPSTREAM_ENDED = object()

ChunkSource = Union[AsyncIterator[StreamChunk], Awaitable[AsyncIterator[StreamChunk]]]


class StreamState(str, Enum):
    """Lifecycle of a streamed response."""
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.FAILED, StreamState.TIMED_OUT)


class ChatStream:
    """
    Re-frames an upstream chunk iterator into a resilient NDJSON stream.

    Every stream ends with exactly one terminal frame (``finished`` or
    ``error``) unless the client goes away first; nothing is written after it.
    """

    def __init__(
        self,
        chunks: ChunkSource,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        inactivity_timeout: float = INACTIVITY_TIMEOUT,
        provider: Optional[str] = None,
        queue_size: int = QUEUE_SIZE,
    ):
        """
        Initialize the stream.

        Args:
            chunks: Open upstream chunk iterator, or an awaitable (e.g. a
                task) that resolves to one once the upstream has opened
            heartbeat_interval: Seconds between heartbeat frames
            inactivity_timeout: Seconds without an upstream chunk before the
                stream is cut off
            provider: Provider name, for log messages
            queue_size: Frames buffered ahead of a slow client
        """
        self._chunks = chunks
        self._heartbeat_interval = heartbeat_interval
        self._inactivity_timeout = inactivity_timeout
        self._provider = provider
        self._queue_size = queue_size
        self._last_activity = 0.0
        self._started = False
        self.state = StreamState.INITIALIZING
        self.error: Optional[str] = None

    async def frames(self) -> AsyncIterator[bytes]:
        """
        Yield the NDJSON lines of this response.

        Can be consumed once. Closing the generator early (client
        disconnect) marks the stream failed and tears down all timers.
        """
        if self._started:
            raise RuntimeError("ChatStream.frames() can only be consumed once")
        self._started = True

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._last_activity = loop.time()
        self.state = StreamState.STREAMING

        tasks = [
            asyncio.create_task(self._pump(queue)),
            asyncio.create_task(self._heartbeat(queue)),
            asyncio.create_task(self._watchdog(queue)),
        ]

        try:
            while True:
                item = await queue.get()

                if item is _TIMED_OUT:
                    timeout = InactivityTimeout(self._inactivity_timeout, provider=self._provider)
                    logger.error(f"AI stream from {self._provider} timed out due to inactivity.")
                    self._transition(StreamState.TIMED_OUT, timeout.message)
                    yield StreamChunk.of_error(f"{timeout.message}. Please try again.").to_frame()
                    return

                if item is _UPSTREAM_ENDED:
                    self._transition(StreamState.COMPLETED)
                    yield StreamChunk.done().to_frame()
                    return

                try:
                    frame = item.to_frame()
                except Exception as e:
                    logger.error(f"Could not encode stream frame: {e!r}")
                    item = StreamChunk.of_error("Invalid AI stream frame")
                    frame = item.to_frame()

                yield frame

                if item.error is not None:
                    self._transition(StreamState.FAILED, item.error)
                    return
                if item.finished:
                    self._transition(StreamState.COMPLETED)
                    return

        finally:
            if not self.state.is_terminal:
                self._transition(StreamState.FAILED, "client disconnected")
                logger.info(f"Client disconnected from {self._provider} stream")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    def _transition(self, state: StreamState, error: Optional[str] = None) -> None:
        self.state = state
        self.error = error

    async def _pump(self, queue: asyncio.Queue) -> None:
        """Read upstream chunks, stamping activity for the watchdog."""
        loop = asyncio.get_running_loop()
        try:
            if inspect.isawaitable(self._chunks):
                self._chunks = await self._chunks

            async for chunk in self._chunks:
                self._last_activity = loop.time()
                if not isinstance(chunk, StreamChunk):
                    raise TypeError(f"Unexpected upstream item: {type(chunk).__name__}")
                await queue.put(chunk)
                # Time spent waiting on a slow client is not upstream silence
                self._last_activity = loop.time()
                if chunk.is_terminal:
                    return
            await queue.put(_UPSTREAM_ENDED)
        except Exception as e:
            logger.error(f"Error during AI stream processing: {e!r}")
            await queue.put(StreamChunk.of_error(str(e) or "Unknown AI stream error"))
        finally:
            await self._close_upstream()

    async def _close_upstream(self) -> None:
        if isinstance(self._chunks, asyncio.Future):
            # Still opening: abandon the open
            self._chunks.cancel()
            return
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    async def _heartbeat(self, queue: asyncio.Queue) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                queue.put_nowait(StreamChunk.beat())
            except asyncio.QueueFull:
                # Frames are already waiting for the client
                pass

    async def _watchdog(self, queue: asyncio.Queue) -> None:
        loop = asyncio.get_running_loop()
        while True:
            remaining = self._last_activity + self._inactivity_timeout - loop.time()
            if remaining <= 0:
                await queue.put(_TIMED_OUT)
                return
            await asyncio.sleep(remaining)
