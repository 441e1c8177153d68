"""
Client side of the NDJSON wire protocol.

``StreamAccumulator`` reassembles the frames of a streamed chat response;
``stream_chat`` drives a request against a running gateway with httpx.
"""

import codecs
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

logger = logging.getLogger(__name__)


class GatewayResponseError(Exception):
    """Raised when the gateway refuses a request before streaming starts."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class StreamAccumulator:
    """
    Incremental reader of NDJSON frames.

    Partial lines are buffered until their newline arrives. Any frame,
    including heartbeats and shapes it does not know, counts as liveness.
    After a terminal frame (``finished`` or ``error``) everything else is
    ignored; text received before an error is kept.
    """

    def __init__(self, on_text: Optional[Callable[[str], None]] = None):
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._on_text = on_text
        self.text = ""
        self.finished = False
        self.error: Optional[str] = None
        self.heartbeats = 0
        self.last_activity: Optional[float] = None

    @property
    def done(self) -> bool:
        return self.finished or self.error is not None

    def feed(self, data: Union[bytes, str]) -> List[Dict[str, Any]]:
        """
        Consume a piece of the response body.

        Args:
            data: Raw bytes or text, split anywhere

        Returns:
            Frames completed by this piece, in order
        """
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        self._buffer += data

        frames = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            frame = self._parse(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def close(self) -> Optional[Dict[str, Any]]:
        """Flush a trailing line that had no newline."""
        line, self._buffer = self._buffer, ""
        return self._parse(line)

    def _parse(self, line: str) -> Optional[Dict[str, Any]]:
        line = line.strip()
        if not line:
            return None

        self.last_activity = time.monotonic()
        try:
            frame = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring undecodable frame: {line[:100]}")
            return None
        if not isinstance(frame, dict):
            return None

        self._apply(frame)
        return frame

    def _apply(self, frame: Dict[str, Any]) -> None:
        if frame.get("type") == "heartbeat":
            self.heartbeats += 1
            return
        if self.done:
            return

        if "error" in frame:
            self.error = str(frame["error"])
        elif frame.get("finished"):
            self.finished = True
        elif isinstance(frame.get("text"), str):
            self.text += frame["text"]
            if self._on_text is not None:
                self._on_text(frame["text"])


async def stream_chat(
    client: httpx.AsyncClient,
    payload: Dict[str, Any],
    url: str = "/api/chat/stream",
    on_text: Optional[Callable[[str], None]] = None,
) -> StreamAccumulator:
    """
    Send a chat request and read its stream to the end.

    Args:
        client: httpx client pointed at the gateway
        payload: Gateway request body
        url: Streaming endpoint path
        on_text: Called with every text delta as it arrives

    Returns:
        The accumulator after the stream closed

    Raises:
        GatewayResponseError: If the gateway answered with an error response
    """
    accumulator = StreamAccumulator(on_text=on_text)

    async with client.stream("POST", url, json=payload) as response:
        if response.status_code != 200:
            await response.aread()
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = body["error"]
            else:
                message = response.text
            raise GatewayResponseError(response.status_code, str(message))

        async for data in response.aiter_text():
            accumulator.feed(data)
            if accumulator.done:
                break

    accumulator.close()
    return accumulator
