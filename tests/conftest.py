"""
Shared fixtures: a scriptable OpenAI-compatible upstream served through
httpx.MockTransport, and a manual clock for credential pool tests.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest


def sse_body(*deltas: str, done: bool = True) -> bytes:
    """Server-sent events body of a chat completion stream."""
    events = []
    for delta in deltas:
        chunk = {"id": "chatcmpl-test", "choices": [{"index": 0, "delta": {"content": delta}}]}
        events.append(f"data: {json.dumps(chunk)}\n\n")
    if done:
        events.append("data: [DONE]\n\n")
    return "".join(events).encode("utf-8")


class DroppingStream(httpx.AsyncByteStream):
    """Sends some events, then the connection breaks."""

    def __init__(self, body: bytes, message: str = "Connection reset by peer"):
        self._body = body
        self._message = message

    async def __aiter__(self):
        yield self._body
        raise httpx.ReadError(self._message)


class StallingStream(httpx.AsyncByteStream):
    """Sends some events, then goes silent."""

    def __init__(self, body: bytes, stall: float = 30.0):
        self._body = body
        self._stall = stall
        self.closed = False

    async def __aiter__(self):
        yield self._body
        await asyncio.sleep(self._stall)

    async def aclose(self):
        self.closed = True


ResponseFactory = Callable[[], httpx.Response]


class FakeUpstream:
    """
    OpenAI-compatible backend double.

    Each request pops the next scripted response factory, or uses the
    default one. Requests are recorded as (api_key, json body).
    ``open_delay`` holds back the response headers.
    """

    def __init__(self):
        self.open_delay = 0.0
        self.requests: List[Tuple[str, Dict[str, Any]]] = []
        self._script: List[ResponseFactory] = []
        self._default: ResponseFactory = self.sse(done=True)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("authorization", "")
        api_key = auth[len("Bearer "):] if auth.startswith("Bearer ") else auth
        self.requests.append((api_key, json.loads(request.content)))
        factory = self._script.pop(0) if self._script else self._default
        return factory()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        return self(request)

    @property
    def keys_used(self) -> List[str]:
        return [key for key, _ in self.requests]

    @property
    def last_body(self) -> Optional[Dict[str, Any]]:
        return self.requests[-1][1] if self.requests else None

    def respond(self, factory: ResponseFactory) -> "FakeUpstream":
        self._default = factory
        return self

    def script(self, *factories: ResponseFactory) -> "FakeUpstream":
        self._script.extend(factories)
        return self

    @staticmethod
    def sse(*deltas: str, done: bool = True) -> ResponseFactory:
        return lambda: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=sse_body(*deltas, done=done),
        )

    @staticmethod
    def raw(body: str) -> ResponseFactory:
        return lambda: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=body.encode("utf-8"),
        )

    @staticmethod
    def error(status: int, text: str = "", headers: Optional[Dict[str, str]] = None) -> ResponseFactory:
        return lambda: httpx.Response(status, text=text, headers=headers)

    @staticmethod
    def dropping(*deltas: str, message: str = "Connection reset by peer") -> ResponseFactory:
        return lambda: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            stream=DroppingStream(sse_body(*deltas, done=False), message),
        )

    @staticmethod
    def stalling(*deltas: str, stall: float = 30.0) -> ResponseFactory:
        return lambda: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            stream=StallingStream(sse_body(*deltas, done=False), stall),
        )


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def upstream() -> FakeUpstream:
    """Scriptable upstream backend."""
    return FakeUpstream()


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock for credential pools."""
    return ManualClock()
