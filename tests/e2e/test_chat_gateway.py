"""
End-to-end tests for the chat streaming gateway.

These tests run the FastAPI service in-process and stream through it
with the bundled client, against an OpenAI-compatible upstream served by
httpx.MockTransport. No external services or API keys are needed.
"""

import contextlib

import httpx
import pytest

from chat_gateway.adapters import DeepSeekAdapter, GeminiAdapter
from chat_gateway.client import GatewayResponseError, stream_chat
from chat_gateway.core.config import GatewayConfig, StreamSettings
from chat_gateway.core.credentials import CredentialPool
from chat_gateway.core.registry import ProviderRegistry
from chat_gateway.main import create_app


@contextlib.asynccontextmanager
async def running_gateway(upstream, keys=("g-key-1", "g-key-2"), **stream_settings):
    """Start the service around a mocked upstream and yield a client for it."""
    registry = ProviderRegistry()
    registry.register(GeminiAdapter(pool=CredentialPool(list(keys), provider="gemini"), transport=upstream.transport))
    registry.register(DeepSeekAdapter(pool=CredentialPool(["d-key-1"], provider="deepseek"), transport=upstream.transport))

    settings = {"heartbeat_interval": 0.05, "inactivity_timeout": 0.5}
    settings.update(stream_settings)
    config = GatewayConfig(providers=[], stream=StreamSettings(**settings))
    app = create_app(config=config, registry=registry)

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://gateway", timeout=10.0) as client:
            yield client


def chat_payload(**overrides):
    payload = {
        "provider": "gemini",
        "model": "gemini-2.5-flash",
        "messages": [{"role": "user", "content": "Hi", "id": "m1"}],
    }
    payload.update(overrides)
    return payload


class TestChatStreamE2E:
    """End-to-end streaming through the gateway."""

    @pytest.mark.asyncio
    async def test_stream_completes(self, upstream):
        """Verify a streamed answer arrives whole and ends with finished."""
        upstream.respond(upstream.sse("Hel", "lo"))
        seen = []

        async with running_gateway(upstream) as client:
            result = await stream_chat(client, chat_payload(), on_text=seen.append)

        assert result.text == "Hello"
        assert result.finished
        assert result.error is None
        assert seen == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_response_headers(self, upstream):
        """Verify the stream is served as uncached NDJSON."""
        async with running_gateway(upstream) as client:
            response = await client.post("/api/chat/stream", json=chat_payload())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert response.text.splitlines()[-1] == '{"finished": true}'

    @pytest.mark.asyncio
    async def test_pro_model_reasoning_floor(self, upstream):
        """Verify gemini-2.5-pro is asked for low effort when reasoning is turned off."""
        upstream.respond(upstream.sse("Hello"))

        async with running_gateway(upstream) as client:
            result = await stream_chat(client, chat_payload(
                model="gemini-2.5-pro",
                reasoningEffort="none",
                systemInstruction="Be brief.",
                messages=[{"role": "user", "content": "Hi"}],
            ))

        assert result.text == "Hello"
        body = upstream.last_body
        assert body["model"] == "gemini-2.5-pro"
        assert body["reasoning_effort"] == "low"
        assert body["max_tokens"] == 8192
        assert body["temperature"] == 0.7
        assert body["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]

    @pytest.mark.asyncio
    async def test_partial_result_then_error(self, upstream):
        """Verify a dropped upstream keeps the partial text and reports the error."""
        upstream.respond(upstream.dropping("Hel", "lo", message="Connection reset by peer"))

        async with running_gateway(upstream) as client:
            result = await stream_chat(client, chat_payload())

        assert result.text == "Hello"
        assert result.error == "Connection reset by peer"
        assert not result.finished

    @pytest.mark.asyncio
    async def test_stalled_upstream_times_out(self, upstream):
        """Verify a silent upstream ends in a timeout error, with heartbeats meanwhile."""
        upstream.respond(upstream.stalling("Hel", stall=30))

        async with running_gateway(upstream, heartbeat_interval=0.05, inactivity_timeout=0.4) as client:
            result = await stream_chat(client, chat_payload())

        assert result.text == "Hel"
        assert "timed out" in result.error
        assert result.heartbeats >= 1

    @pytest.mark.asyncio
    async def test_slow_upstream_open_gets_heartbeats(self, upstream):
        """Verify the response starts with heartbeats while the upstream is still opening."""
        upstream.open_delay = 0.3
        upstream.respond(upstream.sse("Hel", "lo"))

        async with running_gateway(
            upstream, heartbeat_interval=0.05, inactivity_timeout=1.0, open_grace_period=0.05,
        ) as client:
            result = await stream_chat(client, chat_payload())

        assert result.text == "Hello"
        assert result.finished
        assert result.heartbeats >= 2

    @pytest.mark.asyncio
    async def test_slow_upstream_refusal_reported_in_stream(self, upstream):
        """Verify an upstream that refuses after the response started ends with an error frame."""
        upstream.open_delay = 0.2
        upstream.respond(upstream.error(401, "invalid key"))

        async with running_gateway(
            upstream, heartbeat_interval=0.05, inactivity_timeout=1.0, open_grace_period=0.05,
        ) as client:
            result = await stream_chat(client, chat_payload())

        assert result.text == ""
        assert result.error.startswith("Gemini API Error: 401")
        assert result.heartbeats >= 1

    @pytest.mark.asyncio
    async def test_hung_upstream_open_times_out_in_stream(self, upstream):
        """Verify an upstream that never answers ends in a timeout frame, not a 504."""
        upstream.open_delay = 30

        async with running_gateway(
            upstream, heartbeat_interval=0.05, inactivity_timeout=0.3, open_grace_period=0.05,
        ) as client:
            result = await stream_chat(client, chat_payload())

        assert "timed out" in result.error
        assert result.heartbeats >= 1

    @pytest.mark.asyncio
    async def test_rate_limited_key_rotated(self, upstream):
        """Verify a rate-limited key is skipped within the same request."""
        upstream.script(upstream.error(429, "quota exceeded"), upstream.sse("ok"))

        async with running_gateway(upstream) as client:
            result = await stream_chat(client, chat_payload())

        assert result.text == "ok"
        assert upstream.keys_used == ["g-key-1", "g-key-2"]


class TestChatErrorsE2E:
    """End-to-end error responses before streaming starts."""

    @pytest.mark.asyncio
    async def test_unknown_provider(self, upstream):
        """Verify an unknown provider is refused with a JSON error."""
        async with running_gateway(upstream) as client:
            with pytest.raises(GatewayResponseError) as exc_info:
                await stream_chat(client, chat_payload(provider="openai"))

        assert exc_info.value.status_code == 500
        assert exc_info.value.message.startswith("Failed to stream chat: Provider openai not found")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, upstream):
        """Verify an upstream auth failure is reported as a bad gateway."""
        upstream.respond(upstream.error(401, "invalid key"))

        async with running_gateway(upstream) as client:
            with pytest.raises(GatewayResponseError) as exc_info:
                await stream_chat(client, chat_payload())

        assert exc_info.value.status_code == 502
        assert "Gemini API Error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_all_keys_rate_limited(self, upstream):
        """Verify exhausting every key is reported once, without streaming."""
        upstream.respond(upstream.error(429))

        async with running_gateway(upstream) as client:
            with pytest.raises(GatewayResponseError) as exc_info:
                await stream_chat(client, chat_payload())

        assert exc_info.value.status_code == 502
        assert "429 Rate limit exceeded" in exc_info.value.message
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_invalid_request(self, upstream):
        """Verify malformed bodies are rejected by validation."""
        async with running_gateway(upstream) as client:
            with pytest.raises(GatewayResponseError) as exc_info:
                await stream_chat(client, chat_payload(provider=""))

        assert exc_info.value.status_code == 422


class TestCatalogE2E:
    """End-to-end catalog and health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, upstream):
        """Verify health lists registered providers."""
        async with running_gateway(upstream) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "providers": ["deepseek", "gemini"]}

    @pytest.mark.asyncio
    async def test_models(self, upstream):
        """Verify the model catalog of every provider is served."""
        async with running_gateway(upstream) as client:
            response = await client.get("/api/models")

        catalog = response.json()
        assert set(catalog) == {"gemini", "deepseek"}
        assert [m["id"] for m in catalog["deepseek"]["models"]] == ["deepseek-chat", "deepseek-reasoner"]
        assert catalog["gemini"]["models"][0]["max_output_tokens"] == 8192
