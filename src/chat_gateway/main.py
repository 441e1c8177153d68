"""
Chat Streaming Gateway Service

A FastAPI service that streams chat completions from OpenAI-compatible
LLM providers to web clients as newline-delimited JSON.

Features:
- Per-provider API key rotation with rate-limit isolation
- Provider registry with a static model catalog
- NDJSON wire protocol with heartbeat frames
- Inactivity watchdog on every upstream stream
"""

import os
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .core.config import GatewayConfig, load_config
from .core.errors import (
    GatewayError,
    ProviderUnavailableError,
)
from .core.registry import ProviderRegistry, build_registry
from .gateway import ChatGateway
from .models.request import ChatRequest
from .streaming import ChatStream, StreamState

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _setup_tracing(app: FastAPI) -> None:
    """Export traces over OTLP when an endpoint is configured."""
    otel_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otel_endpoint:
        return

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    resource = Resource.create({"service.name": "chat-gateway"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)
    logger.info(f"Tracing exported to {otel_endpoint}")


def create_app(
    config: Optional[GatewayConfig] = None,
    registry: Optional[ProviderRegistry] = None,
) -> FastAPI:
    """
    Build the service.

    Args:
        config: Gateway configuration; loaded from file/environment if None
        registry: Pre-built provider registry; built from config if None

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        gateway_config = config or load_config()
        providers = registry if registry is not None else build_registry(gateway_config)

        if not providers.list_providers():
            logger.warning("No providers registered; every chat request will be rejected")

        await providers.connect_all()
        app.state.gateway = ChatGateway(providers, gateway_config.stream)

        logger.info(f"Chat gateway started with providers: {sorted(providers.list_providers())}")
        yield

        await providers.disconnect_all()
        logger.info("Chat gateway stopped")

    app = FastAPI(
        title="Chat Streaming Gateway",
        description="Streams LLM chat completions as NDJSON",
        version="1.0.0",
        lifespan=lifespan,
    )
    _setup_tracing(app)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        gateway: ChatGateway = request.app.state.gateway
        return {
            "status": "healthy",
            "providers": sorted(gateway.registry.list_providers()),
        }

    @app.get("/api/models")
    async def list_models(request: Request):
        """Model catalog of every registered provider."""
        gateway: ChatGateway = request.app.state.gateway
        return gateway.registry.describe()

    @app.post("/api/chat/stream")
    async def stream_chat(body: ChatRequest, request: Request):
        """
        Stream a chat completion.

        Provider resolution and fast connection failures are answered with
        a single JSON error object; once streaming starts (including while
        a slow upstream is still opening), failures arrive as a terminal
        ``{"error": ...}`` frame.
        """
        gateway: ChatGateway = request.app.state.gateway
        span = tracer.start_span(
            "chat.stream",
            attributes={"chat.provider": body.provider, "chat.model": body.model},
        )

        try:
            stream = await gateway.open_stream(body)
        except GatewayError as e:
            logger.error(f"Error in stream_chat setup: {e.message}")
            span.set_status(Status(StatusCode.ERROR, e.message))
            span.end()
            return JSONResponse(
                status_code=_status_for(e),
                content={"error": f"Failed to stream chat: {e.message}"},
            )

        return StreamingResponse(
            _traced_frames(stream, span),
            media_type=NDJSON_MEDIA_TYPE,
            headers=STREAM_HEADERS,
        )

    return app


def _status_for(error: GatewayError) -> int:
    if isinstance(error, ProviderUnavailableError):
        return 502
    return 500


async def _traced_frames(stream: ChatStream, span: trace.Span):
    """Pass frames through, closing the request span with the final state."""
    frames = stream.frames()
    try:
        async for frame in frames:
            yield frame
    finally:
        await frames.aclose()
        span.set_attribute("chat.stream.state", stream.state.value)
        if stream.state is not StreamState.COMPLETED:
            span.set_status(Status(StatusCode.ERROR, stream.error or stream.state.value))
        span.end()


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("CHAT_GATEWAY_PORT", "8080")))
