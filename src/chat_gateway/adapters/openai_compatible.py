"""
Shared adapter for OpenAI-compatible chat-completion backends.

Concrete backends only supply a base URL, a model catalog and, where
needed, extra request fields. Credential rotation is delegated to the
``CredentialPool`` handed in at construction.
"""

import logging
import json
from typing import Optional, List, Dict, Any, AsyncIterator
import httpx

from ..core.credentials import CredentialPool
from ..core.errors import (
    ProviderUnavailableError,
    UpstreamAuthenticationError,
    UpstreamRateLimited,
)
from ..core.interface import ProviderAdapter
from ..models.request import ChatMessage, ProviderConfig
from ..models.response import StreamChunk

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """
    Streams chat completions from a ``/chat/completions`` endpoint.

    Subclasses set ``BASE_URL``, ``PROVIDER_NAME``, ``DISPLAY_NAME`` and
    implement ``get_available_models``.
    """

    BASE_URL: str = ""
    PROVIDER_NAME: str = ""
    DISPLAY_NAME: str = ""
    CHAT_PATH = "chat/completions"
    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_MAX_TOKENS: Optional[int] = None

    def __init__(
        self,
        pool: CredentialPool,
        name: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """
        Initialize the adapter.

        Args:
            pool: Credential pool owned by this adapter
            name: Registry name, defaults to ``PROVIDER_NAME``
            timeout: Connect/write timeout in seconds; reads are bounded by
                the gateway's inactivity watchdog instead
            transport: Optional httpx transport (e.g. a mock in tests)
        """
        self._pool = pool
        self._name = name or self.PROVIDER_NAME
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def display_name(self) -> str:
        return self.DISPLAY_NAME or self._name

    @property
    def pool(self) -> CredentialPool:
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(self._timeout, read=None),
            transport=self._transport,
        )
        logger.info(f"[{self.display_name}] Connected to {self.BASE_URL}")

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info(f"[{self.display_name}] Disconnected")

    def build_request_parameters(
        self,
        messages: List[ChatMessage],
        config: ProviderConfig,
    ) -> Dict[str, Any]:
        """Map messages and config straight onto an OpenAI streaming request."""
        params: Dict[str, Any] = {
            "model": config.model or self.get_available_models()[0].id,
            "messages": [m.to_openai_format() for m in messages],
            "stream": True,
            "temperature": (
                config.temperature if config.temperature is not None else self.DEFAULT_TEMPERATURE
            ),
        }

        max_tokens = config.max_tokens or self.DEFAULT_MAX_TOKENS
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        return params

    async def stream_chat(
        self,
        messages: List[ChatMessage],
        config: ProviderConfig,
    ) -> AsyncIterator[StreamChunk]:
        """
        Open a streaming completion and return its chunk iterator.

        A rate-limited attempt is retried with the next credential from the
        pool, at most once per pooled key. Any other setup failure ends the
        call at once.
        """
        if not self._client:
            await self.connect()

        params = self.build_request_parameters(messages, config)
        logger.info(f"[{self.display_name}] Using model: {params['model']}")

        attempts = len(self._pool)
        last_error: Optional[ProviderUnavailableError] = None

        for attempt in range(1, attempts + 1):
            api_key = self._pool.select()
            try:
                response = await self._open_stream(params, api_key)
            except ProviderUnavailableError as e:
                last_error = e
                rate_limited = self._pool.report_failure(api_key, e)
                if rate_limited and attempt < attempts:
                    logger.warning(
                        f"[{self.display_name}] Attempt {attempt}/{attempts} rate limited, "
                        f"retrying with next key"
                    )
                    continue
                break

            self._pool.report_success(api_key)
            return self._iter_chunks(response)

        logger.error(f"[{self.display_name}] Error in stream_chat: {last_error}")
        raise ProviderUnavailableError(
            f"{self.display_name} API Error: {last_error.message}",
            provider=self._name,
            status_code=last_error.status_code,
        )

    async def _open_stream(self, params: Dict[str, Any], api_key: str) -> httpx.Response:
        """Send the request and return the open response once headers arrive."""
        request = self._client.build_request(
            "POST",
            self.CHAT_PATH,
            json=params,
            headers={"Authorization": f"Bearer {api_key}"},
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            raise ProviderUnavailableError(str(e) or type(e).__name__, provider=self._name)

        if response.status_code != 200:
            try:
                await response.aread()
                detail = response.text[:500]
            except httpx.HTTPError:
                detail = ""
            finally:
                await response.aclose()
            self._check_response_errors(response, detail)

        return response

    def _check_response_errors(self, response: httpx.Response, detail: str) -> None:
        """Raise the error type matching a failed response."""
        status = response.status_code

        if status in (401, 403):
            raise UpstreamAuthenticationError(
                f"{status} Invalid API key or access denied",
                provider=self._name,
                status_code=status,
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            raise UpstreamRateLimited(
                _with_detail("429 Rate limit exceeded", detail),
                provider=self._name,
                retry_after=retry_seconds,
            )

        raise ProviderUnavailableError(
            _with_detail(f"{status} Request failed", detail),
            provider=self._name,
            status_code=status,
        )

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[StreamChunk]:
        """Turn the server-sent events of an open response into stream chunks."""
        try:
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    continue

                if isinstance(chunk, dict) and chunk.get("error"):
                    yield StreamChunk.of_error(self._error_message(chunk["error"]))
                    return

                content = self._parse_stream_chunk(chunk)
                if content:
                    yield StreamChunk.of_text(content)

            yield StreamChunk.done()

        except Exception as e:
            logger.error(f"[{self.display_name}] Error in stream processing: {e!r}")
            yield StreamChunk.of_error(str(e) or "Unknown error occurred")

        finally:
            await response.aclose()

    @staticmethod
    def _parse_stream_chunk(chunk: Any) -> Optional[str]:
        """Extract the text delta of a streaming chunk."""
        if not isinstance(chunk, dict):
            return None
        choices = chunk.get("choices") or [{}]
        delta = choices[0].get("delta") or {}
        return delta.get("content")

    @staticmethod
    def _error_message(error: Any) -> str:
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)


def _with_detail(message: str, detail: str) -> str:
    return f"{message}: {detail}" if detail else message
