import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import httpx
import orjson

from chatrelay.utils.exceptions import (
    UpstreamCancelled,
    UpstreamConnectError,
    UpstreamStatusError,
    UpstreamTimeout,
)

logger = logging.getLogger(__name__)

# Default seconds allowed for connect and for each read
DEFAULT_TIMEOUT = 30.0
# Longest provider error body echoed back to the caller
MAX_ERROR_DETAIL = 200


class UpstreamStream:
    """Single-pass, cancelable source of response body chunks.

    Iterating yields raw byte chunks exactly as the network delivers them.
    ``aclose()`` releases the connection; reading after it raises
    UpstreamCancelled.
    """

    def __init__(self, response: httpx.Response, provider: str):
        self._response = response
        self._provider = provider
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._closed:
            raise UpstreamCancelled("Upstream stream was closed")
        try:
            async for chunk in self._response.aiter_bytes():
                if self._closed:
                    raise UpstreamCancelled("Upstream stream was closed")
                yield chunk
        except httpx.TimeoutException as e:
            logger.error(f"{self._provider} stream stalled: {e!r}")
            raise UpstreamTimeout("Completion provider stopped responding") from e
        except httpx.StreamClosed as e:
            raise UpstreamCancelled("Upstream stream was closed") from e
        except httpx.TransportError as e:
            logger.error(f"{self._provider} connection lost mid-stream: {e!r}")
            raise UpstreamConnectError(f"Connection to completion provider lost: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class BaseProvider(ABC):
    """Abstract base class for streaming completion providers"""

    name: str  # Provider identifier used in logs

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._build_headers(),
            # Applies to connect and to every read: an idle timeout, not a deadline
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def _build_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Path of the streaming completion endpoint, relative to base_url."""

    @abstractmethod
    def build_payload(self, message: str) -> dict:
        """Request body for a single user message."""

    async def open(self, message: str) -> UpstreamStream:
        """
        Issue the streaming completion request.

        Returns once the provider has answered with a 2xx status; the body
        has not been read yet.

        Raises:
            UpstreamConnectError: provider unreachable or the request cannot be built
            UpstreamTimeout: connect or first response exceeded the timeout
            UpstreamStatusError: non-2xx status
        """
        try:
            request = self._client.build_request(
                "POST", self.endpoint, content=orjson.dumps(self.build_payload(message))
            )
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} request timed out after {self.timeout}s: {e!r}")
            raise UpstreamTimeout(
                f"Completion provider did not respond within {self.timeout:g}s"
            ) from e
        except httpx.TransportError as e:
            logger.error(f"{self.name} connection failed: {e!r}")
            raise UpstreamConnectError(f"Could not reach completion provider: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"{self.name} request failed: {e!r}")
            raise UpstreamConnectError(f"Invalid completion request: {e}") from e

        if not response.is_success:
            detail = await self._read_error_detail(response)
            logger.error(
                f"{self.name} API error for model '{self.model}': "
                f"status={response.status_code}, error={detail}"
            )
            raise UpstreamStatusError(response.status_code, response.reason_phrase, detail)

        return UpstreamStream(response, self.name)

    async def _read_error_detail(self, response: httpx.Response) -> Optional[str]:
        """Read (and release) a failed response, returning the provider's message."""
        try:
            error_body = await response.aread()
        except httpx.HTTPError:
            return None
        finally:
            await response.aclose()

        try:
            error_json = orjson.loads(error_body)
            error = error_json.get("error") if isinstance(error_json, dict) else None
            if isinstance(error, dict):
                error_msg = error.get("message")
            else:
                error_msg = error
        except orjson.JSONDecodeError:
            error_msg = error_body.decode("utf-8", errors="replace")

        if not error_msg:
            return None
        return str(error_msg).strip()[:MAX_ERROR_DETAIL] or None

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def is_configured(self) -> bool:
        """Check if provider has valid API key"""
        return bool(self.api_key)
