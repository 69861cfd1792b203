"""
Aiohttp request manager for calls to the Generative Language API.
Posts JSON, retries on rate limiting with exponential backoff, and raises
UpstreamError subclasses for everything else.
"""

import asyncio
import json
import logging
import ssl

import aiohttp
import certifi
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .types import FailureKind

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Upstream call failure with status code and details."""

    kind = FailureKind.upstream_transport

    def __init__(
        self,
        message: str,
        url: str,
        status: int | None = None,
        body: str | None = None,
        upstream_message: str | None = None,
    ):
        self.message = message
        self.url = url
        self.status = status
        self.body = body
        # Message nested in the upstream error body, e.g. {"error": {"message": ...}}
        self.upstream_message = upstream_message
        super().__init__(message)

    def __str__(self):
        return self.message


class RateLimitExceeded(UpstreamError):
    kind = FailureKind.rate_limited


class UpstreamHTTPError(UpstreamError):
    kind = FailureKind.upstream_http


class UpstreamTransportError(UpstreamError):
    kind = FailureKind.upstream_transport


class UpstreamParseError(UpstreamError):
    kind = FailureKind.upstream_parse


def nested_error_message(body: str | None) -> str | None:
    """Get error.message out of a Google-style JSON error body, if present."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return None


# 2**(n-1) seconds after the n-th attempt, plus up to a second of jitter
BACKOFF_WAIT = wait_exponential(multiplier=1) + wait_random(0, 1)


def _log_rate_limit(retry_state: RetryCallState):
    logger.warning(
        f"Rate limit hit (429). Retrying in {retry_state.next_action.sleep:.2f}s..."
    )


class AiohttpRequestManager:
    """
    Owns the aiohttp session used for upstream calls.
    One instance is shared by all handlers of a host.
    """

    def __init__(self, timeout: float | None = None):
        self._session: aiohttp.ClientSession | None = None
        self._timeout = timeout

    async def ensure_session(self):
        """Lazy session creation with proper SSL context."""
        if self._session is None or self._session.closed:
            # Create SSL context using certifi's CA bundle
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            if self._timeout:
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                )
            else:
                self._session = aiohttp.ClientSession(connector=connector)

    async def post_json(
        self,
        url: str,
        data: dict,
        headers: dict | None = None,
        max_retries: int = 3,
    ) -> dict:
        """
        POST JSON request, retrying on HTTP 429.

        Args:
            url: Request URL (must not carry credentials)
            data: JSON data to send
            headers: Extra request headers
            max_retries: Total number of attempts

        Returns:
            Parsed JSON response body

        Raises:
            RateLimitExceeded: every attempt was answered with 429
            UpstreamHTTPError: any other non-2xx status (not retried)
            UpstreamTransportError: connection failure or timeout (not retried)
            UpstreamParseError: 2xx response whose body is not valid JSON
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        await self.ensure_session()

        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_retries),
            wait=BACKOFF_WAIT,
            retry=retry_if_exception_type(RateLimitExceeded),
            before_sleep=_log_rate_limit,
            sleep=asyncio.sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._post_once(url, data, request_headers)
        except RateLimitExceeded as e:
            raise RateLimitExceeded(
                f"Rate limit exceeded after {max_retries} attempts",
                url,
                status=e.status,
                body=e.body,
                upstream_message=e.upstream_message,
            ) from e
        return result

    async def _post_once(self, url: str, data: dict, headers: dict) -> dict:
        """Single round-trip; raises RateLimitExceeded on 429 for the retry loop."""
        assert self._session is not None

        try:
            async with self._session.post(url, json=data, headers=headers) as response:
                status = response.status
                text = await response.text()
        except aiohttp.ClientError as e:
            raise UpstreamTransportError(str(e), url) from e
        except asyncio.TimeoutError as e:
            raise UpstreamTransportError(
                "Connection timed out, the server took too long to respond", url
            ) from e

        if status == 429:
            raise RateLimitExceeded(
                "Rate limit hit (429)",
                url,
                status=status,
                body=text,
                upstream_message=nested_error_message(text),
            )

        if not 200 <= status < 300:
            raise UpstreamHTTPError(
                f"External API Error {status}: {text}",
                url,
                status=status,
                body=text,
                upstream_message=nested_error_message(text),
            )

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise UpstreamParseError(
                f"Could not parse API response as JSON: {e}",
                url,
                status=status,
                body=text,
            ) from e

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
