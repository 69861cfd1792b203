"""Tests for the backoff-wrapped upstream caller."""
import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from imagen_bridge.core.aiohttp_request_manager import (
    AiohttpRequestManager,
    RateLimitExceeded,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTransportError,
)
from imagen_bridge.core.types import FailureKind

URL = "https://upstream.test/v1beta/models/imagen-4.0-generate-001:predict"


def mock_response(status: int, text: str):
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def make_manager(*responses) -> AiohttpRequestManager:
    manager = AiohttpRequestManager()
    manager._session = MagicMock()
    manager._session.closed = False
    manager._session.post = MagicMock(side_effect=list(responses))
    return manager


@pytest.fixture
def sleep():
    with patch("imagen_bridge.core.aiohttp_request_manager.asyncio.sleep", new_callable=AsyncMock) as mock_sleep, \
            patch("random.random", return_value=0.5):
        yield mock_sleep


@pytest.mark.asyncio
async def test_post_json_returns_parsed_body(sleep):
    manager = make_manager(mock_response(200, '{"predictions": []}'))

    result = await manager.post_json(URL, {"instances": []}, headers={"x-goog-api-key": "k"})

    assert result == {"predictions": []}
    assert manager._session.post.call_count == 1
    call = manager._session.post.call_args
    assert call.args[0] == URL
    assert call.kwargs["json"] == {"instances": []}
    assert call.kwargs["headers"]["Content-Type"] == "application/json"
    assert call.kwargs["headers"]["x-goog-api-key"] == "k"
    sleep.assert_not_called()


@pytest.mark.asyncio
async def test_rate_limit_then_success_retries(sleep):
    manager = make_manager(
        mock_response(429, "slow down"),
        mock_response(200, '{"ok": true}'),
    )

    result = await manager.post_json(URL, {})

    assert result == {"ok": True}
    assert manager._session.post.call_count == 2
    sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries(sleep):
    body = '{"error": {"code": 429, "message": "Quota exceeded for aiplatform"}}'
    manager = make_manager(*(mock_response(429, body) for _ in range(3)))

    with pytest.raises(RateLimitExceeded) as exc_info:
        await manager.post_json(URL, {}, max_retries=3)

    # Three round-trips, sleeping only between them
    assert manager._session.post.call_count == 3
    delays = [call.args[0] for call in sleep.await_args_list]
    assert delays == [1.5, 2.5]
    assert exc_info.value.kind == FailureKind.rate_limited
    assert exc_info.value.status == 429
    assert exc_info.value.upstream_message == "Quota exceeded for aiplatform"
    assert str(exc_info.value) == "Rate limit exceeded after 3 attempts"


@pytest.mark.asyncio
async def test_last_attempt_outcome_is_final(sleep):
    manager = make_manager(
        mock_response(429, ""),
        mock_response(429, ""),
        mock_response(503, "unavailable"),
    )

    with pytest.raises(UpstreamHTTPError) as exc_info:
        await manager.post_json(URL, {}, max_retries=3)

    assert manager._session.post.call_count == 3
    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_single_attempt_does_not_sleep(sleep):
    manager = make_manager(mock_response(429, ""))

    with pytest.raises(RateLimitExceeded):
        await manager.post_json(URL, {}, max_retries=1)

    sleep.assert_not_called()


@pytest.mark.asyncio
async def test_http_error_fails_without_retry(sleep):
    body = '{"error": {"code": 400, "message": "API key not valid. Please pass a valid API key."}}'
    manager = make_manager(mock_response(400, body), mock_response(200, "{}"))

    with pytest.raises(UpstreamHTTPError) as exc_info:
        await manager.post_json(URL, {})

    assert manager._session.post.call_count == 1
    sleep.assert_not_called()
    error = exc_info.value
    assert error.status == 400
    assert error.body == body
    assert error.upstream_message == "API key not valid. Please pass a valid API key."
    assert str(error).startswith("External API Error 400:")


@pytest.mark.asyncio
async def test_http_error_with_plain_text_body(sleep):
    manager = make_manager(mock_response(502, "Bad Gateway"))

    with pytest.raises(UpstreamHTTPError) as exc_info:
        await manager.post_json(URL, {})

    assert exc_info.value.upstream_message is None
    assert "Bad Gateway" in str(exc_info.value)


@pytest.mark.asyncio
async def test_malformed_success_body_raises_parse_error(sleep):
    manager = make_manager(mock_response(200, "<html>not json</html>"))

    with pytest.raises(UpstreamParseError) as exc_info:
        await manager.post_json(URL, {})

    assert exc_info.value.kind == FailureKind.upstream_parse
    assert exc_info.value.body == "<html>not json</html>"


@pytest.mark.asyncio
async def test_transport_error_fails_without_retry(sleep):
    manager = make_manager(aiohttp.ClientConnectionError("connection reset"))

    with pytest.raises(UpstreamTransportError) as exc_info:
        await manager.post_json(URL, {})

    assert "connection reset" in str(exc_info.value)
    assert manager._session.post.call_count == 1
    sleep.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_max_retries():
    manager = make_manager()

    with pytest.raises(ValueError):
        await manager.post_json(URL, {}, max_retries=0)


async def _rate_limited_delays(jitter: float, attempts: int = 5) -> list[float]:
    manager = make_manager(*(mock_response(429, "") for _ in range(attempts)))
    with patch("imagen_bridge.core.aiohttp_request_manager.asyncio.sleep", new_callable=AsyncMock) as mock_sleep, \
            patch("random.random", return_value=jitter):
        with pytest.raises(RateLimitExceeded):
            await manager.post_json(URL, {}, max_retries=attempts)
    return [call.args[0] for call in mock_sleep.await_args_list]


@pytest.mark.asyncio
async def test_backoff_delay_strictly_increasing():
    """Jitter stays below one second, so delays grow even in the worst case."""
    slow = await _rate_limited_delays(0.999)
    fast = await _rate_limited_delays(0.0)

    assert fast == [1, 2, 4, 8]
    for attempt in range(3):
        assert slow[attempt] < fast[attempt + 1]


@pytest.mark.asyncio
async def test_session_lifecycle():
    manager = AiohttpRequestManager(timeout=30)
    await manager.ensure_session()
    session = manager._session

    assert isinstance(session, aiohttp.ClientSession)
    assert session.timeout.total == 30

    await manager.close()
    assert session.closed
    assert manager._session is None
