"""Tests for the upstream OpenAI-compatible client."""

import asyncio

import httpx
import orjson
import pytest

from chatrelay.config import Settings
from chatrelay.providers.openai_compatible import OpenAICompatibleProvider
from chatrelay.utils.exceptions import (
    UpstreamCancelled,
    UpstreamConnectError,
    UpstreamStatusError,
    UpstreamTimeout,
)

from support import BASE_URL, DONE, collect, delta, make_provider, streaming_handler


def test_request_body_and_headers():
    calls = []
    provider = make_provider(streaming_handler([DONE], calls=calls))

    async def run():
        stream = await provider.open("hi")
        await stream.aclose()
        await provider.cleanup()

    asyncio.run(run())

    request = calls[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE_URL}/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Content-Type"] == "application/json"
    assert orjson.loads(request.content) == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "hi"}],
        "stream": True,
        "temperature": 0.7,
    }


def test_no_authorization_header_without_key():
    provider = OpenAICompatibleProvider(api_key=None, model="m", base_url=BASE_URL)
    assert "Authorization" not in provider._client.headers
    assert not provider.is_configured()
    asyncio.run(provider.cleanup())


def test_from_settings():
    settings = Settings(
        api_key="sk-x", api_base_url="http://local/v1/", model="m1", temperature=0.2, provider_timeout=5
    )
    provider = OpenAICompatibleProvider.from_settings(settings)
    assert provider.base_url == "http://local/v1"
    assert provider.build_payload("q")["temperature"] == 0.2
    assert provider.timeout == 5
    assert provider._client.timeout.connect == 5
    assert provider._client.timeout.read == 5
    asyncio.run(provider.cleanup())


def test_stream_yields_chunks_unchanged():
    chunks = [delta("He")[:10], delta("He")[10:], DONE]
    provider = make_provider(streaming_handler(chunks))

    async def run():
        stream = await provider.open("hi")
        try:
            return await collect(stream)
        finally:
            await stream.aclose()

    assert asyncio.run(run()) == chunks


def test_non_success_status_raises_before_streaming():
    def handler(request):
        return httpx.Response(
            401, json={"error": {"message": "Invalid Authentication", "type": "invalid_request_error"}}
        )

    provider = make_provider(handler)
    with pytest.raises(UpstreamStatusError) as exc_info:
        asyncio.run(provider.open("hi"))

    error = exc_info.value
    assert error.upstream_status == 401
    assert error.status_text == "Unauthorized"
    assert error.status_code == 500
    assert "check the API key" in error.message
    assert "Invalid Authentication" in error.message


def test_non_json_error_body_is_used_as_detail():
    provider = make_provider(lambda request: httpx.Response(503, text="upstream overloaded"))
    with pytest.raises(UpstreamStatusError) as exc_info:
        asyncio.run(provider.open("hi"))
    assert exc_info.value.message.endswith("(503 Service Unavailable): upstream overloaded")


def test_connect_failure():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(UpstreamConnectError):
        asyncio.run(make_provider(handler).open("hi"))


def test_unbuildable_request_is_connect_error(monkeypatch):
    provider = make_provider(streaming_handler([DONE]))

    def build_request(*args, **kwargs):
        raise httpx.InvalidURL("Invalid URL component 'path'")

    monkeypatch.setattr(provider._client, "build_request", build_request)

    with pytest.raises(UpstreamConnectError) as exc_info:
        asyncio.run(provider.open("hi"))
    assert exc_info.value.status_code == 500
    assert "Invalid URL" in exc_info.value.message


def test_connect_timeout():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(UpstreamTimeout) as exc_info:
        asyncio.run(make_provider(handler).open("hi"))
    assert exc_info.value.status_code == 504


def test_read_timeout_mid_stream():
    provider = make_provider(streaming_handler([delta("a")], error=httpx.ReadTimeout("stalled")))

    async def run():
        stream = await provider.open("hi")
        received = []
        try:
            async for chunk in stream:
                received.append(chunk)
        finally:
            await stream.aclose()

    with pytest.raises(UpstreamTimeout):
        asyncio.run(run())


def test_connection_drop_mid_stream():
    provider = make_provider(streaming_handler([delta("a")], error=httpx.ReadError("reset")))

    async def run():
        stream = await provider.open("hi")
        try:
            await collect(stream)
        finally:
            await stream.aclose()

    with pytest.raises(UpstreamConnectError):
        asyncio.run(run())


def test_closed_stream_cannot_be_read_and_closes_once():
    provider = make_provider(streaming_handler([delta("a"), DONE]))

    async def run():
        stream = await provider.open("hi")
        await stream.aclose()
        await stream.aclose()
        assert stream.closed
        await collect(stream)

    with pytest.raises(UpstreamCancelled):
        asyncio.run(run())
