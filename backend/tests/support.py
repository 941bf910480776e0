"""Helpers shared by the tests: fake provider streams and collectors."""

import asyncio
from typing import Iterable, List, Optional

import httpx
import orjson

from chatrelay.providers.openai_compatible import OpenAICompatibleProvider

BASE_URL = "https://llm.test/v1"
DONE = b"data: [DONE]\n\n"


def delta(content: Optional[str]) -> bytes:
    """One provider SSE frame carrying a content delta."""
    chunk = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return b"data: " + orjson.dumps(chunk) + b"\n\n"


def streaming_handler(
    chunks: Iterable[bytes],
    status_code: int = 200,
    error: Optional[Exception] = None,
    calls: Optional[list] = None,
):
    """MockTransport handler that streams ``chunks`` exactly as given."""
    chunks = list(chunks)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)

        async def body():
            for chunk in chunks:
                await asyncio.sleep(0)
                yield chunk
            if error is not None:
                raise error

        return httpx.Response(
            status_code, content=body(), headers={"content-type": "text/event-stream"}
        )

    return handler


def make_provider(handler, **kwargs) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        api_key="sk-test",
        model="test-model",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def agen(items: Iterable):
    for item in items:
        yield item


async def collect(aiterable) -> List:
    return [item async for item in aiterable]


def run_collect(aiterable) -> List:
    return asyncio.run(collect(aiterable))
