import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Optional, Union

import orjson

logger = logging.getLogger(__name__)

# Constants
SSE_DATA_PREFIX = "data: "
SSE_DONE_PAYLOAD = "[DONE]"


@dataclass(frozen=True)
class DeltaText:
    """A fragment of assistant output; fragments concatenate in arrival order."""

    text: str


@dataclass(frozen=True)
class StreamEnd:
    """The provider sent its terminator. Always the last event of a stream."""


@dataclass(frozen=True)
class Malformed:
    """A ``data:`` payload that is not a valid delta frame. Non-fatal."""

    raw: str


StreamEvent = Union[DeltaText, StreamEnd, Malformed]


class _NotADelta(ValueError):
    pass


def extract_delta_content(data) -> Optional[str]:
    """Return ``choices[0].delta.content`` from a parsed chunk.

    None means "no text in this frame" (role-only or finish frames).
    Raises _NotADelta when the payload does not have the chunk shape.
    """
    if not isinstance(data, dict):
        raise _NotADelta("payload is not an object")

    choices = data.get("choices")
    if not choices:
        # Usage-only or keep-alive frames carry no choices
        return None
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise _NotADelta("choices is not a list of objects")

    delta = choices[0].get("delta") or {}
    if not isinstance(delta, dict):
        raise _NotADelta("delta is not an object")

    content = delta.get("content")
    if content is None:
        return None
    if not isinstance(content, str):
        raise _NotADelta("delta content is not a string")
    return content or None


def parse_line(line: str) -> Optional[StreamEvent]:
    """Map one decoded line to an event, or None when the line carries nothing."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None

    payload = line[len(SSE_DATA_PREFIX):].strip()
    if payload == SSE_DONE_PAYLOAD:
        return StreamEnd()

    try:
        content = extract_delta_content(orjson.loads(payload))
    except (orjson.JSONDecodeError, _NotADelta) as e:
        logger.debug(f"Unparsable provider frame: {e}")
        return Malformed(raw=payload)

    if content:
        return DeltaText(text=content)
    return None


async def parse_events(lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """
    Turn decoded lines into stream events.

    Only ``data: `` lines are significant. ``[DONE]`` yields StreamEnd and
    ends the sequence; anything the provider sends afterwards is ignored.

    Yields:
        DeltaText, Malformed, and at most one trailing StreamEnd
    """
    async for line in lines:
        event = parse_line(line)
        if event is None:
            continue
        yield event
        if isinstance(event, StreamEnd):
            return
