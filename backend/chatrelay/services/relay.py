"""
Streaming relay between the caller and the completion provider.

One RelaySession per POST /api/chat:

    NotStarted -> (validate) -> Streaming -> Completed | Failed

The upstream request is opened before any response byte is sent, so
connection and status failures still get a proper status code. Once the
event-stream body has started, failures are reported in-band as a final
``data: {"error": ...}`` frame. ``RelayController._report`` is the only
place that makes this choice.
"""

import asyncio
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from chatrelay.models.message import ChatMessage
from chatrelay.models.request import ChatRequest
from chatrelay.providers.base import BaseProvider, UpstreamStream
from chatrelay.providers.decoder import decode_lines
from chatrelay.providers.events import DeltaText, Malformed, parse_events
from chatrelay.utils.exceptions import RelayError, ValidationError
from chatrelay.utils.sse import SSE_DONE_FRAME, format_content_frame, format_error_frame

logger = logging.getLogger(__name__)

EVENT_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}
# How much of a malformed frame ends up in the log
MALFORMED_LOG_LIMIT = 200


class RelayState(str, Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RelaySession:
    """Live state of one relay operation."""

    message: str = ""
    state: RelayState = RelayState.NOT_STARTED
    headers_committed: bool = False
    accumulated_text: str = ""
    frames_written: int = 0
    error: Optional[str] = None

    def user_message(self, message_id: Optional[str] = None) -> ChatMessage:
        return ChatMessage(id=message_id or uuid.uuid4().hex, content=self.message, type="user")

    def assistant_message(self, message_id: Optional[str] = None) -> ChatMessage:
        """The assistant reply; only meaningful once the session has completed."""
        if self.state is not RelayState.COMPLETED:
            raise RuntimeError(f"Relay session is {self.state.value}, not completed")
        return ChatMessage(
            id=message_id or uuid.uuid4().hex, content=self.accumulated_text, type="assistant"
        )


CompletionHook = Callable[[RelaySession], Awaitable[None]]


class RelayStreamingResponse(StreamingResponse):
    """Event-stream response that owns the upstream source.

    Starlette may fail on the first send, before the body generator ever
    runs; closing the source here covers that case as well as every other
    way the ASGI call can end.
    """

    def __init__(self, session: RelaySession, source: UpstreamStream, content, **kwargs):
        super().__init__(content, **kwargs)
        self.session = session
        self.source = source

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # Shielded so a cancelled response task still releases the connection
            await asyncio.shield(asyncio.ensure_future(self._release()))

    async def _release(self) -> None:
        session = self.session
        try:
            # A started body marks the session itself; an unstarted one never runs
            await self.body_iterator.aclose()
            if session.state not in (RelayState.COMPLETED, RelayState.FAILED):
                session.state = RelayState.FAILED
                session.error = "Caller disconnected"
                logger.info("Caller disconnected before the first frame; aborting upstream request")
            await self.source.aclose()
        except Exception:
            logger.exception("Failed to release upstream stream")


class RelayController:
    """Pipes provider output (bytes -> lines -> events) to the caller as SSE frames."""

    def __init__(self, provider: BaseProvider, on_complete: Optional[CompletionHook] = None):
        self.provider = provider
        self.on_complete = on_complete

    async def handle(
        self, request: ChatRequest, session: Optional[RelaySession] = None
    ) -> Response:
        """Validate, open the upstream stream, and return the caller's response.

        ``session`` may be supplied to observe the relay from outside.
        """
        session = session if session is not None else RelaySession()
        try:
            session.message = self._validate(request)
            session.state = RelayState.STREAMING
            source = await self.provider.open(session.message)
        except RelayError as e:
            return self._report(session, e)

        return RelayStreamingResponse(
            session,
            source,
            self._relay(session, source),
            media_type="text/event-stream",
            headers=EVENT_STREAM_HEADERS,
        )

    def _validate(self, request: ChatRequest) -> str:
        message = request.message
        if not message or not message.strip():
            raise ValidationError("Message content is required")
        return message

    async def _relay(self, session: RelaySession, source: UpstreamStream) -> AsyncIterator[str]:
        """Body of the event-stream response."""
        # The first iteration happens when the response starts being sent
        session.headers_committed = True
        try:
            async with aclosing(parse_events(decode_lines(source))) as events:
                async for event in events:
                    if isinstance(event, DeltaText):
                        session.accumulated_text += event.text
                        session.frames_written += 1
                        yield format_content_frame(event.text)
                    elif isinstance(event, Malformed):
                        logger.warning(
                            f"Skipping malformed provider frame: {event.raw[:MALFORMED_LOG_LIMIT]!r}"
                        )

            # [DONE], or the provider closed the body cleanly without one
            session.state = RelayState.COMPLETED
            session.frames_written += 1
            yield SSE_DONE_FRAME
        except RelayError as e:
            yield self._report(session, e)
        except (asyncio.CancelledError, GeneratorExit):
            session.state = RelayState.FAILED
            session.error = "Caller disconnected"
            logger.info(
                f"Caller disconnected after {session.frames_written} frames; aborting upstream request"
            )
            raise
        except Exception as e:
            logger.exception("Relay failed mid-stream")
            yield self._report(session, RelayError(f"Relay failed: {e}"))
        finally:
            await source.aclose()

        if session.state is RelayState.COMPLETED:
            logger.info(
                f"Relay completed: {len(session.accumulated_text)} chars "
                f"in {session.frames_written} frames"
            )
            await self._notify_complete(session)

    def _report(self, session: RelaySession, error: RelayError) -> Union[Response, str]:
        """Single choke point for failures: status code before headers, frame after."""
        session.state = RelayState.FAILED
        session.error = error.message
        if session.headers_committed:
            logger.error(f"Relay failed after {session.frames_written} frames: {error.message}")
            session.frames_written += 1
            return format_error_frame(error.message)

        logger.warning(f"Relay rejected before streaming ({error.status_code}): {error.message}")
        return JSONResponse({"error": error.message}, status_code=error.status_code)

    async def _notify_complete(self, session: RelaySession) -> None:
        if not self.on_complete:
            return
        try:
            await self.on_complete(session)
        except Exception:
            # The caller already has the full reply; a hook failure only gets logged
            logger.exception("Relay completion hook failed")
