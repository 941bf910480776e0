"""
Error types shared by the relay, the upstream client and the history store.

Every failure is scoped to a single request. Before the first byte of a
response is sent, a RelayError is rendered as ``{"error": message}`` with
its ``status_code``; once an event stream has started it is reported as an
in-band error frame instead (see chatrelay.services.relay).

Usage:
    from chatrelay.utils.exceptions import ValidationError

    raise ValidationError("Message content is required")
"""

from typing import Optional

from fastapi import status


class RelayError(Exception):
    """Base exception for the chat relay backend."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(RelayError):
    """Bad caller input, reported before any streaming starts."""

    status_code = status.HTTP_400_BAD_REQUEST


# ============================================================================
# Upstream (completion provider) errors
# ============================================================================


class UpstreamError(RelayError):
    """The completion provider could not serve the request."""


class UpstreamConnectError(UpstreamError):
    """Provider unreachable, or the connection dropped mid-stream."""


class UpstreamStatusError(UpstreamError):
    """Provider answered with a status outside 200-299."""

    def __init__(self, status_code: int, status_text: str, detail: Optional[str] = None):
        self.upstream_status = status_code
        self.status_text = status_text
        self.detail = detail
        super().__init__(describe_upstream_status(status_code, status_text, detail))


class UpstreamTimeout(UpstreamError):
    """No progress from the provider within the configured timeout."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class UpstreamCancelled(UpstreamError):
    """The byte source was read after it had been closed."""

    # Never rendered: the caller that would receive it is gone
    status_code = 499


# ============================================================================
# History store errors
# ============================================================================


class StoreError(RelayError):
    """Persistence failure in the history store."""


class DuplicateMessageError(StoreError):
    """A message with the same id already exists."""

    status_code = status.HTTP_409_CONFLICT


def describe_upstream_status(
    status_code: int, status_text: str, detail: Optional[str] = None
) -> str:
    """Human-readable message for a non-2xx provider response."""
    if status_code == 401:
        summary = "Authentication with the completion provider failed, check the API key"
    elif status_code == 403:
        summary = "Access to the completion provider was denied"
    elif status_code == 429:
        summary = "The completion provider is rate limiting requests, try again later"
    elif status_code >= 500:
        summary = "The completion provider had an internal error, try again later"
    else:
        summary = "Completion request failed"

    status_line = f"{status_code} {status_text}".strip()
    message = f"{summary} ({status_line})"
    if detail:
        message = f"{message}: {detail}"
    return message
