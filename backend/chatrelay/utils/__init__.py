from chatrelay.utils.sse import SSE_DONE_FRAME, format_content_frame, format_error_frame, format_sse

__all__ = ["SSE_DONE_FRAME", "format_content_frame", "format_error_frame", "format_sse"]
