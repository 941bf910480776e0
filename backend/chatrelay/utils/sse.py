import orjson

SSE_DONE_FRAME = "data: [DONE]\n\n"


def format_sse(payload: dict) -> str:
    """Format a JSON payload as a single SSE data frame"""
    return f"data: {orjson.dumps(payload).decode()}\n\n"


def format_content_frame(content: str) -> str:
    return format_sse({"content": content})


def format_error_frame(error: str) -> str:
    return format_sse({"error": error})
