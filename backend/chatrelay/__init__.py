"""Chat relay backend: streams completions from an OpenAI-compatible provider over SSE."""

__version__ = "1.0.0"
