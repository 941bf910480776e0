from chatrelay.providers.base import BaseProvider, UpstreamStream
from chatrelay.providers.decoder import FrameDecoder, decode_lines
from chatrelay.providers.events import DeltaText, Malformed, StreamEnd, StreamEvent, parse_events
from chatrelay.providers.openai_compatible import OpenAICompatibleProvider

__all__ = [
    "BaseProvider",
    "DeltaText",
    "FrameDecoder",
    "Malformed",
    "OpenAICompatibleProvider",
    "StreamEnd",
    "StreamEvent",
    "UpstreamStream",
    "decode_lines",
    "parse_events",
]
