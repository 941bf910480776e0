from typing import Optional

from pydantic import BaseModel


class ChatRequest(BaseModel):
    """Body of POST /api/chat.

    ``message`` is optional here so that a missing or empty message is
    rejected by the relay with a 400 instead of a schema error.
    """

    message: Optional[str] = None
