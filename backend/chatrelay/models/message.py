from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageType = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """A chat history entry as exchanged with the frontend."""

    id: str = Field(..., min_length=1, max_length=64)
    content: str = Field(..., min_length=1)
    type: MessageType

    model_config = ConfigDict(
        # Frontends commonly use Date.now() as the id
        coerce_numbers_to_str=True,
        frozen=True,
        json_schema_extra={
            "examples": [
                {"id": "1718000000000", "content": "What is the capital of France?", "type": "user"},
            ]
        },
    )


class SaveMessageResponse(BaseModel):
    success: bool = True
