"""
Chat history routes.
"""

from typing import List

from fastapi import APIRouter, Depends

from chatrelay.dependencies import get_history_store
from chatrelay.models.message import ChatMessage, SaveMessageResponse
from chatrelay.services.history import HistoryStore

router = APIRouter()


@router.get("/messages", response_model=List[ChatMessage])
async def list_messages(store: HistoryStore = Depends(get_history_store)):
    """List chat history, oldest first"""
    return await store.list_messages()


@router.post("/messages", response_model=SaveMessageResponse)
async def save_message(
    message: ChatMessage,
    store: HistoryStore = Depends(get_history_store),
):
    """Save one chat message. StoreError propagates to the app-level handler."""
    await store.append(message)
    return SaveMessageResponse()
