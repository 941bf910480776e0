"""
Chat route: relays one user message to the completion provider as SSE.
"""

import logging

from fastapi import APIRouter, Depends

from chatrelay.config import Settings
from chatrelay.dependencies import get_app_settings, get_history_store, get_provider
from chatrelay.models.request import ChatRequest
from chatrelay.providers.base import BaseProvider
from chatrelay.services.history import HistoryStore
from chatrelay.services.relay import RelayController, RelaySession

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat")
async def chat(
    request: ChatRequest,
    settings: Settings = Depends(get_app_settings),
    provider: BaseProvider = Depends(get_provider),
    store: HistoryStore = Depends(get_history_store),
):
    """
    POST /api/chat - stream a completion for ``{"message": ...}``

    Returns SSE stream with frames:
    - ``data: {"content": "..."}`` for every text delta
    - ``data: [DONE]`` when the provider finished
    - ``data: {"error": "..."}`` if the provider failed mid-stream

    Fails with a JSON ``{"error": ...}`` body (400/5xx) when the message is
    empty or the provider cannot be reached.
    """
    on_complete = None
    if settings.persist_chat_history:

        async def on_complete(session: RelaySession) -> None:
            if not session.accumulated_text:
                logger.warning("Provider returned an empty reply; chat exchange not saved")
                return
            # Both rows or neither, so history never holds an unanswered turn
            await store.append_all([session.user_message(), session.assistant_message()])

    controller = RelayController(provider, on_complete=on_complete)
    return await controller.handle(request)
