"""
Chat history persistence.

The store never creates its own engine: it is handed the session factory
built at startup, so tests can point it at a throwaway database.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatrelay.database import ChatMessageRecord
from chatrelay.models.message import ChatMessage
from chatrelay.utils.exceptions import DuplicateMessageError, StoreError

logger = logging.getLogger(__name__)


class HistoryStore:
    """Ordered, append-only chat history backed by the chat_messages table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def list_messages(self) -> List[ChatMessage]:
        """All messages, oldest first (insertion order breaks timestamp ties)."""
        stmt = select(ChatMessageRecord).order_by(
            ChatMessageRecord.created_at.asc(), ChatMessageRecord.id.asc()
        )
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load chat history: {e}")
            raise StoreError("Failed to load chat history") from e

        return [
            ChatMessage(id=record.message_id, content=record.content, type=record.type)
            for record in records
        ]

    async def append(self, message: ChatMessage) -> None:
        """
        Persist one message.

        Raises:
            DuplicateMessageError: a message with this id is already stored
            StoreError: any other database failure
        """
        await self.append_all([message])

    async def append_all(self, messages: List[ChatMessage]) -> None:
        """Persist several messages in one transaction: all of them or none."""
        records = [
            ChatMessageRecord(message_id=message.id, content=message.content, type=message.type)
            for message in messages
        ]
        ids = ", ".join(f"'{message.id}'" for message in messages)
        try:
            async with self._sessionmaker() as session:
                session.add_all(records)
                await session.commit()
        except IntegrityError as e:
            logger.warning(f"Duplicate chat message id among {ids}")
            if len(messages) == 1:
                raise DuplicateMessageError(f"Message {ids} already exists") from e
            raise DuplicateMessageError(f"One of messages {ids} already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to save chat messages {ids}: {e}")
            raise StoreError("Failed to save chat message") from e
