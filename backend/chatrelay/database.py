import logging
import os

from sqlalchemy import Column, DateTime, Integer, String, Text, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from chatrelay.utils.time import utcnow

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class ChatMessageRecord(Base):
    """One persisted chat message (user prompt or assistant reply)."""

    __tablename__ = "chat_messages"

    # Autoincrement id breaks created_at ties in insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(64), unique=True, nullable=False, index=True)  # caller supplied
    content = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)  # "user" | "assistant"
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ChatMessageRecord(message_id='{self.message_id}', type='{self.type}')>"


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine, making sure a SQLite file's directory exists."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        directory = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(directory, exist_ok=True)
    return create_async_engine(url, echo=echo)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    """Initialize the database, creating all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")


async def check_connection(engine: AsyncEngine) -> bool:
    """Return True when a trivial query succeeds."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
