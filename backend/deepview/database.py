import os
from datetime import datetime, timezone

from deepview.config import settings

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, relationship


def _default_database_url() -> str:
    # Database path - use data directory for persistence
    data_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
    os.makedirs(data_dir, exist_ok=True)
    return f"sqlite+aiosqlite:///{os.path.join(data_dir, 'deepview.db')}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


DATABASE_URL = settings.database_url or _default_database_url()

# Create async engine
engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Conversation(Base):
    """A chat conversation."""

    __tablename__ = "conversations"

    id = Column(String(64), primary_key=True)  # client-generated id
    title = Column(String(200), nullable=True)
    mode = Column(String(20), default="formal", nullable=False)  # "formal" | "developer"
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationship to messages
    messages = relationship(
        "MessageRecord",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="MessageRecord.id",
    )

    def __repr__(self):
        return f"<Conversation(id='{self.id}', mode='{self.mode}')>"


class MessageRecord(Base):
    """One persisted message of a conversation."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String(64), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)  # "user" | "assistant"
    content = Column(Text, nullable=False, default="")
    images = Column(Text, nullable=True)  # JSON list of URIs
    videos = Column(Text, nullable=True)  # JSON list of URIs
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationship to conversation
    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<MessageRecord(conversation_id='{self.conversation_id}', role='{self.role}')>"


async def init_db():
    """Initialize the database, creating all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

