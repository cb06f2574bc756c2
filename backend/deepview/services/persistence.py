"""
SQL-backed conversation store.

Implements the ConversationStore protocol consumed by the client's
post-stream persistence hook and the conversation routes.
"""

import logging
from typing import List, Optional

import orjson
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deepview.client.state import ChatMessage
from deepview.database import Conversation, MessageRecord, async_session
from deepview.utils.validation import ConversationTitle

logger = logging.getLogger(__name__)


def _dump_urls(urls) -> Optional[str]:
    return orjson.dumps(list(urls)).decode() if urls else None


def _load_urls(value: Optional[str]) -> tuple:
    if not value:
        return ()
    try:
        urls = orjson.loads(value)
    except orjson.JSONDecodeError:
        urls = None
    if not isinstance(urls, list):
        logger.warning("Discarding unreadable media column value")
        return ()
    return tuple(urls)


class SqlConversationStore:
    def __init__(self, session_factory: async_sessionmaker = async_session):
        self._session_factory = session_factory

    async def _get_or_create_conversation(self, session: AsyncSession, conversation_id: str) -> Conversation:
        conversation = await session.get(Conversation, conversation_id)
        if conversation is None:
            conversation = Conversation(id=conversation_id)
            session.add(conversation)
            await session.flush()
        return conversation

    async def save_message(self, conversation_id: str, message: ChatMessage) -> int:
        """Append a message, creating the conversation on first use. Returns the row id."""
        async with self._session_factory() as session:
            await self._get_or_create_conversation(session, conversation_id)
            record = MessageRecord(
                conversation_id=conversation_id,
                role=message.role,
                content=message.content,
                images=_dump_urls(message.images),
                videos=_dump_urls(message.videos),
            )
            session.add(record)
            await session.commit()
            return record.id

    async def load_messages(self, conversation_id: str) -> List[ChatMessage]:
        async with self._session_factory() as session:
            stmt = (
                select(MessageRecord)
                .where(MessageRecord.conversation_id == conversation_id)
                .order_by(MessageRecord.id)
            )
            result = await session.execute(stmt)
            return [
                ChatMessage(
                    role=record.role,
                    content=record.content or "",
                    images=_load_urls(record.images),
                    videos=_load_urls(record.videos),
                )
                for record in result.scalars().all()
            ]

    async def update_conversation_title(self, conversation_id: str, title: str) -> bool:
        """Set the title. Raises pydantic.ValidationError for empty or overlong titles."""
        title = ConversationTitle(title=title).title
        async with self._session_factory() as session:
            conversation = await session.get(Conversation, conversation_id)
            if conversation is None:
                return False
            conversation.title = title
            await session.commit()
            return True

    async def update_conversation_mode(self, conversation_id: str, mode: str) -> bool:
        async with self._session_factory() as session:
            conversation = await session.get(Conversation, conversation_id)
            if conversation is None:
                return False
            conversation.mode = mode
            await session.commit()
            return True
