"""
Post-stream persistence hook.

Saves the user message when a stream starts and the assistant message when it
ends. Writes run as background tasks so they never delay delta delivery; a
failed write is logged and does not affect the session.
"""

import asyncio
import logging
from typing import Any, Awaitable, List, Optional, Protocol, Set

from deepview.client.state import ChatMessage, StreamSessionState

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    async def save_message(self, conversation_id: str, message: ChatMessage) -> Any: ...

    async def load_messages(self, conversation_id: str) -> List[ChatMessage]: ...

    async def update_conversation_title(self, conversation_id: str, title: str) -> bool: ...

    async def update_conversation_mode(self, conversation_id: str, mode: str) -> bool: ...


class PersistenceHook:
    def __init__(self, store: ConversationStore, conversation_id: str):
        self.store = store
        self.conversation_id = conversation_id
        self._tasks: Set[asyncio.Task] = set()

    def stream_started(self, user_message: ChatMessage, mode: Optional[str] = None) -> None:
        self._spawn(self._save_user_message(user_message, mode), "user message")

    def stream_finished(self, state: StreamSessionState) -> None:
        """Persist the assistant entry built by the stream, if it has anything in it."""
        message = state.assistant_message
        if message is None:
            return
        if not (message.content or message.images or message.videos):
            return
        self._spawn(self.store.save_message(self.conversation_id, message), "assistant message")

    async def drain(self) -> None:
        """Wait for outstanding writes (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _save_user_message(self, message: ChatMessage, mode: Optional[str]) -> None:
        await self.store.save_message(self.conversation_id, message)
        if mode:
            await self.store.update_conversation_mode(self.conversation_id, mode)

    def _spawn(self, coro: Awaitable, label: str) -> None:
        task = asyncio.ensure_future(self._run(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, coro: Awaitable, label: str) -> None:
        try:
            await coro
        except Exception:
            logger.exception(f"Failed to persist {label} for conversation {self.conversation_id}")
