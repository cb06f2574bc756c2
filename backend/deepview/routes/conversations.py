"""
Conversation history routes.

Backed by SqlConversationStore; the same store the client persistence hook
writes through.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import ValidationError

from deepview.client.state import ChatMessage
from deepview.models.request import ConversationUpdate, StoredMessage
from deepview.services.persistence import SqlConversationStore
from deepview.utils.exceptions import raise_bad_request, raise_not_found
from deepview.utils.validation import describe_validation_error

logger = logging.getLogger(__name__)

router = APIRouter()

_store = SqlConversationStore()


def get_store() -> SqlConversationStore:
    return _store


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(conversation_id: str, store: SqlConversationStore = Depends(get_store)):
    """Messages of a conversation in insertion order (empty for unknown ids)."""
    messages = await store.load_messages(conversation_id)
    return {"messages": [m.to_dict() for m in messages]}


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def add_message(
    conversation_id: str,
    message: StoredMessage,
    store: SqlConversationStore = Depends(get_store),
):
    message_id = await store.save_message(
        conversation_id,
        ChatMessage(
            role=message.role,
            content=message.content,
            images=tuple(message.images),
            videos=tuple(message.videos),
        ),
    )
    return {"id": message_id}


@router.patch("/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    update: ConversationUpdate,
    store: SqlConversationStore = Depends(get_store),
):
    """Rename a conversation and/or switch its mode."""
    if update.title is None and update.mode is None:
        raise_bad_request("Nothing to update")

    found = True
    if update.title is not None:
        try:
            found = await store.update_conversation_title(conversation_id, update.title)
        except ValidationError as e:
            raise_bad_request(describe_validation_error(e))
    if found and update.mode is not None:
        found = await store.update_conversation_mode(conversation_id, update.mode)

    if not found:
        raise_not_found("Conversation", conversation_id)

    logger.info(f"Updated conversation {conversation_id}")
    return {"success": True}
