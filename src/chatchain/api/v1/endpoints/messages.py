"""Message endpoints for the ChatChain API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from chatchain.schemas.conversation import ConversationKey, DirectKey, GroupKey
from chatchain.schemas.message import Message, MessageCreate, MessageRead
from chatchain.services.errors import InvalidRecipientError

from ..dependencies import CurrentUserDep, EngineDep

router = APIRouter(prefix="/messages", tags=["messages"])


def _serialize_message(message: Message) -> dict[str, Any]:
    return message.model_dump(mode="json", by_alias=True)


def _conversation_key(viewer: str, contact_id: str | None, group_id: str | None) -> ConversationKey:
    if bool(contact_id) == bool(group_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of contact_id or group_id",
        )
    if group_id:
        return GroupKey(group_id)
    return DirectKey(viewer, contact_id or "")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, Any]:
    """Send a message to a contact or a group."""
    try:
        message = await engine.send(
            current_user,
            message_data.content,
            receiver=message_data.receiver,
            group_id=message_data.group_id,
        )
    except InvalidRecipientError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _serialize_message(message)


@router.get("/")
async def get_messages(
    current_user: CurrentUserDep,
    engine: EngineDep,
    contact_id: str | None = Query(None),
    group_id: str | None = Query(None),
    enrich: bool | None = Query(None),
) -> list[dict[str, Any]]:
    """Get the current user's view of one conversation."""
    key = _conversation_key(current_user, contact_id, group_id)
    messages = await engine.fetch(key, current_user, enrich=enrich)
    return [_serialize_message(message) for message in messages]


@router.post("/read")
async def mark_messages_read(
    read_data: MessageRead,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, Any]:
    """Mark messages as read by the current user."""
    marked = await engine.mark_read(read_data.message_ids, current_user)
    return {"status": "marked_as_read", "messageIds": marked}


@router.post("/{message_id}/hide")
async def hide_message(
    message_id: str,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, str]:
    """Delete a message for the current user only."""
    engine.hide(message_id, current_user)
    return {"status": "hidden"}


@router.delete("/hidden")
async def restore_hidden_messages(
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, Any]:
    """Restore every message the current user deleted for themselves."""
    restored = engine.restore(current_user)
    return {"status": "restored", "restored": restored}
