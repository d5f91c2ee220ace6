"""Conversation preview endpoints for the ChatChain API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from chatchain.schemas.conversation import Conversation
from chatchain.services.conversations import ConversationAggregator

from ..dependencies import CurrentUserDep, EngineDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("/summaries")
async def summarize_conversations(
    conversations: list[Conversation],
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> list[dict[str, Any]]:
    """Fill in last message and unread count for the caller's conversations."""
    summaries = await ConversationAggregator(engine).summarize(conversations, current_user)
    return [summary.model_dump(mode="json", by_alias=True) for summary in summaries]
