"""Pydantic schemas and value types for the ChatChain sync engine."""

from .conversation import Conversation, ConversationKey, DirectKey, Group, GroupKey
from .message import Message, MessageCreate, MessageRead
from .publish_config import Configured, PublishConfig, Unconfigured

__all__ = [
    "Conversation", "ConversationKey", "DirectKey", "Group", "GroupKey",
    "Message", "MessageCreate", "MessageRead",
    "Configured", "PublishConfig", "Unconfigured",
]
