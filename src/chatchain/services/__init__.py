"""Business logic services for the ChatChain sync engine."""

from .content_store import ContentStore, PublishConfigStore, is_fallback_locator
from .conversations import ConversationAggregator
from .deletion_overlay import DeletionOverlay
from .local_cache import LocalCache
from .poller import ConversationPoller, PollState
from .read_receipts import ReadReceiptTracker
from .remote_ledger import RemoteLedger
from .sync_engine import MessageSyncEngine, build_engine

__all__ = [
    "ContentStore",
    "ConversationAggregator",
    "ConversationPoller",
    "DeletionOverlay",
    "LocalCache",
    "MessageSyncEngine",
    "PollState",
    "PublishConfigStore",
    "ReadReceiptTracker",
    "RemoteLedger",
    "build_engine",
    "is_fallback_locator",
]
