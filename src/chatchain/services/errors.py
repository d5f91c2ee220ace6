"""Exception hierarchy for the sync engine and its adapters.

None of these are fatal. The engine catches each of them at the point the
degraded behaviour is defined and logs it; they only escape to callers that
talk to an adapter directly.
"""


class SyncError(RuntimeError):
    """Base exception raised for sync-related failures."""


class PublishUnavailableError(SyncError):
    """Raised when the content store rejects or cannot receive a publish."""


class EnrichmentUnavailableError(SyncError):
    """Raised when an archived payload cannot be resolved."""


class RemoteWriteFailedError(SyncError):
    """Raised when the remote ledger rejects an insert."""


class RemoteReadFailedError(SyncError):
    """Raised when the remote ledger cannot be queried."""


class ReadReceiptWriteFailedError(RemoteWriteFailedError):
    """Raised when a reader cannot be appended to a remote message."""


class MalformedRowError(SyncError, ValueError):
    """Raised when a remote row cannot be mapped onto a message."""


class InvalidRecipientError(SyncError, ValueError):
    """Raised when a send names both or neither of receiver and group."""
