"""SQLAlchemy models for the ChatChain remote ledger."""

from .ledger_message import LedgerMessage

__all__ = ["LedgerMessage"]
