"""Model describing messages mirrored to the shared relational store."""

from sqlalchemy import JSON, BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chatchain.db.session import Base


class LedgerMessage(Base):
    """A message as stored in the shared remote ledger.

    Rows are written once by the sending client. The only column that changes
    afterwards is ``read_by``, which only ever grows.
    """

    __tablename__ = "ledger_message"

    # Client-generated uuid4, globally unique across devices
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    sender: Mapped[str] = mapped_column(String(255), nullable=False)
    # Exactly one of receiver / group_id is set
    receiver: Mapped[str | None] = mapped_column(String(255), nullable=True)
    group_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Milliseconds since epoch, assigned by the sender
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    read_by: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    content_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        Index("ix_ledger_message_group_id", "group_id"),
        Index("ix_ledger_message_sender_receiver", "sender", "receiver"),
    )
