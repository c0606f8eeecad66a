"""
EcoPlate Backend — Conversation & Message Models
=================================================

What:  Buyer/seller chat threads, one per (listing, seller, buyer) triple.
How:   `updated_at` is bumped whenever a message is sent so the inbox can
       sort by recent activity; `is_read` is tracked per message.
"""

from datetime import datetime
from typing import List

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ecoplate.database import Base
from ecoplate.models.marketplace import MarketplaceListing
from ecoplate.models.user import User
from ecoplate.utils.dates import utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("marketplace_listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    seller_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    listing: Mapped[MarketplaceListing] = relationship()
    seller: Mapped[User] = relationship(foreign_keys=[seller_id])
    buyer: Mapped[User] = relationship(foreign_keys=[buyer_id])
    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("listing_id", "seller_id", "buyer_id", name="uq_conversation_participants"),
        Index("idx_conversations_updated_at", "updated_at"),
    )

    def other_party_id(self, user_id: int) -> int:
        return self.buyer_id if user_id == self.seller_id else self.seller_id

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, listing={self.listing_id}, "
            f"seller={self.seller_id}, buyer={self.buyer_id})>"
        )


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    message_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
    )
