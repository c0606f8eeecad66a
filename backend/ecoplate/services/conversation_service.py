"""
EcoPlate Backend — Conversation Service
========================================

What:  Buyer/seller messaging attached to marketplace listings.
How:   One conversation per (listing, seller, buyer). Sending a message bumps
       the conversation's updated_at so the inbox sorts by activity.
       Read state is per message; opening a thread marks the other party's
       messages as read.
Who:   /api/v1/conversations and /api/v1/messages routes.

Unread counts exclude conversations whose listing has been sold: the deal is
closed and the badge in the app header should not keep nagging.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ecoplate.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from ecoplate.models.conversation import Conversation, Message
from ecoplate.models.marketplace import LISTING_SOLD, MarketplaceListing
from ecoplate.utils.dates import utcnow

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


def _with_participants():
    return (
        selectinload(Conversation.listing),
        selectinload(Conversation.seller),
        selectinload(Conversation.buyer),
    )


class ConversationService:

    async def get_listing_for_conversation(
        self,
        db: AsyncSession,
        listing_id: int,
    ) -> Optional[MarketplaceListing]:
        """Any listing, sold ones included, so old threads stay reachable."""
        return await db.get(MarketplaceListing, listing_id)

    async def get_or_create_conversation(
        self,
        db: AsyncSession,
        listing_id: int,
        buyer_id: int,
        seller_id: int,
    ) -> Conversation:
        existing = await self._find_conversation(db, listing_id, seller_id, buyer_id)
        if existing is not None:
            return existing

        try:
            async with db.begin_nested():
                db.add(Conversation(listing_id=listing_id, seller_id=seller_id, buyer_id=buyer_id))
        except IntegrityError:
            # Created by a concurrent request between the lookup and the insert
            logger.info("Conversation for listing %d created concurrently", listing_id)
        else:
            logger.info(
                "Conversation created for listing %d (seller=%d, buyer=%d)",
                listing_id,
                seller_id,
                buyer_id,
            )

        conversation = await self._find_conversation(db, listing_id, seller_id, buyer_id)
        if conversation is None:
            raise NotFoundError(resource="Conversation")
        return conversation

    async def _find_conversation(
        self,
        db: AsyncSession,
        listing_id: int,
        seller_id: int,
        buyer_id: int,
    ) -> Optional[Conversation]:
        result = await db.execute(
            select(Conversation)
            .options(*_with_participants())
            .where(
                Conversation.listing_id == listing_id,
                Conversation.seller_id == seller_id,
                Conversation.buyer_id == buyer_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_conversation_by_id(
        self,
        db: AsyncSession,
        conversation_id: int,
        user_id: int,
    ) -> Optional[Conversation]:
        """None when missing or when user_id is not a participant."""
        result = await db.execute(
            select(Conversation)
            .options(*_with_participants())
            .where(Conversation.id == conversation_id)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None or not self.is_user_participant(conversation, user_id):
            return None
        return conversation

    @staticmethod
    def is_user_participant(conversation: Conversation, user_id: int) -> bool:
        return user_id in (conversation.seller_id, conversation.buyer_id)

    async def touch_conversation(self, db: AsyncSession, conversation_id: int) -> None:
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=utcnow())
        )

    async def get_unread_count_for_user(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            select(func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .join(MarketplaceListing, MarketplaceListing.id == Conversation.listing_id)
            .where(
                or_(Conversation.seller_id == user_id, Conversation.buyer_id == user_id),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
                MarketplaceListing.status != LISTING_SOLD,
            )
        )
        return result.scalar_one()

    async def mark_conversation_as_read(self, db: AsyncSession, conversation_id: int, user_id: int) -> int:
        """Mark the other party's messages read; returns how many changed."""
        result = await db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .returning(Message.id)
            .execution_options(synchronize_session="fetch")
        )
        return len(result.all())

    async def list_conversations(self, db: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
        """
        Inbox view, most recently active first.

        Each entry: {conversation, other_user, last_message, unread_count}.
        """
        result = await db.execute(
            select(Conversation)
            .options(*_with_participants())
            .where(or_(Conversation.seller_id == user_id, Conversation.buyer_id == user_id))
            .order_by(desc(Conversation.updated_at), desc(Conversation.id))
        )
        conversations = list(result.scalars().all())
        if not conversations:
            return []

        ids = [c.id for c in conversations]

        unread_rows = await db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.conversation_id)
        )
        unread = dict(unread_rows.all())

        latest_ids = (
            select(func.max(Message.id).label("id"))
            .where(Message.conversation_id.in_(ids))
            .group_by(Message.conversation_id)
            .subquery()
        )
        last_rows = await db.execute(select(Message).where(Message.id.in_(select(latest_ids.c.id))))
        last_messages = {m.conversation_id: m for m in last_rows.scalars().all()}

        return [
            {
                "conversation": c,
                "other_user": c.buyer if c.seller_id == user_id else c.seller,
                "last_message": last_messages.get(c.id),
                "unread_count": unread.get(c.id, 0),
            }
            for c in conversations
        ]

    async def get_messages(
        self,
        db: AsyncSession,
        conversation_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Message]:
        """Newest `limit` messages after skipping `offset`, returned oldest first."""
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(limit)
            .offset(offset)
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def send_message(
        self,
        db: AsyncSession,
        conversation_id: int,
        sender_id: int,
        text: str,
    ) -> Message:
        text = (text or "").strip()
        if not text:
            raise ValidationError(message="Message cannot be empty", field="message")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                message=f"Message must be at most {MAX_MESSAGE_LENGTH} characters",
                field="message",
            )

        message = Message(conversation_id=conversation_id, sender_id=sender_id, message_text=text)
        db.add(message)
        await db.flush()
        await self.touch_conversation(db, conversation_id)
        logger.debug("Message %d sent in conversation %d", message.id, conversation_id)
        return message

    async def delete_message(self, db: AsyncSession, message_id: int, user_id: int) -> None:
        message = await db.get(Message, message_id)
        if message is None:
            raise NotFoundError(resource="Message", resource_id=message_id)
        if message.sender_id != user_id:
            raise PermissionDeniedError(message="You can only delete your own messages")
        await db.delete(message)
        await db.flush()
        logger.info("Message %d deleted by user %d", message_id, user_id)


conversation_service = ConversationService()
