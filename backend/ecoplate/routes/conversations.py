"""
EcoPlate Backend — Messaging Routes
====================================

    GET    /api/v1/conversations
    GET    /api/v1/conversations/unread-count
    GET    /api/v1/conversations/{listing_id}/{other_user_id}   open or start a thread
    GET    /api/v1/conversations/{id}
    GET    /api/v1/conversations/{id}/messages                  also marks them read
    POST   /api/v1/conversations/{id}/messages
    DELETE /api/v1/messages/{id}

Conversations the user is not part of are reported as missing.

/{listing_id}/{other_user_id} is declared after the /{id}/messages routes so
"messages" is never parsed as a user id.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.exceptions import NotFoundError, ValidationError
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse, MessageResponse
from ecoplate.schemas.conversation import (
    ConversationListItem,
    ConversationListResponse,
    ConversationResponse,
    ListingSummary,
    MessageItem,
    MessagesResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from ecoplate.schemas.marketplace import UserSummary
from ecoplate.services.conversation_service import conversation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/conversations", tags=["Messages"])
messages_router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])

_NOT_FOUND = {404: {"description": "Conversation not found", "model": ErrorResponse}}


async def _participant_conversation(db: AsyncSession, conversation_id: int, user_id: int):
    conversation = await conversation_service.get_conversation_by_id(db, conversation_id, user_id)
    if conversation is None:
        raise NotFoundError(resource="Conversation", resource_id=conversation_id)
    return conversation


@router.get("", response_model=ConversationListResponse, summary="Inbox")
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationListResponse:
    entries = await conversation_service.list_conversations(db, user.id)
    items = []
    for entry in entries:
        conversation = entry["conversation"]
        items.append(
            ConversationListItem(
                id=conversation.id,
                listing=ListingSummary.model_validate(conversation.listing) if conversation.listing else None,
                other_user=UserSummary.model_validate(entry["other_user"]) if entry["other_user"] else None,
                last_message=MessageItem.model_validate(entry["last_message"]) if entry["last_message"] else None,
                unread_count=entry["unread_count"],
                updated_at=conversation.updated_at,
            )
        )
    return ConversationListResponse(conversations=items)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await conversation_service.get_unread_count_for_user(db, user.id))


@router.get("/{conversation_id}", response_model=ConversationResponse, responses=_NOT_FOUND)
async def get_conversation(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationResponse:
    return ConversationResponse.model_validate(await _participant_conversation(db, conversation_id, user.id))


@router.get("/{conversation_id}/messages", response_model=MessagesResponse, responses=_NOT_FOUND)
async def get_messages(
    conversation_id: int,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessagesResponse:
    await _participant_conversation(db, conversation_id, user.id)
    await conversation_service.mark_conversation_as_read(db, conversation_id, user.id)
    messages = await conversation_service.get_messages(db, conversation_id, limit=limit, offset=offset)
    return MessagesResponse(
        messages=[MessageItem.model_validate(m) for m in messages],
        limit=limit,
        offset=offset,
    )


@router.post(
    "/{conversation_id}/messages",
    status_code=201,
    response_model=MessageItem,
    responses=_NOT_FOUND,
)
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageItem:
    await _participant_conversation(db, conversation_id, user.id)
    message = await conversation_service.send_message(db, conversation_id, user.id, body.message)
    return MessageItem.model_validate(message)


@router.get(
    "/{listing_id}/{other_user_id}",
    response_model=ConversationResponse,
    responses={
        400: {"description": "Invalid user relationship to listing", "model": ErrorResponse},
        404: {"description": "Listing not found", "model": ErrorResponse},
    },
    summary="Open the thread about a listing, creating it if needed",
    description="One side of the conversation must be the listing's seller.",
)
async def get_or_create_conversation(
    listing_id: int,
    other_user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationResponse:
    listing = await conversation_service.get_listing_for_conversation(db, listing_id)
    if listing is None:
        raise NotFoundError(resource="Listing", resource_id=listing_id)

    if user.id == listing.seller_id and other_user_id != listing.seller_id:
        buyer_id = other_user_id
    elif other_user_id == listing.seller_id and user.id != listing.seller_id:
        buyer_id = user.id
    else:
        raise ValidationError(message="Invalid user relationship to listing")

    conversation = await conversation_service.get_or_create_conversation(
        db, listing_id, buyer_id=buyer_id, seller_id=listing.seller_id
    )
    return ConversationResponse.model_validate(conversation)


@messages_router.delete(
    "/{message_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Not the sender", "model": ErrorResponse},
        404: {"description": "Message not found", "model": ErrorResponse},
    },
)
async def delete_message(
    message_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await conversation_service.delete_message(db, message_id, user.id)
    return MessageResponse(message="Message deleted")
