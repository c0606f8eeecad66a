"""
EcoPlate Backend — Messaging Schemas
=====================================
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ecoplate.schemas.marketplace import UserSummary


class ListingSummary(BaseModel):
    id: int
    title: str
    price: Optional[float] = None
    status: str
    images: List[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class MessageItem(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    message_text: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: int
    listing_id: int
    seller_id: int
    buyer_id: int
    created_at: datetime
    updated_at: datetime
    listing: Optional[ListingSummary] = None
    seller: Optional[UserSummary] = None
    buyer: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class ConversationListItem(BaseModel):
    id: int
    listing: Optional[ListingSummary] = None
    other_user: Optional[UserSummary] = None
    last_message: Optional[MessageItem] = None
    unread_count: int
    updated_at: datetime


class ConversationListResponse(BaseModel):
    conversations: List[ConversationListItem]


class MessagesResponse(BaseModel):
    messages: List[MessageItem]
    limit: int
    offset: int


class SendMessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)


class UnreadCountResponse(BaseModel):
    unread_count: int
