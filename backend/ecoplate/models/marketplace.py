"""
EcoPlate Backend — Marketplace Listing Model
=============================================

What:  A surplus-food listing offered by one user to others.

Status lifecycle (single linear field):

    active ──reserve──▶ reserved ──complete──▶ sold
       ▲                   │
       └────unreserve──────┘
       └──────────────complete────────────────▶ sold

`pickup_location` uses the "address|lat,lng" format understood by
ecoplate.utils.distance.parse_coordinates.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ecoplate.database import Base
from ecoplate.models.user import User
from ecoplate.utils.dates import utcnow

LISTING_ACTIVE = "active"
LISTING_RESERVED = "reserved"
LISTING_SOLD = "sold"
LISTING_STATUSES = (LISTING_ACTIVE, LISTING_RESERVED, LISTING_SOLD)


class MarketplaceListing(Base):
    __tablename__ = "marketplace_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    buyer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # NULL price means the item is given away for free
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    original_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pickup_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    images: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered list of image URLs",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LISTING_ACTIVE,
        comment="active, reserved, sold",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    co2_saved: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="kg CO2e kept out of landfill by this sale",
    )

    seller: Mapped[User] = relationship(foreign_keys=[seller_id])
    buyer: Mapped[Optional[User]] = relationship(foreign_keys=[buyer_id])

    __table_args__ = (
        Index("idx_listings_status_created", "status", "created_at"),
        Index("idx_listings_seller_id", "seller_id"),
    )

    def __repr__(self) -> str:
        return f"<MarketplaceListing(id={self.id}, status='{self.status}')>"
