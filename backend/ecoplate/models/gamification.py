"""
EcoPlate Backend — Gamification Models
=======================================

Tables:
    user_points                     one row per user: points, streak, CO2 saved
    badges                          badge catalogue (synced from BADGE_DEFINITIONS)
    user_badges                     earned badges, unique per (user, badge)
    product_sustainability_metrics  one row per consume/waste/share/sell event

The metrics table is the event log every counter is derived from: badge
metrics, the EcoBoard summary, streaks and the dashboard charts.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ecoplate.database import Base
from ecoplate.models.user import User
from ecoplate.utils.dates import today_str, utcnow


class UserPoints(Base):
    __tablename__ = "user_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_co2_saved: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    user: Mapped[User] = relationship()


class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badge_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    badge_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("badges.id", ondelete="CASCADE"),
        nullable=False,
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    badge: Mapped[Badge] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )


class ProductSustainabilityMetric(Base):
    __tablename__ = "product_sustainability_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Kept NULL when the product has since been deleted from the fridge
    product_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    today_date: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=today_str,
        comment="UTC date of the event, YYYY-MM-DD",
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="consumed, wasted, shared, sold",
    )

    # Snapshot of the product's per-unit emission at the time of the event
    co2_emission: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("idx_metrics_user_date", "user_id", "today_date"),
    )
