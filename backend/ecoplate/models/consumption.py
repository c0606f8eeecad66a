"""
EcoPlate Backend — Pending Consumption Record Model
====================================================

A meal is logged in two steps: the user confirms which fridge ingredients
went into it, then (possibly much later) photographs the leftovers. The
pending record holds the confirmed ingredients in between.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoplate.database import Base
from ecoplate.utils.dates import utcnow

PENDING_WASTE_PHOTO = "PENDING_WASTE_PHOTO"
COMPLETED = "COMPLETED"


class PendingConsumptionRecord(Base):
    __tablename__ = "pending_consumption_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    raw_photo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredients: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=PENDING_WASTE_PHOTO)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
