"""
EcoPlate Backend — Product (MyFridge item) Model
=================================================

What:  A food item in a user's fridge.
How:   Quantity is decremented as ingredients are confirmed; the row is
       deleted when the whole item is consumed/wasted/shared/sold from
       the MyFridge screen.

co2_emission is kg CO2e per unit of `quantity`; it feeds the dashboard and
the default `co2_saved` of marketplace listings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoplate.database import Base
from ecoplate.utils.dates import utcnow


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    unit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    co2_emission: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="kg CO2e per unit of quantity",
    )
    is_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("idx_products_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.product_name}', qty={self.quantity})>"
