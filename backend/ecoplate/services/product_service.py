"""
EcoPlate Backend — MyFridge Product Service
============================================

What:  CRUD over a user's fridge items plus the "consume" shortcut that
       logs an action, awards points and removes the item.
Who:   /api/v1/myfridge routes.

Products belonging to someone else are reported as missing (404), never
as forbidden.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.exceptions import NotFoundError
from ecoplate.models.product import Product
from ecoplate.services.gamification_service import gamification_service

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "product_name",
    "category",
    "quantity",
    "unit",
    "unit_price",
    "purchase_date",
    "description",
    "co2_emission",
)


class ProductService:

    async def list_products(self, db: AsyncSession, user_id: int) -> List[Product]:
        result = await db.execute(
            select(Product).where(Product.user_id == user_id).order_by(desc(Product.id))
        )
        return list(result.scalars().all())

    async def get_product(self, db: AsyncSession, user_id: int, product_id: int) -> Product:
        product = await db.get(Product, product_id)
        if product is None or product.user_id != user_id:
            raise NotFoundError(resource="Product", resource_id=product_id)
        return product

    async def create_product(self, db: AsyncSession, user_id: int, data: Dict[str, Any]) -> Product:
        product = Product(user_id=user_id, **{k: v for k, v in data.items() if k in UPDATABLE_FIELDS})
        db.add(product)
        await db.flush()
        await db.refresh(product)
        logger.info("Product %d added to fridge of user %d", product.id, user_id)
        return product

    async def update_product(
        self,
        db: AsyncSession,
        user_id: int,
        product_id: int,
        changes: Dict[str, Any],
    ) -> Product:
        product = await self.get_product(db, user_id, product_id)
        for field, value in changes.items():
            if field in UPDATABLE_FIELDS:
                setattr(product, field, value)
        await db.flush()
        return product

    async def delete_product(self, db: AsyncSession, user_id: int, product_id: int) -> None:
        product = await self.get_product(db, user_id, product_id)
        await db.delete(product)
        await db.flush()
        logger.info("Product %d deleted by user %d", product_id, user_id)

    async def consume_product(
        self,
        db: AsyncSession,
        user_id: int,
        product_id: int,
        action: str,
    ) -> Dict[str, Any]:
        """
        Log the product as consumed/wasted/shared/sold and take it out of the
        fridge. The metric row keeps the product's CO2 snapshot after deletion.
        """
        product = await self.get_product(db, user_id, product_id)
        points = await gamification_service.award_points(
            db,
            user_id,
            action,
            product_id=product.id,
            quantity=product.quantity,
            unit=product.unit,
        )

        await db.delete(product)
        await db.flush()
        return points


product_service = ProductService()
