from typing import List
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.services.pricing_service import LineItem, OrderTotals, calculate_order_totals

logger = logging.getLogger(__name__)


class CartService:
    """Per-user shopping cart. One row per product; re-adding sums quantities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_items(self, user_id: uuid.UUID) -> List[CartItem]:
        stmt = (
            select(CartItem)
            .options(selectinload(CartItem.product))
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def price(items: List[CartItem]) -> OrderTotals:
        return calculate_order_totals(
            [LineItem(item.product_id, item.quantity, item.product.price) for item in items]
        )

    async def add_item(self, user_id: uuid.UUID, product_id: uuid.UUID, quantity: int) -> CartItem:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product = await self.db.get(Product, product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found")

        stmt = select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        item = (await self.db.execute(stmt)).scalar_one_or_none()
        if item:
            item.quantity += quantity
        else:
            item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
            self.db.add(item)

        await self.db.flush()
        logger.info(f"Cart {user_id}: {product.sku} qty now {item.quantity}")
        return item

    async def _get_own_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> CartItem:
        item = await self.db.get(CartItem, item_id)
        if not item or item.user_id != user_id:
            raise NotFoundError("Cart item not found")
        return item

    async def update_quantity(self, user_id: uuid.UUID, item_id: uuid.UUID, quantity: int) -> CartItem:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        item = await self._get_own_item(user_id, item_id)
        item.quantity = quantity
        await self.db.flush()
        return item

    async def remove_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> None:
        item = await self._get_own_item(user_id, item_id)
        await self.db.delete(item)
        await self.db.flush()
