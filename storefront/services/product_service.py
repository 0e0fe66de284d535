from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ConflictError, NotFoundError
from storefront.models.product import Product

logger = logging.getLogger(__name__)


class ProductService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(
        self,
        active_only: bool = True,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Product], int]:
        filters = []
        if active_only:
            filters.append(Product.is_active == True)  # noqa: E712
        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Product.name.ilike(search_filter),
                    Product.sku.ilike(search_filter),
                    Product.flavor.ilike(search_filter),
                )
            )

        stmt = select(Product)
        count_stmt = select(func.count(Product.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(Product.name).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_product(self, product_id: uuid.UUID, active_only: bool = False) -> Product:
        product = await self.db.get(Product, product_id)
        if not product or (active_only and not product.is_active):
            raise NotFoundError("Product not found")
        return product

    async def create_product(self, data: dict) -> Product:
        sku = data["sku"].strip().upper()
        existing = await self.db.execute(select(Product.id).where(Product.sku == sku))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Product with SKU '{sku}' already exists")

        product = Product(**{**data, "sku": sku})
        self.db.add(product)
        await self.db.flush()
        logger.info(f"Product {sku} created")
        return product

    async def update_product(self, product_id: uuid.UUID, data: dict) -> Product:
        product = await self.get_product(product_id)
        for field, value in data.items():
            if value is None and field in ("name", "price", "is_active"):
                continue
            setattr(product, field, value)
        await self.db.flush()
        logger.info(f"Product {product.sku} updated: {sorted(data.keys())}")
        return product

    async def deactivate_product(self, product_id: uuid.UUID) -> Product:
        """Products referenced by orders are never deleted, only hidden."""
        product = await self.get_product(product_id)
        product.is_active = False
        await self.db.flush()
        logger.info(f"Product {product.sku} deactivated")
        return product
