"""Inventory Service for stock levels and the stock movement ledger.

Every quantity change goes through a single conditional UPDATE
(``quantity = quantity + delta WHERE quantity + delta >= 0``) so
concurrent writers never lose an increment or drive stock negative.
Each change also writes a StockMovement row.
"""
from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, and_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.inventory import Inventory, StockMovement, MovementType
from storefront.models.order import Order
from storefront.models.product import Product

logger = logging.getLogger(__name__)


class InsufficientStockError(ValidationError):
    def __init__(self, product_id: uuid.UUID, location: str, requested: int):
        super().__init__(
            f"Insufficient stock at {location}: cannot remove {requested} units",
            {"product_id": str(product_id), "location": location, "requested": requested}
        )


class InventoryService:
    """Service for stock levels per product and location."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _apply_delta(self, product_id: uuid.UUID, location: str, delta: int) -> bool:
        """
        Atomically add ``delta`` to the stock row, creating it for positive deltas.

        Returns:
            False if the row is missing (negative delta) or would go below zero.
        """
        stmt = (
            update(Inventory)
            .where(
                Inventory.product_id == product_id,
                Inventory.location == location,
                Inventory.quantity + delta >= 0,
            )
            .values(quantity=Inventory.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 1:
            return True

        if delta < 0:
            return False

        # No row yet for this product/location
        try:
            async with self.db.begin_nested():
                self.db.add(Inventory(product_id=product_id, location=location, quantity=delta))
        except IntegrityError:
            # Another writer created the row first
            result = await self.db.execute(stmt)
            return result.rowcount == 1
        return True

    def _record_movement(
        self,
        product_id: uuid.UUID,
        location: str,
        quantity_change: int,
        movement_type: MovementType,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> StockMovement:
        movement = StockMovement(
            product_id=product_id,
            location=location,
            quantity_change=quantity_change,
            movement_type=movement_type.value,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=created_by,
        )
        self.db.add(movement)
        return movement

    async def _get_product(self, product_id: uuid.UUID) -> Product:
        product = await self.db.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def get_stock(self, product_id: uuid.UUID, location: Optional[str] = None) -> int:
        location = location or settings.DEFAULT_STOCK_LOCATION
        stmt = select(Inventory.quantity).where(
            Inventory.product_id == product_id,
            Inventory.location == location,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none() or 0

    async def restock_order(self, order: Order, changed_by: Optional[uuid.UUID] = None) -> int:
        """
        Return every line item of a cancelled order to the default location.

        Returns:
            Total units restocked
        """
        location = settings.DEFAULT_STOCK_LOCATION
        units = 0
        for item in order.items:
            await self._apply_delta(item.product_id, location, item.quantity)
            self._record_movement(
                item.product_id,
                location,
                item.quantity,
                MovementType.RESTOCK,
                reference_type="ORDER",
                reference_id=order.id,
                notes=f"Restocked {item.quantity} x {item.product_sku} from cancelled order {order.order_number}",
                created_by=changed_by,
            )
            units += item.quantity

        await self.db.flush()
        logger.info(f"Restocked {units} units at {location} for order {order.order_number}")
        return units

    async def adjust_stock(
        self,
        product_id: uuid.UUID,
        quantity_change: int,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Inventory:
        """Manual correction. Stock cannot go below zero."""
        await self._get_product(product_id)
        location = location or settings.DEFAULT_STOCK_LOCATION

        if not await self._apply_delta(product_id, location, quantity_change):
            logger.warning(f"Rejected adjustment of {quantity_change} for {product_id} at {location}")
            raise InsufficientStockError(product_id, location, -quantity_change)

        self._record_movement(
            product_id, location, quantity_change, MovementType.ADJUSTMENT,
            notes=notes, created_by=user_id,
        )
        await self.db.flush()

        logger.info(f"Stock adjusted for {product_id} at {location}: {quantity_change:+d}")
        return await self._get_inventory_row(product_id, location)

    async def transfer_stock(
        self,
        product_id: uuid.UUID,
        from_location: str,
        to_location: str,
        quantity: int,
        notes: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Inventory, Inventory]:
        """Move units between locations. Both legs commit together or not at all."""
        await self._get_product(product_id)
        if from_location == to_location:
            raise ValidationError("Source and destination locations must differ")

        async with self.db.begin_nested():
            if not await self._apply_delta(product_id, from_location, -quantity):
                raise InsufficientStockError(product_id, from_location, quantity)
            await self._apply_delta(product_id, to_location, quantity)

            self._record_movement(
                product_id, from_location, -quantity, MovementType.TRANSFER_OUT,
                notes=notes or f"Transfer to {to_location}", created_by=user_id,
            )
            self._record_movement(
                product_id, to_location, quantity, MovementType.TRANSFER_IN,
                notes=notes or f"Transfer from {from_location}", created_by=user_id,
            )

        logger.info(f"Transferred {quantity} of {product_id}: {from_location} -> {to_location}")
        return (
            await self._get_inventory_row(product_id, from_location),
            await self._get_inventory_row(product_id, to_location),
        )

    async def _get_inventory_row(self, product_id: uuid.UUID, location: str) -> Inventory:
        stmt = (
            select(Inventory)
            .where(Inventory.product_id == product_id, Inventory.location == location)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def list_inventory(
        self,
        product_id: Optional[uuid.UUID] = None,
        location: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Inventory], int]:
        filters = []
        if product_id:
            filters.append(Inventory.product_id == product_id)
        if location:
            filters.append(Inventory.location == location)

        count_stmt = select(func.count(Inventory.id))
        stmt = select(Inventory)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(Inventory.location, Inventory.product_id).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def list_movements(
        self,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[StockMovement], int]:
        await self._get_product(product_id)

        count_stmt = select(func.count(StockMovement.id)).where(StockMovement.product_id == product_id)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total
