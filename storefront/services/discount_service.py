"""Discount code validation and application.

Validation order (first failure wins):
1. Code exists and is active
2. Inside the validity window
3. Usage limit not reached
4. Order still awaiting payment
5. No discount already on the order
6. Order total meets the minimum

Applying a code increments the usage counter and rewrites the order totals
inside one savepoint; both writes are conditional so concurrent requests
cannot overrun the usage limit or stack two codes on one order.
"""
from typing import List, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enum_utils import ensure_utc, get_enum_value
from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.models.discount_code import DiscountCode, DiscountType
from storefront.models.order import Order, OrderStatus, DISCOUNTABLE_STATUSES
from storefront.schemas.auth import AuthContext
from storefront.services.pricing_service import round_money, ZERO

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

# Columns a partial update may not null out
NON_NULLABLE_FIELDS = ("discount_type", "discount_value", "min_order_amount", "start_date", "is_active")


class DiscountError(ValidationError):
    """Base class for a rejected discount code."""
    pass


class InvalidDiscountCodeError(DiscountError):
    def __init__(self, code: Optional[str] = None):
        super().__init__("Invalid or expired discount code", {"code": code})


class DiscountCodeNotFoundError(InvalidDiscountCodeError):
    pass


class DiscountNotStartedError(DiscountError):
    def __init__(self, code: str):
        super().__init__("This discount code is not active yet", {"code": code})


class DiscountExpiredError(DiscountError):
    def __init__(self, code: str):
        super().__init__("This discount code has expired", {"code": code})


class DiscountExhaustedError(DiscountError):
    def __init__(self, code: str):
        super().__init__("This discount code has reached its usage limit", {"code": code})


class DiscountNotApplicableError(DiscountError):
    def __init__(self, order_status: str):
        super().__init__(
            "Discount codes can only be applied to orders awaiting payment",
            {"order_status": order_status}
        )


class DiscountAlreadyAppliedError(DiscountError):
    status_code = 409

    def __init__(self, existing_code: Optional[str] = None):
        super().__init__("A discount code is already applied to this order", {"discount_code": existing_code})


class MinimumOrderNotMetError(DiscountError):
    def __init__(self, min_order_amount: Decimal):
        super().__init__(
            f"This code requires a minimum order of ${round_money(min_order_amount)}",
            {"min_order_amount": str(min_order_amount)}
        )


def calculate_discount_amount(
    discount_type: str,
    discount_value: Decimal,
    order_total: Decimal,
    max_discount_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Compute the discount for an order total.

    - PERCENTAGE: total × value / 100, value clamped to 100, capped at
      ``max_discount_amount`` when set
    - FIXED_AMOUNT: min(value, total)

    Raises:
        DiscountError: if the result is not positive
    """
    order_total = Decimal(order_total)
    discount_type = get_enum_value(discount_type)

    if discount_type == DiscountType.PERCENTAGE.value:
        percent = min(Decimal(discount_value), HUNDRED)
        amount = round_money(order_total * percent / HUNDRED)
        if max_discount_amount is not None:
            amount = min(amount, round_money(max_discount_amount))
    elif discount_type == DiscountType.FIXED_AMOUNT.value:
        amount = round_money(min(Decimal(discount_value), order_total))
    else:
        raise DiscountError(f"Unsupported discount type: {discount_type}")

    if amount <= ZERO:
        raise DiscountError("Discount amount must be greater than zero")
    return amount


def validate_discount_code(
    discount: Optional[DiscountCode],
    order_total: Decimal,
    order_status: str,
    order_discount_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Run the full validation sequence and return the discount amount.

    Pure: reads the given row and values only, writes nothing.
    """
    if discount is None:
        raise DiscountCodeNotFoundError()
    if not discount.is_active:
        raise InvalidDiscountCodeError(discount.code)

    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    start_date = ensure_utc(discount.start_date)
    end_date = ensure_utc(discount.end_date)
    if start_date and now < start_date:
        raise DiscountNotStartedError(discount.code)
    if end_date and now > end_date:
        raise DiscountExpiredError(discount.code)

    if discount.usage_limit is not None and (discount.times_used or 0) >= discount.usage_limit:
        raise DiscountExhaustedError(discount.code)

    if get_enum_value(order_status) not in DISCOUNTABLE_STATUSES:
        raise DiscountNotApplicableError(get_enum_value(order_status))

    if order_discount_code:
        raise DiscountAlreadyAppliedError(order_discount_code)

    min_order = discount.min_order_amount or ZERO
    if Decimal(order_total) < min_order:
        raise MinimumOrderNotMetError(min_order)

    return calculate_discount_amount(
        discount.discount_type,
        discount.discount_value,
        order_total,
        discount.max_discount_amount,
    )


def validate_discount_definition(
    discount_type: str,
    discount_value: Decimal,
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> None:
    """Admin-side checks for a code being created or edited."""
    if discount_value is None or Decimal(discount_value) <= ZERO:
        raise ValidationError("Discount value must be greater than zero")
    if get_enum_value(discount_type) == DiscountType.PERCENTAGE.value and Decimal(discount_value) > HUNDRED:
        raise ValidationError("Percentage discount cannot exceed 100")
    if start_date and end_date and ensure_utc(end_date) < ensure_utc(start_date):
        raise ValidationError("End date must be on or after start date")


class DiscountService:
    """Service for discount codes: storefront validation/application and admin CRUD."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[DiscountCode]:
        stmt = select(DiscountCode).where(DiscountCode.code == code.strip().upper())
        return (await self.db.execute(stmt)).scalar_one_or_none()

    # ==================== STOREFRONT ====================

    async def validate_for_subtotal(self, code: str, subtotal: Decimal) -> Tuple[bool, Decimal, str]:
        """
        Preview a code against a cart subtotal, before an order exists.

        Returns:
            (valid, discount_amount, message)
        """
        discount = await self.get_by_code(code)
        try:
            amount = validate_discount_code(discount, subtotal, OrderStatus.CREATED.value)
        except DiscountError as e:
            return False, ZERO, e.message
        return True, amount, "Discount code is valid"

    async def apply_discount(self, auth: AuthContext, code: str, order_id: uuid.UUID) -> Tuple[Order, Decimal]:
        """
        Apply a code to the caller's order.

        Returns:
            (updated order, discount amount applied)

        Raises:
            NotFoundError: order missing or owned by someone else
            DiscountError: any validation failure
        """
        order = await self.db.get(Order, order_id)
        if not order or order.user_id != auth.user_id:
            raise NotFoundError("Order not found")

        discount = await self.get_by_code(code)
        amount = validate_discount_code(
            discount,
            order.total_amount,
            order.status,
            order.discount_code,
        )
        new_total = max(order.total_amount - amount, ZERO)
        code_value, order_number = discount.code, order.order_number

        try:
            async with self.db.begin_nested():
                usage_result = await self.db.execute(
                    update(DiscountCode)
                    .where(
                        DiscountCode.id == discount.id,
                        DiscountCode.is_active == True,  # noqa: E712
                        or_(
                            DiscountCode.usage_limit.is_(None),
                            DiscountCode.times_used < DiscountCode.usage_limit,
                        ),
                    )
                    .values(times_used=DiscountCode.times_used + 1)
                    .execution_options(synchronize_session=False)
                )
                if usage_result.rowcount != 1:
                    raise DiscountExhaustedError(code_value)

                order_result = await self.db.execute(
                    update(Order)
                    .where(
                        Order.id == order.id,
                        Order.discount_code.is_(None),
                        Order.status.in_(DISCOUNTABLE_STATUSES),
                    )
                    .values(
                        discount_code=code_value,
                        discount_amount=amount,
                        total_amount=new_total,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                if order_result.rowcount != 1:
                    current = (await self.db.execute(
                        select(Order.status, Order.discount_code).where(Order.id == order.id)
                    )).one()
                    if current.discount_code is not None:
                        raise DiscountAlreadyAppliedError(current.discount_code)
                    raise DiscountNotApplicableError(current.status)
        except DiscountError as e:
            logger.warning(f"Discount {code_value} rejected for order {order_number}: {e.message}")
            raise

        await self.db.refresh(order)
        await self.db.refresh(discount)

        logger.info(
            f"Discount {code_value} applied to order {order_number}: "
            f"-{amount}, new total {order.total_amount}"
        )
        return order, amount

    # ==================== ADMIN CRUD ====================

    async def list_codes(
        self,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[DiscountCode], int]:
        filters = []
        if is_active is not None:
            filters.append(DiscountCode.is_active == is_active)
        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    DiscountCode.code.ilike(search_filter),
                    DiscountCode.description.ilike(search_filter),
                )
            )

        count_stmt = select(func.count(DiscountCode.id))
        stmt = select(DiscountCode)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(DiscountCode.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_code(self, code_id: uuid.UUID) -> DiscountCode:
        discount = await self.db.get(DiscountCode, code_id)
        if not discount:
            raise NotFoundError("Discount code not found")
        return discount

    async def create_code(self, data: dict, created_by: Optional[uuid.UUID] = None) -> DiscountCode:
        code = data["code"].strip().upper()
        if await self.get_by_code(code):
            raise ConflictError(f"Discount code '{code}' already exists")

        start_date = data.get("start_date") or datetime.now(timezone.utc)
        validate_discount_definition(
            data["discount_type"], data["discount_value"], start_date, data.get("end_date")
        )

        discount = DiscountCode(
            code=code,
            description=data.get("description"),
            discount_type=get_enum_value(data["discount_type"]),
            discount_value=data["discount_value"],
            max_discount_amount=data.get("max_discount_amount"),
            min_order_amount=data.get("min_order_amount") or ZERO,
            start_date=start_date,
            end_date=data.get("end_date"),
            usage_limit=data.get("usage_limit"),
            is_active=data.get("is_active", True),
            created_by=created_by,
        )
        self.db.add(discount)
        await self.db.flush()

        logger.info(f"Discount code {code} created by {created_by}")
        return discount

    async def update_code(self, code_id: uuid.UUID, data: dict) -> DiscountCode:
        discount = await self.get_code(code_id)

        validate_discount_definition(
            data.get("discount_type") or discount.discount_type,
            data.get("discount_value") or discount.discount_value,
            data.get("start_date") or discount.start_date,
            data.get("end_date", discount.end_date),
        )
        usage_limit = data.get("usage_limit")
        if usage_limit is not None and usage_limit < discount.times_used:
            raise ValidationError(
                "Usage limit cannot be lower than the number of times the code has been used",
                {"usage_limit": usage_limit, "times_used": discount.times_used}
            )

        for field, value in data.items():
            if value is None and field in NON_NULLABLE_FIELDS:
                continue
            if field == "discount_type":
                value = get_enum_value(value)
            setattr(discount, field, value)

        await self.db.flush()
        logger.info(f"Discount code {discount.code} updated: {sorted(data.keys())}")
        return discount

    async def delete_code(self, code_id: uuid.UUID) -> None:
        discount = await self.get_code(code_id)
        await self.db.delete(discount)
        await self.db.flush()
        logger.info(f"Discount code {discount.code} deleted")
