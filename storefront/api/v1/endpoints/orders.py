from typing import Optional
import uuid

from fastapi import APIRouter, Query

from storefront.api.deps import DB, AdminAuth, CurrentAuth, page_count
from storefront.core.exceptions import NotFoundError
from storefront.models.order import OrderStatus
from storefront.schemas.commission import CommissionAccrualResult, CommissionCalculationResponse
from storefront.schemas.order import (
    AssignDistributorRequest,
    ConfirmPaymentRequest,
    DistributorAssignmentResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderStatusUpdateResponse,
)
from storefront.services.commission_service import CommissionService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import OrderService, StatusChangeResult

router = APIRouter(tags=["Orders"])


def _status_response(result: StatusChangeResult, message: str) -> OrderStatusUpdateResponse:
    if result.side_effect_failures:
        message = f"{message}; some follow-up steps failed and were queued for review"
    return OrderStatusUpdateResponse(
        message=message,
        order_id=result.order.id,
        from_status=result.from_status,
        status=result.to_status,
        side_effect_failures=result.side_effect_failures,
    )


# ==================== Customer ====================

@router.get("/orders/me", response_model=OrderListResponse)
async def list_my_orders(
    auth: CurrentAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    items, total = await OrderService(db).get_orders(
        user_id=auth.user_id, skip=(page - 1) * limit, limit=limit
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/orders/me/{order_id}", response_model=OrderDetailResponse)
async def get_my_order(order_id: uuid.UUID, auth: CurrentAuth, db: DB):
    order = await OrderService(db).get_user_order(auth, order_id)
    return OrderDetailResponse.model_validate(order)


# ==================== Admin ====================

@router.get("/admin/orders", response_model=OrderListResponse)
async def list_orders(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
):
    items, total = await OrderService(db).get_orders(
        status=status.value if status else None,
        search=search,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/admin/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: uuid.UUID, auth: AdminAuth, db: DB):
    order = await OrderService(db).get_order_by_id(order_id, include_all=True)
    if not order:
        raise NotFoundError("Order not found")
    return OrderDetailResponse.model_validate(order)


@router.put("/admin/orders/{order_id}/status", response_model=OrderStatusUpdateResponse)
async def update_order_status(order_id: uuid.UUID, data: OrderStatusUpdate, auth: AdminAuth, db: DB):
    """
    Change an order's status.

    Cancelling restocks items and cancels commissions; refunding queues a
    refund task and cancels commissions; shipping accrues commissions.
    """
    result = await OrderService(db).update_order_status(order_id, data.status, data.reason, auth.user_id)
    return _status_response(result, f"Order status updated to {result.to_status}")


@router.post("/admin/orders/{order_id}/confirm-payment", response_model=OrderStatusUpdateResponse)
async def confirm_payment(
    order_id: uuid.UUID,
    auth: AdminAuth,
    db: DB,
    data: Optional[ConfirmPaymentRequest] = None,
):
    result = await OrderService(db).confirm_payment(order_id, auth.user_id, data.notes if data else None)
    return _status_response(result, "Payment confirmed")


@router.post("/admin/orders/{order_id}/assign-distributor", response_model=DistributorAssignmentResponse)
async def assign_distributor(order_id: uuid.UUID, data: AssignDistributorRequest, auth: AdminAuth, db: DB):
    assignment = await FulfillmentService(db).assign_distributor(
        order_id, data.distributor_id, auth.user_id, data.notes
    )
    return DistributorAssignmentResponse.model_validate(assignment)


@router.post("/orders/{order_id}/calculate-commission", response_model=CommissionCalculationResponse)
async def calculate_commission(order_id: uuid.UUID, auth: AdminAuth, db: DB):
    """
    Accrue referral and fulfillment commissions for a shipped order.

    Safe to repeat: an existing commission is reported instead of duplicated.
    """
    results = await CommissionService(db).calculate_for_order(order_id)
    items = [
        CommissionAccrualResult(
            commission_type=r.commission_type,
            created=r.created,
            commission_id=r.commission.id if r.commission else None,
            amount=r.commission.amount if r.commission else None,
            status=r.commission.status if r.commission else None,
            message=r.message,
        )
        for r in results
    ]
    # Headline fields describe the referral commission
    referral = items[0]
    return CommissionCalculationResponse(
        message=referral.message,
        commission_id=referral.commission_id,
        amount=referral.amount,
        status=referral.status,
        results=items,
    )
