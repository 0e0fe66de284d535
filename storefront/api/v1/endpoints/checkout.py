from fastapi import APIRouter, status

from storefront.api.deps import DB, CurrentAuth
from storefront.schemas.order import CheckoutRequest, CheckoutResponse
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(data: CheckoutRequest, auth: CurrentAuth, db: DB):
    """
    Place an order from the caller's cart.

    Totals are computed server-side (subtotal + flat shipping + tax); the
    order starts in PENDING_PAYMENT.
    """
    order = await OrderService(db).checkout(auth, data)
    return CheckoutResponse(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        total=order.total_amount,
    )
