import uuid

from fastapi import APIRouter, status

from storefront.api.deps import DB, CurrentAuth
from storefront.schemas.cart import CartItemAdd, CartItemResponse, CartItemUpdate, CartResponse
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])


async def _cart_response(service: CartService, user_id: uuid.UUID) -> CartResponse:
    items = await service.get_items(user_id)
    totals = service.price(items)
    return CartResponse(
        items=[CartItemResponse.model_validate(i) for i in items],
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        taxes=totals.taxes,
        total=totals.total,
    )


@router.get("", response_model=CartResponse)
async def get_cart(auth: CurrentAuth, db: DB):
    return await _cart_response(CartService(db), auth.user_id)


@router.post("", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(data: CartItemAdd, auth: CurrentAuth, db: DB):
    service = CartService(db)
    await service.add_item(auth.user_id, data.product_id, data.quantity)
    return await _cart_response(service, auth.user_id)


@router.patch("/{item_id}", response_model=CartResponse)
async def update_cart_item(item_id: uuid.UUID, data: CartItemUpdate, auth: CurrentAuth, db: DB):
    service = CartService(db)
    await service.update_quantity(auth.user_id, item_id, data.quantity)
    return await _cart_response(service, auth.user_id)


@router.delete("/{item_id}", response_model=CartResponse)
async def remove_cart_item(item_id: uuid.UUID, auth: CurrentAuth, db: DB):
    service = CartService(db)
    await service.remove_item(auth.user_id, item_id)
    return await _cart_response(service, auth.user_id)
