from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    # Access
    auth,
    users,
    referrals,
    admin_users,
    # Catalog & cart
    products,
    cart,
    checkout,
    discounts,
    # Back office
    orders,
    distributor,
    commissions,
    tasks,
    inventory,
    wholesale,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(referrals.router)
api_router.include_router(admin_users.router)
api_router.include_router(products.router)
api_router.include_router(cart.router)
api_router.include_router(checkout.router)
api_router.include_router(discounts.router)
api_router.include_router(orders.router)
api_router.include_router(distributor.router)
api_router.include_router(commissions.router)
api_router.include_router(tasks.router)
api_router.include_router(inventory.router)
api_router.include_router(wholesale.router)
