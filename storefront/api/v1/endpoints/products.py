from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB, AdminAuth, page_count
from storefront.schemas.product import ProductCreate, ProductListResponse, ProductResponse, ProductUpdate
from storefront.services.product_service import ProductService

router = APIRouter(tags=["Products"])


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
):
    """Public catalog: active products only."""
    items, total = await ProductService(db).get_products(
        active_only=True, search=search, skip=(page - 1) * limit, limit=limit
    )
    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: DB):
    product = await ProductService(db).get_product(product_id, active_only=True)
    return ProductResponse.model_validate(product)


# ==================== Admin ====================

@router.get("/admin/products", response_model=ProductListResponse)
async def admin_list_products(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    include_inactive: bool = True,
):
    items, total = await ProductService(db).get_products(
        active_only=not include_inactive, search=search, skip=(page - 1) * limit, limit=limit
    )
    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.post("/admin/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(data: ProductCreate, auth: AdminAuth, db: DB):
    product = await ProductService(db).create_product(data.model_dump())
    return ProductResponse.model_validate(product)


@router.put("/admin/products/{product_id}", response_model=ProductResponse)
async def update_product(product_id: uuid.UUID, data: ProductUpdate, auth: AdminAuth, db: DB):
    product = await ProductService(db).update_product(product_id, data.model_dump(exclude_unset=True))
    return ProductResponse.model_validate(product)


@router.delete("/admin/products/{product_id}", response_model=ProductResponse)
async def deactivate_product(product_id: uuid.UUID, auth: AdminAuth, db: DB):
    """Hide a product from the catalog. Order history keeps referencing it."""
    product = await ProductService(db).deactivate_product(product_id)
    return ProductResponse.model_validate(product)
