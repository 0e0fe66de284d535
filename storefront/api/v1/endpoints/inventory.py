"""Inventory API endpoints (admin only)."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query

from storefront.api.deps import DB, AdminAuth, page_count
from storefront.schemas.inventory import (
    InventoryAdjustRequest,
    InventoryListResponse,
    InventoryResponse,
    InventoryTransferRequest,
    StockMovementListResponse,
    StockMovementResponse,
)
from storefront.services.inventory_service import InventoryService

router = APIRouter(prefix="/admin/inventory", tags=["Inventory"])


@router.get("", response_model=InventoryListResponse)
async def list_inventory(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    product_id: Optional[uuid.UUID] = None,
    location: Optional[str] = None,
):
    items, total = await InventoryService(db).list_inventory(
        product_id=product_id, location=location, skip=(page - 1) * limit, limit=limit
    )
    return InventoryListResponse(
        items=[InventoryResponse.model_validate(i) for i in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.post("/adjust", response_model=InventoryResponse)
async def adjust_inventory(data: InventoryAdjustRequest, auth: AdminAuth, db: DB):
    """Apply a signed correction. Stock cannot go below zero."""
    row = await InventoryService(db).adjust_stock(
        data.product_id,
        data.quantity_change,
        location=data.location,
        notes=data.notes,
        user_id=auth.user_id,
    )
    return InventoryResponse.model_validate(row)


@router.post("/transfer", response_model=list[InventoryResponse])
async def transfer_inventory(data: InventoryTransferRequest, auth: AdminAuth, db: DB):
    source, destination = await InventoryService(db).transfer_stock(
        data.product_id,
        data.from_location,
        data.to_location,
        data.quantity,
        notes=data.notes,
        user_id=auth.user_id,
    )
    return [InventoryResponse.model_validate(source), InventoryResponse.model_validate(destination)]


@router.get("/movements/{product_id}", response_model=StockMovementListResponse)
async def list_movements(
    product_id: uuid.UUID,
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    items, total = await InventoryService(db).list_movements(
        product_id, skip=(page - 1) * limit, limit=limit
    )
    return StockMovementListResponse(
        items=[StockMovementResponse.model_validate(m) for m in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )
