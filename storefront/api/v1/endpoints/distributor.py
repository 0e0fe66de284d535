from typing import List, Optional
import uuid

from fastapi import APIRouter

from storefront.api.deps import DB, DistributorAuth
from storefront.schemas.order import DistributorAssignmentResponse, DistributorOrderResponse, FulfillOrderRequest
from storefront.services.fulfillment_service import FulfillmentService

router = APIRouter(prefix="/distributor", tags=["Distributor"])


@router.get("/orders", response_model=List[DistributorOrderResponse])
async def list_assigned_orders(auth: DistributorAuth, db: DB, status: Optional[str] = None):
    assignments = await FulfillmentService(db).list_distributor_orders(
        auth.user_id, status.upper() if status else None
    )
    return [DistributorOrderResponse.model_validate(a) for a in assignments]


@router.post("/orders/{order_id}/fulfill", response_model=DistributorAssignmentResponse)
async def fulfill_order(order_id: uuid.UUID, data: FulfillOrderRequest, auth: DistributorAuth, db: DB):
    assignment = await FulfillmentService(db).fulfill_order(
        order_id,
        auth.user_id,
        tracking_number=data.tracking_number,
        carrier=data.carrier,
        notes=data.notes,
    )
    return DistributorAssignmentResponse.model_validate(assignment)
