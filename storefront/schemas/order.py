from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from storefront.models.order import OrderStatus, PaymentMethod
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema


class AddressInput(BaseModel):
    """Address schema for orders."""
    full_name: str = Field(..., min_length=1, max_length=200)
    address_line1: str = Field(..., min_length=1)
    address_line2: Optional[str] = None
    city: str
    province: str
    postal_code: str
    country: str = "Canada"
    phone: Optional[str] = None


class CheckoutRequest(BaseCreateSchema):
    shipping_address: AddressInput
    billing_address: Optional[AddressInput] = None
    payment_method: PaymentMethod
    referral_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        if isinstance(v, str):
            return v.strip().upper().replace("-", "_")
        return v


class CheckoutResponse(BaseModel):
    order_id: UUID
    order_number: str
    status: str
    total: Decimal


class OrderItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal


class StatusHistoryResponse(BaseResponseSchema):
    """Status history response schema."""
    id: UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    id: UUID
    order_number: str
    user_id: UUID
    status: str
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    discount_code: Optional[str] = None
    payment_method: str
    payment_status: str
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class OrderDetailResponse(OrderResponse):
    shipping_address: dict
    billing_address: Optional[dict] = None
    notes: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    status_history: List[StatusHistoryResponse] = []


class OrderListResponse(BaseModel):
    """Paginated order list."""
    items: List[OrderResponse]
    total: int
    page: int
    size: int
    pages: int


class OrderStatusUpdate(BaseModel):
    """Admin status change. Reason is recorded in the status history."""
    status: OrderStatus
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason is required")
        return v.strip()


class OrderStatusUpdateResponse(BaseModel):
    message: str
    order_id: UUID
    from_status: str
    status: str
    side_effect_failures: List[str] = []


class ConfirmPaymentRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class AssignDistributorRequest(BaseModel):
    distributor_id: UUID
    notes: Optional[str] = None


class FulfillOrderRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=100)
    carrier: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class DistributorAssignmentResponse(BaseResponseSchema):
    id: UUID
    order_id: UUID
    distributor_id: UUID
    assigned_by: Optional[UUID] = None
    status: str
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    fulfillment_notes: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class DistributorOrderResponse(DistributorAssignmentResponse):
    order: OrderDetailResponse
