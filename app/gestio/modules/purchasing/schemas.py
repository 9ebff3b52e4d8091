from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

PurchaseOrderStatus = Literal["DRAFT", "SENT", "CONFIRMED", "RECEIVED", "CANCELLED"]


class PurchaseOrderLineIn(ApiModel):
    product_id: int
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    tax_rate: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    description: str | None = None


class PurchaseOrderIn(ApiModel):
    supplier_name: str = Field(min_length=2)
    reference: str | None = None
    description: str | None = None
    order_date: UtcDatetime = Field(default_factory=datetime.utcnow)
    expected_delivery_date: UtcDatetime | None = None
    status: PurchaseOrderStatus = "DRAFT"
    notes: str | None = None
    shipping_address: str | None = None
    billing_address: str | None = None
    payment_terms: str | None = None
    company_id: int | None = None
    warehouse_id: int | None = None
    lines: list[PurchaseOrderLineIn] = Field(min_length=1)

    @model_validator(mode="after")
    def _warehouse_when_received(self) -> "PurchaseOrderIn":
        if self.status == "RECEIVED" and self.warehouse_id is None:
            raise ValueError("warehouseId is required when the order is created as RECEIVED")
        return self


class PurchaseOrderLineOut(OutModel):
    id: int
    purchase_order_id: int
    product_id: int
    description: str | None
    quantity: int
    unit_price: float
    tax_rate: float
    discount: float
    subtotal: float
    tax_amount: float
    total: float


class PurchaseOrderOut(OutModel):
    id: int
    company_id: int
    supplier_name: str
    reference: str | None
    description: str | None
    order_date: datetime
    expected_delivery_date: datetime | None
    status: str
    notes: str | None
    shipping_address: str | None
    billing_address: str | None
    payment_terms: str | None
    subtotal: float
    discount_total: float
    tax_total: float
    total: float
    created_at: datetime
    lines: list[PurchaseOrderLineOut]
