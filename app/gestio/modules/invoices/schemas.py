from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

InvoiceStatus = Literal["DRAFT", "SENT", "PAID", "OVERDUE", "CANCELLED"]


class InvoiceItemIn(ApiModel):
    description: str = Field(min_length=2)
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    total: float | None = Field(default=None, ge=0)


class InvoiceIn(ApiModel):
    invoice_number: str = Field(min_length=3)
    status: InvoiceStatus = "DRAFT"
    total: float | None = Field(default=None, ge=0)
    issue_date: UtcDatetime = Field(default_factory=datetime.utcnow)
    due_date: UtcDatetime | None = None
    notes: str | None = None
    company_id: int
    client_id: int | None = None
    items: list[InvoiceItemIn] = Field(min_length=1)


class InvoiceUpdateIn(ApiModel):
    invoice_number: str | None = Field(default=None, min_length=3)
    status: InvoiceStatus | None = None
    total: float | None = Field(default=None, ge=0)
    issue_date: UtcDatetime | None = None
    due_date: UtcDatetime | None = None
    notes: str | None = None
    client_id: int | None = None
    items: list[InvoiceItemIn] | None = Field(default=None, min_length=1)


class InvoiceItemOut(OutModel):
    id: int
    description: str
    quantity: int
    unit_price: float
    total: float


class InvoiceClientOut(OutModel):
    id: int
    name: str
    email: str | None


class InvoiceOut(OutModel):
    id: int
    company_id: int
    client_id: int | None
    invoice_number: str
    status: str
    total: float
    issue_date: datetime
    due_date: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
    client: InvoiceClientOut | None
    items: list[InvoiceItemOut]
