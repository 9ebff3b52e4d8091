from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

ProjectStatus = Literal["PENDING_VALIDATION", "IN_PROGRESS", "COMPLETED", "PUBLISHED", "FUTURE", "PERSONAL"]
PaymentType = Literal["CLIENT", "PRESTATAIRE", "SUBSCRIPTION", "OTHER"]
PaymentMethod = Literal["BANK_TRANSFER", "CARD", "CASH", "CHECK", "OTHER"]
PaymentStatus = Literal["PENDING", "PARTIAL", "COMPLETE", "REFUNDED", "CANCELLED"]


class ProjectIn(ApiModel):
    name: str = Field(min_length=2)
    description: str | None = None
    status: ProjectStatus = "PENDING_VALIDATION"
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    total_price: float | None = None
    currency: str = "XOF"
    is_fixed_price: bool = True
    client_id: int | None = None
    company_id: int | None = None


class ProjectUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    description: str | None = None
    status: ProjectStatus | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    total_price: float | None = None
    currency: str | None = None
    is_fixed_price: bool | None = None
    client_id: int | None = None


class ProjectOut(OutModel):
    id: int
    company_id: int
    client_id: int | None
    owner_user_id: int | None
    name: str
    description: str | None
    status: str
    start_date: datetime | None
    end_date: datetime | None
    total_price: float | None
    currency: str
    is_fixed_price: bool
    created_at: datetime
    updated_at: datetime


class PaymentIn(ApiModel):
    payment_type: PaymentType
    amount: float = Field(gt=0)
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    description: str | None = None
    payment_method: PaymentMethod = "BANK_TRANSFER"
    status: PaymentStatus = "PENDING"
    reference: str | None = None
    is_partial: bool = False
    part_number: int | None = Field(default=None, ge=1)
    total_parts: int | None = Field(default=None, ge=1)
    project_id: int | None = None
    client_id: int | None = None
    payee: str | None = None

    @model_validator(mode="after")
    def _check_type_and_parts(self) -> "PaymentIn":
        if self.payment_type == "CLIENT" and self.client_id is None:
            raise ValueError("clientId is required for CLIENT payments")
        if self.payment_type == "PRESTATAIRE" and not self.payee:
            raise ValueError("payee is required for PRESTATAIRE payments")
        if self.is_partial:
            if not self.part_number or not self.total_parts:
                raise ValueError("partNumber and totalParts are required for partial payments")
            if self.part_number > self.total_parts:
                raise ValueError("partNumber cannot exceed totalParts")
        return self


class PaymentUpdateIn(ApiModel):
    amount: float | None = Field(default=None, gt=0)
    date: UtcDatetime | None = None
    description: str | None = None
    payment_method: PaymentMethod | None = None
    status: PaymentStatus | None = None
    reference: str | None = None
    is_partial: bool | None = None
    part_number: int | None = Field(default=None, ge=1)
    total_parts: int | None = Field(default=None, ge=1)


class PaymentOut(OutModel):
    id: int
    company_id: int
    project_id: int | None
    client_id: int | None
    payment_type: str
    amount: float
    date: datetime
    description: str | None
    payment_method: str
    status: str
    reference: str | None
    is_partial: bool
    part_number: int | None
    total_parts: int | None
    payee: str | None
    created_at: datetime
