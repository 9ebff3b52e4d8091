from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime


class PayrollIn(ApiModel):
    user_id: int
    period: str = Field(min_length=1)
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    gross_pay: float = Field(ge=0)
    net_pay: float = Field(ge=0)
    taxes: float = Field(ge=0)
    deductions: float | None = Field(default=None, ge=0)
    additions: float | None = Field(default=None, ge=0)
    issue_date: UtcDatetime = Field(default_factory=datetime.utcnow)
    payment_date: UtcDatetime | None = None
    reference: str | None = None
    details: dict[str, Any] | None = None
    notes: str | None = None


class PayrollUpdateIn(ApiModel):
    period: str | None = Field(default=None, min_length=1)
    year: int | None = Field(default=None, ge=2000, le=2100)
    month: int | None = Field(default=None, ge=1, le=12)
    gross_pay: float | None = Field(default=None, ge=0)
    net_pay: float | None = Field(default=None, ge=0)
    taxes: float | None = Field(default=None, ge=0)
    deductions: float | None = Field(default=None, ge=0)
    additions: float | None = Field(default=None, ge=0)
    issue_date: UtcDatetime | None = None
    payment_date: UtcDatetime | None = None
    reference: str | None = None
    details: dict[str, Any] | None = None
    notes: str | None = None


class PayrollUserOut(OutModel):
    id: int
    name: str | None
    email: str
    company_id: int | None


class PayrollOut(OutModel):
    id: int
    user_id: int
    period: str
    year: int
    month: int
    gross_pay: float
    net_pay: float
    taxes: float
    deductions: float | None
    additions: float | None
    issue_date: datetime
    payment_date: datetime | None
    reference: str | None
    details: dict[str, Any] | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
    user: PayrollUserOut
