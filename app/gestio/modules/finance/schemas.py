from __future__ import annotations

from datetime import datetime

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime


class FinancialStatementIn(ApiModel):
    company_id: int
    period_start: UtcDatetime
    period_end: UtcDatetime
    revenue: float | None = None
    expenses: float | None = None
    profit: float | None = None
    generate_automatically: bool = False


class FinancialStatementUpdateIn(ApiModel):
    period_start: UtcDatetime | None = None
    period_end: UtcDatetime | None = None
    revenue: float | None = None
    expenses: float | None = None


class CompanySummaryOut(OutModel):
    id: int
    name: str


class FinancialStatementOut(OutModel):
    id: int
    company_id: int
    period_start: datetime
    period_end: datetime
    revenue: float
    expenses: float
    profit: float
    created_at: datetime
    updated_at: datetime
    company: CompanySummaryOut
