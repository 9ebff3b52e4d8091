from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from app.gestio.modules.approvals.schemas import UserSummaryOut
from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

AbsenceStatus = Literal["PENDING", "APPROVED", "REJECTED"]


class AbsenceIn(ApiModel):
    start_date: UtcDatetime
    end_date: UtcDatetime
    type: str = Field(min_length=1, max_length=64)
    reason: str | None = Field(default=None, min_length=3)
    status: AbsenceStatus = "PENDING"
    user_id: int | None = None
    needs_approval: bool = True
    approver_id: int | None = None

    @model_validator(mode="after")
    def _check_dates(self) -> "AbsenceIn":
        if self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class AbsenceUpdateIn(ApiModel):
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    type: str | None = Field(default=None, min_length=1, max_length=64)
    reason: str | None = Field(default=None, min_length=3)
    status: AbsenceStatus | None = None


class ApprovalSummaryOut(OutModel):
    id: int
    approver_id: int
    status: str


class AbsenceOut(OutModel):
    id: int
    user_id: int
    company_id: int | None
    start_date: datetime
    end_date: datetime
    type: str
    reason: str | None
    status: str
    approval_request_id: int | None
    created_at: datetime
    updated_at: datetime
    user: UserSummaryOut
    approval_request: ApprovalSummaryOut | None
