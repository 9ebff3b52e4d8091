from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from app.gestio.schemas import ApiModel, OutModel

ApprovalStatus = Literal["PENDING", "APPROVED", "REJECTED"]


class ApprovalRequestIn(ApiModel):
    request_type: str = Field(min_length=1, max_length=128)
    approver_id: int
    request_data: dict[str, Any] | None = None
    comments: str | None = None


class ApprovalRequestUpdateIn(ApiModel):
    status: ApprovalStatus
    comments: str | None = None


class UserSummaryOut(OutModel):
    id: int
    name: str | None
    email: str


class ApprovalRequestOut(OutModel):
    id: int
    requester_id: int
    approver_id: int
    request_type: str
    request_data: dict[str, Any] | None
    status: str
    comments: str | None
    created_at: datetime
    updated_at: datetime
    requester: UserSummaryOut
    approver: UserSummaryOut
