from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

ActivityType = Literal["CALL", "EMAIL", "MEETING", "TASK", "NOTE"]
ActivityStatus = Literal["PLANNED", "IN_PROGRESS", "COMPLETED", "CANCELLED"]


class ContactIn(ApiModel):
    email: EmailStr
    name: str | None = None
    phone: str | None = None
    company_id: int
    mailing_list_id: int | None = None


class MailingListSummaryOut(OutModel):
    id: int
    name: str


class ContactOut(OutModel):
    id: int
    company_id: int
    mailing_list_id: int | None
    email: str
    name: str | None
    phone: str | None
    created_at: datetime
    mailing_list: MailingListSummaryOut | None


class MailingListIn(ApiModel):
    name: str = Field(min_length=2)
    description: str | None = None
    company_id: int


class MailingListUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    description: str | None = None


class MailingListOut(OutModel):
    id: int
    company_id: int
    name: str
    description: str | None
    created_at: datetime
    updated_at: datetime


class ActivityIn(ApiModel):
    type: ActivityType
    subject: str = Field(min_length=2)
    description: str | None = None
    status: ActivityStatus = "PLANNED"
    scheduled_at: UtcDatetime | None = None
    completed_at: UtcDatetime | None = None
    client_id: int | None = None
    contact_id: int | None = None
    company_id: int | None = None


class ActivityOut(OutModel):
    id: int
    company_id: int
    user_id: int | None
    client_id: int | None
    contact_id: int | None
    type: str
    subject: str
    description: str | None
    status: str
    scheduled_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
