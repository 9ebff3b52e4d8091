from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

ContractStatus = Literal["DRAFT", "SENT", "SIGNED", "CANCELLED"]


class ContractIn(ApiModel):
    title: str = Field(min_length=2, max_length=255)
    content: str | None = None
    project_id: int
    status: ContractStatus = "DRAFT"
    document: str | None = Field(default=None, max_length=1024)
    signed_at: UtcDatetime | None = None


class ContractUpdateIn(ApiModel):
    title: str | None = Field(default=None, min_length=2, max_length=255)
    content: str | None = None
    status: ContractStatus | None = None
    document: str | None = Field(default=None, max_length=1024)
    signed_at: UtcDatetime | None = None


class ProjectSummaryOut(OutModel):
    id: int
    name: str
    company_id: int


class ContractOut(OutModel):
    id: int
    project_id: int
    title: str
    content: str | None
    status: str
    document: str | None
    signed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    project: ProjectSummaryOut
