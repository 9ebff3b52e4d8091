from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field

from app.gestio.schemas import ApiModel, OutModel


class ClientIn(ApiModel):
    name: str = Field(min_length=2)
    email: EmailStr | None = None
    phone: str | None = None
    logo: str | None = None
    notes: str | None = None
    company_id: int | None = None


class ClientUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    email: EmailStr | None = None
    phone: str | None = None
    logo: str | None = None
    notes: str | None = None


class ClientOut(OutModel):
    id: int
    company_id: int
    name: str
    email: str | None
    phone: str | None
    logo: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
