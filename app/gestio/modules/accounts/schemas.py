from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field, field_validator

from app.gestio.constants import RESOURCES
from app.gestio.schemas import ApiModel, OutModel

RoleName = Literal["SUPER_ADMIN", "COMPANY_ADMIN", "MANAGER", "EMPLOYEE", "USER"]
ActionName = Literal["CREATE", "READ", "UPDATE", "DELETE"]


class LoginIn(ApiModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class CompanyIn(ApiModel):
    name: str = Field(min_length=2)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None


class CompanyOut(OutModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    address: str | None
    created_at: datetime


class UserOut(OutModel):
    id: int
    email: str
    name: str | None
    role: str
    company_id: int | None
    is_active: bool
    created_at: datetime


class UserCreateIn(ApiModel):
    email: EmailStr
    name: str | None = Field(default=None, min_length=2)
    password: str = Field(min_length=8)
    role: RoleName = "EMPLOYEE"
    company_id: int | None = None


class UserUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    password: str | None = Field(default=None, min_length=8)
    role: RoleName | None = None
    is_active: bool | None = None


class CheckPermissionIn(ApiModel):
    user_id: int | None = None
    action: ActionName
    resource_type: str

    @field_validator("resource_type")
    @classmethod
    def _known_resource(cls, v: str) -> str:
        if v not in RESOURCES:
            raise ValueError(f"Unknown resource type: {v}")
        return v
