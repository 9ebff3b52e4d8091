from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from werkzeug.security import generate_password_hash

from app.gestio.audit import log_action
from app.gestio.constants import ROLE_SUPER_ADMIN
from app.gestio.errors import AccessDenied, BadRequest, Conflict
from app.gestio.models import Company, User
from app.gestio.rbac import is_admin, is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.accounts.schemas import CompanyIn, UserCreateIn, UserUpdateIn


def create_company(s: "Session", payload: "CompanyIn", actor: User) -> Company:
    now = datetime.utcnow()
    company = Company(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        created_at=now,
        updated_at=now,
    )
    s.add(company)
    s.flush()
    log_action(s, actor, "CREATE", "COMPANY", company.id, {"name": company.name})
    return company


def create_user(s: "Session", payload: "UserCreateIn", actor: User, company_id: int | None) -> User:
    if payload.role == ROLE_SUPER_ADMIN and not is_super_admin(actor):
        raise AccessDenied("Only a super administrator can create super administrators")
    email = str(payload.email).lower()
    if s.query(User.id).filter(User.email == email).first() is not None:
        raise Conflict("A user with this email already exists")
    user = User(
        email=email,
        name=payload.name,
        password_hash=generate_password_hash(payload.password),
        role=payload.role,
        company_id=company_id,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    s.add(user)
    s.flush()
    log_action(s, actor, "CREATE", "USER", user.id, {"email": user.email, "role": user.role})
    return user


def update_user(s: "Session", user: User, payload: "UserUpdateIn", actor: User) -> User:
    changes: dict[str, dict] = {}
    data = payload.model_dump(exclude_unset=True)

    if ("role" in data or "is_active" in data) and not is_admin(actor):
        raise AccessDenied("Only administrators can change roles or activation")
    if data.get("role") == ROLE_SUPER_ADMIN and not is_super_admin(actor):
        raise AccessDenied("Only a super administrator can grant that role")

    for field in ("name", "role", "is_active"):
        if field in data and data[field] is not None and data[field] != getattr(user, field):
            changes[field] = {"old": getattr(user, field), "new": data[field]}
            setattr(user, field, data[field])

    if data.get("password"):
        user.password_hash = generate_password_hash(data["password"])
        changes["password"] = {"old": "***", "new": "***"}

    log_action(s, actor, "UPDATE", "USER", user.id, {"changes": changes})
    return user


def delete_user(s: "Session", user: User, actor: User) -> None:
    if user.id == actor.id:
        raise BadRequest("You cannot delete your own account")
    if user.role == ROLE_SUPER_ADMIN and not is_super_admin(actor):
        raise AccessDenied("Only a super administrator can delete super administrators")
    s.delete(user)
    log_action(s, actor, "DELETE", "USER", user.id, {"email": user.email, "role": user.role})
