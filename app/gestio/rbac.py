from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, request
from sqlalchemy.orm import Query, Session

from app.gestio.audit import record_event
from app.gestio.constants import (
    ACCESS_DENIED,
    ACTIONS,
    ADMIN_ROLES,
    CREATE,
    DEFAULT_ROLE_GRANTS,
    RESOURCES,
    ROLE_COMPANY_ADMIN,
    ROLE_NAMES,
    ROLE_SUPER_ADMIN,
    ROLES,
    permission_key,
)
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, AuthenticationRequired, BadRequest, NotFound
from app.gestio.models import Company, Permission, Role, User


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def is_super_admin(user: User | None) -> bool:
    return bool(user and user.role == ROLE_SUPER_ADMIN)


def is_admin(user: User | None) -> bool:
    return bool(user and user.role in ADMIN_ROLES)


def user_has_permission(user: User | None, action: str, resource: str) -> bool:
    if not user or not user.is_active:
        return False
    if user.role == ROLE_SUPER_ADMIN:
        return True
    role = user.role_ref
    if role is None:
        return False
    for perm in role.permissions:
        if perm.action == action and perm.resource == resource:
            return True
    return False


def check_permission(
    action: str,
    resource: str,
    *,
    allow_self: bool = False,
    resource_id: Any = None,
) -> User:
    """
    Allow/deny `action` on `resource` for the signed-in user.

    Returns the user when allowed. Raises 401 when nobody is signed in and
    403 (after writing an ACCESS_DENIED audit row) when the role lacks the grant.
    """
    user = current_user()
    if not user or not user.is_active:
        raise AuthenticationRequired()

    if user.role == ROLE_SUPER_ADMIN:
        return user

    target_id = int(resource_id) if resource_id is not None else None
    if allow_self and resource == "USER" and target_id == user.id:
        return user

    if user.role == ROLE_COMPANY_ADMIN and resource == "USER":
        if action == CREATE:
            return user
        if target_id is not None:
            target = db_session().get(User, target_id)
            if target is not None and target.company_id == user.company_id:
                return user

    if user_has_permission(user, action, resource):
        return user

    g.missing_permission = permission_key(action, resource)
    s = db_session()
    record_event(
        s,
        actor=user,
        action=ACCESS_DENIED,
        entity_type=resource,
        entity_id=str(target_id) if target_id is not None else None,
        metadata={"requestedAction": action, "requestUrl": request.url, "method": request.method},
    )
    s.commit()
    raise AccessDenied("You do not have permission to perform this action")


def require_permission(
    action: str,
    resource: str,
    *,
    allow_self: bool = False,
    id_arg: str | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            check_permission(
                action,
                resource,
                allow_self=allow_self,
                resource_id=kwargs.get(id_arg) if id_arg else None,
            )
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_admin(user: User, message: str = "Administrator access required") -> None:
    if not is_admin(user):
        raise AccessDenied(message)


def ensure_same_company(user: User, company_id: int | None, message: str = "Access to this company's data is not allowed") -> None:
    if is_super_admin(user):
        return
    if company_id is None or company_id != user.company_id:
        raise AccessDenied(message)


def apply_company_scope(q: Query, column: Any, user: User, requested: int | None = None) -> Query:
    """SUPER_ADMIN may filter by any company; everyone else sees their own."""
    if is_super_admin(user):
        return q.filter(column == requested) if requested is not None else q
    return q.filter(column == user.company_id)


def resolve_company(s: Session, user: User, requested: int | None) -> Company:
    """Pick the company a new record belongs to (explicit or the caller's)."""
    company_id = requested if requested is not None else user.company_id
    if company_id is None:
        raise BadRequest("companyId is required")
    if not is_super_admin(user) and company_id != user.company_id:
        raise AccessDenied("You cannot create records for another company")
    company = s.get(Company, company_id)
    if company is None:
        raise NotFound("Company not found")
    return company


def ensure_default_roles(s: Session) -> dict[str, Role]:
    """
    Create roles, permissions and default grants if missing (idempotent).
    Existing grants are never removed.
    """
    perms: dict[tuple[str, str], Permission] = {
        (p.action, p.resource): p for p in s.query(Permission).all()
    }
    for resource in RESOURCES:
        for action in ACTIONS:
            if (action, resource) not in perms:
                p = Permission(
                    key=permission_key(action, resource),
                    action=action,
                    resource=resource,
                    name=f"{resource.replace('_', ' ').title()}: {action.lower()}",
                )
                s.add(p)
                perms[(action, resource)] = p

    roles: dict[str, Role] = {r.key: r for r in s.query(Role).all()}
    for key in ROLES:
        role = roles.get(key)
        if role is None:
            role = Role(key=key, name=ROLE_NAMES[key])
            s.add(role)
            roles[key] = role
        granted = {(p.action, p.resource) for p in role.permissions}
        for pair in sorted(DEFAULT_ROLE_GRANTS.get(key, set()) - granted):
            role.permissions.append(perms[pair])
    s.flush()
    return roles
