from __future__ import annotations

from flask import Blueprint

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AuthenticationRequired, NotFound
from app.gestio.models import Company, User
from app.gestio.modules.accounts.schemas import (
    CheckPermissionIn,
    CompanyIn,
    CompanyOut,
    UserCreateIn,
    UserOut,
    UserUpdateIn,
)
from app.gestio.modules.accounts.service import create_company, create_user, delete_user, update_user
from app.gestio.rbac import (
    apply_company_scope,
    current_user,
    ensure_same_company,
    is_super_admin,
    require_permission,
    resolve_company,
    user_has_permission,
)
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("accounts", __name__)


@bp.get("/companies")
@require_permission(READ, "COMPANY")
def companies_list():
    user = current_user()
    s = db_session()
    q = s.query(Company)
    if not is_super_admin(user):
        q = q.filter(Company.id == user.company_id)
    search = arg_str("search")
    if search:
        q = q.filter(Company.name.ilike(like(search)))
    rows, pagination = paginate(q.order_by(Company.name.asc()), page_request())
    return envelope("items", dump_many(CompanyOut, rows), pagination)


@bp.post("/companies")
@require_permission(CREATE, "COMPANY")
def companies_create():
    payload = parse_body(CompanyIn)
    s = db_session()
    company = create_company(s, payload, current_user())
    s.commit()
    return dump(CompanyOut, company), 201


@bp.get("/companies/<int:company_id>")
@require_permission(READ, "COMPANY")
def companies_detail(company_id: int):
    s = db_session()
    company = s.get(Company, company_id)
    if not company:
        raise NotFound("Company not found")
    ensure_same_company(current_user(), company.id)
    return dump(CompanyOut, company)


@bp.get("/companies/<int:company_id>/users")
@require_permission(READ, "USER")
def companies_users(company_id: int):
    s = db_session()
    company = s.get(Company, company_id)
    if not company:
        raise NotFound("Company not found")
    ensure_same_company(current_user(), company.id)
    return _users_page(s.query(User).filter(User.company_id == company.id))


def _users_page(q):
    role = arg_str("role")
    if role:
        q = q.filter(User.role == role)
    search = arg_str("search")
    if search:
        q = q.filter(User.email.ilike(like(search)) | User.name.ilike(like(search)))
    rows, pagination = paginate(q.order_by(User.created_at.desc()), page_request())
    return envelope("items", dump_many(UserOut, rows), pagination)


@bp.get("/users")
@require_permission(READ, "USER")
def users_list():
    s = db_session()
    return _users_page(apply_company_scope(s.query(User), User.company_id, current_user(), arg_int("companyId")))


@bp.post("/users")
@require_permission(CREATE, "USER")
def users_create():
    user = current_user()
    payload = parse_body(UserCreateIn)
    s = db_session()
    company_id = None
    if payload.company_id is not None or not is_super_admin(user):
        company_id = resolve_company(s, user, payload.company_id).id
    created = create_user(s, payload, user, company_id)
    s.commit()
    return dump(UserOut, created), 201


@bp.get("/users/<int:user_id>")
@require_permission(READ, "USER", allow_self=True, id_arg="user_id")
def users_detail(user_id: int):
    user = current_user()
    s = db_session()
    target = s.get(User, user_id)
    if not target:
        raise NotFound("User not found")
    if target.id != user.id:
        ensure_same_company(user, target.company_id)
    return dump(UserOut, target)


@bp.patch("/users/<int:user_id>")
@require_permission(UPDATE, "USER", allow_self=True, id_arg="user_id")
def users_update(user_id: int):
    user = current_user()
    payload = parse_body(UserUpdateIn)
    s = db_session()
    target = s.get(User, user_id)
    if not target:
        raise NotFound("User not found")
    if target.id != user.id:
        ensure_same_company(user, target.company_id)
    update_user(s, target, payload, user)
    s.commit()
    return dump(UserOut, target)


@bp.delete("/users/<int:user_id>")
@require_permission(DELETE, "USER")
def users_delete(user_id: int):
    user = current_user()
    s = db_session()
    target = s.get(User, user_id)
    if not target:
        raise NotFound("User not found")
    ensure_same_company(user, target.company_id)
    delete_user(s, target, user)
    s.commit()
    return "", 204


@bp.post("/users/check-permission")
def users_check_permission():
    user = current_user()
    if not user:
        raise AuthenticationRequired()
    payload = parse_body(CheckPermissionIn)
    s = db_session()
    target = s.get(User, payload.user_id) if payload.user_id is not None else user
    if not target:
        raise NotFound("User not found")
    return {"hasPermission": user_has_permission(target, payload.action, payload.resource_type)}
