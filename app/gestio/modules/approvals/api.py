from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_
from sqlalchemy.orm import aliased

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.models import User
from app.gestio.modules.approvals.models import ApprovalRequest
from app.gestio.modules.approvals.schemas import ApprovalRequestIn, ApprovalRequestOut, ApprovalRequestUpdateIn
from app.gestio.modules.approvals.service import (
    can_decide,
    can_view,
    can_withdraw,
    create_request,
    decide_request,
    delete_request,
)
from app.gestio.rbac import current_user, is_admin, is_super_admin, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("approvals", __name__)


def _get_request(s, request_id: int) -> ApprovalRequest:
    req = s.get(ApprovalRequest, request_id)
    if not req:
        raise NotFound("Approval request not found")
    return req


@bp.get("/approval-requests")
@require_permission(READ, "APPROVAL_REQUEST")
def approvals_list():
    user = current_user()
    s = db_session()
    q = s.query(ApprovalRequest)

    if not is_admin(user):
        q = q.filter(or_(ApprovalRequest.requester_id == user.id, ApprovalRequest.approver_id == user.id))
    else:
        company_id = user.company_id if not is_super_admin(user) else arg_int("companyId")
        if company_id is not None:
            requester = aliased(User)
            approver = aliased(User)
            q = (
                q.join(requester, ApprovalRequest.requester_id == requester.id)
                .join(approver, ApprovalRequest.approver_id == approver.id)
                .filter(or_(requester.company_id == company_id, approver.company_id == company_id))
            )

    status = arg_str("status")
    if status:
        q = q.filter(ApprovalRequest.status == status)
    request_type = arg_str("requestType")
    if request_type:
        q = q.filter(ApprovalRequest.request_type == request_type)
    for arg, column in (("requesterId", ApprovalRequest.requester_id), ("approverId", ApprovalRequest.approver_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    search = arg_str("search")
    if search:
        q = q.filter(ApprovalRequest.request_type.ilike(like(search)))

    rows, pagination = paginate(q.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()), page_request())
    return envelope("items", dump_many(ApprovalRequestOut, rows), pagination)


@bp.post("/approval-requests")
@require_permission(CREATE, "APPROVAL_REQUEST")
def approvals_create():
    payload = parse_body(ApprovalRequestIn)
    s = db_session()
    req = create_request(s, payload, current_user())
    s.commit()
    return dump(ApprovalRequestOut, req), 201


@bp.get("/approval-requests/<int:request_id>")
@require_permission(READ, "APPROVAL_REQUEST")
def approvals_detail(request_id: int):
    s = db_session()
    req = _get_request(s, request_id)
    if not can_view(current_user(), req):
        raise AccessDenied("You cannot view this approval request")
    return dump(ApprovalRequestOut, req)


@bp.patch("/approval-requests/<int:request_id>")
@require_permission(UPDATE, "APPROVAL_REQUEST")
def approvals_update(request_id: int):
    user = current_user()
    payload = parse_body(ApprovalRequestUpdateIn)
    s = db_session()
    req = _get_request(s, request_id)
    if not can_decide(user, req):
        raise AccessDenied("Only the approver or an administrator can decide on this request")
    decide_request(s, req, payload, user)
    s.commit()
    return dump(ApprovalRequestOut, req)


@bp.delete("/approval-requests/<int:request_id>")
@require_permission(DELETE, "APPROVAL_REQUEST")
def approvals_delete(request_id: int):
    user = current_user()
    s = db_session()
    req = _get_request(s, request_id)
    if not can_withdraw(user, req):
        raise AccessDenied("You cannot delete this approval request")
    delete_request(s, req, user)
    s.commit()
    return {"message": "Approval request deleted"}
