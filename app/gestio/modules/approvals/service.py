from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.constants import ROLE_COMPANY_ADMIN
from app.gestio.errors import AccessDenied, BadRequest, NotFound
from app.gestio.models import User
from app.gestio.modules.absences.models import Absence
from app.gestio.modules.approvals.models import ApprovalRequest
from app.gestio.rbac import is_admin, is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.approvals.schemas import ApprovalRequestIn, ApprovalRequestUpdateIn


def _same_company_admin(user: User, req: ApprovalRequest, *, company_admin_only: bool = False) -> bool:
    if company_admin_only and user.role != ROLE_COMPANY_ADMIN:
        return False
    if not is_admin(user) or user.company_id is None:
        return False
    return user.company_id in (req.requester.company_id, req.approver.company_id)


def can_view(user: User, req: ApprovalRequest) -> bool:
    return (
        is_super_admin(user)
        or user.id in (req.requester_id, req.approver_id)
        or _same_company_admin(user, req)
    )


def can_decide(user: User, req: ApprovalRequest) -> bool:
    return (
        is_super_admin(user)
        or user.id == req.approver_id
        or _same_company_admin(user, req, company_admin_only=True)
    )


def can_withdraw(user: User, req: ApprovalRequest) -> bool:
    return is_super_admin(user) or user.id == req.requester_id or _same_company_admin(user, req)


def create_request(s: "Session", payload: "ApprovalRequestIn", requester: User) -> ApprovalRequest:
    approver = s.get(User, payload.approver_id)
    if approver is None:
        raise NotFound("Approver not found")
    if not is_super_admin(requester) and approver.company_id != requester.company_id:
        raise AccessDenied("The approver must belong to your company")

    now = datetime.utcnow()
    req = ApprovalRequest(
        requester_id=requester.id,
        approver_id=approver.id,
        request_type=payload.request_type,
        request_data=payload.request_data,
        comments=payload.comments,
        status="PENDING",
        created_at=now,
        updated_at=now,
    )
    s.add(req)
    s.flush()
    log_action(
        s,
        requester,
        "CREATE",
        "APPROVAL_REQUEST",
        req.id,
        {"requestType": req.request_type, "approverId": approver.id},
    )
    return req


def decide_request(s: "Session", req: ApprovalRequest, payload: "ApprovalRequestUpdateIn", user: User) -> ApprovalRequest:
    previous = req.status
    req.status = payload.status
    if "comments" in payload.model_fields_set:
        req.comments = payload.comments
    req.updated_at = datetime.utcnow()
    # A decided leave request settles the absence it was opened for.
    if req.request_type == "ABSENCE":
        absence = s.query(Absence).filter(Absence.approval_request_id == req.id).one_or_none()
        if absence is not None and absence.status == "PENDING":
            absence.status = req.status
            absence.updated_at = req.updated_at
    log_action(
        s,
        user,
        "UPDATE",
        "APPROVAL_REQUEST",
        req.id,
        {"previousStatus": previous, "newStatus": req.status},
    )
    return req


def delete_request(s: "Session", req: ApprovalRequest, user: User) -> None:
    if req.status != "PENDING":
        raise BadRequest("Only pending requests can be deleted")
    s.delete(req)
    log_action(s, user, "DELETE", "APPROVAL_REQUEST", req.id, {"requestType": req.request_type})
