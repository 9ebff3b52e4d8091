from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, BadRequest, NotFound
from app.gestio.models import User
from app.gestio.modules.absences.models import Absence
from app.gestio.modules.approvals.models import ApprovalRequest
from app.gestio.rbac import ensure_same_company, is_admin, is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.absences.schemas import AbsenceIn, AbsenceUpdateIn


def manages(user: User, absence: Absence) -> bool:
    """Administrators of the absent user's company (or any super admin)."""
    if is_super_admin(user):
        return True
    return is_admin(user) and user.company_id is not None and absence.company_id == user.company_id


def is_approver(user: User, absence: Absence) -> bool:
    req = absence.approval_request
    return req is not None and req.approver_id == user.id


def can_view(user: User, absence: Absence) -> bool:
    return user.id == absence.user_id or manages(user, absence) or is_approver(user, absence)


def _target_user(s: "Session", payload: "AbsenceIn", actor: User) -> User:
    if payload.user_id is None or payload.user_id == actor.id:
        return actor
    if not is_admin(actor):
        raise AccessDenied("Only administrators can record absences for other users")
    target = s.get(User, payload.user_id)
    if target is None:
        raise NotFound("User not found")
    ensure_same_company(actor, target.company_id, "You cannot record absences for another company")
    return target


def _request_data(absence: Absence) -> dict:
    return {
        "absenceId": absence.id,
        "type": absence.type,
        "startDate": absence.start_date.isoformat(),
        "endDate": absence.end_date.isoformat(),
        "reason": absence.reason,
    }


def create_absence(s: "Session", payload: "AbsenceIn", actor: User) -> Absence:
    """
    Record an absence for the caller (or, for admins, another user).

    With needsApproval and an approverId, a PENDING approval request is
    opened for the absent user and linked to the absence.
    """
    target = _target_user(s, payload, actor)
    if payload.status != "PENDING" and not is_admin(actor):
        raise AccessDenied("Only administrators can record an already decided absence")

    approver = None
    if payload.needs_approval and payload.approver_id is not None:
        approver = s.get(User, payload.approver_id)
        if approver is None:
            raise NotFound("Approver not found")
        if not is_super_admin(actor) and approver.company_id != target.company_id:
            raise AccessDenied("The approver must belong to the same company")

    now = datetime.utcnow()
    absence = Absence(
        user_id=target.id,
        company_id=target.company_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        type=payload.type,
        reason=payload.reason,
        status=payload.status,
        created_at=now,
        updated_at=now,
    )
    s.add(absence)
    s.flush()

    if approver is not None:
        req = ApprovalRequest(
            requester_id=target.id,
            approver_id=approver.id,
            request_type="ABSENCE",
            request_data=_request_data(absence),
            status="PENDING",
            created_at=now,
            updated_at=now,
        )
        s.add(req)
        s.flush()
        absence.approval_request = req
        log_action(s, actor, "CREATE", "APPROVAL_REQUEST", req.id, {"requestType": "ABSENCE", "approverId": approver.id})

    log_action(
        s,
        actor,
        "CREATE",
        "ABSENCE",
        absence.id,
        {"userId": target.id, "type": absence.type, "startDate": absence.start_date, "endDate": absence.end_date},
    )
    return absence


def update_absence(s: "Session", absence: Absence, payload: "AbsenceUpdateIn", actor: User) -> Absence:
    data = payload.model_dump(exclude_unset=True)
    as_admin = manages(actor, absence)
    if not as_admin:
        if absence.status != "PENDING":
            raise AccessDenied("Only pending absences can be changed")
        if actor.id != absence.user_id:
            # Approvers who are neither the owner nor an admin only decide.
            forbidden = sorted(set(data) - {"status"})
            if forbidden:
                raise AccessDenied("Approvers may only change the status", details={"fields": forbidden})
    for field in ("start_date", "end_date", "type", "status"):
        if field in data and data[field] is None:
            raise BadRequest(f"'{field}' cannot be null")

    status_changed = "status" in data and data["status"] != absence.status
    if status_changed and not as_admin and not is_approver(actor, absence):
        raise AccessDenied("Only the approver or an administrator can change the status")

    start = data.get("start_date", absence.start_date)
    end = data.get("end_date", absence.end_date)
    if start > end:
        raise BadRequest("startDate must not be after endDate")

    changes = {}
    for field, value in data.items():
        old = getattr(absence, field)
        if value != old:
            changes[field] = {"old": old, "new": value}
            setattr(absence, field, value)
    absence.updated_at = datetime.utcnow()

    req = absence.approval_request
    if status_changed and req is not None and req.status == "PENDING":
        req.status = absence.status
        req.updated_at = absence.updated_at
        log_action(s, actor, "UPDATE", "APPROVAL_REQUEST", req.id, {"previousStatus": "PENDING", "newStatus": req.status})
    elif req is not None and req.status == "PENDING" and changes:
        req.request_data = _request_data(absence)

    log_action(s, actor, "UPDATE", "ABSENCE", absence.id, {"changes": changes})
    return absence


def delete_absence(s: "Session", absence: Absence, actor: User) -> None:
    if not manages(actor, absence) and absence.status != "PENDING":
        raise AccessDenied("Only pending absences can be deleted")
    req = absence.approval_request
    s.delete(absence)
    if req is not None:
        s.delete(req)
    log_action(
        s,
        actor,
        "DELETE",
        "ABSENCE",
        absence.id,
        {"userId": absence.user_id, "approvalRequestDeleted": req is not None},
    )
