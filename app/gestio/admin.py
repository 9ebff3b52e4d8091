"""Administrative read-only endpoints: the audit trail."""
from __future__ import annotations

import json
from datetime import datetime

from flask import Blueprint

from app.gestio.db import db_session
from app.gestio.models import AuditEvent
from app.gestio.rbac import apply_company_scope, current_user, require_admin, require_permission
from app.gestio.schemas import OutModel
from app.gestio.utils import arg_datetime, arg_int, arg_str, envelope, page_request, paginate

bp = Blueprint("admin", __name__)


class AuditEventOut(OutModel):
    id: int
    created_at: datetime
    request_id: str | None
    company_id: int | None
    actor_user_id: int | None
    actor_user_email: str | None
    action: str
    entity_type: str | None
    entity_id: str | None
    reason: str | None
    client_ip: str | None


def _serialize(ev: AuditEvent) -> dict:
    data = AuditEventOut.model_validate(ev).model_dump(by_alias=True, mode="json")
    # `userId` / `resource` / `resourceId` mirror the query-string filter names.
    data["userId"] = ev.actor_user_id
    data["resource"] = ev.entity_type
    data["resourceId"] = ev.entity_id
    data["details"] = json.loads(ev.metadata_json) if ev.metadata_json else None
    return data


@bp.get("/audit-logs")
@require_permission("READ", "AUDIT_LOG")
def audit_logs_list():
    user = current_user()
    require_admin(user)
    s = db_session()
    q = apply_company_scope(s.query(AuditEvent), AuditEvent.company_id, user, arg_int("companyId"))

    user_id = arg_int("userId")
    if user_id is not None:
        q = q.filter(AuditEvent.actor_user_id == user_id)
    action = arg_str("action")
    if action:
        q = q.filter(AuditEvent.action == action)
    resource = arg_str("resource")
    if resource:
        q = q.filter(AuditEvent.entity_type == resource)
    resource_id = arg_str("resourceId")
    if resource_id:
        q = q.filter(AuditEvent.entity_id == resource_id)
    start = arg_datetime("startDate")
    if start:
        q = q.filter(AuditEvent.created_at >= start)
    end = arg_datetime("endDate")
    if end:
        q = q.filter(AuditEvent.created_at <= end)

    rows, pagination = paginate(q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()), page_request(default_limit=50))
    return envelope("items", [_serialize(ev) for ev in rows], pagination)
