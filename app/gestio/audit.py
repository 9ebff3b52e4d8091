import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.gestio.models import AuditEvent, User

logger = logging.getLogger(__name__)


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
    company_id: int | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        company_id=company_id if company_id is not None else (actor.company_id if actor else None),
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def log_action(
    s: Session,
    actor: User | None,
    action: str,
    resource: str,
    resource_id: Any = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent | None:
    """
    Audit a business action inside a savepoint of the caller's transaction.

    The row commits together with the change it describes. A failing audit
    write is logged and rolled back to the savepoint so the change itself
    still goes through.
    """
    s.flush()
    try:
        with s.begin_nested():
            return record_event(
                s,
                actor=actor,
                action=action,
                entity_type=resource,
                entity_id=str(resource_id) if resource_id is not None else None,
                metadata=details,
            )
    except Exception:
        logger.exception("Audit write failed for %s %s %s", action, resource, resource_id)
        return None
