from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, Conflict
from app.gestio.modules.clients.models import Client

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.clients.schemas import ClientIn, ClientUpdateIn


def _ensure_unique_email(s: "Session", company_id: int, email: str | None, exclude_id: int | None = None) -> None:
    if not email:
        return
    q = s.query(Client.id).filter(Client.company_id == company_id, func.lower(Client.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(Client.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A client with this email already exists in this company")


def relation_counts(s: "Session", client_ids: list[int]) -> dict[int, dict[str, int]]:
    """Project and invoice counts per client, in two grouped queries."""
    from app.gestio.modules.invoices.models import Invoice
    from app.gestio.modules.projects.models import Project

    counts = {cid: {"projects": 0, "invoices": 0} for cid in client_ids}
    if not client_ids:
        return counts
    for cid, n in (
        s.query(Project.client_id, func.count(Project.id)).filter(Project.client_id.in_(client_ids)).group_by(Project.client_id)
    ):
        counts[cid]["projects"] = n
    for cid, n in (
        s.query(Invoice.client_id, func.count(Invoice.id)).filter(Invoice.client_id.in_(client_ids)).group_by(Invoice.client_id)
    ):
        counts[cid]["invoices"] = n
    return counts


def create_client(s: "Session", payload: "ClientIn", company_id: int, user: "User") -> Client:
    email = str(payload.email).lower() if payload.email else None
    _ensure_unique_email(s, company_id, email)
    now = datetime.utcnow()
    client = Client(
        company_id=company_id,
        name=payload.name,
        email=email,
        phone=payload.phone,
        logo=payload.logo,
        notes=payload.notes,
        created_at=now,
        updated_at=now,
    )
    s.add(client)
    s.flush()
    log_action(s, user, "CREATE", "CLIENT", client.id, {"name": client.name})
    return client


def update_client(s: "Session", client: Client, payload: "ClientUpdateIn", user: "User") -> Client:
    data = payload.model_dump(exclude_unset=True)
    if data.get("email"):
        data["email"] = str(data["email"]).lower()
        _ensure_unique_email(s, client.company_id, data["email"], exclude_id=client.id)

    changes = {}
    for field, value in data.items():
        if field == "name" and not value:
            continue
        if value != getattr(client, field):
            changes[field] = {"old": getattr(client, field), "new": value}
            setattr(client, field, value)
    client.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "CLIENT", client.id, {"changes": changes})
    return client


def delete_client(s: "Session", client: Client, user: "User") -> None:
    counts = relation_counts(s, [client.id])[client.id]
    if counts["projects"] or counts["invoices"]:
        raise BadRequest("This client cannot be deleted because it has related records", details=counts)
    s.delete(client)
    log_action(s, user, "DELETE", "CLIENT", client.id, {"name": client.name})
