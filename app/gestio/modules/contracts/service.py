from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, NotFound
from app.gestio.modules.contracts.models import Contract
from app.gestio.modules.projects.models import Project
from app.gestio.rbac import ensure_same_company

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.contracts.schemas import ContractIn, ContractUpdateIn


def create_contract(s: "Session", payload: "ContractIn", user: "User") -> Contract:
    project = s.get(Project, payload.project_id)
    if project is None:
        raise NotFound("Project not found")
    ensure_same_company(user, project.company_id, "You cannot add contracts to another company's project")

    now = datetime.utcnow()
    contract = Contract(**payload.model_dump(), created_at=now, updated_at=now)
    if contract.status == "SIGNED" and contract.signed_at is None:
        contract.signed_at = now
    s.add(contract)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "CONTRACT",
        contract.id,
        {"title": contract.title, "projectId": project.id, "status": contract.status},
    )
    return contract


def update_contract(s: "Session", contract: Contract, payload: "ContractUpdateIn", user: "User") -> Contract:
    data = payload.model_dump(exclude_unset=True)
    for required in ("title", "status"):
        if data.get(required) is None:
            data.pop(required, None)
    if data.get("status") == "SIGNED" and contract.status != "SIGNED" and data.get("signed_at") is None:
        data["signed_at"] = datetime.utcnow()

    changes = {}
    for field, value in data.items():
        if value != getattr(contract, field):
            changes[field] = {"old": getattr(contract, field), "new": value}
            setattr(contract, field, value)
    contract.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "CONTRACT", contract.id, {"changes": changes})
    return contract


def delete_contract(s: "Session", contract: Contract, user: "User") -> None:
    if contract.status == "SIGNED":
        raise BadRequest("A signed contract cannot be deleted")
    s.delete(contract)
    log_action(s, user, "DELETE", "CONTRACT", contract.id, {"title": contract.title, "projectId": contract.project_id})
