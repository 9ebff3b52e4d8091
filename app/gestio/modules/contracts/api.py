from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.contracts.models import Contract
from app.gestio.modules.contracts.schemas import ContractIn, ContractOut, ContractUpdateIn
from app.gestio.modules.contracts.service import create_contract, delete_contract, update_contract
from app.gestio.modules.projects.models import Project
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("contracts", __name__)


def _get_contract(s, contract_id: int) -> Contract:
    contract = s.get(Contract, contract_id)
    if not contract:
        raise NotFound("Contract not found")
    ensure_same_company(current_user(), contract.project.company_id)
    return contract


@bp.get("/contracts")
@require_permission(READ, "CONTRACT")
def contracts_list():
    s = db_session()
    q = s.query(Contract).join(Project, Contract.project_id == Project.id)
    q = apply_company_scope(q, Project.company_id, current_user(), arg_int("companyId"))
    project_id = arg_int("projectId")
    if project_id is not None:
        q = q.filter(Contract.project_id == project_id)
    status = arg_str("status")
    if status:
        q = q.filter(Contract.status == status)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Contract.title.ilike(term), Contract.content.ilike(term)))
    rows, pagination = paginate(q.order_by(Contract.created_at.desc(), Contract.id.desc()), page_request())
    return envelope("items", dump_many(ContractOut, rows), pagination)


@bp.post("/contracts")
@require_permission(CREATE, "CONTRACT")
def contracts_create():
    payload = parse_body(ContractIn)
    s = db_session()
    contract = create_contract(s, payload, current_user())
    s.commit()
    return dump(ContractOut, contract), 201


@bp.get("/contracts/<int:contract_id>")
@require_permission(READ, "CONTRACT")
def contracts_detail(contract_id: int):
    s = db_session()
    return dump(ContractOut, _get_contract(s, contract_id))


@bp.patch("/contracts/<int:contract_id>")
@require_permission(UPDATE, "CONTRACT")
def contracts_update(contract_id: int):
    payload = parse_body(ContractUpdateIn)
    s = db_session()
    contract = _get_contract(s, contract_id)
    update_contract(s, contract, payload, current_user())
    s.commit()
    return dump(ContractOut, contract)


@bp.delete("/contracts/<int:contract_id>")
@require_permission(DELETE, "CONTRACT")
def contracts_delete(contract_id: int):
    s = db_session()
    contract = _get_contract(s, contract_id)
    delete_contract(s, contract, current_user())
    s.commit()
    return {"message": "Contract deleted"}
