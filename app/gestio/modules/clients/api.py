from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.clients.models import Client
from app.gestio.modules.clients.schemas import ClientIn, ClientOut, ClientUpdateIn
from app.gestio.modules.clients.service import create_client, delete_client, relation_counts, update_client
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission, resolve_company
from app.gestio.schemas import dump
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("clients", __name__)


def _get_client(s, client_id: int) -> Client:
    client = s.get(Client, client_id)
    if not client:
        raise NotFound("Client not found")
    ensure_same_company(current_user(), client.company_id)
    return client


def _with_counts(client: Client, counts: dict[str, int]) -> dict:
    return dump(ClientOut, client, projectCount=counts["projects"], invoiceCount=counts["invoices"])


@bp.get("/clients")
@require_permission(READ, "CLIENT")
def clients_list():
    s = db_session()
    q = apply_company_scope(s.query(Client), Client.company_id, current_user(), arg_int("companyId"))
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Client.name.ilike(term), Client.email.ilike(term), Client.phone.ilike(term)))
    rows, pagination = paginate(q.order_by(Client.name.asc()), page_request())
    counts = relation_counts(s, [c.id for c in rows])
    return envelope("items", [_with_counts(c, counts[c.id]) for c in rows], pagination)


@bp.post("/clients")
@require_permission(CREATE, "CLIENT")
def clients_create():
    user = current_user()
    payload = parse_body(ClientIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    client = create_client(s, payload, company.id, user)
    s.commit()
    return dump(ClientOut, client), 201


@bp.get("/clients/<int:client_id>")
@require_permission(READ, "CLIENT")
def clients_detail(client_id: int):
    s = db_session()
    client = _get_client(s, client_id)
    return _with_counts(client, relation_counts(s, [client.id])[client.id])


@bp.patch("/clients/<int:client_id>")
@require_permission(UPDATE, "CLIENT")
def clients_update(client_id: int):
    user = current_user()
    payload = parse_body(ClientUpdateIn)
    s = db_session()
    client = _get_client(s, client_id)
    update_client(s, client, payload, user)
    s.commit()
    return dump(ClientOut, client)


@bp.delete("/clients/<int:client_id>")
@require_permission(DELETE, "CLIENT")
def clients_delete(client_id: int):
    s = db_session()
    client = _get_client(s, client_id)
    delete_client(s, client, current_user())
    s.commit()
    return {"message": "Client deleted"}
