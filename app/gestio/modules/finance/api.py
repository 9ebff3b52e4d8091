from __future__ import annotations

from datetime import datetime

from flask import Blueprint

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.modules.finance.models import FinancialStatement
from app.gestio.modules.finance.schemas import (
    FinancialStatementIn,
    FinancialStatementOut,
    FinancialStatementUpdateIn,
)
from app.gestio.modules.finance.service import create_statement, delete_statement, update_statement
from app.gestio.rbac import (
    apply_company_scope,
    current_user,
    ensure_same_company,
    is_super_admin,
    require_admin,
    require_permission,
)
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_datetime, arg_int, envelope, page_request, paginate, parse_body

bp = Blueprint("finance", __name__)

_ADMIN_ONLY = "Only administrators can access financial statements"


def _get_statement(s, statement_id: int) -> FinancialStatement:
    statement = s.get(FinancialStatement, statement_id)
    if not statement:
        raise NotFound("Financial statement not found")
    ensure_same_company(current_user(), statement.company_id)
    return statement


@bp.get("/financial-statements")
@require_permission(READ, "FINANCIAL_STATEMENT")
def statements_list():
    user = current_user()
    require_admin(user, _ADMIN_ONLY)
    s = db_session()
    q = apply_company_scope(s.query(FinancialStatement), FinancialStatement.company_id, user, arg_int("companyId"))
    year = arg_int("year")
    if year is not None:
        q = q.filter(
            FinancialStatement.period_start >= datetime(year, 1, 1),
            FinancialStatement.period_end < datetime(year + 1, 1, 1),
        )
    start = arg_datetime("startDate")
    if start:
        q = q.filter(FinancialStatement.period_start >= start)
    end = arg_datetime("endDate")
    if end:
        q = q.filter(FinancialStatement.period_end <= end)
    rows, pagination = paginate(q.order_by(FinancialStatement.period_end.desc()), page_request(default_limit=12))
    return envelope("items", dump_many(FinancialStatementOut, rows), pagination)


@bp.post("/financial-statements")
@require_permission(CREATE, "FINANCIAL_STATEMENT")
def statements_create():
    user = current_user()
    require_admin(user, _ADMIN_ONLY)
    payload = parse_body(FinancialStatementIn)
    ensure_same_company(user, payload.company_id, "You cannot create financial statements for another company")
    s = db_session()
    statement = create_statement(s, payload, user)
    s.commit()
    return dump(FinancialStatementOut, statement), 201


@bp.get("/financial-statements/<int:statement_id>")
@require_permission(READ, "FINANCIAL_STATEMENT")
def statements_detail(statement_id: int):
    require_admin(current_user(), _ADMIN_ONLY)
    s = db_session()
    return dump(FinancialStatementOut, _get_statement(s, statement_id))


@bp.patch("/financial-statements/<int:statement_id>")
@require_permission(UPDATE, "FINANCIAL_STATEMENT")
def statements_update(statement_id: int):
    user = current_user()
    require_admin(user, _ADMIN_ONLY)
    payload = parse_body(FinancialStatementUpdateIn)
    s = db_session()
    statement = _get_statement(s, statement_id)
    update_statement(s, statement, payload, user)
    s.commit()
    return dump(FinancialStatementOut, statement)


@bp.delete("/financial-statements/<int:statement_id>")
@require_permission(DELETE, "FINANCIAL_STATEMENT")
def statements_delete(statement_id: int):
    user = current_user()
    if not is_super_admin(user):
        raise AccessDenied("Only a super administrator can delete financial statements")
    s = db_session()
    statement = _get_statement(s, statement_id)
    delete_statement(s, statement, user)
    s.commit()
    return {"message": "Financial statement deleted"}
