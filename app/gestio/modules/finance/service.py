"""Financial statements: period bookkeeping and automatic revenue/expense totals."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, Conflict, NotFound
from app.gestio.models import Company
from app.gestio.modules.finance.models import FinancialStatement
from app.gestio.modules.invoices.models import Invoice
from app.gestio.modules.projects.models import Payment, Project

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.finance.schemas import FinancialStatementIn, FinancialStatementUpdateIn


def _check_period(start: datetime, end: datetime) -> None:
    if end <= start:
        raise BadRequest("The period end must be after its start", details={"periodEnd": ["Must be after periodStart"]})


def _ensure_no_overlap(
    s: "Session", company_id: int, start: datetime, end: datetime, exclude_id: int | None = None
) -> None:
    q = s.query(FinancialStatement.id).filter(
        FinancialStatement.company_id == company_id,
        FinancialStatement.period_start <= end,
        FinancialStatement.period_end >= start,
    )
    if exclude_id is not None:
        q = q.filter(FinancialStatement.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A financial statement already covers this period")


def period_revenue(s: "Session", company_id: int, start: datetime, end: datetime) -> float:
    """Sum of PAID invoices issued in [start, end]."""
    total = (
        s.query(func.coalesce(func.sum(Invoice.total), 0.0))
        .filter(
            Invoice.company_id == company_id,
            Invoice.status == "PAID",
            Invoice.issue_date >= start,
            Invoice.issue_date <= end,
        )
        .scalar()
    )
    return float(total or 0)


def period_expenses(s: "Session", company_id: int, start: datetime, end: datetime) -> float:
    """Sum of completed PRESTATAIRE payments on the company's projects in [start, end]."""
    total = (
        s.query(func.coalesce(func.sum(Payment.amount), 0.0))
        .join(Project, Payment.project_id == Project.id)
        .filter(
            Project.company_id == company_id,
            Payment.payment_type == "PRESTATAIRE",
            Payment.status == "COMPLETE",
            Payment.date >= start,
            Payment.date <= end,
        )
        .scalar()
    )
    return float(total or 0)


def create_statement(s: "Session", payload: "FinancialStatementIn", user: "User") -> FinancialStatement:
    _check_period(payload.period_start, payload.period_end)
    if s.get(Company, payload.company_id) is None:
        raise NotFound("Company not found")
    _ensure_no_overlap(s, payload.company_id, payload.period_start, payload.period_end)

    if payload.generate_automatically:
        revenue = period_revenue(s, payload.company_id, payload.period_start, payload.period_end)
        expenses = period_expenses(s, payload.company_id, payload.period_start, payload.period_end)
        profit = revenue - expenses
    else:
        revenue = payload.revenue or 0.0
        expenses = payload.expenses or 0.0
        profit = payload.profit if payload.profit is not None else revenue - expenses

    now = datetime.utcnow()
    statement = FinancialStatement(
        company_id=payload.company_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
        revenue=revenue,
        expenses=expenses,
        profit=profit,
        created_at=now,
        updated_at=now,
    )
    s.add(statement)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "FINANCIAL_STATEMENT",
        statement.id,
        {
            "companyId": statement.company_id,
            "periodStart": statement.period_start.isoformat(),
            "periodEnd": statement.period_end.isoformat(),
            "generated": payload.generate_automatically,
        },
    )
    return statement


def update_statement(
    s: "Session", statement: FinancialStatement, payload: "FinancialStatementUpdateIn", user: "User"
) -> FinancialStatement:
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    start = data.get("period_start", statement.period_start)
    end = data.get("period_end", statement.period_end)
    if (start, end) != (statement.period_start, statement.period_end):
        _check_period(start, end)
        _ensure_no_overlap(s, statement.company_id, start, end, exclude_id=statement.id)

    changes = {}
    for field, value in data.items():
        if value != getattr(statement, field):
            changes[field] = {"old": getattr(statement, field), "new": value}
            setattr(statement, field, value)
    statement.profit = statement.revenue - statement.expenses
    statement.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "FINANCIAL_STATEMENT", statement.id, {"changes": changes})
    return statement


def delete_statement(s: "Session", statement: FinancialStatement, user: "User") -> None:
    s.delete(statement)
    log_action(
        s,
        user,
        "DELETE",
        "FINANCIAL_STATEMENT",
        statement.id,
        {"companyId": statement.company_id, "periodStart": statement.period_start.isoformat()},
    )
