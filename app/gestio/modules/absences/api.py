from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.models import User
from app.gestio.modules.absences.models import Absence
from app.gestio.modules.absences.schemas import AbsenceIn, AbsenceOut, AbsenceUpdateIn
from app.gestio.modules.absences.service import can_view, create_absence, delete_absence, manages, update_absence
from app.gestio.rbac import apply_company_scope, current_user, is_admin, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_datetime, arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("absences", __name__)


def _get_absence(s, absence_id: int) -> Absence:
    absence = s.get(Absence, absence_id)
    if not absence:
        raise NotFound("Absence not found")
    return absence


@bp.get("/absences")
@require_permission(READ, "ABSENCE")
def absences_list():
    user = current_user()
    s = db_session()
    q = s.query(Absence).join(User, Absence.user_id == User.id)
    if is_admin(user):
        q = apply_company_scope(q, Absence.company_id, user, arg_int("companyId"))
        user_id = arg_int("userId")
        if user_id is not None:
            q = q.filter(Absence.user_id == user_id)
    else:
        q = q.filter(Absence.user_id == user.id)

    for arg, column in (("status", Absence.status), ("type", Absence.type)):
        value = arg_str(arg)
        if value:
            q = q.filter(column == value)
    # Overlap with the requested window.
    start, end = arg_datetime("startDate"), arg_datetime("endDate")
    if start is not None:
        q = q.filter(Absence.end_date >= start)
    if end is not None:
        q = q.filter(Absence.start_date <= end)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Absence.reason.ilike(term), User.name.ilike(term), User.email.ilike(term)))

    rows, pagination = paginate(q.order_by(Absence.start_date.desc(), Absence.id.desc()), page_request())
    return envelope("data", dump_many(AbsenceOut, rows), pagination)


@bp.post("/absences")
@require_permission(CREATE, "ABSENCE")
def absences_create():
    payload = parse_body(AbsenceIn)
    s = db_session()
    absence = create_absence(s, payload, current_user())
    s.commit()
    return dump(AbsenceOut, absence), 201


@bp.get("/absences/<int:absence_id>")
@require_permission(READ, "ABSENCE")
def absences_detail(absence_id: int):
    s = db_session()
    absence = _get_absence(s, absence_id)
    if not can_view(current_user(), absence):
        raise AccessDenied("You cannot view this absence")
    return dump(AbsenceOut, absence)


@bp.patch("/absences/<int:absence_id>")
@require_permission(UPDATE, "ABSENCE")
def absences_update(absence_id: int):
    user = current_user()
    payload = parse_body(AbsenceUpdateIn)
    s = db_session()
    absence = _get_absence(s, absence_id)
    if not can_view(user, absence):
        raise AccessDenied("You cannot update this absence")
    update_absence(s, absence, payload, user)
    s.commit()
    return dump(AbsenceOut, absence)


@bp.delete("/absences/<int:absence_id>")
@require_permission(DELETE, "ABSENCE")
def absences_delete(absence_id: int):
    user = current_user()
    s = db_session()
    absence = _get_absence(s, absence_id)
    if user.id != absence.user_id and not manages(user, absence):
        raise AccessDenied("You cannot delete this absence")
    delete_absence(s, absence, user)
    s.commit()
    return {"message": "Absence deleted"}
