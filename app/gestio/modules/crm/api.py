from __future__ import annotations

from flask import Blueprint
from sqlalchemy import func, or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.crm.models import Activity, Contact, MailingList
from app.gestio.modules.crm.schemas import (
    ActivityIn,
    ActivityOut,
    ContactIn,
    ContactOut,
    MailingListIn,
    MailingListOut,
    MailingListUpdateIn,
)
from app.gestio.modules.crm.service import (
    create_activity,
    create_contact,
    create_mailing_list,
    delete_mailing_list,
    update_mailing_list,
)
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission, resolve_company
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_datetime, arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("crm", __name__)


def _get_mailing_list(s, list_id: int) -> MailingList:
    mailing_list = s.get(MailingList, list_id)
    if not mailing_list:
        raise NotFound("Mailing list not found")
    ensure_same_company(current_user(), mailing_list.company_id)
    return mailing_list


def _contact_counts(s, list_ids: list[int]) -> dict[int, int]:
    counts = dict.fromkeys(list_ids, 0)
    if list_ids:
        rows = (
            s.query(Contact.mailing_list_id, func.count(Contact.id))
            .filter(Contact.mailing_list_id.in_(list_ids))
            .group_by(Contact.mailing_list_id)
        )
        counts.update({list_id: n for list_id, n in rows})
    return counts


@bp.get("/contacts")
@require_permission(READ, "CONTACT")
def contacts_list():
    s = db_session()
    q = apply_company_scope(s.query(Contact), Contact.company_id, current_user(), arg_int("companyId"))
    mailing_list_id = arg_int("mailingListId")
    if mailing_list_id is not None:
        q = q.filter(Contact.mailing_list_id == mailing_list_id)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Contact.name.ilike(term), Contact.email.ilike(term), Contact.phone.ilike(term)))
    rows, pagination = paginate(q.order_by(Contact.created_at.desc(), Contact.id.desc()), page_request())
    return envelope("items", dump_many(ContactOut, rows), pagination)


@bp.post("/contacts")
@require_permission(CREATE, "CONTACT")
def contacts_create():
    user = current_user()
    payload = parse_body(ContactIn)
    ensure_same_company(user, payload.company_id, "You cannot add contacts to another company")
    s = db_session()
    contact, created = create_contact(s, payload, user)
    s.commit()
    if created:
        return dump(ContactOut, contact), 201
    return {"message": "Contact moved to the requested mailing list", "contact": dump(ContactOut, contact)}


@bp.get("/mailing-lists")
@require_permission(READ, "MAILING_LIST")
def mailing_lists_list():
    s = db_session()
    q = apply_company_scope(s.query(MailingList), MailingList.company_id, current_user(), arg_int("companyId"))
    search = arg_str("search")
    if search:
        q = q.filter(MailingList.name.ilike(like(search)))
    rows, pagination = paginate(q.order_by(MailingList.name.asc()), page_request())
    counts = _contact_counts(s, [m.id for m in rows])
    items = [dump(MailingListOut, m, contactCount=counts[m.id]) for m in rows]
    return envelope("items", items, pagination)


@bp.post("/mailing-lists")
@require_permission(CREATE, "MAILING_LIST")
def mailing_lists_create():
    user = current_user()
    payload = parse_body(MailingListIn)
    ensure_same_company(user, payload.company_id, "You cannot create mailing lists for another company")
    s = db_session()
    mailing_list = create_mailing_list(s, payload, user)
    s.commit()
    return dump(MailingListOut, mailing_list, contactCount=0), 201


@bp.get("/mailing-lists/<int:list_id>")
@require_permission(READ, "MAILING_LIST")
def mailing_lists_detail(list_id: int):
    s = db_session()
    mailing_list = _get_mailing_list(s, list_id)
    contacts = (
        s.query(Contact).filter(Contact.mailing_list_id == mailing_list.id).order_by(Contact.email.asc()).all()
    )
    return dump(
        MailingListOut,
        mailing_list,
        contactCount=len(contacts),
        contacts=dump_many(ContactOut, contacts),
    )


@bp.put("/mailing-lists/<int:list_id>")
@require_permission(UPDATE, "MAILING_LIST")
def mailing_lists_update(list_id: int):
    payload = parse_body(MailingListUpdateIn)
    s = db_session()
    mailing_list = _get_mailing_list(s, list_id)
    update_mailing_list(s, mailing_list, payload, current_user())
    s.commit()
    return dump(MailingListOut, mailing_list)


@bp.delete("/mailing-lists/<int:list_id>")
@require_permission(DELETE, "MAILING_LIST")
def mailing_lists_delete(list_id: int):
    s = db_session()
    mailing_list = _get_mailing_list(s, list_id)
    detached = delete_mailing_list(s, mailing_list, current_user())
    s.commit()
    return {"message": "Mailing list deleted", "contactsDetached": detached}


@bp.get("/activities")
@require_permission(READ, "ACTIVITY")
def activities_list():
    s = db_session()
    q = apply_company_scope(s.query(Activity), Activity.company_id, current_user(), arg_int("companyId"))
    for arg, column in (("type", Activity.type), ("status", Activity.status)):
        value = arg_str(arg)
        if value:
            q = q.filter(column == value)
    for arg, column in (("clientId", Activity.client_id), ("userId", Activity.user_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    start = arg_datetime("startDate")
    if start:
        q = q.filter(Activity.scheduled_at >= start)
    end = arg_datetime("endDate")
    if end:
        q = q.filter(Activity.scheduled_at <= end)
    rows, pagination = paginate(q.order_by(Activity.created_at.desc(), Activity.id.desc()), page_request())
    return envelope("items", dump_many(ActivityOut, rows), pagination)


@bp.post("/activities")
@require_permission(CREATE, "ACTIVITY")
def activities_create():
    user = current_user()
    payload = parse_body(ActivityIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    activity = create_activity(s, payload, company.id, user)
    s.commit()
    return dump(ActivityOut, activity), 201
