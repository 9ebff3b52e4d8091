from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, Conflict, NotFound
from app.gestio.models import Company
from app.gestio.modules.clients.models import Client
from app.gestio.modules.crm.models import Activity, Contact, MailingList

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.crm.schemas import ActivityIn, ContactIn, MailingListIn, MailingListUpdateIn


def _require_company(s: "Session", company_id: int) -> Company:
    company = s.get(Company, company_id)
    if company is None:
        raise NotFound("Company not found")
    return company


def create_contact(s: "Session", payload: "ContactIn", user: "User") -> tuple[Contact, bool]:
    """
    Returns (contact, created). An existing contact with the same email is
    moved to the requested mailing list instead of duplicated.
    """
    _require_company(s, payload.company_id)
    if payload.mailing_list_id is not None:
        mailing_list = s.get(MailingList, payload.mailing_list_id)
        if mailing_list is None:
            raise NotFound("Mailing list not found")
        if mailing_list.company_id != payload.company_id:
            raise BadRequest("The mailing list does not belong to this company")

    email = str(payload.email).lower()
    existing = (
        s.query(Contact).filter(Contact.company_id == payload.company_id, Contact.email == email).one_or_none()
    )
    if existing is not None:
        if payload.mailing_list_id is not None and existing.mailing_list_id != payload.mailing_list_id:
            old_list = existing.mailing_list_id
            existing.mailing_list_id = payload.mailing_list_id
            existing.updated_at = datetime.utcnow()
            log_action(
                s,
                user,
                "UPDATE",
                "CONTACT",
                existing.id,
                {"email": email, "mailingListId": {"old": old_list, "new": payload.mailing_list_id}},
            )
            return existing, False
        raise Conflict("A contact with this email already exists", extra={"existingContactId": existing.id})

    now = datetime.utcnow()
    contact = Contact(
        company_id=payload.company_id,
        mailing_list_id=payload.mailing_list_id,
        email=email,
        name=payload.name,
        phone=payload.phone,
        created_at=now,
        updated_at=now,
    )
    s.add(contact)
    s.flush()
    log_action(s, user, "CREATE", "CONTACT", contact.id, {"email": email, "mailingListId": contact.mailing_list_id})
    return contact, True


def _ensure_unique_list_name(s: "Session", company_id: int, name: str, exclude_id: int | None = None) -> None:
    q = s.query(MailingList.id).filter(MailingList.company_id == company_id, MailingList.name == name)
    if exclude_id is not None:
        q = q.filter(MailingList.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A mailing list with this name already exists")


def create_mailing_list(s: "Session", payload: "MailingListIn", user: "User") -> MailingList:
    _require_company(s, payload.company_id)
    _ensure_unique_list_name(s, payload.company_id, payload.name)
    now = datetime.utcnow()
    mailing_list = MailingList(
        company_id=payload.company_id,
        name=payload.name,
        description=payload.description,
        created_at=now,
        updated_at=now,
    )
    s.add(mailing_list)
    s.flush()
    log_action(s, user, "CREATE", "MAILING_LIST", mailing_list.id, {"name": mailing_list.name})
    return mailing_list


def update_mailing_list(s: "Session", mailing_list: MailingList, payload: "MailingListUpdateIn", user: "User") -> MailingList:
    changes = {}
    if payload.name and payload.name != mailing_list.name:
        _ensure_unique_list_name(s, mailing_list.company_id, payload.name, exclude_id=mailing_list.id)
        changes["name"] = {"old": mailing_list.name, "new": payload.name}
        mailing_list.name = payload.name
    if "description" in payload.model_fields_set and payload.description != mailing_list.description:
        changes["description"] = {"old": mailing_list.description, "new": payload.description}
        mailing_list.description = payload.description
    mailing_list.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "MAILING_LIST", mailing_list.id, {"changes": changes})
    return mailing_list


def delete_mailing_list(s: "Session", mailing_list: MailingList, user: "User") -> int:
    """Detach the list's contacts, delete the list, return how many were detached."""
    detached = (
        s.query(Contact)
        .filter(Contact.mailing_list_id == mailing_list.id)
        .update({Contact.mailing_list_id: None}, synchronize_session="fetch")
    )
    s.delete(mailing_list)
    log_action(
        s,
        user,
        "DELETE",
        "MAILING_LIST",
        mailing_list.id,
        {"name": mailing_list.name, "contactsDetached": detached},
    )
    return detached


def create_activity(s: "Session", payload: "ActivityIn", company_id: int, user: "User") -> Activity:
    if payload.client_id is not None:
        client = s.get(Client, payload.client_id)
        if client is None or client.company_id != company_id:
            raise NotFound("Client not found in this company")
    if payload.contact_id is not None:
        contact = s.get(Contact, payload.contact_id)
        if contact is None or contact.company_id != company_id:
            raise NotFound("Contact not found in this company")

    activity = Activity(
        company_id=company_id,
        user_id=user.id,
        created_at=datetime.utcnow(),
        **payload.model_dump(exclude={"company_id"}),
    )
    s.add(activity)
    s.flush()
    log_action(s, user, "CREATE", "ACTIVITY", activity.id, {"type": activity.type, "subject": activity.subject})
    return activity
