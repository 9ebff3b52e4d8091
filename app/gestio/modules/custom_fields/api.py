from __future__ import annotations

from flask import Blueprint

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.custom_fields.models import CustomFieldDefinition, CustomFieldValue
from app.gestio.modules.custom_fields.schemas import (
    CustomFieldIn,
    CustomFieldOut,
    CustomFieldUpdateIn,
    CustomValueIn,
    CustomValueOut,
    CustomValueUpdateIn,
)
from app.gestio.modules.custom_fields.service import (
    create_definition,
    delete_definition,
    delete_value,
    update_definition,
    update_value,
    upsert_value,
    value_counts,
)
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_admin, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("custom_fields", __name__)


def _get_definition(s, definition_id: int) -> CustomFieldDefinition:
    definition = s.get(CustomFieldDefinition, definition_id)
    if not definition:
        raise NotFound("Custom field not found")
    ensure_same_company(current_user(), definition.company_id)
    return definition


def _get_value(s, value_id: int) -> CustomFieldValue:
    row = s.get(CustomFieldValue, value_id)
    if not row:
        raise NotFound("Custom value not found")
    ensure_same_company(current_user(), row.definition.company_id)
    return row


@bp.get("/custom-fields")
@require_permission(READ, "CUSTOM_FIELD")
def custom_fields_list():
    s = db_session()
    q = apply_company_scope(
        s.query(CustomFieldDefinition), CustomFieldDefinition.company_id, current_user(), arg_int("companyId")
    )
    entity_name = arg_str("entityName")
    if entity_name:
        q = q.filter(CustomFieldDefinition.entity_name == entity_name)
    field_name = arg_str("fieldName")
    if field_name:
        q = q.filter(CustomFieldDefinition.field_name.ilike(like(field_name)))
    q = q.order_by(CustomFieldDefinition.entity_name.asc(), CustomFieldDefinition.field_name.asc())
    rows, pagination = paginate(q, page_request())
    counts = value_counts(s, [d.id for d in rows])
    items = [dump(CustomFieldOut, d, valueCount=counts[d.id]) for d in rows]
    return envelope("items", items, pagination)


@bp.post("/custom-fields")
@require_permission(CREATE, "CUSTOM_FIELD")
def custom_fields_create():
    user = current_user()
    require_admin(user, "Only administrators can create custom fields")
    payload = parse_body(CustomFieldIn)
    ensure_same_company(user, payload.company_id, "You cannot create custom fields for another company")
    s = db_session()
    definition = create_definition(s, payload, user)
    s.commit()
    return dump(CustomFieldOut, definition, valueCount=0), 201


@bp.get("/custom-fields/<int:definition_id>")
@require_permission(READ, "CUSTOM_FIELD")
def custom_fields_detail(definition_id: int):
    s = db_session()
    definition = _get_definition(s, definition_id)
    return dump(CustomFieldOut, definition, valueCount=value_counts(s, [definition.id])[definition.id])


@bp.patch("/custom-fields/<int:definition_id>")
@require_permission(UPDATE, "CUSTOM_FIELD")
def custom_fields_update(definition_id: int):
    user = current_user()
    require_admin(user, "Only administrators can edit custom fields")
    payload = parse_body(CustomFieldUpdateIn)
    s = db_session()
    definition = _get_definition(s, definition_id)
    update_definition(s, definition, payload, user)
    s.commit()
    return dump(CustomFieldOut, definition)


@bp.delete("/custom-fields/<int:definition_id>")
@require_permission(DELETE, "CUSTOM_FIELD")
def custom_fields_delete(definition_id: int):
    user = current_user()
    require_admin(user, "Only administrators can delete custom fields")
    s = db_session()
    definition = _get_definition(s, definition_id)
    delete_definition(s, definition, user)
    s.commit()
    return {"message": "Custom field deleted"}


@bp.get("/custom-values")
@require_permission(READ, "CUSTOM_FIELD")
def custom_values_list():
    s = db_session()
    q = s.query(CustomFieldValue).join(
        CustomFieldDefinition, CustomFieldValue.custom_field_def_id == CustomFieldDefinition.id
    )
    q = apply_company_scope(q, CustomFieldDefinition.company_id, current_user(), arg_int("companyId"))
    entity_name = arg_str("entityName")
    if entity_name:
        q = q.filter(CustomFieldDefinition.entity_name == entity_name)
    record_id = arg_str("recordId")
    if record_id:
        q = q.filter(CustomFieldValue.record_id == record_id)
    definition_id = arg_int("customFieldDefId")
    if definition_id is not None:
        q = q.filter(CustomFieldValue.custom_field_def_id == definition_id)
    rows, pagination = paginate(q.order_by(CustomFieldValue.id.asc()), page_request())
    return envelope("items", dump_many(CustomValueOut, rows), pagination)


@bp.post("/custom-values")
@require_permission(CREATE, "CUSTOM_FIELD")
def custom_values_upsert():
    payload = parse_body(CustomValueIn)
    s = db_session()
    definition = _get_definition(s, payload.custom_field_def_id)
    row, created = upsert_value(s, definition, payload, current_user())
    s.commit()
    return dump(CustomValueOut, row), 201 if created else 200


@bp.get("/custom-values/<int:value_id>")
@require_permission(READ, "CUSTOM_FIELD")
def custom_values_detail(value_id: int):
    s = db_session()
    return dump(CustomValueOut, _get_value(s, value_id))


@bp.patch("/custom-values/<int:value_id>")
@require_permission(UPDATE, "CUSTOM_FIELD")
def custom_values_update(value_id: int):
    payload = parse_body(CustomValueUpdateIn)
    s = db_session()
    row = _get_value(s, value_id)
    update_value(s, row, payload, current_user())
    s.commit()
    return dump(CustomValueOut, row)


@bp.delete("/custom-values/<int:value_id>")
@require_permission(DELETE, "CUSTOM_FIELD")
def custom_values_delete(value_id: int):
    s = db_session()
    row = _get_value(s, value_id)
    delete_value(s, row, current_user())
    s.commit()
    return {"message": "Custom value deleted"}
