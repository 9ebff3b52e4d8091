from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, Conflict, NotFound
from app.gestio.models import Company
from app.gestio.modules.custom_fields.models import CustomFieldDefinition, CustomFieldValue
from app.gestio.modules.custom_fields.schemas import CHOICE_TYPES

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.custom_fields.schemas import (
        CustomFieldIn,
        CustomFieldUpdateIn,
        CustomValueIn,
        CustomValueUpdateIn,
    )


def value_counts(s: "Session", definition_ids: list[int]) -> dict[int, int]:
    counts = dict.fromkeys(definition_ids, 0)
    if definition_ids:
        rows = (
            s.query(CustomFieldValue.custom_field_def_id, func.count(CustomFieldValue.id))
            .filter(CustomFieldValue.custom_field_def_id.in_(definition_ids))
            .group_by(CustomFieldValue.custom_field_def_id)
        )
        counts.update({def_id: n for def_id, n in rows})
    return counts


def create_definition(s: "Session", payload: "CustomFieldIn", user: "User") -> CustomFieldDefinition:
    if s.get(Company, payload.company_id) is None:
        raise NotFound("Company not found")
    exists = (
        s.query(CustomFieldDefinition.id)
        .filter(
            CustomFieldDefinition.company_id == payload.company_id,
            CustomFieldDefinition.entity_name == payload.entity_name,
            CustomFieldDefinition.field_name == payload.field_name,
        )
        .first()
    )
    if exists is not None:
        raise Conflict("A field with this name already exists for this entity")

    now = datetime.utcnow()
    definition = CustomFieldDefinition(**payload.model_dump(), created_at=now, updated_at=now)
    s.add(definition)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "CUSTOM_FIELD",
        definition.id,
        {"entityName": definition.entity_name, "fieldName": definition.field_name},
    )
    return definition


def update_definition(
    s: "Session", definition: CustomFieldDefinition, payload: "CustomFieldUpdateIn", user: "User"
) -> CustomFieldDefinition:
    data = payload.model_dump(exclude_unset=True)
    if data.get("field_type") is None:
        data.pop("field_type", None)
    field_type = data.get("field_type", definition.field_type)
    options = data.get("options", definition.options)
    if field_type in CHOICE_TYPES and not options:
        raise BadRequest("options are required for SELECT and MULTISELECT fields", details={"options": ["Required"]})

    changes = {}
    for field, value in data.items():
        if value != getattr(definition, field):
            changes[field] = {"old": getattr(definition, field), "new": value}
            setattr(definition, field, value)
    definition.updated_at = datetime.utcnow()
    log_action(
        s,
        user,
        "UPDATE",
        "CUSTOM_FIELD",
        definition.id,
        {"entityName": definition.entity_name, "fieldName": definition.field_name, "changes": changes},
    )
    return definition


def delete_definition(s: "Session", definition: CustomFieldDefinition, user: "User") -> None:
    count = value_counts(s, [definition.id])[definition.id]
    if count:
        raise BadRequest("This custom field is used by existing records", extra={"valueCount": count})
    s.delete(definition)
    log_action(
        s,
        user,
        "DELETE",
        "CUSTOM_FIELD",
        definition.id,
        {"entityName": definition.entity_name, "fieldName": definition.field_name},
    )


def coerce_value(definition: CustomFieldDefinition, value: Any) -> Any:
    """Check `value` against the field type; returns the value to store."""
    if value is None:
        return None
    kind = definition.field_type
    ok = True
    if kind == "TEXT":
        ok = isinstance(value, str)
    elif kind == "NUMBER":
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif kind == "BOOLEAN":
        ok = isinstance(value, bool)
    elif kind == "DATE":
        if isinstance(value, str):
            try:
                value = date.fromisoformat(value[:10]).isoformat()
            except ValueError:
                ok = False
        else:
            ok = False
    elif kind == "SELECT":
        ok = isinstance(value, str) and value in (definition.options or [])
    elif kind == "MULTISELECT":
        allowed = set(definition.options or [])
        ok = isinstance(value, list) and all(isinstance(v, str) and v in allowed for v in value)
    if not ok:
        raise BadRequest(
            f"Invalid value for a {kind} field",
            details={"value": [f"Expected a {kind} value"]},
        )
    return value


def upsert_value(
    s: "Session", definition: CustomFieldDefinition, payload: "CustomValueIn", user: "User"
) -> tuple[CustomFieldValue, bool]:
    """Returns (value, created)."""
    value = coerce_value(definition, payload.value)
    row = (
        s.query(CustomFieldValue)
        .filter(
            CustomFieldValue.custom_field_def_id == definition.id,
            CustomFieldValue.record_id == payload.record_id,
        )
        .one_or_none()
    )
    now = datetime.utcnow()
    created = row is None
    if created:
        row = CustomFieldValue(
            custom_field_def_id=definition.id,
            record_id=payload.record_id,
            value=value,
            created_at=now,
            updated_at=now,
        )
        s.add(row)
        s.flush()
    else:
        row.value = value
        row.updated_at = now
    log_action(
        s,
        user,
        "CREATE" if created else "UPDATE",
        "CUSTOM_FIELD",
        row.id,
        {
            "entityName": definition.entity_name,
            "fieldName": definition.field_name,
            "recordId": payload.record_id,
        },
    )
    return row, created


def update_value(s: "Session", row: CustomFieldValue, payload: "CustomValueUpdateIn", user: "User") -> CustomFieldValue:
    definition = row.definition
    old = row.value
    row.value = coerce_value(definition, payload.value)
    row.updated_at = datetime.utcnow()
    log_action(
        s,
        user,
        "UPDATE",
        "CUSTOM_FIELD",
        row.id,
        {
            "fieldName": definition.field_name,
            "recordId": row.record_id,
            "changes": {"value": {"old": old, "new": row.value}},
        },
    )
    return row


def delete_value(s: "Session", row: CustomFieldValue, user: "User") -> None:
    s.delete(row)
    log_action(
        s,
        user,
        "DELETE",
        "CUSTOM_FIELD",
        row.id,
        {"fieldName": row.definition.field_name, "recordId": row.record_id},
    )
