from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, model_validator

from app.gestio.schemas import ApiModel, OutModel

FieldType = Literal["TEXT", "NUMBER", "DATE", "BOOLEAN", "SELECT", "MULTISELECT"]
CHOICE_TYPES = ("SELECT", "MULTISELECT")


class CustomFieldIn(ApiModel):
    entity_name: str = Field(min_length=1, max_length=64)
    field_name: str = Field(min_length=1, max_length=128, pattern=r"^[a-zA-Z0-9_]+$")
    field_type: FieldType
    options: list[str] | None = None
    description: str | None = None
    company_id: int

    @model_validator(mode="after")
    def _options_for_choices(self):
        if self.field_type in CHOICE_TYPES and not self.options:
            raise ValueError("options are required for SELECT and MULTISELECT fields")
        return self


class CustomFieldUpdateIn(ApiModel):
    field_type: FieldType | None = None
    options: list[str] | None = None
    description: str | None = None


class CustomFieldOut(OutModel):
    id: int
    company_id: int
    entity_name: str
    field_name: str
    field_type: str
    options: list[str] | None
    description: str | None
    created_at: datetime
    updated_at: datetime


class CustomValueIn(ApiModel):
    custom_field_def_id: int
    record_id: str = Field(min_length=1, max_length=64)
    value: Any = None


class CustomValueUpdateIn(ApiModel):
    value: Any = None


class DefinitionSummaryOut(OutModel):
    id: int
    company_id: int
    entity_name: str
    field_name: str
    field_type: str


class CustomValueOut(OutModel):
    id: int
    custom_field_def_id: int
    record_id: str
    value: Any
    created_at: datetime
    updated_at: datetime
    definition: DefinitionSummaryOut
