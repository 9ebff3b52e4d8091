"""Base pydantic models shared by every module's request/response schemas."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _to_naive_utc(value: datetime) -> datetime:
    # Columns are timezone-naive UTC.
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_to_naive_utc)]


class ApiModel(BaseModel):
    """Request body: camelCase on the wire, snake_case accepted too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class OutModel(BaseModel):
    """Response body built from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def dump(model_cls: type[OutModel], obj: Any, **extra: Any) -> dict[str, Any]:
    data = model_cls.model_validate(obj).model_dump(by_alias=True, mode="json")
    data.update(extra)
    return data


def dump_many(model_cls: type[OutModel], rows: list[Any]) -> list[dict[str, Any]]:
    return [dump(model_cls, r) for r in rows]
