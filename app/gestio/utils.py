from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

from flask import current_app, request
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Query

from app.gestio.errors import BadRequest, InvalidPayload

M = TypeVar("M", bound=BaseModel)


def parse_body(schema: type[M]) -> M:
    """Validate the JSON body against `schema`; 400 with field details on failure."""
    raw = request.get_json(silent=True)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidPayload({"_root": ["Expected a JSON object"]})
    raw.pop("csrf_token", None)
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise InvalidPayload.from_validation_error(e) from e


def arg_str(name: str) -> str | None:
    v = (request.args.get(name) or "").strip()
    return v or None


def arg_int(name: str) -> int | None:
    raw = arg_str(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"Invalid integer for '{name}'") from None


def arg_float(name: str) -> float | None:
    raw = arg_str(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        raise BadRequest(f"Invalid number for '{name}'") from None


def arg_bool(name: str) -> bool:
    return (arg_str(name) or "").lower() in ("1", "true", "yes", "on")


def arg_datetime(name: str) -> datetime | None:
    raw = arg_str(name)
    if raw is None:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise BadRequest(f"Invalid date for '{name}'") from None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_request(default_limit: int = 10, *, page_arg: str = "page", limit_arg: str = "limit") -> PageRequest:
    page = request.args.get(page_arg, type=int) or 1
    limit = request.args.get(limit_arg, type=int) or default_limit
    max_limit = int(current_app.config.get("API_PAGE_SIZE_MAX") or 100)
    return PageRequest(page=max(page, 1), limit=min(max(limit, 1), max_limit))


def pagination_meta(total: int, page: int, limit: int) -> dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def paginate(q: Query, pr: PageRequest) -> tuple[list[Any], dict[str, int]]:
    """Run count + page queries for `q` and return (rows, pagination)."""
    total = q.order_by(None).count()
    rows = q.offset(pr.offset).limit(pr.limit).all()
    return rows, pagination_meta(total, pr.page, pr.limit)


def envelope(key: str, items: list[Any], pagination: dict[str, int]) -> dict[str, Any]:
    return {key: items, "pagination": pagination}


def like(term: str) -> str:
    return f"%{term}%"
