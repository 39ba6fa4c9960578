"""
List-query features shared by every collection endpoint.

Query parameters use the public (camelCase) field names:
``price[gte]=100`` filters, ``sort=-ratingsAverage,price`` orders,
``fields=name,price`` projects and ``page``/``limit`` paginate.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, Numeric, and_
from sqlalchemy.orm import InstrumentedAttribute, Session
from sqlalchemy.sql import Select

from natours.application.errors import ValidationError

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
COMPARISON_OPERATORS = ("gte", "gt", "lte", "lt")
DEFAULT_SORT = "-createdAt"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


@dataclass(frozen=True)
class QueryResult:
    items: list[Any]
    fields: list[str] | None
    page: int
    limit: int


def _coerce(column: InstrumentedAttribute, raw: Any, field_name: str) -> Any:
    if not isinstance(raw, str):
        raise ValidationError(f"Invalid {field_name}: {raw}.")
    column_type = column.type
    try:
        if isinstance(column_type, Boolean):
            return raw.lower() in ("true", "1")
        if isinstance(column_type, Integer):
            return int(raw)
        if isinstance(column_type, (Float, Numeric)):
            return float(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid {field_name}: {raw}.") from exc
    return raw


def _last(value: Any) -> Any:
    return value[-1] if isinstance(value, list) and value else value


def apply_filters(query: Select, params: dict[str, Any], columns: dict[str, InstrumentedAttribute]) -> Select:
    conditions = []
    for field_name, value in params.items():
        if field_name in RESERVED_PARAMS or field_name not in columns:
            continue
        column = columns[field_name]
        if isinstance(value, dict):
            for operator in COMPARISON_OPERATORS:
                if operator not in value:
                    continue
                bound = _coerce(column, _last(value[operator]), field_name)
                if operator == "gte":
                    conditions.append(column >= bound)
                elif operator == "gt":
                    conditions.append(column > bound)
                elif operator == "lte":
                    conditions.append(column <= bound)
                else:
                    conditions.append(column < bound)
        elif isinstance(value, list):
            conditions.append(column.in_([_coerce(column, item, field_name) for item in value]))
        else:
            conditions.append(column == _coerce(column, value, field_name))
    if not conditions:
        return query
    return query.where(and_(*conditions))


def apply_sort(query: Select, sort: Any, columns: dict[str, InstrumentedAttribute], id_column: Any) -> Select:
    sort_value = _last(sort) if sort else DEFAULT_SORT
    clauses = []
    for token in str(sort_value).split(","):
        token = token.strip()
        descending = token.startswith("-")
        column = columns.get(token.lstrip("-"))
        if column is None:
            continue
        clauses.append(column.desc() if descending else column.asc())
    return query.order_by(*clauses, id_column.asc())


def parse_fields(fields: Any) -> list[str] | None:
    value = _last(fields)
    if not value:
        return None
    selected = [name.strip() for name in str(value).split(",") if name.strip()]
    return selected or None


def parse_page(params: dict[str, Any]) -> tuple[int, int]:
    try:
        page = int(_last(params.get("page")) or DEFAULT_PAGE)
        limit = int(_last(params.get("limit")) or DEFAULT_LIMIT)
    except (TypeError, ValueError) as exc:
        raise ValidationError("page and limit must be integers") from exc
    return max(page, 1), min(max(limit, 1), MAX_LIMIT)


def project(document: dict[str, Any], fields: list[str] | None) -> dict[str, Any]:
    if not fields:
        return document
    excluded = {name[1:] for name in fields if name.startswith("-")}
    if excluded:
        return {key: value for key, value in document.items() if key not in excluded}
    return {key: value for key, value in document.items() if key in fields or key == "id"}


def query_documents(
    db: Session,
    base_query: Select,
    params: dict[str, Any],
    *,
    columns: dict[str, InstrumentedAttribute],
    id_column: Any,
) -> QueryResult:
    filtered = apply_filters(base_query, params, columns)
    ordered = apply_sort(filtered, params.get("sort"), columns, id_column)
    page, limit = parse_page(params)
    paged = ordered.offset((page - 1) * limit).limit(limit)
    items = list(db.execute(paged).scalars().unique().all())
    return QueryResult(items=items, fields=parse_fields(params.get("fields")), page=page, limit=limit)
