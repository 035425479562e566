"""Query-string filtering, sorting and search over mapped models.

Routers collect optional query parameters into a dict and hand it to
:func:`apply_filters`; the key suffix picks the SQL operator::

    apply_filters(query, Asset, {
        "status": status,                  # =
        "item_code__ilike": code,          # ILIKE %code%
        "purchase_date__from": start,      # >=
        "purchase_date__to": end,          # <=
        "id__in": ids,                     # IN (...)
        "status__ne": AssetStatus.DISPOSED,
        "department_id__isnull": True,
    })

Unknown column names and ``None`` values are skipped, so a parameter the
caller did not send never narrows the result.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

from sqlalchemy import Select, String, cast, or_
from sqlalchemy.orm import InstrumentedAttribute

Condition = Callable[[InstrumentedAttribute, Any], Any]

OPERATORS: dict[str, Condition] = {
    "ilike": lambda col, value: col.ilike(f"%{value}%"),
    "from": lambda col, value: col >= value,
    "to": lambda col, value: col <= value,
    "in": lambda col, value: col.in_(list(value)),
    "ne": lambda col, value: col != value,
    "isnull": lambda col, value: col.is_(None) if value else col.is_not(None),
}


def _split_key(key: str) -> tuple[str, Condition]:
    name, sep, op = key.rpartition("__")
    if sep and op in OPERATORS:
        return name, OPERATORS[op]
    return key, lambda col, value: col == value


def apply_filters(query: Select, model: Any, filters: dict[str, Any]) -> Select:
    conditions = []
    for key, value in filters.items():
        if value is None:
            continue
        name, condition = _split_key(key)
        col = _get_column(model, name)
        if col is not None:
            conditions.append(condition(col, value))
    return query.where(*conditions) if conditions else query


def apply_sorting(query: Select, model: Any, sort: Optional[str]) -> Select:
    """Replace ORDER BY from ``"-date_required,doc_no"`` style strings.

    A leading ``-`` sorts descending. When no key names a mapped column the
    query is returned untouched, keeping the caller's default order.
    """
    if not sort:
        return query

    clauses = []
    for part in sort.split(","):
        part = part.strip()
        col = _get_column(model, part.lstrip("-"))
        if col is not None:
            clauses.append(col.desc() if part.startswith("-") else col.asc())
    if not clauses:
        return query
    return query.order_by(None).order_by(*clauses)


def apply_search(
    query: Select,
    model: Any,
    search: Optional[str],
    columns: Sequence[str],
) -> Select:
    """Match *search* case-insensitively against any of *columns*."""
    term = (search or "").strip()
    if not term:
        return query

    matches = [
        cast(col, String).ilike(f"%{term}%")
        for col in (_get_column(model, name) for name in columns)
        if col is not None
    ]
    return query.where(or_(*matches)) if matches else query


def _get_column(model: Any, name: str) -> Optional[InstrumentedAttribute]:
    attr = getattr(model, name, None)
    return attr if isinstance(attr, InstrumentedAttribute) else None
