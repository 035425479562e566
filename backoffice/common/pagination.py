"""Page/limit pagination for list endpoints.

Every list route answers with the same envelope::

    {"data": [...], "meta": {"page": 1, "page_size": 50, "total": 120,
                             "total_pages": 3, "has_next": true, "has_prev": false}}
"""


import math
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from backoffice.common.filters import apply_sorting

T = TypeVar("T")


class PaginationParams:
    """``Depends()``-able query parameters: ``page``, ``page_size``, ``sort``."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort: Optional[str] = Query(
            None, description='Comma-separated fields, "-" prefix for DESC (e.g. "-doc_no")',
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: Sequence[T]
    meta: PaginationMeta

    def to_json(self) -> dict[str, Any]:
        """JSON-ready envelope; rows that are pydantic models are dumped in JSON mode."""
        return {
            "data": [
                row.model_dump(mode="json") if isinstance(row, BaseModel) else row
                for row in self.data
            ],
            "meta": self.meta.model_dump(),
        }


def build_meta(page: int, page_size: int, total: int) -> PaginationMeta:
    total_pages = math.ceil(total / page_size) if total else 0
    return PaginationMeta(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any = None,
    transform: Optional[Callable[[Any], Any]] = None,
) -> PaginatedResponse:
    """Run *query* for one page.

    ``params.sort`` is resolved against *model* and replaces the query's own
    ORDER BY only when it names a real column. *transform* maps each ORM row
    to its response schema.
    """
    if params.sort and model is not None:
        query = apply_sorting(query, model, params.sort)

    total = (
        await session.execute(select(func.count()).select_from(query.order_by(None).subquery()))
    ).scalar_one()
    rows = (
        await session.execute(query.offset(params.offset).limit(params.page_size))
    ).scalars().all()

    return PaginatedResponse(
        data=[transform(row) for row in rows] if transform else list(rows),
        meta=build_meta(params.page, params.page_size, total),
    )
