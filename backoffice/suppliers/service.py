"""Supplier and item lookups against the external ERP database.

The ERP database is read-only from here and reached through its own async
engines, created lazily from ``ERP_DATABASE_URL`` (and
``ERP_ITEMS_DATABASE_URL`` for the item master when it lives elsewhere).
"""

import logging
from typing import Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from backoffice.common.exceptions import ServiceUnavailableException
from backoffice.config import settings

logger = logging.getLogger(__name__)

SUPPLIER_CARD_TYPE = "S"

_engines: dict[str, AsyncEngine] = {}


def get_erp_engine(url: Optional[str] = None) -> AsyncEngine:
    url = url or settings.ERP_DATABASE_URL
    if not url:
        raise ServiceUnavailableException("ERP database is not configured.")
    if url not in _engines:
        _engines[url] = create_async_engine(url, pool_pre_ping=True)
    return _engines[url]


async def dispose_erp_engine() -> None:
    while _engines:
        _, engine = _engines.popitem()
        await engine.dispose()


# ── Suppliers ───────────────────────────────────────────────────────


def business_partners() -> sa.TableClause:
    return sa.table(
        settings.ERP_SUPPLIER_TABLE,
        sa.column("CardCode"),
        sa.column("CardName"),
        sa.column("CardType"),
        schema=settings.ERP_SUPPLIER_SCHEMA,
    )


def supplier_query(search: Optional[str] = None) -> sa.Select:
    ocrd = business_partners()
    query = (
        sa.select(ocrd.c.CardCode, ocrd.c.CardName)
        .where(ocrd.c.CardType == SUPPLIER_CARD_TYPE)
        .order_by(ocrd.c.CardCode)
    )
    if settings.ERP_SUPPLIER_CODE_PATTERN:
        query = query.where(ocrd.c.CardCode.like(settings.ERP_SUPPLIER_CODE_PATTERN))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.where(sa.or_(ocrd.c.CardCode.like(term), ocrd.c.CardName.like(term)))
    return query


async def list_suppliers(search: Optional[str] = None) -> list[dict[str, str]]:
    engine = get_erp_engine()
    async with engine.connect() as conn:
        result = await conn.execute(supplier_query(search))
        rows = result.all()
    logger.debug("Supplier lookup %r returned %d row(s)", search, len(rows))
    return [{"cardCode": row.CardCode, "cardName": row.CardName} for row in rows]


# ── Item master ─────────────────────────────────────────────────────


def item_master() -> sa.TableClause:
    return sa.table(
        settings.ERP_ITEM_TABLE,
        sa.column("ItemId"),
        sa.column("ItemCode"),
        sa.column("ItemDesc"),
        sa.column("BuyUnitMsr"),
        sa.column("PurPackMsr"),
        sa.column("Cost"),
        schema=settings.ERP_ITEM_SCHEMA,
    )


def item_query(search: Optional[str] = None, exclude_codes: Iterable[str] = ()) -> sa.Select:
    oitm = item_master()
    query = sa.select(
        oitm.c.ItemId,
        oitm.c.ItemCode,
        oitm.c.ItemDesc,
        oitm.c.BuyUnitMsr,
        oitm.c.PurPackMsr,
        oitm.c.Cost,
    ).order_by(oitm.c.ItemCode)
    excluded = list(exclude_codes)
    if excluded:
        query = query.where(oitm.c.ItemCode.not_in(excluded))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.where(sa.or_(oitm.c.ItemCode.like(term), oitm.c.ItemDesc.like(term)))
    return query


async def _fetch_items(search: Optional[str], exclude_codes: Iterable[str]) -> list[dict]:
    engine = get_erp_engine(settings.ERP_ITEMS_DATABASE_URL)
    async with engine.connect() as conn:
        result = await conn.execute(item_query(search, exclude_codes))
        rows = result.all()
    logger.debug("Item lookup %r returned %d row(s)", search, len(rows))
    return [
        {
            "itemId": row.ItemId,
            "itemCode": row.ItemCode,
            "itemDesc": row.ItemDesc,
            "buyUnitMsr": row.BuyUnitMsr,
            "purPackMsr": row.PurPackMsr,
            "cost": row.Cost,
        }
        for row in rows
    ]


async def list_items(search: Optional[str] = None) -> list[dict]:
    """Every item in the ERP item master, for material request lines."""
    return await _fetch_items(search, ())


async def list_building_codes(search: Optional[str] = None) -> list[dict]:
    """Item master rows usable as building codes (configured exclusions removed)."""
    return await _fetch_items(search, settings.building_code_exclusions)
