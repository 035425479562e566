"""ERP lookup routers: suppliers and the item master."""


import logging
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backoffice.auth.dependencies import get_current_user
from backoffice.organization.models import User
from backoffice.suppliers.service import list_building_codes, list_items, list_suppliers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["suppliers"])
items_router = APIRouter(prefix="", tags=["erp-items"])


async def _lookup(fetch: Callable[[Optional[str]], Awaitable[list]], search, failure: str):
    try:
        data = await fetch(search)
    except (SQLAlchemyError, OSError) as exc:
        logger.exception("ERP query error: %s", failure)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "data": [],
                "error": failure,
                "details": str(exc),
            },
        )
    return {"success": True, "data": data}


@router.get("")
async def suppliers(
    search: Optional[str] = Query(None, max_length=100),
    user: User = Depends(get_current_user),
):
    return await _lookup(list_suppliers, search, "Failed to fetch suppliers data")


@items_router.get("/mrs-items")
async def mrs_items(
    search: Optional[str] = Query(None, max_length=100),
    user: User = Depends(get_current_user),
):
    return await _lookup(list_items, search, "Failed to fetch MRS items data")


@items_router.get("/bldg-codes")
async def building_codes(
    search: Optional[str] = Query(None, max_length=100),
    user: User = Depends(get_current_user),
):
    return await _lookup(list_building_codes, search, "Failed to fetch building code data")
