"""Material request router — documents, approvals and fulfilment queues."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import ensure_business_unit_access, get_current_user
from backoffice.common.constants import MRSRequestStatus, RequestType
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.material_requests.schemas import (
    AcknowledgementRequest,
    ApproveAction,
    DisapproveAction,
    MaterialRequestCreate,
    MaterialRequestOut,
    MaterialRequestUpdate,
    NextDocumentNumber,
    PostRequest,
    ReviewAction,
    ServeRequest,
)
from backoffice.material_requests.service import (
    DONE_STATUSES,
    MaterialRequestApprovalService,
    MaterialRequestFulfilmentService,
    MaterialRequestService,
)
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["material-requests"])


async def _scoped(db: AsyncSession, request_id: uuid.UUID, user: User):
    req = await MaterialRequestService.load_request(db, request_id)
    ensure_business_unit_access(user, req.business_unit_id)
    return req


# ── Static routes ───────────────────────────────────────────────────

@router.get("/next-doc-number", response_model=NextDocumentNumber)
async def next_document_number(
    series: str = Query(..., min_length=1, max_length=10),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialRequestService.next_document_number(db, series)


@router.get("/pending-approvals")
async def pending_approvals(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    type: Optional[RequestType] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if business_unit_id is not None:
        ensure_business_unit_access(user, business_unit_id)
    result = await MaterialRequestApprovalService.pending_approvals(
        db, user, pagination,
        business_unit_id=business_unit_id,
        request_type=type,
    )
    return result.to_json()


async def _queue(db, user, business_unit_id, statuses, pagination, search, unsigned_only=False):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    result = await MaterialRequestFulfilmentService.queue(
        db, bu_id, statuses, pagination, search=search, unsigned_only=unsigned_only,
    )
    return result.to_json()


@router.get("/queues/to-serve")
async def to_serve_queue(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _queue(
        db, user, business_unit_id, [MRSRequestStatus.FOR_SERVING], pagination, search,
    )


@router.get("/queues/for-posting")
async def for_posting_queue(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _queue(
        db, user, business_unit_id, [MRSRequestStatus.FOR_POSTING], pagination, search,
    )


@router.get("/queues/done")
async def done_queue(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _queue(db, user, business_unit_id, DONE_STATUSES, pagination, search)


@router.get("/queues/for-acknowledgement")
async def for_acknowledgement_queue(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _queue(
        db, user, business_unit_id, [MRSRequestStatus.POSTED], pagination, search,
        unsigned_only=True,
    )


# ── Documents ───────────────────────────────────────────────────────

@router.get("")
async def list_material_requests(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    status: Optional[MRSRequestStatus] = Query(None),
    type: Optional[RequestType] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    mine: bool = Query(False, description="Only requests raised by the caller"),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    result = await MaterialRequestService.list_requests(
        db, bu_id, pagination,
        status=status,
        request_type=type,
        department_id=department_id,
        requested_by_id=user.id if mine else None,
        search=search,
    )
    return result.to_json()


@router.post("", response_model=MaterialRequestOut, status_code=201)
async def create_material_request(
    body: MaterialRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await MaterialRequestService.create_request(db, body, user)


@router.get("/{request_id}", response_model=MaterialRequestOut)
async def get_material_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    req = await _scoped(db, request_id, user)
    return MaterialRequestService.build_response(req)


@router.patch("/{request_id}", response_model=MaterialRequestOut)
async def update_material_request(
    request_id: uuid.UUID,
    body: MaterialRequestUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestService.update_request(db, request_id, body, user)


@router.delete("/{request_id}", status_code=204)
async def delete_material_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    await MaterialRequestService.delete_request(db, request_id, user)


@router.post("/{request_id}/submit", response_model=MaterialRequestOut)
async def submit_material_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestService.submit_request(db, request_id, user)


# ── Review / approval ───────────────────────────────────────────────

@router.post("/{request_id}/review", response_model=MaterialRequestOut)
async def review_material_request(
    request_id: uuid.UUID,
    body: ReviewAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestApprovalService.review(
        db, request_id, user, decision=body.decision, remarks=body.remarks,
    )


@router.post("/{request_id}/approve", response_model=MaterialRequestOut)
async def approve_material_request(
    request_id: uuid.UUID,
    body: ApproveAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestApprovalService.approve(
        db, request_id, user, remarks=body.remarks,
    )


@router.post("/{request_id}/disapprove", response_model=MaterialRequestOut)
async def disapprove_material_request(
    request_id: uuid.UUID,
    body: DisapproveAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestApprovalService.disapprove(
        db, request_id, user, remarks=body.remarks,
    )


# ── Fulfilment ──────────────────────────────────────────────────────

@router.post("/{request_id}/serve", response_model=MaterialRequestOut)
async def serve_material_request(
    request_id: uuid.UUID,
    body: ServeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestFulfilmentService.mark_served(db, request_id, body, user)


@router.post("/{request_id}/post", response_model=MaterialRequestOut)
async def post_material_request(
    request_id: uuid.UUID,
    body: PostRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestFulfilmentService.mark_posted(
        db, request_id, user, confirmation_no=body.confirmation_no,
    )


@router.post("/{request_id}/receive", response_model=MaterialRequestOut)
async def receive_material_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestFulfilmentService.mark_received(db, request_id, user)


@router.post("/{request_id}/acknowledge", response_model=MaterialRequestOut)
async def acknowledge_material_request(
    request_id: uuid.UUID,
    body: AcknowledgementRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _scoped(db, request_id, user)
    return await MaterialRequestFulfilmentService.acknowledge(
        db, request_id, user, signature_data=body.signature_data,
    )
