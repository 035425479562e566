"""Material request service layer.

A request moves DRAFT → (FOR_REVIEW →) FOR_REC_APPROVAL → FOR_FINAL_APPROVAL →
FOR_SERVING → FOR_POSTING → POSTED → RECEIVED. Every transition checks the
current status and the acting user's role before touching the row.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import (
    ApprovalStatus,
    ApproverType,
    MRSRequestStatus,
    RequestType,
    UserRole,
)
from backoffice.common.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backoffice.common.filters import apply_filters, apply_search
from backoffice.common.models import model_snapshot, utcnow
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.material_requests.models import MaterialRequest, MaterialRequestItem
from backoffice.material_requests.schemas import (
    MaterialRequestCreate,
    MaterialRequestItemIn,
    MaterialRequestOut,
    MaterialRequestUpdate,
    NextDocumentNumber,
    ServeRequest,
)
from backoffice.organization.models import BusinessUnit, Department, User
from backoffice.organization.service import DepartmentApproverService

logger = logging.getLogger(__name__)

EDITABLE_STATUSES: tuple[MRSRequestStatus, ...] = (
    MRSRequestStatus.DRAFT,
    MRSRequestStatus.FOR_EDIT,
)

DONE_STATUSES: tuple[MRSRequestStatus, ...] = (
    MRSRequestStatus.POSTED,
    MRSRequestStatus.RECEIVED,
)

# Approved requests on which the requester may sign for the goods
ACKNOWLEDGEABLE_STATUSES: tuple[MRSRequestStatus, ...] = (
    MRSRequestStatus.FOR_SERVING,
    MRSRequestStatus.FOR_POSTING,
    MRSRequestStatus.POSTED,
    MRSRequestStatus.RECEIVED,
)

SEARCH_COLUMNS = (
    "doc_no",
    "purpose",
    "supplier_name",
    "purchase_order_number",
    "confirmation_no",
)

_ENTITY = "material_request"


# ── Pure helpers ────────────────────────────────────────────────────

def line_total(item: MaterialRequestItemIn) -> Optional[Decimal]:
    if item.unit_price is None:
        return None
    return (item.unit_price * item.quantity).quantize(Decimal("0.01"))


def compute_total(
    items: Iterable[MaterialRequestItemIn],
    freight: Decimal,
    discount: Decimal,
) -> Decimal:
    """Σ(unit price × quantity) + freight − discount; unpriced lines count as 0."""
    subtotal = sum((line_total(i) or Decimal("0") for i in items), Decimal("0"))
    return (subtotal + Decimal(freight) - Decimal(discount)).quantize(Decimal("0.01"))


def format_document_number(series: str, year: int, sequence: int) -> str:
    return f"{series}-{year % 100:02d}-{sequence:05d}"


def _item_rows(items: Sequence[MaterialRequestItemIn]) -> list[MaterialRequestItem]:
    return [
        MaterialRequestItem(
            item_code=item.item_code or None,
            description=item.description,
            uom=item.uom,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=line_total(item),
            quantity_served=Decimal("0"),
            remarks=item.remarks or None,
        )
        for item in items
    ]


def _item_inputs(req: MaterialRequest) -> list[MaterialRequestItemIn]:
    return [
        MaterialRequestItemIn(
            item_code=i.item_code,
            description=i.description,
            uom=i.uom,
            quantity=i.quantity,
            unit_price=i.unit_price,
            remarks=i.remarks,
        )
        for i in req.items
    ]


def _enter_approval(req: MaterialRequest) -> None:
    """Route into the first approval stage that has an approver assigned."""
    if req.rec_approver_id is not None:
        req.status = MRSRequestStatus.FOR_REC_APPROVAL
        req.rec_approval_status = ApprovalStatus.PENDING
    else:
        req.status = MRSRequestStatus.FOR_FINAL_APPROVAL
        req.final_approval_status = ApprovalStatus.PENDING


def _rec_stage_cleared(req: MaterialRequest) -> bool:
    return req.rec_approver_id is None or req.rec_approval_status == ApprovalStatus.APPROVED


def _mark_approved(req: MaterialRequest, when: datetime) -> None:
    req.status = MRSRequestStatus.FOR_SERVING
    req.date_approved = when


def _can_post(user: User) -> bool:
    return user.role in (UserRole.ADMIN, UserRole.ACCTG) or bool(user.is_acctg)


def _can_serve(user: User) -> bool:
    return user.role == UserRole.ADMIN or bool(user.is_purchaser)


async def _audit(
    db: AsyncSession,
    req: MaterialRequest,
    actor: User,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> None:
    await create_audit_entry(
        db,
        action=action,
        entity_type=_ENTITY,
        entity_id=req.id,
        actor_id=actor.id,
        business_unit_id=req.business_unit_id,
        old_values=old_values,
        new_values=new_values,
    )


# ═════════════════════════════════════════════════════════════════════
# Documents
# ═════════════════════════════════════════════════════════════════════


class MaterialRequestService:

    @staticmethod
    def build_response(req: MaterialRequest) -> MaterialRequestOut:
        return MaterialRequestOut.model_validate(req)

    @staticmethod
    def base_query():
        return select(MaterialRequest).options(
            selectinload(MaterialRequest.items),
            selectinload(MaterialRequest.requested_by),
            selectinload(MaterialRequest.department),
        )

    @staticmethod
    async def load_request(db: AsyncSession, request_id: uuid.UUID) -> MaterialRequest:
        result = await db.execute(
            MaterialRequestService.base_query()
            .where(MaterialRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("MaterialRequest", str(request_id))
        return req

    @staticmethod
    async def next_document_number(db: AsyncSession, series: str) -> NextDocumentNumber:
        """Next ``{series}-{YY}-{NNNNN}`` number, counted per series and year."""
        series = series.strip().upper()
        year = datetime.now(timezone.utc).year
        prefix = f"{series}-{year % 100:02d}-"
        result = await db.execute(
            select(MaterialRequest.doc_no).where(MaterialRequest.doc_no.like(f"{prefix}%"))
        )
        highest = 0
        for doc_no in result.scalars().all():
            suffix = doc_no[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return NextDocumentNumber(
            series=series,
            doc_no=format_document_number(series, year, highest + 1),
        )

    @staticmethod
    async def _validate_placement(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        department_id: Optional[uuid.UUID],
    ) -> None:
        if await db.get(BusinessUnit, business_unit_id) is None:
            raise NotFoundException("BusinessUnit", str(business_unit_id))
        if department_id is not None:
            dept = await db.get(Department, department_id)
            if dept is None:
                raise NotFoundException("Department", str(department_id))
            if dept.business_unit_id != business_unit_id:
                raise BusinessRuleException(
                    "Department does not belong to the request's business unit.",
                )

    @staticmethod
    async def _validate_approvers(
        db: AsyncSession,
        department_id: Optional[uuid.UUID],
        *,
        reviewer_id: Optional[uuid.UUID],
        rec_approver_id: Optional[uuid.UUID],
        final_approver_id: Optional[uuid.UUID],
    ) -> None:
        errors: dict[str, list[str]] = {}
        checks = (
            ("reviewer_id", reviewer_id, None),
            ("rec_approver_id", rec_approver_id, ApproverType.RECOMMENDING),
            ("final_approver_id", final_approver_id, ApproverType.FINAL),
        )
        for field, user_id, approver_type in checks:
            if user_id is None:
                continue
            approver = await db.get(User, user_id)
            if approver is None or not approver.is_active:
                errors[field] = ["Approver does not exist or is inactive."]
                continue
            if approver_type is None or department_id is None:
                continue
            if not await DepartmentApproverService.is_department_approver(
                db, department_id, user_id, approver_type,
            ):
                errors[field] = [
                    f"User is not an active {approver_type.value.lower()} approver "
                    "for this department.",
                ]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def create_request(
        db: AsyncSession,
        data: MaterialRequestCreate,
        actor: User,
    ) -> MaterialRequestOut:
        await MaterialRequestService._validate_placement(
            db, data.business_unit_id, data.department_id,
        )
        await MaterialRequestService._validate_approvers(
            db,
            data.department_id,
            reviewer_id=data.reviewer_id,
            rec_approver_id=data.rec_approver_id,
            final_approver_id=data.final_approver_id,
        )

        doc = await MaterialRequestService.next_document_number(db, data.series)
        req = MaterialRequest(
            **data.model_dump(exclude={"items", "series"}),
            series=doc.series,
            doc_no=doc.doc_no,
            status=MRSRequestStatus.DRAFT,
            requested_by_id=actor.id,
            total=compute_total(data.items, data.freight, data.discount),
            items=_item_rows(data.items),
        )
        db.add(req)
        await db.flush()

        await _audit(
            db, req, actor, "create",
            new_values=data.model_dump(mode="json", exclude={"items"}) | {
                "doc_no": req.doc_no,
                "item_count": len(data.items),
            },
        )
        logger.info("Created material request %s (%d item(s))", req.doc_no, len(data.items))
        req = await MaterialRequestService.load_request(db, req.id)
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def update_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: MaterialRequestUpdate,
        actor: User,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        if req.requested_by_id != actor.id:
            raise ForbiddenException("You can only edit your own material requests.")
        if req.status not in EDITABLE_STATUSES:
            raise BusinessRuleException(
                f"Only draft or returned requests can be edited (current: {req.status.value}).",
            )

        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        department_id = changes.get("department_id", req.department_id)
        if "department_id" in changes:
            await MaterialRequestService._validate_placement(
                db, req.business_unit_id, department_id,
            )
        await MaterialRequestService._validate_approvers(
            db,
            department_id,
            reviewer_id=changes.get("reviewer_id", req.reviewer_id),
            rec_approver_id=changes.get("rec_approver_id", req.rec_approver_id),
            final_approver_id=changes.get("final_approver_id", req.final_approver_id),
        )

        old_values = model_snapshot(req, set(changes) | {"status", "total"})
        for field, value in changes.items():
            setattr(req, field, value)

        items = data.items if data.items is not None else _item_inputs(req)
        if data.items is not None:
            req.items = _item_rows(data.items)
        req.total = compute_total(items, req.freight, req.discount)

        if req.status == MRSRequestStatus.FOR_EDIT:
            req.date_revised = utcnow()
        req.status = MRSRequestStatus.DRAFT
        await db.flush()

        await _audit(
            db, req, actor, "update",
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True, exclude={"items"})
            | {"status": req.status.value, "total": str(req.total)},
        )
        req = await MaterialRequestService.load_request(db, req.id)
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def delete_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
    ) -> None:
        req = await MaterialRequestService.load_request(db, request_id)
        if req.requested_by_id != actor.id:
            raise ForbiddenException("You can only delete your own material requests.")
        if req.status != MRSRequestStatus.DRAFT:
            raise BusinessRuleException("Only draft requests can be deleted.")

        snapshot = model_snapshot(req)
        bu_id = req.business_unit_id
        await db.delete(req)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type=_ENTITY,
            entity_id=request_id,
            actor_id=actor.id,
            business_unit_id=bu_id,
            old_values=snapshot,
        )
        logger.info("Deleted draft material request %s", snapshot["doc_no"])

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        if req.requested_by_id != actor.id:
            raise ForbiddenException("You can only submit your own requests.")
        if req.status != MRSRequestStatus.DRAFT:
            raise BusinessRuleException("Request is not in draft status.")
        if req.rec_approver_id is None and req.final_approver_id is None:
            raise BusinessRuleException("No approvers assigned to this request.")

        if req.is_store_use:
            req.status = MRSRequestStatus.FOR_REVIEW
            req.review_status = ApprovalStatus.PENDING
        else:
            _enter_approval(req)
        await db.flush()

        await _audit(
            db, req, actor, "submit",
            old_values={"status": MRSRequestStatus.DRAFT.value},
            new_values={"status": req.status.value},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[MRSRequestStatus] = None,
        request_type: Optional[RequestType] = None,
        department_id: Optional[uuid.UUID] = None,
        requested_by_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = MaterialRequestService.base_query().where(
            MaterialRequest.business_unit_id == business_unit_id,
        )
        query = apply_filters(query, MaterialRequest, {
            "status": status,
            "type": request_type,
            "department_id": department_id,
            "requested_by_id": requested_by_id,
        })
        query = apply_search(query, MaterialRequest, search, SEARCH_COLUMNS)
        query = query.order_by(MaterialRequest.created_at.desc())
        return await paginate(
            db, query, pagination,
            model=MaterialRequest,
            transform=MaterialRequestService.build_response,
        )


# ═════════════════════════════════════════════════════════════════════
# Review and approval
# ═════════════════════════════════════════════════════════════════════


class MaterialRequestApprovalService:

    @staticmethod
    async def review(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        *,
        decision: str,
        remarks: Optional[str] = None,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        if req.status != MRSRequestStatus.FOR_REVIEW:
            raise BusinessRuleException(
                f"Request is not awaiting review (current: {req.status.value}).",
            )
        if actor.role != UserRole.ADMIN and req.reviewer_id != actor.id:
            raise ForbiddenException("You are not the reviewer of this request.")

        old_status = req.status.value
        req.reviewer_id = req.reviewer_id or actor.id
        req.reviewed_at = utcnow()
        req.review_remarks = remarks
        if decision == "APPROVE":
            req.review_status = ApprovalStatus.APPROVED
            _enter_approval(req)
        elif decision == "REQUEST_EDIT":
            req.review_status = ApprovalStatus.PENDING
            req.status = MRSRequestStatus.FOR_EDIT
        else:
            req.review_status = ApprovalStatus.DISAPPROVED
            req.status = MRSRequestStatus.DISAPPROVED
        await db.flush()

        await _audit(
            db, req, actor, f"review_{decision.lower()}",
            old_values={"status": old_status},
            new_values={"status": req.status.value, "review_remarks": remarks},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        *,
        remarks: Optional[str] = None,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        now = utcnow()
        old_status = req.status.value

        if req.status == MRSRequestStatus.FOR_REC_APPROVAL:
            if req.rec_approver_id != actor.id:
                raise ForbiddenException("You are not authorized to approve this request.")
            req.rec_approval_status = ApprovalStatus.APPROVED
            req.rec_approval_date = now
            req.rec_approval_remarks = remarks
            if req.final_approver_id is not None:
                req.status = MRSRequestStatus.FOR_FINAL_APPROVAL
                req.final_approval_status = ApprovalStatus.PENDING
            else:
                req.status = MRSRequestStatus.FINAL_APPROVED
                _mark_approved(req, now)
        elif req.status == MRSRequestStatus.FOR_FINAL_APPROVAL:
            if req.final_approver_id != actor.id or not _rec_stage_cleared(req):
                raise ForbiddenException("You are not authorized to approve this request.")
            req.final_approval_status = ApprovalStatus.APPROVED
            req.final_approval_date = now
            req.final_approval_remarks = remarks
            _mark_approved(req, now)
        else:
            raise BusinessRuleException(
                f"Request is not awaiting approval (current: {req.status.value}).",
            )
        await db.flush()

        await _audit(
            db, req, actor, "approve",
            old_values={"status": old_status},
            new_values={"status": req.status.value, "remarks": remarks},
        )
        logger.info("Material request %s: %s -> %s", req.doc_no, old_status, req.status.value)
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def disapprove(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        *,
        remarks: str,
    ) -> MaterialRequestOut:
        if not remarks or not remarks.strip():
            raise ValidationException({"remarks": ["Remarks are required to disapprove."]})

        req = await MaterialRequestService.load_request(db, request_id)
        now = utcnow()
        old_status = req.status.value

        if req.status == MRSRequestStatus.FOR_REC_APPROVAL:
            if req.rec_approver_id != actor.id:
                raise ForbiddenException("You are not authorized to disapprove this request.")
            req.rec_approval_status = ApprovalStatus.DISAPPROVED
            req.rec_approval_date = now
            req.rec_approval_remarks = remarks
        elif req.status == MRSRequestStatus.FOR_FINAL_APPROVAL:
            if req.final_approver_id != actor.id or not _rec_stage_cleared(req):
                raise ForbiddenException("You are not authorized to disapprove this request.")
            req.final_approval_status = ApprovalStatus.DISAPPROVED
            req.final_approval_date = now
            req.final_approval_remarks = remarks
        else:
            raise BusinessRuleException(
                f"Request is not awaiting approval (current: {req.status.value}).",
            )
        req.status = MRSRequestStatus.DISAPPROVED
        await db.flush()

        await _audit(
            db, req, actor, "disapprove",
            old_values={"status": old_status},
            new_values={"status": req.status.value, "remarks": remarks},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def pending_approvals(
        db: AsyncSession,
        approver: User,
        pagination: PaginationParams,
        *,
        business_unit_id: Optional[uuid.UUID] = None,
        request_type: Optional[RequestType] = None,
    ) -> PaginatedResponse:
        """Requests waiting on *approver* at the recommending or final stage."""
        awaiting_rec = and_(
            MaterialRequest.rec_approver_id == approver.id,
            MaterialRequest.status == MRSRequestStatus.FOR_REC_APPROVAL,
            or_(
                MaterialRequest.rec_approval_status.is_(None),
                MaterialRequest.rec_approval_status == ApprovalStatus.PENDING,
            ),
        )
        awaiting_final = and_(
            MaterialRequest.final_approver_id == approver.id,
            MaterialRequest.status == MRSRequestStatus.FOR_FINAL_APPROVAL,
            or_(
                MaterialRequest.rec_approver_id.is_(None),
                MaterialRequest.rec_approval_status == ApprovalStatus.APPROVED,
            ),
            or_(
                MaterialRequest.final_approval_status.is_(None),
                MaterialRequest.final_approval_status == ApprovalStatus.PENDING,
            ),
        )
        query = MaterialRequestService.base_query().where(or_(awaiting_rec, awaiting_final))
        query = apply_filters(query, MaterialRequest, {
            "business_unit_id": business_unit_id,
            "type": request_type,
        })
        query = query.order_by(MaterialRequest.created_at.desc())
        return await paginate(
            db, query, pagination,
            model=MaterialRequest,
            transform=MaterialRequestService.build_response,
        )


# ═════════════════════════════════════════════════════════════════════
# Serving, posting, receiving
# ═════════════════════════════════════════════════════════════════════


class MaterialRequestFulfilmentService:

    @staticmethod
    async def mark_served(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: ServeRequest,
        actor: User,
    ) -> MaterialRequestOut:
        if not _can_serve(actor):
            raise ForbiddenException("Only purchasers can serve material requests.")
        req = await MaterialRequestService.load_request(db, request_id)
        if req.status != MRSRequestStatus.FOR_SERVING:
            raise BusinessRuleException(
                f"Request is not ready for serving (current: {req.status.value}).",
            )

        items = {item.id: item for item in req.items}
        unknown = [str(i) for i in data.served_quantities if i not in items]
        if unknown:
            raise ValidationException({
                "served_quantities": [f"Unknown item(s): {', '.join(unknown)}."],
            })
        over = [
            items[i].description
            for i, qty in data.served_quantities.items()
            if Decimal(items[i].quantity_served or 0) + qty > Decimal(items[i].quantity)
        ]
        if over:
            raise BusinessRuleException(
                f"Served quantity exceeds the requested quantity for: {', '.join(over)}.",
            )

        for item_id, qty in data.served_quantities.items():
            item = items[item_id]
            item.quantity_served = Decimal(item.quantity_served or 0) + qty

        req.served_at = utcnow()
        req.served_by = actor.id
        req.served_notes = data.served_notes
        for field in ("supplier_bp_code", "supplier_name", "purchase_order_number"):
            value = getattr(data, field)
            if value is not None:
                setattr(req, field, value)

        fully_served = all(item.is_fully_served for item in req.items)
        if fully_served:
            req.status = MRSRequestStatus.FOR_POSTING
        await db.flush()

        await _audit(
            db, req, actor, "serve",
            old_values={"status": MRSRequestStatus.FOR_SERVING.value},
            new_values={
                "status": req.status.value,
                "served_quantities": {str(k): str(v) for k, v in data.served_quantities.items()},
            },
        )
        logger.info(
            "Served %d line(s) on %s%s",
            len(data.served_quantities), req.doc_no,
            " (complete)" if fully_served else "",
        )
        req = await MaterialRequestService.load_request(db, req.id)
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def mark_posted(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        *,
        confirmation_no: Optional[str] = None,
    ) -> MaterialRequestOut:
        if not _can_post(actor):
            raise ForbiddenException("Only accounting can post material requests.")
        req = await MaterialRequestService.load_request(db, request_id)
        if req.status != MRSRequestStatus.FOR_POSTING:
            raise BusinessRuleException(
                f"Request is not ready for posting (current: {req.status.value}).",
            )

        now = utcnow()
        req.status = MRSRequestStatus.POSTED
        req.date_posted = now
        req.processed_by = actor.id
        req.processed_at = now
        if confirmation_no:
            req.confirmation_no = confirmation_no
        await db.flush()

        await _audit(
            db, req, actor, "post",
            old_values={"status": MRSRequestStatus.FOR_POSTING.value},
            new_values={"status": req.status.value, "confirmation_no": req.confirmation_no},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def mark_received(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        if actor.role != UserRole.ADMIN and req.requested_by_id != actor.id:
            raise ForbiddenException("Only the requester can mark this request as received.")
        if req.status != MRSRequestStatus.POSTED:
            raise BusinessRuleException("Request must be posted before marking as received.")

        req.status = MRSRequestStatus.RECEIVED
        req.date_received = utcnow()
        await db.flush()

        await _audit(
            db, req, actor, "receive",
            old_values={"status": MRSRequestStatus.POSTED.value},
            new_values={"status": req.status.value},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def acknowledge(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        *,
        signature_data: str,
    ) -> MaterialRequestOut:
        req = await MaterialRequestService.load_request(db, request_id)
        if actor.role != UserRole.ADMIN and req.requested_by_id != actor.id:
            raise ForbiddenException("Only the requester can acknowledge this request.")
        if req.status not in ACKNOWLEDGEABLE_STATUSES:
            raise BusinessRuleException("Only approved requests can be acknowledged.")
        if req.acknowledged_at is not None:
            raise BusinessRuleException("Request has already been acknowledged.")

        req.acknowledged_at = utcnow()
        req.acknowledged_by_id = actor.id
        req.signature_data = signature_data
        await db.flush()

        await _audit(
            db, req, actor, "acknowledge",
            new_values={"acknowledged_at": req.acknowledged_at.isoformat()},
        )
        return MaterialRequestService.build_response(req)

    @staticmethod
    async def queue(
        db: AsyncSession,
        business_unit_id: uuid.UUID,
        statuses: Sequence[MRSRequestStatus],
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        unsigned_only: bool = False,
    ) -> PaginatedResponse:
        query = MaterialRequestService.base_query().where(
            MaterialRequest.business_unit_id == business_unit_id,
            MaterialRequest.status.in_(statuses),
        )
        if unsigned_only:
            query = query.where(MaterialRequest.signature_data.is_(None))
        query = apply_search(query, MaterialRequest, search, SEARCH_COLUMNS)
        query = query.order_by(MaterialRequest.created_at.desc())
        return await paginate(
            db, query, pagination,
            model=MaterialRequest,
            transform=MaterialRequestService.build_response,
        )
