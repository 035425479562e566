"""Two-stage approval state machine for leave and overtime requests.

    PENDING_MANAGER ──approve──▶ PENDING_HR ──approve──▶ APPROVED
          │                          │
          └────reject──▶ REJECTED ◀──┘

Pure functions: they take the actor and request facts and either return
the resulting transition or raise the appropriate application error.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from backoffice.common.constants import RequestStatus, UserRole
from backoffice.common.exceptions import BusinessRuleException, ForbiddenException

APPROVER_ROLES: tuple[UserRole, ...] = (UserRole.ADMIN, UserRole.HR, UserRole.MANAGER)


class ApprovalStage(str, enum.Enum):
    MANAGER = "MANAGER"
    HR = "HR"


class ApprovalAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


@dataclass(frozen=True)
class Transition:
    stage: ApprovalStage
    from_status: RequestStatus
    to_status: RequestStatus


def ensure_can_approve(
    actor_role: UserRole,
    actor_business_unit_id: Optional[uuid.UUID],
    requester_business_unit_id: Optional[uuid.UUID],
) -> None:
    """Only ADMIN, HR and MANAGER approve; managers stay inside their unit."""
    if actor_role not in APPROVER_ROLES:
        raise ForbiddenException("Insufficient permissions to approve requests.")
    if actor_role == UserRole.MANAGER and (
        actor_business_unit_id is None
        or actor_business_unit_id != requester_business_unit_id
    ):
        raise ForbiddenException("Access denied to this business unit.")


def resolve_stage(
    *,
    actor_id: uuid.UUID,
    actor_role: UserRole,
    requester_approver_id: Optional[uuid.UUID],
    status: RequestStatus,
) -> ApprovalStage:
    """Decide which stage *actor* is acting at, or raise 403/400."""
    if actor_role == UserRole.MANAGER:
        if requester_approver_id != actor_id:
            raise ForbiddenException("You can only act on requests from your direct reports.")
        if status != RequestStatus.PENDING_MANAGER:
            raise BusinessRuleException("This request is not pending manager approval.")
        return ApprovalStage.MANAGER

    if actor_role == UserRole.HR:
        if status != RequestStatus.PENDING_HR:
            raise BusinessRuleException("This request is not pending HR approval.")
        return ApprovalStage.HR

    if actor_role == UserRole.ADMIN:
        if status == RequestStatus.PENDING_MANAGER:
            return ApprovalStage.MANAGER
        if status == RequestStatus.PENDING_HR:
            return ApprovalStage.HR
        raise BusinessRuleException(
            f"Request is not pending approval (current: {status.value}).",
        )

    raise ForbiddenException("Insufficient permissions to approve requests.")


def next_transition(
    *,
    actor_id: uuid.UUID,
    actor_role: UserRole,
    requester_approver_id: Optional[uuid.UUID],
    status: RequestStatus,
    action: ApprovalAction,
) -> Transition:
    stage = resolve_stage(
        actor_id=actor_id,
        actor_role=actor_role,
        requester_approver_id=requester_approver_id,
        status=status,
    )
    if action == ApprovalAction.REJECT:
        return Transition(stage, status, RequestStatus.REJECTED)
    if stage == ApprovalStage.MANAGER:
        return Transition(stage, status, RequestStatus.PENDING_HR)
    return Transition(stage, status, RequestStatus.APPROVED)
