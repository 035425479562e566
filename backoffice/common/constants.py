"""Enums and constants for the back-office platform — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    HR = "HR"
    ACCTG = "ACCTG"
    USER = "USER"


# ── Organization ────────────────────────────────────────────────────

class ApproverType(str, enum.Enum):
    RECOMMENDING = "RECOMMENDING"
    FINAL = "FINAL"


class GLAccountType(str, enum.Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


# ── Leave / Overtime ────────────────────────────────────────────────

class RequestStatus(str, enum.Enum):
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveSession(str, enum.Enum):
    FULL_DAY = "FULL_DAY"
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


PENDING_STATUSES: tuple[RequestStatus, ...] = (
    RequestStatus.PENDING_MANAGER,
    RequestStatus.PENDING_HR,
)

# Leave types whose remaining days carry over into the next year
CARRY_OVER_KEYWORDS: tuple[str, ...] = ("VACATION", "SICK LEAVE", "SICK", "ANNUAL LEAVE")


# ── Assets ──────────────────────────────────────────────────────────

class AssetStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    DEPLOYED = "DEPLOYED"
    IN_MAINTENANCE = "IN_MAINTENANCE"
    DAMAGED = "DAMAGED"
    LOST = "LOST"
    RETIRED = "RETIRED"
    DISPOSED = "DISPOSED"


class DeploymentStatus(str, enum.Enum):
    PENDING_ACCOUNTING_APPROVAL = "PENDING_ACCOUNTING_APPROVAL"
    APPROVED = "APPROVED"
    DEPLOYED = "DEPLOYED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


OPEN_DEPLOYMENT_STATUSES: tuple[DeploymentStatus, ...] = (
    DeploymentStatus.PENDING_ACCOUNTING_APPROVAL,
    DeploymentStatus.APPROVED,
    DeploymentStatus.DEPLOYED,
)

# Statuses from which an asset may be disposed of or retired
DECOMMISSIONABLE_STATUSES: tuple[AssetStatus, ...] = (
    AssetStatus.AVAILABLE,
    AssetStatus.DEPLOYED,
    AssetStatus.IN_MAINTENANCE,
    AssetStatus.DAMAGED,
)


class DisposalMethod(str, enum.Enum):
    SALE = "SALE"
    SCRAP = "SCRAP"
    DONATION = "DONATION"
    TRADE_IN = "TRADE_IN"
    DESTRUCTION = "DESTRUCTION"
    OTHER = "OTHER"


class DisposalReason(str, enum.Enum):
    SOLD = "SOLD"
    DONATED = "DONATED"
    SCRAPPED = "SCRAPPED"
    LOST = "LOST"
    STOLEN = "STOLEN"
    TRANSFERRED = "TRANSFERRED"
    END_OF_LIFE = "END_OF_LIFE"
    DAMAGED_BEYOND_REPAIR = "DAMAGED_BEYOND_REPAIR"
    OBSOLETE = "OBSOLETE"
    REGULATORY_COMPLIANCE = "REGULATORY_COMPLIANCE"


class RetirementReason(str, enum.Enum):
    END_OF_USEFUL_LIFE = "END_OF_USEFUL_LIFE"
    FULLY_DEPRECIATED = "FULLY_DEPRECIATED"
    OBSOLETE = "OBSOLETE"
    DAMAGED_BEYOND_REPAIR = "DAMAGED_BEYOND_REPAIR"
    POLICY_CHANGE = "POLICY_CHANGE"
    UPGRADE_REPLACEMENT = "UPGRADE_REPLACEMENT"


class RetirementMethod(str, enum.Enum):
    NORMAL_RETIREMENT = "NORMAL_RETIREMENT"
    EARLY_RETIREMENT = "EARLY_RETIREMENT"
    EMERGENCY_RETIREMENT = "EMERGENCY_RETIREMENT"
    PLANNED_REPLACEMENT = "PLANNED_REPLACEMENT"
    POLICY_DRIVEN = "POLICY_DRIVEN"


class AssetCondition(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    DAMAGED = "DAMAGED"
    NON_FUNCTIONAL = "NON_FUNCTIONAL"


class AssetHistoryAction(str, enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DEPLOYED = "DEPLOYED"
    RETURNED = "RETURNED"
    TRANSFERRED = "TRANSFERRED"
    DISPOSED = "DISPOSED"
    RETIRED = "RETIRED"
    DEPRECIATION_CALCULATED = "DEPRECIATION_CALCULATED"


# ── Depreciation ────────────────────────────────────────────────────

class DepreciationMethod(str, enum.Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    UNITS_OF_PRODUCTION = "UNITS_OF_PRODUCTION"
    SUM_OF_YEARS_DIGITS = "SUM_OF_YEARS_DIGITS"


class DepreciationPeriod(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


class ScheduleType(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


class ExecutionStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ExecutionAssetStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    FULLY_DEPRECIATED = "FULLY_DEPRECIATED"
    NO_SETUP = "NO_SETUP"


# ── Material requests ───────────────────────────────────────────────

class MRSRequestStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    FOR_REVIEW = "FOR_REVIEW"
    FOR_EDIT = "FOR_EDIT"
    FOR_REC_APPROVAL = "FOR_REC_APPROVAL"
    REC_APPROVED = "REC_APPROVED"
    FOR_FINAL_APPROVAL = "FOR_FINAL_APPROVAL"
    FINAL_APPROVED = "FINAL_APPROVED"
    FOR_SERVING = "FOR_SERVING"
    FOR_POSTING = "FOR_POSTING"
    POSTED = "POSTED"
    RECEIVED = "RECEIVED"
    DISAPPROVED = "DISAPPROVED"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DISAPPROVED = "DISAPPROVED"


class RequestType(str, enum.Enum):
    ITEM = "ITEM"
    SERVICE = "SERVICE"


# ── Role-based permissions ──────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.USER: [
        "profile:read_own",
        "leave:request",
        "overtime:request",
        "material_request:create",
        "upload:create",
    ],
    UserRole.MANAGER: [
        "profile:read_own",
        "leave:request",
        "overtime:request",
        "leave:approve",
        "overtime:approve",
        "material_request:create",
        "department:manage",
        "upload:create",
    ],
    UserRole.HR: [
        "profile:read_own",
        "user:manage",
        "leave:request",
        "overtime:request",
        "leave:approve",
        "overtime:approve",
        "leave:configure",
        "material_request:create",
        "upload:create",
    ],
    UserRole.ACCTG: [
        "profile:read_own",
        "leave:request",
        "overtime:request",
        "material_request:create",
        "material_request:post",
        "asset:approve_deployment",
        "depreciation:calculate",
        "depreciation:schedule",
        "gl_account:manage",
        "upload:create",
    ],
    UserRole.ADMIN: [
        "profile:read_own",
        "user:manage",
        "business_unit:manage",
        "department:manage",
        "leave:request",
        "overtime:request",
        "leave:approve",
        "overtime:approve",
        "leave:configure",
        "material_request:create",
        "material_request:serve",
        "material_request:post",
        "asset:manage",
        "asset:approve_deployment",
        "depreciation:calculate",
        "depreciation:schedule",
        "depreciation:trigger",
        "gl_account:manage",
        "audit:read",
        "upload:create",
    ],
}

# ── Paging ──────────────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
