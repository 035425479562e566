"""Auth dependencies — JWT validation, RBAC enforcement, business-unit scoping."""

from __future__ import annotations

import hashlib
import uuid
from typing import Callable, Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.auth.models import UserSession
from backoffice.common.constants import UserRole
from backoffice.common.exceptions import ForbiddenException, UnauthorizedException
from backoffice.config import settings
from backoffice.database import get_db
from backoffice.organization.models import User


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.live(),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException("Session invalid or expired.")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedException("Invalid token subject.")

    user_result = await db.execute(
        select(User)
        .where(User.id == user_id, User.is_active.is_(True))
        .options(
            selectinload(User.business_unit),
            selectinload(User.department),
        ),
    )
    user = user_result.scalars().first()
    if user is None:
        raise UnauthorizedException("User account is inactive or not found.")

    # The stored role wins over a stale claim in an older token
    request.state.user_role = user.role
    return user


# ── Role-based dependency ───────────────────────────────────────────

def has_role(user: User, *allowed_roles: UserRole) -> bool:
    """ADMIN satisfies every role check."""
    return user.role == UserRole.ADMIN or user.role in allowed_roles


def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if not has_role(user, *allowed_roles):
            raise ForbiddenException(
                detail=(
                    f"Role '{user.role.value}' is not permitted. "
                    f"Required: {[r.value for r in allowed_roles]}."
                ),
            )
        return user

    return _check


# ── Tenant scoping ──────────────────────────────────────────────────

def ensure_business_unit_access(
    user: User,
    business_unit_id: Optional[uuid.UUID],
) -> None:
    """Non-ADMIN users may only operate inside their own business unit."""
    if user.role == UserRole.ADMIN:
        return
    if business_unit_id is None or user.business_unit_id != business_unit_id:
        raise ForbiddenException(
            detail="You do not have access to this business unit.",
        )
