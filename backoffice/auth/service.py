"""Auth service — credential login, JWT management, session lifecycle."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import hash_token
from backoffice.auth.models import UserSession
from backoffice.common.constants import UserRole
from backoffice.common.exceptions import ForbiddenException, UnauthorizedException
from backoffice.config import settings
from backoffice.organization.models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Unrecognised hash format
        return False


async def authenticate(db: AsyncSession, employee_id: str, password: str) -> User:
    """Return the active user matching the credentials, or raise 401."""
    result = await db.execute(select(User).where(User.employee_id == employee_id))
    user = result.scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for employee_id=%s", employee_id)
        raise UnauthorizedException("Invalid employee ID or password.")
    if not user.is_active:
        raise UnauthorizedException("User account is inactive.")
    return user


# ── JWT helpers ─────────────────────────────────────────────────────

def create_access_token(user_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def create_refresh_token(user_id: uuid.UUID) -> str:
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # each refresh token is distinct
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[str, str, int]:
    """Create a JWT pair and persist the session.

    Returns (access_token, refresh_token, expires_in).
    """
    access_token, expires_in = create_access_token(user.id, user.role)
    refresh_token = create_refresh_token(user.id)

    db.add(
        UserSession(
            user_id=user.id,
            token_hash=hash_token(access_token),
            refresh_token_hash=hash_token(refresh_token),
            ip_address=ip,
            user_agent=user_agent,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        )
    )
    await db.flush()
    return access_token, refresh_token, expires_in


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
) -> tuple[str, str, int]:
    """Validate a refresh token, rotate it, and issue a new token pair.

    Each refresh token can only be used once. If a previously consumed
    refresh token is presented again, every session of that user is revoked.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise ForbiddenException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise ForbiddenException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()
    if session is None:
        raise ForbiddenException(detail="Invalid refresh token.")

    if session.is_revoked:
        logger.warning("Refresh token reuse detected for user %s", session.user_id)
        await revoke_all_user_sessions(db, session.user_id)
        await db.commit()  # persist revocations before the error rolls back
        raise ForbiddenException(
            detail="Refresh token reuse detected. All sessions revoked for security.",
        )

    session.revoke()
    await db.flush()

    user_result = await db.execute(
        select(User).where(User.id == session.user_id, User.is_active.is_(True)),
    )
    user = user_result.scalars().first()
    if user is None:
        raise ForbiddenException(detail="User account is inactive.")

    return await create_session(db, user, session.ip_address, session.user_agent)


# ── Revoke / cleanup ────────────────────────────────────────────────

async def revoke_all_user_sessions(db: AsyncSession, user_id: uuid.UUID) -> None:
    result = await db.execute(
        select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.revoke()
    await db.flush()


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.revoke()
        await db.flush()


async def cleanup_expired_sessions(db: AsyncSession) -> int:
    """Delete expired or revoked sessions. Returns the number removed."""
    result = await db.execute(
        delete(UserSession).where(UserSession.dead())
    )
    await db.flush()
    removed = result.rowcount or 0
    logger.info("Session cleanup removed %d sessions", removed)
    return removed
