"""Login sessions backing issued access / refresh tokens."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import INET, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.common.models import utcnow
from backoffice.database import Base

if TYPE_CHECKING:
    from backoffice.organization.models import User


class UserSession(Base):
    """One row per login; tokens are stored only as sha256 hashes.

    A session authenticates requests while it is neither revoked nor past
    ``expires_at``. Dead sessions are purged by the session-cleanup cron.
    """

    __tablename__ = "user_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(sa.String(512), nullable=False, index=True)
    refresh_token_hash: Mapped[Optional[str]] = mapped_column(sa.String(512), index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(INET)
    user_agent: Mapped[Optional[str]] = mapped_column(sa.Text)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    is_revoked: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    user: Mapped["User"] = relationship(back_populates="sessions")

    @classmethod
    def live(cls, now: Optional[datetime] = None):
        """SQL condition selecting sessions that still authenticate."""
        now = now or datetime.now(timezone.utc)
        return sa.and_(cls.is_revoked.is_(False), cls.expires_at > now)

    @classmethod
    def dead(cls, now: Optional[datetime] = None):
        now = now or datetime.now(timezone.utc)
        return sa.or_(cls.is_revoked.is_(True), cls.expires_at <= now)

    def revoke(self) -> None:
        self.is_revoked = True

    def __repr__(self) -> str:
        state = "revoked" if self.is_revoked else f"until {self.expires_at:%Y-%m-%d %H:%M}"
        return f"<UserSession {self.user_id} {state}>"
