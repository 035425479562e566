"""Shared ORM building blocks: UUID primary key, timestamp mixin, row snapshots."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UUIDPrimaryKeyMixin:
    """``id`` UUID primary key generated client-side."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """
    Add ``created_at`` / ``updated_at`` to any model via::

        class Asset(Base, UUIDPrimaryKeyMixin, TimestampMixin):
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
        onupdate=utcnow,
    )


# ── JSON-safe snapshots for audit entries ───────────────────────────

def _json_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def model_snapshot(
    obj: Any,
    fields: Optional[Iterable[str]] = None,
) -> dict[str, Any]:
    """Return ``{column: value}`` for *obj* with JSON-serialisable values.

    Only column attributes are read, so no lazy relationship loads happen.
    """
    columns = [c.key for c in sa.inspect(obj).mapper.column_attrs]
    if fields is not None:
        wanted = set(fields)
        columns = [c for c in columns if c in wanted]
    return {name: _json_value(getattr(obj, name)) for name in columns}
