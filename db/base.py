"""
db/base.py

Declarative base and column mixins shared by the calculation tables and the
raw data read models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for every table the engine reads or writes.

    ``dict[str, Any]`` annotations map to the portable JSON type so the same
    models run on PostgreSQL and on SQLite.
    """

    type_annotation_map = {dict[str, Any]: JSON}


class IdMixin:
    """Surrogate integer primary key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """
    created_at / updated_at for rows maintained over time.

    updated_at is refreshed on ORM updates; bulk upserts set it explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
