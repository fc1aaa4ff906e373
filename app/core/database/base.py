"""
Declarative base, timestamp mixin and id generation shared by all models.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    """New ULID string; sortable by creation time."""
    return str(ulid.new())


class Base(DeclarativeBase):
    """
    Base class for users, organizations, subscriptions and audit logs.

    Every model must be imported by app.core.database.engine.register_models
    before tables are created.
    """
    pass


class TimestampMixin:
    """created_at / updated_at columns filled in by the database."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
