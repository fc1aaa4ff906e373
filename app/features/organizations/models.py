"""
Organization models.

An organization is a tenant: every user, subscription and audit entry is scoped
to at most one organization.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Organization(Base, TimestampMixin):
    """
    Organization model representing a customer account.

    Has zero or one Subscription.
    """
    __tablename__ = "organizations"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    slug: Mapped[str | None] = mapped_column(String(60), unique=True, nullable=True, index=True)
    primary_email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Optional organization details
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    theme_color: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Organization settings
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        back_populates="organization",
        lazy="selectin"
    )

    subscription: Mapped["Subscription"] = relationship(  # type: ignore
        "Subscription",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r}, slug={self.slug})>"
