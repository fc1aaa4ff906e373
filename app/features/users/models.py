"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.catalog import Role


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.

    A user belongs to at most one organization. Platform-level super admins may
    have no organization at all.
    """
    __tablename__ = "users"

    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Subject claim of the identity provider token
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Authorization
    role: Mapped[Role] = mapped_column(
        SQLEnum(Role, native_enum=False, length=20),
        default=Role.ORG_MEMBER,
        nullable=False,
    )
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Explicit grants on top of the role, stored as permission names
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    organization: Mapped["Organization"] = relationship(  # type: ignore
        "Organization",
        back_populates="users",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"
