"""
Authentication utilities for bearer JWT verification.

Tokens are issued by the identity provider and signed with SECRET_KEY. The
local user record is looked up (or provisioned) from the token claims.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from app.core import config
from app.core.errors import UnauthorizedError
from app.features.permissions.catalog import Role


@dataclass(frozen=True)
class Identity:
    """
    Who is making the request.

    Built from the authenticated User row. is_super_admin is orthogonal to role
    and also grants full access.
    """
    user_id: str
    role: Role
    is_super_admin: bool = False
    organization_id: Optional[str] = None
    email: Optional[str] = None
    permissions: tuple[str, ...] = field(default_factory=tuple)


def is_configured_super_admin(email: Optional[str]) -> bool:
    """Whether the e-mail is listed in the SUPERADMINS setting."""
    return bool(email) and email.lower() in config.SUPERADMINS


def identity_from_user(user) -> Identity:
    return Identity(
        user_id=user.id,
        role=user.role,
        is_super_admin=(
            bool(user.is_super_admin)
            or user.role is Role.SUPER_ADMIN
            or is_configured_super_admin(user.email)
        ),
        organization_id=user.organization_id,
        email=user.email,
        permissions=tuple(user.permissions or ()),
    )


def create_access_token(subject: str, email: str, name: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Issue a signed token. Used by tooling and tests; production tokens come from the identity provider."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "name": name,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_jwt_token(token: str) -> dict[str, Any]:
    """
    Verify a bearer token and return its payload.

    Raises:
        UnauthorizedError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            config.SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {str(e)}")
