"""
FastAPI dependencies for authentication.
"""
from typing import Annotated, Optional
from datetime import datetime
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import ConflictError, ForbiddenError, UnauthorizedError
from app.features.users.models import User
from app.features.users.auth import Identity, identity_from_user, verify_jwt_token
from app.features.permissions.catalog import Role, check_super_admin
from app.utils import get_logger


log = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from JWT token.

    This dependency:
    1. Extracts JWT from Authorization header
    2. Verifies the token signature and expiry
    3. Looks up or creates user in local database
    4. Updates last_login_at timestamp

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise UnauthorizedError()

    payload = verify_jwt_token(credentials.credentials)
    subject = payload.get("sub")
    email = payload.get("email")

    if not subject or not email:
        raise UnauthorizedError("Invalid token payload")

    result = await db.execute(
        select(User).where(User.external_id == subject)
    )
    user = result.scalar_one_or_none()

    # First sight of this identity: provision a local user without a tenant
    if user is None:
        taken = await db.execute(select(User.id).where(User.email == email))
        if taken.first() is not None:
            log.warning(f"Token subject {subject} presents e-mail {email} linked to another identity")
            raise ConflictError("E-mail is already linked to another identity")
        user = User(
            external_id=subject,
            email=email,
            name=payload.get("name") or email,
            role=Role.ORG_MEMBER,
            permissions=[],
            last_login_at=datetime.utcnow(),
        )
        db.add(user)
        log.info(f"Provisioned user {email}")
    else:
        user.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)

    if not user.is_active:
        raise ForbiddenError("User account is deactivated")

    return user


async def get_current_identity(
    user: Annotated[User, Depends(get_current_user)]
) -> Identity:
    """Authorization view of the current user."""
    return identity_from_user(user)


async def get_current_super_admin(
    identity: Annotated[Identity, Depends(get_current_identity)]
) -> Identity:
    """
    Require super admin privileges.

    Usage:
        @router.patch("/{user_id}/super-admin")
        async def toggle(admin: Identity = Depends(get_current_super_admin)):
            ...
    """
    check_super_admin(identity.is_super_admin)
    return identity


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
