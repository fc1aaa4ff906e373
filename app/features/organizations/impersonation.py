"""
Impersonation context: a super admin acting inside another tenant.

The context only changes which tenant's data is visible. It never changes the
acting user's role and never bypasses permission checks.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import jwt
from starlette.requests import Request
from starlette.responses import Response

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)

_TOKEN_TYPE = "impersonation"


@dataclass(frozen=True)
class ImpersonationContext:
    organization_id: str
    issued_by: Optional[str] = None


class ImpersonationContextProvider(Protocol):
    """Source of the impersonation context for a request."""

    def get(self, request: Request) -> Optional[ImpersonationContext]:
        ...

    def issue(self, response: Response, context: ImpersonationContext) -> None:
        ...

    def clear(self, response: Response) -> None:
        ...


class CookieImpersonationProvider:
    """
    Keeps the impersonated organization in a signed cookie.

    The cookie is readable by the browser so the UI can show a banner, but its
    value is a signed token; anything tampered with or expired reads as absent.
    """

    def __init__(
        self,
        cookie_name: str = config.IMPERSONATION_COOKIE_NAME,
        secret_key: str = config.SECRET_KEY,
        max_age: int = config.IMPERSONATION_MAX_AGE,
    ):
        self.cookie_name = cookie_name
        self.secret_key = secret_key
        self.max_age = max_age

    def get(self, request: Request) -> Optional[ImpersonationContext]:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            log.warning(f"Ignoring invalid impersonation cookie: {e}")
            return None
        if payload.get("typ") != _TOKEN_TYPE or not payload.get("org"):
            return None
        return ImpersonationContext(organization_id=payload["org"], issued_by=payload.get("sub"))

    def issue(self, response: Response, context: ImpersonationContext) -> None:
        now = datetime.now(timezone.utc)
        claims = {
            "typ": _TOKEN_TYPE,
            "org": context.organization_id,
            "iat": now,
            "exp": now + timedelta(seconds=self.max_age),
        }
        # sub must be a string when present
        if context.issued_by is not None:
            claims["sub"] = context.issued_by
        token = jwt.encode(
            claims,
            self.secret_key,
            algorithm="HS256",
        )
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.max_age,
            path="/",
            samesite="lax",
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(self.cookie_name, path="/", samesite="lax")


_default_provider = CookieImpersonationProvider()


def get_impersonation_provider() -> ImpersonationContextProvider:
    """FastAPI dependency; override in tests to inject another provider."""
    return _default_provider
