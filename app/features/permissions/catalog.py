"""
Role catalog and permission evaluation.

Roles and permissions are closed enumerations. The role → permission matrix is
built once at import time and exposed read-only, so evaluation is a plain
lookup that is safe to call from any number of concurrent requests.
"""
import enum
from types import MappingProxyType
from typing import Iterable, Mapping

from app.core.errors import ForbiddenError, InvalidPermissionError, InvalidRoleError
from app.utils import get_logger


log = get_logger(__name__)


class Role(str, enum.Enum):
    """Roles a user can hold inside an organization."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ORG_ADMIN = "ORG_ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"
    ORG_MEMBER = "ORG_MEMBER"
    CLIENT = "CLIENT"


class Permission(str, enum.Enum):
    """Coarse, role-level capabilities. Never parameterized per object."""
    ORG_VIEW = "ORG_VIEW"
    ORG_EDIT = "ORG_EDIT"
    ORG_USERS_INVITE = "ORG_USERS_INVITE"
    ORG_USERS_MANAGE = "ORG_USERS_MANAGE"
    ORG_DELETE = "ORG_DELETE"
    PROJECT_MANAGE = "PROJECT_MANAGE"
    PROJECT_VIEW_ALL = "PROJECT_VIEW_ALL"
    PROJECT_DELETE = "PROJECT_DELETE"
    TASK_CREATE = "TASK_CREATE"
    TASK_EDIT = "TASK_EDIT"
    TASK_VIEW = "TASK_VIEW"
    TASK_DELETE = "TASK_DELETE"
    TASK_VIEW_ALL = "TASK_VIEW_ALL"
    CHANNEL_CREATE = "CHANNEL_CREATE"
    CHANNEL_VIEW_ALL = "CHANNEL_VIEW_ALL"
    CHANNEL_MANAGE = "CHANNEL_MANAGE"
    CHANNEL_DELETE = "CHANNEL_DELETE"
    REPORTS_VIEW = "REPORTS_VIEW"
    SUPER_ADMIN_ACCESS = "SUPER_ADMIN_ACCESS"
    CROSS_ORG_ACCESS = "CROSS_ORG_ACCESS"


P = Permission

ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType({
    Role.SUPER_ADMIN: frozenset(Permission),
    Role.ORG_ADMIN: frozenset({
        P.ORG_VIEW, P.ORG_EDIT, P.ORG_USERS_INVITE, P.ORG_USERS_MANAGE,
        P.PROJECT_MANAGE, P.PROJECT_VIEW_ALL,
        P.TASK_CREATE, P.TASK_EDIT, P.TASK_VIEW, P.TASK_VIEW_ALL, P.TASK_DELETE,
        P.CHANNEL_CREATE, P.CHANNEL_VIEW_ALL, P.CHANNEL_MANAGE,
        P.REPORTS_VIEW,
    }),
    Role.MANAGER: frozenset({
        P.ORG_VIEW, P.ORG_USERS_INVITE, P.PROJECT_MANAGE,
        P.TASK_CREATE, P.TASK_EDIT, P.TASK_VIEW,
        P.CHANNEL_CREATE, P.REPORTS_VIEW,
    }),
    Role.EMPLOYEE: frozenset({P.TASK_EDIT, P.TASK_VIEW}),
    Role.ORG_MEMBER: frozenset({P.TASK_EDIT, P.TASK_VIEW}),
    Role.CLIENT: frozenset({P.TASK_VIEW, P.REPORTS_VIEW}),
})

if set(ROLE_PERMISSIONS) != set(Role):
    raise RuntimeError("Role permission matrix must define every role exactly once")

# Permissions an org admin may hand out to an individual member
GRANTABLE_PERMISSIONS: frozenset[Permission] = frozenset({
    P.ORG_VIEW,
    P.PROJECT_MANAGE, P.PROJECT_VIEW_ALL,
    P.TASK_CREATE, P.TASK_EDIT, P.TASK_VIEW, P.TASK_DELETE, P.TASK_VIEW_ALL,
    P.CHANNEL_CREATE, P.CHANNEL_VIEW_ALL, P.CHANNEL_MANAGE, P.CHANNEL_DELETE,
    P.REPORTS_VIEW,
})

del P


def parse_role(value: Role | str) -> Role:
    """
    Parse a role value strictly.

    Raises:
        InvalidRoleError: if the value is not one of the enumerated roles.
            Matching is exact; "org_admin" is rejected rather than normalized.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise InvalidRoleError(f"Unrecognized role: {value!r}") from None


def parse_permission(value: Permission | str) -> Permission:
    """Parse a permission value strictly, raising InvalidPermissionError otherwise."""
    if isinstance(value, Permission):
        return value
    try:
        return Permission(value)
    except ValueError:
        raise InvalidPermissionError(f"Unrecognized permission: {value!r}") from None


def has_permission(role: Role | str, permission: Permission | str) -> bool:
    """
    Check whether a role implicitly holds a permission.

    SUPER_ADMIN holds every permission regardless of the matrix contents.

    Raises:
        InvalidRoleError: for a role outside the enumeration
        InvalidPermissionError: for a permission outside the enumeration
    """
    role = parse_role(role)
    permission = parse_permission(permission)
    if role is Role.SUPER_ADMIN:
        return True
    return permission in ROLE_PERMISSIONS[role]


def has_effective_permission(
    role: Role | str,
    permission: Permission | str,
    granted: Iterable[Permission | str] = (),
) -> bool:
    """Role permissions plus explicit per-user grants."""
    permission = parse_permission(permission)
    if has_permission(role, permission):
        return True
    return permission in {parse_permission(p) for p in granted}


def effective_permissions(role: Role | str, granted: Iterable[Permission | str] = ()) -> frozenset[Permission]:
    """All permissions a role holds, including explicit grants."""
    role = parse_role(role)
    if role is Role.SUPER_ADMIN:
        return frozenset(Permission)
    return ROLE_PERMISSIONS[role] | {parse_permission(p) for p in granted}


def check_org_admin(role: Role | str) -> None:
    """
    Require the organization admin role.

    Scope is not checked here; callers pair this with the organization resolver.
    Super admins are let through by the authorization dependency before this runs.
    """
    if parse_role(role) is not Role.ORG_ADMIN:
        log.debug(f"Org admin check failed for role {role}")
        raise ForbiddenError("Forbidden: Organization admin access required")


def check_super_admin(is_super_admin: bool) -> None:
    if not is_super_admin:
        raise ForbiddenError("Forbidden: Super admin access required")
