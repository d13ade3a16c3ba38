# schooldesk/core/permissions.py
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Union

from fastapi import Depends

from schooldesk.core.config import settings
from schooldesk.core.dependencies import RequestContext, get_current_user, get_tenant_context
from schooldesk.core.errors import (
    AuthorizationError,
    FeatureNotEnabledError,
    PermissionDenied,
    ValidationError,
)
from schooldesk.core.logging import logger
from schooldesk.models.user import User
from schooldesk.schemas.enums import Feature, UserRole

PERMISSIONS: Dict[str, str] = {
    # Students
    "students.view": "View Students",
    "students.create": "Add Students",
    "students.edit": "Edit Students",
    "students.delete": "Delete Students",
    # Staff
    "staff.view": "View Staff",
    "staff.create": "Add Staff",
    "staff.edit": "Edit Staff",
    "staff.delete": "Delete Staff",
    # Fees
    "fees.view": "View Fees",
    "fees.create": "Create Fee Vouchers",
    "fees.collect": "Collect Payments",
    "fees.edit": "Edit Fees",
    "fees.delete": "Delete Fees",
    # Attendance
    "attendance.view": "View Attendance",
    "attendance.mark": "Mark Attendance",
    "attendance.edit": "Edit Attendance",
    # Exams
    "exams.view": "View Exams",
    "exams.create": "Create Exams",
    "exams.edit": "Edit Exams",
    "exams.delete": "Delete Exams",
    "exams.results": "Enter Results",
    # Classes
    "classes.view": "View Classes",
    "classes.create": "Create Classes",
    "classes.edit": "Edit Classes",
    "classes.delete": "Delete Classes",
    # Reports
    "reports.view": "View Reports",
    "reports.export": "Export Reports",
    # Settings
    "settings.view": "View Settings",
    "settings.edit": "Edit Settings",
    # Users
    "users.view": "View Users",
    "users.create": "Create Users",
    "users.edit": "Edit Users",
    "users.delete": "Delete Users",
}

ROLE_TEMPLATES: Dict[UserRole, List[str]] = {
    UserRole.SCHOOL_ADMIN: list(PERMISSIONS),
    UserRole.TEACHER: [
        "students.view",
        "students.edit",
        "attendance.view",
        "attendance.mark",
        "exams.view",
        "exams.results",
        "classes.view",
        "reports.view",
    ],
    UserRole.ACCOUNTANT: [
        "students.view",
        "fees.view",
        "fees.create",
        "fees.collect",
        "fees.edit",
        "reports.view",
        "reports.export",
    ],
    UserRole.CASHIER: [
        "students.view",
        "fees.view",
        "fees.collect",
    ],
    UserRole.RECEPTIONIST: [
        "students.view",
        "students.create",
        "students.edit",
        "classes.view",
        "reports.view",
    ],
    UserRole.LIBRARIAN: [
        "students.view",
        "classes.view",
        "reports.view",
    ],
    UserRole.TRANSPORT_MANAGER: [
        "students.view",
        "classes.view",
        "reports.view",
    ],
}

RoleLike = Union[UserRole, str, None]


def _as_role(role: RoleLike) -> Optional[UserRole]:
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def is_super_admin(role: RoleLike) -> bool:
    """The one place that decides who bypasses tenant scope and feature gates"""
    return _as_role(role) == UserRole.SUPER_ADMIN


def known_features() -> Set[str]:
    return {feature.value for feature in Feature} | set(settings.EXTRA_FEATURES)


def parse_feature(tag: str) -> str:
    """Normalize a feature tag, rejecting anything not in the known set"""
    normalized = (tag or "").strip().lower()
    if normalized not in known_features():
        raise ValidationError(
            f"Unknown feature: {tag}",
            details={"feature": tag, "allowed": sorted(known_features())}
        )
    return normalized


def is_feature_allowed(role: RoleLike, enabled_features: Iterable[str], required: str) -> bool:
    """
    Feature gate.

    Super admins always pass and 'core' is always available. Any other feature
    must be in the tenant's enabled set; having 'core' enabled grants nothing
    beyond 'core' itself.
    """
    if is_super_admin(role):
        return True
    if required == Feature.CORE.value:
        return True
    return required in set(enabled_features or ())


def default_permissions(role: RoleLike) -> List[str]:
    resolved = _as_role(role)
    if resolved is None:
        return []
    return list(ROLE_TEMPLATES.get(resolved, []))


def has_permission(role: RoleLike, permissions: Optional[Iterable[str]], required: str) -> bool:
    """Capability check with support for '*' and module wildcards such as 'fees.*'"""
    if _as_role(role) in (UserRole.SUPER_ADMIN, UserRole.SCHOOL_ADMIN):
        return True
    granted = set(permissions or ())
    if "*" in granted or required in granted:
        return True
    module = required.split(".", 1)[0]
    return f"{module}.*" in granted


class FeatureChecker:
    """Route dependency rejecting tenants whose plan lacks a feature"""

    def __init__(self, feature: Union[Feature, str]):
        self.feature = Feature(feature).value if isinstance(feature, Feature) else parse_feature(feature)

    async def __call__(self, context: RequestContext = Depends(get_tenant_context)) -> RequestContext:
        if not is_feature_allowed(context.role, context.features, self.feature):
            logger.warning(
                f"Feature '{self.feature}' not enabled for tenant {context.tenant_id}",
                extra={"tenant_id": context.tenant_id, "user_id": context.user.id}
            )
            raise FeatureNotEnabledError(self.feature)
        return context


class PermissionChecker:
    """Route dependency enforcing one capability string"""

    def __init__(self, permission: str):
        self.permission = permission

    async def __call__(self, context: RequestContext = Depends(get_tenant_context)) -> RequestContext:
        if not has_permission(context.role, context.permissions, self.permission):
            logger.warning(
                f"Permission denied: User {context.user.id} with role {context.user.role} "
                f"lacks {self.permission}",
                extra={"tenant_id": context.tenant_id, "user_id": context.user.id}
            )
            raise PermissionDenied(
                f"You do not have permission to {PERMISSIONS.get(self.permission, self.permission).lower()}",
                details={"required_permission": self.permission}
            )
        return context


class RoleChecker:
    """Role checking with dependency injection support"""

    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles: FrozenSet[UserRole] = frozenset(UserRole(role) for role in allowed_roles)

    async def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        if _as_role(current_user.role) not in self.allowed_roles:
            logger.warning(
                f"Permission denied: User {current_user.id} with role {current_user.role} "
                f"attempted to access resource requiring roles {sorted(r.value for r in self.allowed_roles)}"
            )
            raise AuthorizationError("Operation not permitted")
        return current_user


require_super_admin = RoleChecker([UserRole.SUPER_ADMIN])
