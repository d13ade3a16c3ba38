# schooldesk/services/tenant_resolver.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from schooldesk.core.logging import logger
from schooldesk.models.user import User
from schooldesk.schemas.auth import CallerIdentity
from schooldesk.schemas.enums import UserRole


class TenantSource(str, Enum):
    UNSCOPED = "unscoped"
    TOKEN = "token"
    TENANT = "tenant"
    LEGACY_SCHOOL = "legacy_school"
    SELF = "self"


@dataclass(frozen=True)
class TenantResolution:
    tenant_id: Optional[int]
    source: TenantSource
    degraded: bool = False

    @property
    def is_scoped(self) -> bool:
        return self.tenant_id is not None


def resolve_tenant(identity: CallerIdentity, user: Optional[User] = None) -> TenantResolution:
    """
    Work out which tenant a request acts for.

    Lookup order: super admins are unscoped, then the tenant carried in the
    token (set on login and on impersonation), then the user's tenant and
    legacy school reference, and finally the user's own id. The last step is
    a degraded result and is logged; the resolver itself never raises.

    The role comes from the user record when one is given, so a demoted super
    admin loses unscoped access before the token expires.
    """
    role = user.role if user is not None else identity.role
    if role == UserRole.SUPER_ADMIN:
        return TenantResolution(tenant_id=None, source=TenantSource.UNSCOPED)

    if identity.tenant_id is not None:
        return TenantResolution(tenant_id=identity.tenant_id, source=TenantSource.TOKEN)

    if user is not None:
        if user.tenant_id is not None:
            return TenantResolution(tenant_id=user.tenant_id, source=TenantSource.TENANT)
        if user.school_id is not None:
            return TenantResolution(tenant_id=user.school_id, source=TenantSource.LEGACY_SCHOOL)

    subject_id = user.id if user is not None else identity.subject_id
    logger.warning(
        f"No tenant reference for user {subject_id}; falling back to the user id",
        extra={"user_id": subject_id, "event": "tenant_fallback"}
    )
    return TenantResolution(tenant_id=subject_id, source=TenantSource.SELF, degraded=True)
