# schooldesk/core/dependencies.py
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.errors import (
    AccountDeactivatedException,
    AuthorizationError,
    SubscriptionInactiveError,
    TokenError,
)
from schooldesk.core.logging import logger
from schooldesk.core.security import decode_access_token, extract_bearer_token
from schooldesk.models.sessions import AcademicSession
from schooldesk.models.tenant import Tenant
from schooldesk.models.user import User
from schooldesk.schemas.auth import CallerIdentity
from schooldesk.schemas.enums import UserRole
from schooldesk.services.session_service import SessionService
from schooldesk.services.tenant_resolver import TenantResolution, resolve_tenant


@dataclass
class RequestContext:
    """Everything a tenant-scoped handler needs to know about its caller"""
    identity: CallerIdentity
    user: User
    resolution: TenantResolution
    tenant: Optional[Tenant] = None
    features: FrozenSet[str] = field(default_factory=frozenset)
    session: Optional[AcademicSession] = None

    @property
    def tenant_id(self) -> Optional[int]:
        # A degraded resolution holds a user id, never a school
        if self.resolution.degraded:
            return None
        return self.resolution.tenant_id

    @property
    def role(self) -> UserRole:
        return UserRole(self.user.role)

    @property
    def permissions(self):
        return self.user.permissions or []

    @property
    def session_id(self) -> Optional[int]:
        return self.session.id if self.session is not None else None


async def get_caller(request: Request) -> CallerIdentity:
    """Identity attached by AuthMiddleware, or decoded here for unmiddlewared apps"""
    caller = getattr(request.state, "caller", None)
    if caller is not None:
        return caller
    token = extract_bearer_token(request.headers.get("Authorization"))
    caller = decode_access_token(token)
    request.state.caller = caller
    return caller


async def get_current_user(
    caller: CallerIdentity = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
) -> User:
    result = await db.execute(select(User).where(User.id == caller.subject_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning(f"Token subject {caller.subject_id} no longer exists")
        raise TokenError("Not authorized, user not found")
    if not user.is_active:
        raise AccountDeactivatedException()
    return user


async def get_request_context(
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RequestContext:
    resolution = resolve_tenant(caller, user)
    context = RequestContext(identity=caller, user=user, resolution=resolution)

    if context.tenant_id is not None:
        result = await db.execute(select(Tenant).where(Tenant.id == context.tenant_id))
        tenant = result.scalar_one_or_none()
        if tenant is not None:
            if not tenant.is_subscription_valid:
                logger.warning(
                    f"Rejected request for tenant {tenant.tenant_code} with status {tenant.subscription_status}",
                    extra={"tenant_id": tenant.id, "user_id": user.id}
                )
                raise SubscriptionInactiveError()
            context.tenant = tenant
            context.features = frozenset(tenant.features_enabled or [])
        else:
            logger.warning(
                f"Tenant {resolution.tenant_id} not found; continuing without features",
                extra={"tenant_id": resolution.tenant_id, "user_id": user.id}
            )

        context.session = await SessionService(db).resolve_session(
            context.tenant_id,
            request.headers.get("X-Session-ID")
        )

    request.state.tenant_id = context.tenant_id
    return context


async def get_tenant_context(
    context: RequestContext = Depends(get_request_context)
) -> RequestContext:
    """Same as get_request_context but refuses callers without a tenant"""
    if context.resolution.degraded:
        raise AuthorizationError(
            "Your account is not linked to a school. Please contact your administrator.",
            error_code="TENANT_UNRESOLVED"
        )
    if context.tenant_id is None:
        raise AuthorizationError(
            "This operation requires a school context. Impersonate a school first.",
            error_code="TENANT_REQUIRED"
        )
    return context
