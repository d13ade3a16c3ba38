from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.dependencies import RequestContext, get_request_context
from schooldesk.schemas.auth import AuthenticatedUser, LoginRequest, LoginResponse
from schooldesk.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Staff login with username or email"""
    return await auth_service.authenticate_user(credentials.identifier, credentials.password)


@router.get("/me", response_model=AuthenticatedUser)
async def read_current_user(context: RequestContext = Depends(get_request_context)):
    """Profile of the caller as seen through the tenant resolver"""
    user = context.user
    return AuthenticatedUser(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        tenant_id=context.tenant_id,
        school_name=context.tenant.school_name if context.tenant is not None else None,
        permissions=list(user.permissions or []),
        impersonated=context.identity.is_impersonated
    )
