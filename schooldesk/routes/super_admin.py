from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.permissions import require_super_admin
from schooldesk.models.user import User
from schooldesk.schemas.auth import LoginResponse, SuperAdminLoginRequest, SuperAdminRegisterRequest
from schooldesk.schemas.common import MessageResponse
from schooldesk.schemas.tenant import (
    TenantCreate,
    TenantFeaturesUpdate,
    TenantListItem,
    TenantResponse,
    TenantStats,
    TenantStatusUpdate,
)
from schooldesk.schemas.user import UserResponse
from schooldesk.services.auth_service import AuthService
from schooldesk.services.tenant_service import TenantService

router = APIRouter(tags=["Super Admin"])


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_tenant_service(db: AsyncSession = Depends(get_db)) -> TenantService:
    return TenantService(db)


@router.post("/login", response_model=LoginResponse)
async def super_admin_login(
    credentials: SuperAdminLoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    return await auth_service.authenticate_super_admin(
        credentials.email,
        credentials.password,
        credentials.setup_token
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_super_admin(
    data: SuperAdminRegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Add another super admin; requires the server's setup token"""
    return await auth_service.register_super_admin(data.name, data.email, data.password, data.setup_token)


@router.get("/tenants", response_model=List[TenantListItem])
async def list_tenants(
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
):
    rows = await tenant_service.list_tenants()
    return [
        TenantListItem(
            **TenantResponse.model_validate(row["tenant"]).model_dump(),
            user_count=row["user_count"]
        )
        for row in rows
    ]


@router.post("/tenants", status_code=status.HTTP_201_CREATED)
async def create_tenant(
    data: TenantCreate,
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
) -> Dict[str, Any]:
    tenant, admin = await tenant_service.create_tenant(data, created_by=current_user.id)
    return {
        "success": True,
        "message": "School created successfully",
        "tenant": TenantResponse.model_validate(tenant).model_dump(mode="json"),
        "admin": UserResponse.model_validate(admin).model_dump(mode="json")
    }


@router.patch("/tenants/{tenant_id}/status", response_model=TenantResponse)
async def update_tenant_status(
    tenant_id: int,
    data: TenantStatusUpdate,
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
):
    return await tenant_service.update_status(tenant_id, data)


@router.patch("/tenants/{tenant_id}/features", response_model=TenantResponse)
async def update_tenant_features(
    tenant_id: int,
    data: TenantFeaturesUpdate,
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
):
    return await tenant_service.update_features(tenant_id, data)


@router.delete("/tenants/{tenant_id}", response_model=MessageResponse)
async def delete_tenant(
    tenant_id: int,
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
):
    removed = await tenant_service.delete_tenant(tenant_id)
    return MessageResponse(message="School and all related data deleted", data={"removed": removed})


@router.post("/impersonate/{tenant_id}", response_model=LoginResponse)
async def impersonate_tenant(
    tenant_id: int,
    current_user: User = Depends(require_super_admin),
    auth_service: AuthService = Depends(get_auth_service)
):
    return await auth_service.impersonate(tenant_id, current_user)


@router.get("/stats", response_model=TenantStats)
async def tenant_stats(
    current_user: User = Depends(require_super_admin),
    tenant_service: TenantService = Depends(get_tenant_service)
):
    return await tenant_service.get_stats()
