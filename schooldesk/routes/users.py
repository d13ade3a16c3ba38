from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.dependencies import RequestContext
from schooldesk.core.permissions import PermissionChecker
from schooldesk.schemas.user import UserCreate, UserResponse
from schooldesk.services.user_service import UserService

router = APIRouter(tags=["Users"])


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("", response_model=List[UserResponse])
async def list_users(
    context: RequestContext = Depends(PermissionChecker("users.view")),
    user_service: UserService = Depends(get_user_service)
):
    return await user_service.list_users(context.tenant_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    context: RequestContext = Depends(PermissionChecker("users.create")),
    user_service: UserService = Depends(get_user_service)
):
    return await user_service.create_user(context.tenant_id, data, created_by=context.user)


@router.patch("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: int,
    context: RequestContext = Depends(PermissionChecker("users.edit")),
    user_service: UserService = Depends(get_user_service)
):
    return await user_service.deactivate_user(context.tenant_id, user_id, actor=context.user)
