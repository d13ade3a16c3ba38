from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.dependencies import RequestContext
from schooldesk.core.permissions import FeatureChecker, PermissionChecker
from schooldesk.schemas.common import MessageResponse
from schooldesk.schemas.discount import (
    DiscountPolicyCreate,
    DiscountPolicyResponse,
    DiscountPolicyUpdate,
    DiscountPreview,
)
from schooldesk.schemas.enums import Feature
from schooldesk.services.discount_service import DiscountService

router = APIRouter(tags=["Discounts"])

require_fees = FeatureChecker(Feature.FEES)


def get_discount_service(db: AsyncSession = Depends(get_db)) -> DiscountService:
    return DiscountService(db)


@router.get("/policies", response_model=List[DiscountPolicyResponse])
async def list_policies(
    is_active: Optional[bool] = Query(default=None),
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    return await discount_service.list_policies(context.tenant_id, is_active)


@router.post(
    "/policies",
    response_model=DiscountPolicyResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(PermissionChecker("fees.create"))]
)
async def create_policy(
    data: DiscountPolicyCreate,
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    return await discount_service.create_policy(context.tenant_id, data, created_by=context.user.id)


@router.get("/policies/{policy_id}", response_model=DiscountPolicyResponse)
async def get_policy(
    policy_id: int,
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    return await discount_service.get_policy(context.tenant_id, policy_id)


@router.put(
    "/policies/{policy_id}",
    response_model=DiscountPolicyResponse,
    dependencies=[Depends(PermissionChecker("fees.edit"))]
)
async def update_policy(
    policy_id: int,
    data: DiscountPolicyUpdate,
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    return await discount_service.update_policy(context.tenant_id, policy_id, data)


@router.delete(
    "/policies/{policy_id}",
    response_model=MessageResponse,
    dependencies=[Depends(PermissionChecker("fees.delete"))]
)
async def delete_policy(
    policy_id: int,
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    await discount_service.delete_policy(context.tenant_id, policy_id)
    return MessageResponse(message="Discount policy deleted")


@router.get("/calculate/{student_id}", response_model=DiscountPreview)
async def calculate_discounts(
    student_id: int,
    fee_amount: Optional[float] = Query(default=None, ge=0),
    context: RequestContext = Depends(require_fees),
    discount_service: DiscountService = Depends(get_discount_service)
):
    """Automatic discounts for a student and the resulting net payable"""
    return await discount_service.preview_for_student(context.tenant_id, student_id, fee_amount)
