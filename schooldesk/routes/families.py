from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.dependencies import RequestContext
from schooldesk.core.permissions import FeatureChecker, PermissionChecker
from schooldesk.schemas.enums import Feature
from schooldesk.schemas.family import (
    ConsolidatedFees,
    FamilyResponse,
    LinkSiblingsRequest,
    LinkSiblingsResponse,
    SiblingSuggestions,
    StudentSummary,
)
from schooldesk.schemas.fee import MONTH_PATTERN
from schooldesk.services.fee_service import FeeService
from schooldesk.services.sibling_service import SiblingService

router = APIRouter(tags=["Families"])

require_core = FeatureChecker(Feature.CORE)
require_fees = FeatureChecker(Feature.FEES)


def get_sibling_service(db: AsyncSession = Depends(get_db)) -> SiblingService:
    return SiblingService(db)


def get_fee_service(db: AsyncSession = Depends(get_db)) -> FeeService:
    return FeeService(db)


@router.get("/siblings", response_model=SiblingSuggestions)
async def sibling_suggestions(
    context: RequestContext = Depends(require_core),
    sibling_service: SiblingService = Depends(get_sibling_service)
):
    """Confirmed families plus unlinked students sharing a guardian mobile"""
    return await sibling_service.suggest_sibling_groups(context.tenant_id)


@router.post(
    "/link",
    response_model=LinkSiblingsResponse,
    dependencies=[Depends(PermissionChecker("students.edit"))]
)
async def link_siblings(
    data: LinkSiblingsRequest,
    context: RequestContext = Depends(require_core),
    sibling_service: SiblingService = Depends(get_sibling_service)
):
    family, members = await sibling_service.link_siblings(context.tenant_id, data.student_ids, data.family_data)
    return LinkSiblingsResponse(
        family=FamilyResponse.model_validate(family),
        students=[StudentSummary.model_validate(member) for member in members],
        total_children=family.total_children,
        message=f"Successfully linked {len(members)} siblings"
    )


@router.post(
    "/{family_id}/positions",
    response_model=LinkSiblingsResponse,
    dependencies=[Depends(PermissionChecker("students.edit"))]
)
async def recompute_positions(
    family_id: int,
    context: RequestContext = Depends(require_core),
    sibling_service: SiblingService = Depends(get_sibling_service)
):
    family, members = await sibling_service.update_sibling_positions(context.tenant_id, family_id)
    return LinkSiblingsResponse(
        family=FamilyResponse.model_validate(family),
        students=[StudentSummary.model_validate(member) for member in members],
        total_children=family.total_children,
        message="Sibling positions updated"
    )


@router.get("/{family_id}", response_model=FamilyResponse)
async def get_family(
    family_id: int,
    context: RequestContext = Depends(require_core),
    sibling_service: SiblingService = Depends(get_sibling_service)
):
    return await sibling_service.get_family(context.tenant_id, family_id)


@router.get("/{family_id}/students", response_model=List[StudentSummary])
async def get_family_students(
    family_id: int,
    context: RequestContext = Depends(require_core),
    sibling_service: SiblingService = Depends(get_sibling_service)
):
    return await sibling_service.get_family_students(context.tenant_id, family_id)


@router.get("/{family_id}/consolidated-fees", response_model=ConsolidatedFees)
async def consolidated_fees(
    family_id: int,
    month: str = Query(..., pattern=MONTH_PATTERN),
    context: RequestContext = Depends(require_fees),
    fee_service: FeeService = Depends(get_fee_service)
):
    return await fee_service.consolidated_family_fees(context.tenant_id, family_id, month)
