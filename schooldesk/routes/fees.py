from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.database import get_db
from schooldesk.core.dependencies import RequestContext
from schooldesk.core.permissions import FeatureChecker, PermissionChecker
from schooldesk.schemas.enums import Feature
from schooldesk.schemas.fee import FeeCreate, FeeResponse, PaymentCreate
from schooldesk.services.fee_service import FeeService

router = APIRouter(tags=["Fees"])

require_fees = FeatureChecker(Feature.FEES)


def get_fee_service(db: AsyncSession = Depends(get_db)) -> FeeService:
    return FeeService(db)


@router.post(
    "",
    response_model=FeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(PermissionChecker("fees.create"))]
)
async def generate_fee(
    data: FeeCreate,
    context: RequestContext = Depends(require_fees),
    fee_service: FeeService = Depends(get_fee_service)
):
    """Monthly fee with automatic discounts applied"""
    return await fee_service.generate_fee(context.tenant_id, data)


@router.post(
    "/{fee_id}/payments",
    response_model=FeeResponse,
    dependencies=[Depends(PermissionChecker("fees.collect"))]
)
async def record_payment(
    fee_id: int,
    payment: PaymentCreate,
    context: RequestContext = Depends(require_fees),
    fee_service: FeeService = Depends(get_fee_service)
):
    return await fee_service.record_payment(context.tenant_id, fee_id, payment.amount, payment.payment_date)


@router.get("/{fee_id}", response_model=FeeResponse)
async def get_fee(
    fee_id: int,
    context: RequestContext = Depends(require_fees),
    fee_service: FeeService = Depends(get_fee_service)
):
    return await fee_service.get_fee(context.tenant_id, fee_id)
