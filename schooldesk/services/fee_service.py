# schooldesk/services/fee_service.py
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from schooldesk.core.config import settings
from schooldesk.core.errors import ConflictError, ValidationError
from schooldesk.core.logging import logger
from schooldesk.models.fee import Fee
from schooldesk.models.student import Student
from schooldesk.schemas.enums import FeeStatus
from schooldesk.schemas.family import ConsolidatedFees, MemberFee, StudentSummary
from schooldesk.schemas.fee import FeeCreate, FeeItem, FeeResponse
from .base_service import BaseService
from .discount_service import DiscountService, apply_discounts
from .sibling_service import SiblingService


def derive_status(paid_amount: float, net_amount: float) -> FeeStatus:
    if net_amount <= 0:
        return FeeStatus.PAID
    if paid_amount <= 0:
        return FeeStatus.PENDING
    if paid_amount >= net_amount:
        return FeeStatus.PAID
    return FeeStatus.PARTIAL


class FeeService(BaseService):
    async def _build_fee(
        self,
        student: Student,
        month: str,
        tuition_fee: Optional[float] = None,
        other_charges: Optional[List[FeeItem]] = None,
        arrears: float = 0.0
    ) -> Fee:
        """Price a month for a student without touching the session"""
        if tuition_fee is None:
            tuition_fee = student.monthly_fee if student.monthly_fee is not None else settings.DEFAULT_MONTHLY_FEE
        items = [item.model_dump() for item in (other_charges or [])]
        gross = round(float(tuition_fee) + sum(item["amount"] for item in items) + float(arrears or 0), 2)

        calculation = await DiscountService(self.db).calculate_auto_discounts(student)
        payable = apply_discounts(gross, calculation)

        return Fee(
            tenant_id=student.tenant_id,
            student_id=student.id,
            month=month,
            tuition_fee=float(tuition_fee),
            other_charges=items,
            arrears=float(arrears or 0),
            gross_amount=payable.gross_amount,
            discount_breakdown=[item.model_dump(mode="json") for item in calculation.applied_discounts],
            concession=payable.total_discount,
            net_amount=payable.net_amount,
            paid_amount=0.0,
            balance=payable.net_amount,
            status=derive_status(0.0, payable.net_amount).value
        )

    async def generate_fee(self, tenant_id: int, data: FeeCreate) -> Fee:
        student = await self._get_scoped(Student, data.student_id, tenant_id, label="Student")

        existing = await self.db.execute(
            select(Fee.id).where(Fee.student_id == student.id, Fee.month == data.month)
        )
        if existing.first() is not None:
            raise ConflictError(
                f"Fee for {data.month} already exists for this student",
                details={"student_id": student.id, "month": data.month}
            )

        fee = await self._build_fee(
            student,
            data.month,
            tuition_fee=data.tuition_fee,
            other_charges=data.other_charges,
            arrears=data.arrears
        )
        self.db.add(fee)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                f"Fee for {data.month} already exists for this student",
                details={"student_id": student.id, "month": data.month}
            )

        logger.info(
            f"Fee generated for student {student.id} ({data.month}): net {fee.net_amount}",
            extra={"tenant_id": tenant_id}
        )
        return fee

    async def get_fee(self, tenant_id: int, fee_id: int) -> Fee:
        return await self._get_scoped(Fee, fee_id, tenant_id, label="Fee")

    async def record_payment(
        self,
        tenant_id: int,
        fee_id: int,
        amount: float,
        payment_date: Optional[datetime] = None
    ) -> Fee:
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", details={"amount": amount})

        fee = await self.get_fee(tenant_id, fee_id)
        fee.paid_amount = round(float(fee.paid_amount or 0) + amount, 2)
        fee.balance = round(max(fee.net_amount - fee.paid_amount, 0.0), 2)
        fee.status = derive_status(fee.paid_amount, fee.net_amount).value
        fee.payment_date = payment_date or datetime.now(timezone.utc)
        await self.db.commit()

        logger.info(
            f"Payment of {amount} recorded on fee {fee.id}; status {fee.status}",
            extra={"tenant_id": tenant_id}
        )
        return fee

    async def consolidated_family_fees(self, tenant_id: int, family_id: int, month: str) -> ConsolidatedFees:
        """One view of a family's month: saved fees where they exist, previews otherwise"""
        members = await SiblingService(self.db).get_family_students(tenant_id, family_id)

        fees_by_student = {}
        if members:
            result = await self.db.execute(
                select(Fee).where(
                    Fee.tenant_id == tenant_id,
                    Fee.month == month,
                    Fee.student_id.in_([member.id for member in members])
                )
            )
            fees_by_student = {fee.student_id: fee for fee in result.scalars().all()}

        rows: List[MemberFee] = []
        for member in members:
            fee = fees_by_student.get(member.id)
            preview = fee is None
            if preview:
                fee = await self._build_fee(member, month)
            rows.append(MemberFee(
                student=StudentSummary.model_validate(member),
                fee=FeeResponse.model_validate(fee),
                preview=preview,
                gross_amount=fee.gross_amount,
                concession=fee.concession,
                net_amount=fee.net_amount,
                paid_amount=fee.paid_amount or 0.0,
                balance=fee.balance
            ))

        return ConsolidatedFees(
            family_id=family_id,
            month=month,
            members=rows,
            total_gross=round(sum(row.gross_amount for row in rows), 2),
            total_concession=round(sum(row.concession for row in rows), 2),
            total_net=round(sum(row.net_amount for row in rows), 2),
            total_paid=round(sum(row.paid_amount for row in rows), 2),
            total_balance=round(sum(row.balance for row in rows), 2)
        )
