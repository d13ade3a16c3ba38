# schooldesk/services/discount_service.py
from typing import List, Optional, Sequence

from sqlalchemy import select

from schooldesk.core.config import settings
from schooldesk.core.logging import logger
from schooldesk.models.discount import DiscountPolicy
from schooldesk.models.staff import Staff
from schooldesk.models.student import Student
from schooldesk.schemas.discount import (
    AppliedDiscount,
    DiscountCalculation,
    DiscountPolicyCreate,
    DiscountPolicyUpdate,
    DiscountPreview,
    NetPayable,
)
from schooldesk.schemas.enums import DiscountCategory, DiscountMode, DiscountPolicyType
from .base_service import BaseService
from .sibling_service import sibling_position


def _money(value: float) -> float:
    return round(value, 2)


def _policies_of_type(policies: Sequence[DiscountPolicy], policy_type: DiscountPolicyType) -> List[DiscountPolicy]:
    return [p for p in policies if p.policy_type == policy_type.value and p.is_active]


def select_sibling_policy(policies: Sequence[DiscountPolicy], position: int) -> Optional[DiscountPolicy]:
    """A policy for this exact position wins over one that names no position"""
    sibling_policies = _policies_of_type(policies, DiscountPolicyType.SIBLING)
    for policy in sibling_policies:
        if policy.sibling_position is not None and int(policy.sibling_position) == position:
            return policy
    for policy in sibling_policies:
        if policy.sibling_position is None:
            return policy
    return None


def to_applied(
    policy: DiscountPolicy,
    sibling_position: Optional[int] = None,
    total_siblings: Optional[int] = None
) -> AppliedDiscount:
    percentage_mode = policy.discount_mode == DiscountMode.PERCENTAGE.value
    return AppliedDiscount(
        policy_id=policy.id,
        policy_name=policy.policy_name,
        policy_type=policy.policy_type,
        discount_mode=policy.discount_mode,
        percentage=float(policy.discount_percentage or 0) if percentage_mode else 0.0,
        fixed_amount=0.0 if percentage_mode else float(policy.discount_amount or 0),
        sibling_position=sibling_position,
        total_siblings=total_siblings
    )


def summarize(student: Student, applied: List[AppliedDiscount]) -> DiscountCalculation:
    percentage = sum(item.percentage for item in applied)
    amount = sum(item.fixed_amount for item in applied)
    return DiscountCalculation(
        success=True,
        student_id=student.id,
        student_name=student.full_name,
        applied_discounts=applied,
        total_discount_percentage=min(max(percentage, 0.0), 100.0),
        total_discount_amount=_money(max(amount, 0.0)),
        discount_count=len(applied)
    )


def apply_discounts(gross_amount: float, calculation: DiscountCalculation) -> NetPayable:
    """
    Net payable for a gross amount.

    The percentage comes off first, then the fixed amount; the result never
    goes below zero.
    """
    gross = max(float(gross_amount or 0), 0.0)
    if not calculation.success:
        return NetPayable(
            gross_amount=_money(gross),
            percentage_discount=0.0,
            fixed_discount=0.0,
            total_discount=0.0,
            net_amount=_money(gross)
        )

    percentage_discount = _money(gross * calculation.total_discount_percentage / 100)
    after_percentage = gross - percentage_discount
    fixed_discount = _money(min(calculation.total_discount_amount, after_percentage))
    net = max(after_percentage - fixed_discount, 0.0)
    return NetPayable(
        gross_amount=_money(gross),
        percentage_discount=percentage_discount,
        fixed_discount=fixed_discount,
        total_discount=_money(percentage_discount + fixed_discount),
        net_amount=_money(net)
    )


def calculate_discount_amount(fee_amount: float, policy: DiscountPolicy) -> float:
    """What a single policy takes off a fee"""
    fee_amount = max(float(fee_amount or 0), 0.0)
    if policy.discount_mode == DiscountMode.PERCENTAGE.value:
        percentage = min(max(float(policy.discount_percentage or 0), 0.0), 100.0)
        return _money(fee_amount * percentage / 100)
    return _money(min(float(policy.discount_amount or 0), fee_amount))


class DiscountService(BaseService):
    async def get_active_policies(self, tenant_id: int) -> List[DiscountPolicy]:
        result = await self.db.execute(
            select(DiscountPolicy)
            .where(DiscountPolicy.tenant_id == tenant_id, DiscountPolicy.is_active.is_(True))
            .order_by(DiscountPolicy.id)
        )
        return list(result.scalars().all())

    async def _staff_child_discount(
        self,
        student: Student,
        policies: Sequence[DiscountPolicy]
    ) -> Optional[AppliedDiscount]:
        if not (student.is_staff_child and student.staff_parent_id):
            return None
        candidates = _policies_of_type(policies, DiscountPolicyType.STAFF_CHILD)
        if not candidates:
            return None

        designation = None
        if any((p.conditions or {}).get("staff_designations") for p in candidates):
            result = await self.db.execute(
                select(Staff.designation).where(
                    Staff.id == student.staff_parent_id,
                    Staff.tenant_id == student.tenant_id
                )
            )
            designation = result.scalar_one_or_none()

        for policy in candidates:
            designations = (policy.conditions or {}).get("staff_designations") or []
            if not designations or designation in designations:
                return to_applied(policy)
        return None

    async def _sibling_discount(
        self,
        student: Student,
        policies: Sequence[DiscountPolicy]
    ) -> Optional[AppliedDiscount]:
        if student.family_id is None:
            return None
        result = await self.db.execute(
            select(Student).where(
                Student.tenant_id == student.tenant_id,
                Student.family_id == student.family_id,
                Student.is_active.is_(True)
            )
        )
        members = list(result.scalars().all())
        if not any(member.id != student.id for member in members):
            return None

        position = sibling_position(student, members)
        total = len({member.id for member in members} | {student.id})
        policy = select_sibling_policy(policies, position)
        if policy is None:
            return None
        return to_applied(policy, sibling_position=position, total_siblings=total)

    async def calculate_auto_discounts(
        self,
        student: Student,
        policies: Optional[Sequence[DiscountPolicy]] = None
    ) -> DiscountCalculation:
        """
        Discounts a student qualifies for automatically.

        Staff child, sibling position, merit and financial aid are checked in
        that order. Lookup failures produce an unsuccessful, empty result
        instead of an exception so fee generation can carry on.
        """
        try:
            if policies is None:
                policies = await self.get_active_policies(student.tenant_id)

            applied: List[AppliedDiscount] = []

            staff_discount = await self._staff_child_discount(student, policies)
            if staff_discount is not None:
                applied.append(staff_discount)

            sibling_discount = await self._sibling_discount(student, policies)
            if sibling_discount is not None:
                applied.append(sibling_discount)

            category_policies = {
                DiscountCategory.MERIT.value: DiscountPolicyType.MERIT,
                DiscountCategory.FINANCIAL_AID.value: DiscountPolicyType.FINANCIAL_AID,
            }
            policy_type = category_policies.get(student.discount_category)
            if policy_type is not None:
                matches = _policies_of_type(policies, policy_type)
                if matches:
                    applied.append(to_applied(matches[0]))

            return summarize(student, applied)
        except Exception as e:
            logger.error(
                f"Discount calculation failed for student {getattr(student, 'id', None)}: {str(e)}",
                exc_info=True,
                extra={"tenant_id": getattr(student, "tenant_id", None)}
            )
            return DiscountCalculation(
                success=False,
                student_id=getattr(student, "id", None),
                student_name=getattr(student, "full_name", None),
                error=str(e)
            )

    async def preview_for_student(
        self,
        tenant_id: int,
        student_id: int,
        fee_amount: Optional[float] = None
    ) -> DiscountPreview:
        student = await self._get_scoped(Student, student_id, tenant_id, label="Student")
        if fee_amount is None:
            fee_amount = student.monthly_fee if student.monthly_fee is not None else settings.DEFAULT_MONTHLY_FEE
        calculation = await self.calculate_auto_discounts(student)
        return DiscountPreview(calculation=calculation, payable=apply_discounts(fee_amount, calculation))

    # Policy management

    async def list_policies(self, tenant_id: int, is_active: Optional[bool] = None) -> List[DiscountPolicy]:
        query = select(DiscountPolicy).where(DiscountPolicy.tenant_id == tenant_id)
        if is_active is not None:
            query = query.where(DiscountPolicy.is_active.is_(is_active))
        result = await self.db.execute(query.order_by(DiscountPolicy.created_at.desc(), DiscountPolicy.id.desc()))
        return list(result.scalars().all())

    async def get_policy(self, tenant_id: int, policy_id: int) -> DiscountPolicy:
        return await self._get_scoped(DiscountPolicy, policy_id, tenant_id, label="Discount policy")

    async def create_policy(self, tenant_id: int, data: DiscountPolicyCreate, created_by: int) -> DiscountPolicy:
        policy = DiscountPolicy(
            tenant_id=tenant_id,
            policy_name=data.policy_name,
            policy_type=data.policy_type.value,
            discount_mode=data.discount_mode.value,
            discount_percentage=data.discount_percentage,
            discount_amount=data.discount_amount,
            conditions=data.conditions.model_dump(exclude_none=True),
            description=data.description,
            is_active=data.is_active,
            created_by=created_by
        )
        self.db.add(policy)
        await self.db.commit()
        logger.info(
            f"Discount policy '{policy.policy_name}' created",
            extra={"tenant_id": tenant_id, "user_id": created_by}
        )
        return policy

    async def update_policy(self, tenant_id: int, policy_id: int, data: DiscountPolicyUpdate) -> DiscountPolicy:
        policy = await self.get_policy(tenant_id, policy_id)
        changes = {
            key: value for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key == "description"
        }
        if "conditions" in changes:
            changes["conditions"] = data.conditions.model_dump(exclude_none=True) if data.conditions else {}
        for field in ("policy_type", "discount_mode"):
            if changes.get(field) is not None:
                changes[field] = getattr(data, field).value
        for key, value in changes.items():
            setattr(policy, key, value)
        await self.db.commit()
        return policy

    async def delete_policy(self, tenant_id: int, policy_id: int) -> None:
        policy = await self.get_policy(tenant_id, policy_id)
        await self.db.delete(policy)
        await self.db.commit()
        logger.info(f"Discount policy {policy_id} deleted", extra={"tenant_id": tenant_id})
