from datetime import date

import pytest

from schooldesk.core.errors import ConflictError, NotFoundError, ValidationError
from schooldesk.schemas.enums import DiscountPolicyType, FeeStatus
from schooldesk.schemas.fee import FeeCreate, FeeItem
from schooldesk.services.fee_service import FeeService, derive_status
from tests.factories import make_family, make_policy, make_staff, make_student, make_tenant


@pytest.mark.parametrize(
    "paid, net, expected",
    [
        (0, 5000, FeeStatus.PENDING),
        (2000, 5000, FeeStatus.PARTIAL),
        (5000, 5000, FeeStatus.PAID),
        (6000, 5000, FeeStatus.PAID),
        (0, 0, FeeStatus.PAID),
    ],
)
def test_derive_status(paid, net, expected):
    assert derive_status(paid, net) == expected


async def test_generate_fee_applies_discounts(db):
    tenant = await make_tenant(db)
    staff = await make_staff(db, tenant)
    await make_policy(db, tenant, DiscountPolicyType.STAFF_CHILD, percentage=20)
    student = await make_student(
        db, tenant, "1", monthly_fee=10000, is_staff_child=True, staff_parent_id=staff.id
    )
    await db.commit()

    fee = await FeeService(db).generate_fee(
        tenant.id,
        FeeCreate(
            student_id=student.id,
            month="Jan-2025",
            other_charges=[FeeItem(label="Lab", amount=500)],
            arrears=500
        )
    )

    assert fee.tuition_fee == 10000
    assert fee.gross_amount == 11000
    assert fee.concession == 2200
    assert fee.net_amount == 8800
    assert fee.balance == 8800
    assert fee.status == FeeStatus.PENDING.value
    assert fee.discount_breakdown[0]["policy_type"] == "Staff Child"
    assert fee.other_charges == [{"label": "Lab", "amount": 500.0}]


async def test_fully_waived_fee_is_paid(db):
    tenant = await make_tenant(db)
    staff = await make_staff(db, tenant)
    await make_policy(db, tenant, DiscountPolicyType.STAFF_CHILD, percentage=100)
    student = await make_student(
        db, tenant, "1", monthly_fee=7000, is_staff_child=True, staff_parent_id=staff.id
    )
    await db.commit()

    fee = await FeeService(db).generate_fee(tenant.id, FeeCreate(student_id=student.id, month="Jul-2025"))

    assert fee.net_amount == 0
    assert fee.balance == 0
    assert fee.status == FeeStatus.PAID.value


async def test_duplicate_month_is_rejected(db):
    tenant = await make_tenant(db)
    student = await make_student(db, tenant, "1", monthly_fee=3000)
    await db.commit()
    service = FeeService(db)
    await service.generate_fee(tenant.id, FeeCreate(student_id=student.id, month="Feb-2025"))

    with pytest.raises(ConflictError):
        await service.generate_fee(tenant.id, FeeCreate(student_id=student.id, month="Feb-2025"))


async def test_generate_fee_for_other_tenant_student(db):
    tenant = await make_tenant(db)
    other = await make_tenant(db, code="SCH-002")
    student = await make_student(db, other, "1")
    await db.commit()

    with pytest.raises(NotFoundError):
        await FeeService(db).generate_fee(tenant.id, FeeCreate(student_id=student.id, month="Mar-2025"))


async def test_payments_move_status(db):
    tenant = await make_tenant(db)
    student = await make_student(db, tenant, "1", monthly_fee=4000)
    await db.commit()
    service = FeeService(db)
    fee = await service.generate_fee(tenant.id, FeeCreate(student_id=student.id, month="Apr-2025"))

    fee = await service.record_payment(tenant.id, fee.id, 1500)
    assert fee.status == FeeStatus.PARTIAL.value
    assert fee.balance == 2500
    assert fee.payment_date is not None

    fee = await service.record_payment(tenant.id, fee.id, 2500)
    assert fee.status == FeeStatus.PAID.value
    assert fee.balance == 0


@pytest.mark.parametrize("amount", [0, -100])
async def test_non_positive_payment_is_rejected(db, amount):
    tenant = await make_tenant(db)
    student = await make_student(db, tenant, "1", monthly_fee=4000)
    await db.commit()
    service = FeeService(db)
    fee = await service.generate_fee(tenant.id, FeeCreate(student_id=student.id, month="May-2025"))

    with pytest.raises(ValidationError):
        await service.record_payment(tenant.id, fee.id, amount)


async def test_consolidated_family_fees(db):
    tenant = await make_tenant(db)
    family = await make_family(db, tenant)
    await make_policy(db, tenant, DiscountPolicyType.SIBLING, percentage=10, conditions={"sibling_position": 2})
    elder = await make_student(
        db, tenant, "1", monthly_fee=5000, admission_date=date(2020, 1, 1),
        family_id=family.id, sibling_discount_position=1
    )
    younger = await make_student(
        db, tenant, "2", monthly_fee=5000, admission_date=date(2022, 1, 1),
        family_id=family.id, sibling_discount_position=2
    )
    await db.commit()
    service = FeeService(db)
    saved = await service.generate_fee(tenant.id, FeeCreate(student_id=elder.id, month="Jun-2025"))
    await service.record_payment(tenant.id, saved.id, 1000)

    result = await service.consolidated_family_fees(tenant.id, family.id, "Jun-2025")

    assert [m.student.id for m in result.members] == [elder.id, younger.id]
    assert result.members[0].preview is False
    assert result.members[1].preview is True
    assert result.members[1].net_amount == 4500
    assert result.total_gross == 10000
    assert result.total_net == 9500
    assert result.total_paid == 1000
    assert result.total_balance == 8500
