from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select

from schooldesk.core.config import settings
from schooldesk.core.permissions import default_permissions
from schooldesk.models import AcademicSession, Student, Tenant, User
from schooldesk.schemas.enums import DiscountPolicyType, SubscriptionStatus, UserRole
from tests.factories import (
    PASSWORD,
    auth_headers,
    make_family,
    make_policy,
    make_student,
    make_tenant,
    make_user,
)

API = "/api/v1"


async def test_health_is_public(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"]


async def test_protected_path_without_token(client):
    response = await client.get(f"{API}/auth/me")
    assert response.status_code == 401
    body = response.json()
    assert body == {"success": False, "error_code": "NO_TOKEN", "message": "Not authorized, no token"}


async def test_protected_path_with_bad_token(client):
    response = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "INVALID_TOKEN"


async def test_login_then_me(client, db):
    tenant = await make_tenant(db)
    await make_user(db, tenant, "principal", email="principal@greenvalley.edu.pk")
    await db.commit()

    login = await client.post(f"{API}/auth/login", json={"identifier": "principal", "password": PASSWORD})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    body = me.json()
    assert body["username"] == "principal"
    assert body["tenant_id"] == tenant.id
    assert body["school_name"] == tenant.school_name
    assert body["impersonated"] is False


async def test_login_failures(client, db):
    tenant = await make_tenant(db)
    await make_user(db, tenant, "gone", is_active=False)
    await db.commit()

    wrong = await client.post(f"{API}/auth/login", json={"identifier": "gone", "password": "x"})
    assert wrong.status_code == 401
    assert wrong.json()["error_code"] == "INVALID_CREDENTIALS"

    deactivated = await client.post(f"{API}/auth/login", json={"identifier": "gone", "password": PASSWORD})
    assert deactivated.status_code == 403
    assert deactivated.json()["error_code"] == "ACCOUNT_DEACTIVATED"


async def test_deactivated_user_token_is_refused(client, db):
    tenant = await make_tenant(db)
    user = await make_user(db, tenant, "left", is_active=False)
    await db.commit()

    response = await client.get(f"{API}/auth/me", headers=auth_headers(user))
    assert response.status_code == 403
    assert response.json()["error_code"] == "ACCOUNT_DEACTIVATED"


async def test_feature_gate_blocks_disabled_feature(client, db):
    tenant = await make_tenant(db, features=["core"])
    teacher = await make_user(db, tenant, "teacher1", role=UserRole.TEACHER)
    await db.commit()

    response = await client.get(f"{API}/discounts/policies", headers=auth_headers(teacher))

    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "FEATURE_NOT_ENABLED"
    assert body["feature"] == "fees"
    assert body["upgrade_required"] is True
    assert body["success"] is False


async def test_core_routes_work_on_core_plan(client, db):
    tenant = await make_tenant(db, features=["core"])
    teacher = await make_user(db, tenant, "teacher1", role=UserRole.TEACHER)
    await db.commit()

    response = await client.get(f"{API}/families/siblings", headers=auth_headers(teacher))

    assert response.status_code == 200
    assert response.json()["total_confirmed"] == 0


async def test_inactive_subscription_is_rejected(client, db):
    tenant = await make_tenant(db, status=SubscriptionStatus.SUSPENDED)
    admin = await make_user(db, tenant, "admin")
    await db.commit()

    response = await client.get(f"{API}/families/siblings", headers=auth_headers(admin))

    assert response.status_code == 403
    assert response.json()["error_code"] == "SUBSCRIPTION_INACTIVE"


async def test_expired_subscription_is_rejected(client, db):
    tenant = await make_tenant(db)
    tenant.subscription_end_date = datetime.now(timezone.utc) - timedelta(days=1)
    admin = await make_user(db, tenant, "admin")
    await db.commit()

    response = await client.get(f"{API}/auth/me", headers=auth_headers(admin))

    assert response.status_code == 403
    assert response.json()["error_code"] == "SUBSCRIPTION_INACTIVE"


async def test_missing_tenant_row_means_no_features(client, db):
    user = await make_user(db, None, "legacy", role=UserRole.ACCOUNTANT)
    user.school_id = 4242
    await db.commit()

    me = await client.get(f"{API}/auth/me", headers=auth_headers(user))
    assert me.status_code == 200
    assert me.json()["tenant_id"] == 4242

    fees = await client.get(f"{API}/discounts/policies", headers=auth_headers(user))
    assert fees.status_code == 403
    assert fees.json()["error_code"] == "FEATURE_NOT_ENABLED"


async def test_discount_policy_lifecycle_and_preview(client, db):
    tenant = await make_tenant(db, features=["core", "fees"])
    admin = await make_user(db, tenant, "admin")
    family = await make_family(db, tenant)
    await make_student(db, tenant, "1", admission_date=date(2020, 1, 1), family_id=family.id, monthly_fee=6000)
    second = await make_student(
        db, tenant, "2", admission_date=date(2021, 1, 1), family_id=family.id, monthly_fee=6000
    )
    await db.commit()
    headers = auth_headers(admin)

    created = await client.post(f"{API}/discounts/policies", headers=headers, json={
        "policy_name": "Second child",
        "policy_type": "Sibling",
        "discount_mode": "Percentage",
        "discount_percentage": 25,
        "conditions": {"sibling_position": 2}
    })
    assert created.status_code == 201
    policy = created.json()
    assert policy["conditions"] == {"sibling_position": 2, "staff_designations": []}

    preview = await client.get(f"{API}/discounts/calculate/{second.id}", headers=headers)
    assert preview.status_code == 200
    body = preview.json()
    assert body["calculation"]["applied_discounts"][0]["sibling_position"] == 2
    assert body["payable"]["net_amount"] == 4500

    custom = await client.get(f"{API}/discounts/calculate/{second.id}?fee_amount=1000", headers=headers)
    assert custom.json()["payable"]["net_amount"] == 750

    updated = await client.put(
        f"{API}/discounts/policies/{policy['id']}", headers=headers, json={"is_active": False}
    )
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    active = await client.get(f"{API}/discounts/policies?is_active=true", headers=headers)
    assert active.json() == []

    deleted = await client.delete(f"{API}/discounts/policies/{policy['id']}", headers=headers)
    assert deleted.status_code == 200
    missing = await client.get(f"{API}/discounts/policies/{policy['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"


async def test_invalid_policy_is_rejected(client, db):
    tenant = await make_tenant(db, features=["core", "fees"])
    admin = await make_user(db, tenant, "admin")
    await db.commit()

    response = await client.post(f"{API}/discounts/policies", headers=auth_headers(admin), json={
        "policy_name": "Too much",
        "policy_type": "Merit",
        "discount_percentage": 150
    })
    assert response.status_code == 422


async def test_link_siblings_and_fees_through_api(client, db, session_factory):
    tenant = await make_tenant(db, features=["core", "fees"])
    admin = await make_user(db, tenant, "admin")
    await make_policy(db, tenant, DiscountPolicyType.SIBLING, percentage=10, conditions={"sibling_position": 2})
    a = await make_student(db, tenant, "1", admission_date=date(2019, 8, 1), monthly_fee=4000)
    b = await make_student(db, tenant, "2", admission_date=date(2021, 8, 1), monthly_fee=4000)
    await db.commit()
    headers = auth_headers(admin)

    too_few = await client.post(f"{API}/families/link", headers=headers, json={"student_ids": [a.id]})
    assert too_few.status_code == 422
    assert too_few.json()["error_code"] == "VALIDATION_ERROR"

    linked = await client.post(f"{API}/families/link", headers=headers, json={
        "student_ids": [a.id, b.id],
        "family_data": {"family_head_name": "Mr. Qureshi"}
    })
    assert linked.status_code == 200
    body = linked.json()
    family_id = body["family"]["id"]
    assert body["total_children"] == 2
    assert body["family"]["effective_family_head"] == "Mr. Qureshi"

    members = await client.get(f"{API}/families/{family_id}/students", headers=headers)
    assert [m["id"] for m in members.json()] == [a.id, b.id]

    fee = await client.post(f"{API}/fees", headers=headers, json={"student_id": b.id, "month": "Sep-2025"})
    assert fee.status_code == 201
    assert fee.json()["net_amount"] == 3600

    duplicate = await client.post(f"{API}/fees", headers=headers, json={"student_id": b.id, "month": "Sep-2025"})
    assert duplicate.status_code == 409

    paid = await client.post(f"{API}/fees/{fee.json()['id']}/payments", headers=headers, json={"amount": 3600})
    assert paid.json()["status"] == "Paid"

    bad_payment = await client.post(f"{API}/fees/{fee.json()['id']}/payments", headers=headers, json={"amount": 0})
    assert bad_payment.status_code == 422

    consolidated = await client.get(
        f"{API}/families/{family_id}/consolidated-fees?month=Sep-2025", headers=headers
    )
    assert consolidated.status_code == 200
    assert consolidated.json()["total_net"] == 7600
    assert consolidated.json()["total_paid"] == 3600

    async with session_factory() as session:
        result = await session.execute(select(Student).where(Student.family_id == family_id))
        assert {s.id: s.sibling_discount_position for s in result.scalars()} == {a.id: 1, b.id: 2}


async def test_tenant_isolation(client, db):
    mine = await make_tenant(db, features=["core", "fees"])
    theirs = await make_tenant(db, code="SCH-002", features=["core", "fees"])
    admin = await make_user(db, mine, "admin")
    their_family = await make_family(db, theirs)
    their_student = await make_student(db, theirs, "1")
    await db.commit()
    headers = auth_headers(admin)

    assert (await client.get(f"{API}/families/{their_family.id}", headers=headers)).status_code == 404
    assert (await client.get(f"{API}/discounts/calculate/{their_student.id}", headers=headers)).status_code == 404


async def test_session_header_selects_academic_session(client, db):
    tenant = await make_tenant(db)
    admin = await make_user(db, tenant, "admin")
    db.add(AcademicSession(tenant_id=tenant.id, name="2025-2026", is_current=True))
    await db.commit()

    response = await client.get(
        f"{API}/families/siblings", headers={**auth_headers(admin), "X-Session-ID": "not-a-number"}
    )
    assert response.status_code == 200


async def test_user_management_permissions(client, db):
    tenant = await make_tenant(db)
    admin = await make_user(db, tenant, "admin")
    cashier = await make_user(db, tenant, "cashier", role=UserRole.CASHIER, permissions=["fees.collect"])
    await db.commit()

    denied = await client.post(f"{API}/users", headers=auth_headers(cashier), json={
        "username": "newbie", "password": "secret123", "role": "teacher"
    })
    assert denied.status_code == 403
    assert denied.json()["error_code"] == "PERMISSION_DENIED"

    created = await client.post(f"{API}/users", headers=auth_headers(admin), json={
        "username": "newbie", "password": "secret123", "role": "accountant"
    })
    assert created.status_code == 201
    assert "fees.collect" in created.json()["permissions"]
    assert created.json()["tenant_id"] == tenant.id

    no_root = await client.post(f"{API}/users", headers=auth_headers(admin), json={
        "username": "sneaky", "password": "secret123", "role": "super_admin"
    })
    assert no_root.status_code == 403

    listed = await client.get(f"{API}/users", headers=auth_headers(admin))
    assert {u["username"] for u in listed.json()} == {"admin", "cashier", "newbie"}

    deactivated = await client.patch(f"{API}/users/{cashier.id}/deactivate", headers=auth_headers(admin))
    assert deactivated.json()["is_active"] is False


async def test_super_admin_console(client, db, session_factory):
    root = await make_user(db, None, "root", role=UserRole.SUPER_ADMIN)
    await db.commit()
    headers = auth_headers(root)

    created = await client.post(f"{API}/super-admin/tenants", headers=headers, json={
        "school_name": "Hilltop Academy",
        "contact_email": "office@hilltop.edu.pk",
        "contact_phone": "0421234567",
        "admin_username": "hilltop",
        "admin_password": "hilltop123"
    })
    assert created.status_code == 201
    tenant = created.json()["tenant"]
    assert tenant["tenant_code"] == "SCH-001"
    assert tenant["features_enabled"] == ["core"]
    assert tenant["subscription_status"] == "Active"
    assert created.json()["admin"]["permissions"] == ["*"]

    duplicate = await client.post(f"{API}/super-admin/tenants", headers=headers, json={
        "school_name": "Copycat",
        "contact_email": "office@copycat.edu.pk",
        "contact_phone": "0421234567",
        "admin_username": "hilltop",
        "admin_password": "hilltop123"
    })
    assert duplicate.status_code == 409

    listed = await client.get(f"{API}/super-admin/tenants", headers=headers)
    assert listed.json()[0]["user_count"] == 1

    unknown = await client.patch(
        f"{API}/super-admin/tenants/{tenant['id']}/features", headers=headers,
        json={"features_enabled": ["core", "warp-drive"]}
    )
    assert unknown.status_code == 422

    features = await client.patch(
        f"{API}/super-admin/tenants/{tenant['id']}/features", headers=headers,
        json={"features_enabled": ["core", "fees", "fees"]}
    )
    assert features.json()["features_enabled"] == ["core", "fees"]

    impersonation = await client.post(f"{API}/super-admin/impersonate/{tenant['id']}", headers=headers)
    assert impersonation.status_code == 200
    school_headers = {"Authorization": f"Bearer {impersonation.json()['access_token']}"}
    me = await client.get(f"{API}/auth/me", headers=school_headers)
    assert me.json()["impersonated"] is True
    assert me.json()["tenant_id"] == tenant["id"]
    policies = await client.get(f"{API}/discounts/policies", headers=school_headers)
    assert policies.status_code == 200

    status = await client.patch(
        f"{API}/super-admin/tenants/{tenant['id']}/status", headers=headers,
        json={"subscription_status": "Inactive"}
    )
    assert status.json()["subscription_status"] == "Inactive"

    stats = await client.get(f"{API}/super-admin/stats", headers=headers)
    assert stats.json() == {"total_tenants": 1, "active_tenants": 0, "inactive_tenants": 1, "trial_tenants": 0}

    removed = await client.delete(f"{API}/super-admin/tenants/{tenant['id']}", headers=headers)
    assert removed.status_code == 200
    async with session_factory() as session:
        assert (await session.execute(select(func.count(Tenant.id)))).scalar() == 0
        remaining = (await session.execute(select(User.username))).scalars().all()
        assert remaining == ["root"]


async def test_super_admin_routes_refuse_school_users(client, db):
    tenant = await make_tenant(db)
    admin = await make_user(db, tenant, "admin")
    await db.commit()

    response = await client.get(f"{API}/super-admin/stats", headers=auth_headers(admin))
    assert response.status_code == 403
    assert response.json()["error_code"] == "FORBIDDEN"


async def test_super_admin_needs_school_context_for_tenant_routes(client, db):
    root = await make_user(db, None, "root", role=UserRole.SUPER_ADMIN)
    await db.commit()

    response = await client.get(f"{API}/families/siblings", headers=auth_headers(root))
    assert response.status_code == 403
    assert response.json()["error_code"] == "TENANT_REQUIRED"


async def test_super_admin_bootstrap_over_http(client, monkeypatch):
    monkeypatch.setattr(settings, "SUPER_ADMIN_SETUP_TOKEN", None)
    disabled = await client.post(f"{API}/super-admin/login", json={
        "email": "root@schooldesk.io", "password": "Str0ngPass!"
    })
    assert disabled.status_code == 403
    assert disabled.json()["error_code"] == "BOOTSTRAP_DISABLED"

    monkeypatch.setattr(settings, "SUPER_ADMIN_SETUP_TOKEN", "one-time-token")
    created = await client.post(f"{API}/super-admin/login", json={
        "email": "root@schooldesk.io", "password": "Str0ngPass!", "setup_token": "one-time-token"
    })
    assert created.status_code == 200
    assert created.json()["user"]["role"] == "super_admin"

    registered = await client.post(f"{API}/super-admin/register", json={
        "name": "Second Operator",
        "email": "ops@schooldesk.io",
        "password": "An0therPass!",
        "setup_token": "one-time-token"
    })
    assert registered.status_code == 201


async def test_user_without_school_is_never_bound_to_a_matching_tenant_id(client, db):
    school = await make_tenant(db, features=["core", "fees"])
    await make_student(db, school, "1", full_name="V1", father_mobile="0300-5550001")
    await make_student(db, school, "2", full_name="V2", father_mobile="03005550001")
    orphan = await make_user(db, None, "orphan", role=UserRole.TEACHER)
    await db.commit()
    assert orphan.id == school.id

    login = await client.post(f"{API}/auth/login", json={"identifier": "orphan", "password": PASSWORD})
    assert login.status_code == 200
    assert login.json()["user"]["tenant_id"] is None
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    me = await client.get(f"{API}/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["tenant_id"] is None
    assert me.json()["school_name"] is None

    siblings = await client.get(f"{API}/families/siblings", headers=headers)
    assert siblings.status_code == 403
    assert siblings.json()["error_code"] == "TENANT_UNRESOLVED"

    policies = await client.get(f"{API}/discounts/policies", headers=headers)
    assert policies.status_code == 403
    assert policies.json()["error_code"] == "TENANT_UNRESOLVED"


async def test_fee_mutations_require_capabilities(client, db):
    tenant = await make_tenant(db, features=["core", "fees"])
    teacher = await make_user(
        db, tenant, "teacher1", role=UserRole.TEACHER, permissions=default_permissions(UserRole.TEACHER)
    )
    librarian = await make_user(
        db, tenant, "librarian1", role=UserRole.LIBRARIAN, permissions=default_permissions(UserRole.LIBRARIAN)
    )
    cashier = await make_user(
        db, tenant, "cashier1", role=UserRole.CASHIER, permissions=default_permissions(UserRole.CASHIER)
    )
    admin = await make_user(db, tenant, "admin")
    first = await make_student(db, tenant, "1", monthly_fee=4000, admission_date=date(2020, 1, 1))
    second = await make_student(db, tenant, "2", monthly_fee=4000, admission_date=date(2021, 1, 1))
    await db.commit()

    policy_body = {
        "policy_name": "Merit",
        "policy_type": "Merit",
        "discount_mode": "Percentage",
        "discount_percentage": 15
    }
    denied = await client.post(f"{API}/discounts/policies", headers=auth_headers(teacher), json=policy_body)
    assert denied.status_code == 403
    assert denied.json()["error_code"] == "PERMISSION_DENIED"
    assert denied.json()["required_permission"] == "fees.create"

    created = await client.post(f"{API}/discounts/policies", headers=auth_headers(admin), json=policy_body)
    assert created.status_code == 201
    policy_id = created.json()["id"]

    delete = await client.delete(f"{API}/discounts/policies/{policy_id}", headers=auth_headers(teacher))
    assert delete.status_code == 403
    update = await client.put(
        f"{API}/discounts/policies/{policy_id}", headers=auth_headers(cashier), json={"discount_percentage": 50}
    )
    assert update.status_code == 403

    fee = await client.post(f"{API}/fees", headers=auth_headers(cashier), json={
        "student_id": first.id, "month": "Jan-2025"
    })
    assert fee.status_code == 403
    fee = await client.post(f"{API}/fees", headers=auth_headers(admin), json={
        "student_id": first.id, "month": "Jan-2025"
    })
    assert fee.status_code == 201
    fee_id = fee.json()["id"]

    unpaid = await client.post(f"{API}/fees/{fee_id}/payments", headers=auth_headers(teacher), json={"amount": 500})
    assert unpaid.status_code == 403
    paid = await client.post(f"{API}/fees/{fee_id}/payments", headers=auth_headers(cashier), json={"amount": 500})
    assert paid.status_code == 200
    assert paid.json()["status"] == "Partial"

    relink = await client.post(f"{API}/families/link", headers=auth_headers(librarian), json={
        "student_ids": [first.id, second.id]
    })
    assert relink.status_code == 403
    assert relink.json()["required_permission"] == "students.edit"
