# schooldesk/services/tenant_service.py
import re
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from schooldesk.core.errors import ConflictError, NotFoundError
from schooldesk.core.logging import logger
from schooldesk.core.permissions import parse_feature
from schooldesk.core.security import get_password_hash
from schooldesk.models import (
    AcademicSession,
    DiscountPolicy,
    Family,
    Fee,
    Staff,
    Student,
    Tenant,
    User,
)
from schooldesk.schemas.enums import Feature, SubscriptionStatus, UserRole
from schooldesk.schemas.tenant import TenantCreate, TenantFeaturesUpdate, TenantStats, TenantStatusUpdate
from .base_service import BaseService

TENANT_CODE_PATTERN = re.compile(r"^SCH-(\d+)$")

# Child tables first so foreign keys never dangle mid-delete
TENANT_TABLES = (Fee, DiscountPolicy, Student, Family, Staff, AcademicSession, User)


class TenantService(BaseService):
    async def generate_tenant_code(self) -> str:
        """Next free code in the SCH-001 sequence"""
        result = await self.db.execute(select(Tenant.tenant_code).where(Tenant.tenant_code.like("SCH-%")))
        sequence = 0
        for code in result.scalars():
            match = TENANT_CODE_PATTERN.match(code or "")
            if match:
                sequence = max(sequence, int(match.group(1)))
        return f"SCH-{sequence + 1:03d}"

    async def get_tenant(self, tenant_id: int) -> Tenant:
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise NotFoundError("School not found", details={"tenant_id": tenant_id})
        return tenant

    async def create_tenant(self, data: TenantCreate, created_by: int) -> Tuple[Tenant, User]:
        """Create a school together with its first school admin"""
        existing = await self.db.execute(
            select(User.id).where(User.username == data.admin_username)
        )
        if existing.first() is not None:
            raise ConflictError(
                "Username already exists",
                details={"username": data.admin_username}
            )

        max_retries = 3
        for attempt in range(1, max_retries + 1):
            tenant = Tenant(
                tenant_code=await self.generate_tenant_code(),
                school_name=data.school_name,
                contact_email=data.contact_email,
                contact_phone=data.contact_phone,
                address=data.address,
                city=data.city,
                country=data.country,
                subscription_status=SubscriptionStatus.ACTIVE.value,
                subscription_plan=data.subscription_plan.value,
                subscription_start_date=datetime.now(timezone.utc),
                subscription_end_date=data.subscription_end_date,
                features_enabled=[Feature.CORE.value],
                max_students=data.max_students,
                max_staff=data.max_staff,
                is_active=True,
                created_by=created_by
            )
            self.db.add(tenant)
            try:
                await self.db.flush()
                break
            except IntegrityError:
                await self.db.rollback()
                logger.warning(f"Tenant code collision on attempt {attempt}, retrying")
                if attempt == max_retries:
                    raise ConflictError("Could not allocate a unique school code")

        admin = User(
            username=data.admin_username,
            email=(data.admin_email or data.contact_email).lower(),
            full_name=data.admin_name or f"{data.school_name} Admin",
            password_hash=get_password_hash(data.admin_password),
            role=UserRole.SCHOOL_ADMIN.value,
            permissions=["*"],
            is_active=True,
            tenant_id=tenant.id
        )
        self.db.add(admin)
        await self.db.commit()

        logger.info(
            f"Created school {tenant.school_name} with code {tenant.tenant_code}",
            extra={"tenant_id": tenant.id, "user_id": created_by}
        )
        return tenant, admin

    async def list_tenants(self) -> List[Dict]:
        """All schools, newest first, with their user counts"""
        counts = (
            select(User.tenant_id, func.count(User.id).label("user_count"))
            .where(User.tenant_id.is_not(None))
            .group_by(User.tenant_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Tenant, func.coalesce(counts.c.user_count, 0))
            .outerjoin(counts, counts.c.tenant_id == Tenant.id)
            .order_by(Tenant.created_at.desc(), Tenant.id.desc())
        )
        return [{"tenant": tenant, "user_count": user_count} for tenant, user_count in result.all()]

    async def update_status(self, tenant_id: int, data: TenantStatusUpdate) -> Tenant:
        tenant = await self.get_tenant(tenant_id)
        tenant.subscription_status = data.subscription_status.value
        if data.subscription_end_date is not None:
            tenant.subscription_end_date = data.subscription_end_date
        await self.db.commit()
        logger.info(
            f"School {tenant.tenant_code} status set to {tenant.subscription_status}",
            extra={"tenant_id": tenant.id}
        )
        return tenant

    async def update_features(self, tenant_id: int, data: TenantFeaturesUpdate) -> Tenant:
        features = []
        for tag in data.features_enabled:
            feature = parse_feature(tag)
            if feature not in features:
                features.append(feature)

        tenant = await self.get_tenant(tenant_id)
        tenant.features_enabled = features
        await self.db.commit()
        logger.info(f"School {tenant.tenant_code} features: {features}", extra={"tenant_id": tenant.id})
        return tenant

    async def delete_tenant(self, tenant_id: int) -> Dict[str, int]:
        """Remove a school and everything that belongs to it"""
        tenant = await self.get_tenant(tenant_id)
        removed: Dict[str, int] = {}
        for model in TENANT_TABLES:
            result = await self.db.execute(delete(model).where(model.tenant_id == tenant_id))
            removed[model.__tablename__] = result.rowcount or 0
        await self.db.delete(tenant)
        await self.db.commit()

        logger.warning(
            f"Deleted school {tenant.tenant_code} and its data: {removed}",
            extra={"tenant_id": tenant_id, "event": "tenant_deleted"}
        )
        return removed

    async def get_stats(self) -> TenantStats:
        result = await self.db.execute(
            select(Tenant.subscription_status, func.count(Tenant.id)).group_by(Tenant.subscription_status)
        )
        by_status = {status: count for status, count in result.all()}
        return TenantStats(
            total_tenants=sum(by_status.values()),
            active_tenants=by_status.get(SubscriptionStatus.ACTIVE.value, 0),
            inactive_tenants=by_status.get(SubscriptionStatus.INACTIVE.value, 0),
            trial_tenants=by_status.get(SubscriptionStatus.TRIAL.value, 0)
        )
