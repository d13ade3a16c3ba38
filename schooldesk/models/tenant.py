from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from .base import Base, TimestampMixin
from schooldesk.schemas.enums import Feature, SubscriptionPlan, SubscriptionStatus


class Tenant(TimestampMixin, Base):
    """
    One customer school. This is the root of the tenant hierarchy.
    """
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    tenant_code = Column(String(20), nullable=False, unique=True, index=True)  # e.g. 'SCH-001'
    school_name = Column(String(255), nullable=False)
    logo_url = Column(String(500), nullable=True)

    subscription_status = Column(String(20), nullable=False, default=SubscriptionStatus.TRIAL.value, index=True)
    subscription_plan = Column(String(20), nullable=False, default=SubscriptionPlan.FREE.value)
    subscription_start_date = Column(DateTime(timezone=True), nullable=True)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    features_enabled = Column(JSON, nullable=False, default=lambda: [Feature.CORE.value])

    # Contact information
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=False)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True, default="Pakistan")

    max_students = Column(Integer, nullable=False, default=100)
    max_staff = Column(Integer, nullable=False, default=20)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, nullable=True)

    @property
    def is_subscription_valid(self) -> bool:
        if self.subscription_status in (SubscriptionStatus.INACTIVE.value, SubscriptionStatus.SUSPENDED.value):
            return False
        if self.subscription_end_date is not None:
            end = self.subscription_end_date
            if end.tzinfo is None:
                end = end.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) > end:
                return False
        return True

    def __repr__(self):
        return f"<Tenant(code={self.tenant_code}, name={self.school_name}, status={self.subscription_status})>"
