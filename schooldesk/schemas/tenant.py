from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .enums import SubscriptionPlan, SubscriptionStatus


class TenantCreate(BaseModel):
    school_name: str = Field(..., min_length=2, max_length=255)
    contact_email: EmailStr
    contact_phone: str = Field(..., min_length=5, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = "Pakistan"
    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE
    subscription_end_date: Optional[datetime] = None
    max_students: int = Field(default=100, ge=1)
    max_staff: int = Field(default=20, ge=1)

    # First school admin
    admin_username: str = Field(..., min_length=3, max_length=100)
    admin_password: str = Field(..., min_length=6)
    admin_name: Optional[str] = None
    admin_email: Optional[EmailStr] = None

    @field_validator("admin_username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.strip()


class TenantStatusUpdate(BaseModel):
    subscription_status: SubscriptionStatus
    subscription_end_date: Optional[datetime] = None


class TenantFeaturesUpdate(BaseModel):
    features_enabled: List[str] = Field(default_factory=list)


class TenantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_code: str
    school_name: str
    subscription_status: SubscriptionStatus
    subscription_plan: SubscriptionPlan
    subscription_end_date: Optional[datetime] = None
    features_enabled: List[str] = Field(default_factory=list)
    contact_email: str
    contact_phone: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    max_students: int
    max_staff: int
    is_active: bool
    created_at: Optional[datetime] = None


class TenantListItem(TenantResponse):
    user_count: int = 0


class TenantStats(BaseModel):
    total_tenants: int
    active_tenants: int
    inactive_tenants: int
    trial_tenants: int
