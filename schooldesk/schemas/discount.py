from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import DiscountMode, DiscountPolicyType


class DiscountConditions(BaseModel):
    sibling_position: Optional[int] = Field(default=None, ge=1)
    min_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    staff_designations: List[str] = Field(default_factory=list)
    days_before_due: Optional[int] = Field(default=None, ge=0)


class DiscountPolicyBase(BaseModel):
    policy_name: str = Field(..., min_length=1, max_length=255)
    policy_type: DiscountPolicyType
    discount_mode: DiscountMode = DiscountMode.PERCENTAGE
    discount_percentage: float = Field(default=0.0, ge=0, le=100)
    discount_amount: float = Field(default=0.0, ge=0)
    conditions: DiscountConditions = Field(default_factory=DiscountConditions)
    description: Optional[str] = None
    is_active: bool = True


class DiscountPolicyCreate(DiscountPolicyBase):
    @model_validator(mode="after")
    def check_value(self):
        if self.discount_mode == DiscountMode.PERCENTAGE and self.discount_percentage <= 0:
            raise ValueError("discount_percentage must be greater than 0 for percentage policies")
        if self.discount_mode == DiscountMode.FIXED_AMOUNT and self.discount_amount <= 0:
            raise ValueError("discount_amount must be greater than 0 for fixed amount policies")
        return self


class DiscountPolicyUpdate(BaseModel):
    policy_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    policy_type: Optional[DiscountPolicyType] = None
    discount_mode: Optional[DiscountMode] = None
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    discount_amount: Optional[float] = Field(default=None, ge=0)
    conditions: Optional[DiscountConditions] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DiscountPolicyResponse(DiscountPolicyBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    conditions: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppliedDiscount(BaseModel):
    policy_id: int
    policy_name: str
    policy_type: DiscountPolicyType
    discount_mode: DiscountMode
    percentage: float = 0.0
    fixed_amount: float = 0.0
    sibling_position: Optional[int] = None
    total_siblings: Optional[int] = None


class DiscountCalculation(BaseModel):
    success: bool = True
    student_id: Optional[int] = None
    student_name: Optional[str] = None
    applied_discounts: List[AppliedDiscount] = Field(default_factory=list)
    total_discount_percentage: float = 0.0
    total_discount_amount: float = 0.0
    discount_count: int = 0
    error: Optional[str] = None


class NetPayable(BaseModel):
    gross_amount: float
    percentage_discount: float
    fixed_discount: float
    total_discount: float
    net_amount: float


class DiscountPreview(BaseModel):
    calculation: DiscountCalculation
    payable: NetPayable
