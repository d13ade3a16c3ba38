from sqlalchemy import JSON, Boolean, Column, Float, Integer, String, Text

from .base import TenantModel
from schooldesk.schemas.enums import DiscountMode, DiscountPolicyType


class DiscountPolicy(TenantModel):
    __tablename__ = "discount_policies"

    id = Column(Integer, primary_key=True, index=True)
    policy_name = Column(String(255), nullable=False)
    policy_type = Column(String(30), nullable=False, default=DiscountPolicyType.CUSTOM.value, index=True)
    discount_mode = Column(String(20), nullable=False, default=DiscountMode.PERCENTAGE.value)
    discount_percentage = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    # sibling_position, min_percentage, staff_designations, days_before_due
    conditions = Column(JSON, nullable=False, default=dict)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_by = Column(Integer, nullable=True)

    @property
    def sibling_position(self):
        return (self.conditions or {}).get("sibling_position")

    def __repr__(self):
        return f"<DiscountPolicy(id={self.id}, type={self.policy_type}, mode={self.discount_mode})>"
