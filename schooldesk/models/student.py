from sqlalchemy import (
    JSON, Boolean, Column, Date, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)

from .base import TenantModel
from schooldesk.schemas.enums import DiscountCategory


class Student(TenantModel):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "class_name", "section", "roll_no", name="uq_student_roll"),
    )

    id = Column(Integer, primary_key=True, index=True)
    roll_no = Column(String(50), nullable=False)
    full_name = Column(String(255), nullable=False)
    class_name = Column(String(50), nullable=False)
    section = Column(String(20), nullable=False)
    gender = Column(String(10), nullable=True)
    address = Column(Text, nullable=True)

    # Guardian contacts
    father_name = Column(String(255), nullable=True)
    father_mobile = Column(String(30), nullable=True)
    father_cnic = Column(String(30), nullable=True)
    mother_name = Column(String(255), nullable=True)
    mother_mobile = Column(String(30), nullable=True)

    admission_date = Column(Date, nullable=True)
    admission_number = Column(String(50), nullable=True)
    monthly_fee = Column(Float, nullable=True)
    enrolled_subjects = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Family / sibling linkage
    family_id = Column(Integer, ForeignKey("families.id", ondelete="SET NULL"), nullable=True, index=True)
    siblings = Column(JSON, nullable=False, default=list)
    sibling_discount_position = Column(Integer, nullable=False, default=1)

    # Fee-relevant flags
    is_staff_child = Column(Boolean, nullable=False, default=False)
    staff_parent_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    discount_category = Column(String(30), nullable=False, default=DiscountCategory.NONE.value)

    def __repr__(self):
        return f"<Student(id={self.id}, roll_no={self.roll_no}, class={self.class_name}-{self.section})>"
