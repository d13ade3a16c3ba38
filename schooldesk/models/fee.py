from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint

from .base import TenantModel
from schooldesk.schemas.enums import FeeStatus


class Fee(TenantModel):
    __tablename__ = "fees"
    __table_args__ = (
        UniqueConstraint("student_id", "month", name="uq_fee_student_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(String(20), nullable=False)  # e.g. "Jan-2025"

    tuition_fee = Column(Float, nullable=False)
    other_charges = Column(JSON, nullable=False, default=list)  # [{"label": ..., "amount": ...}]
    arrears = Column(Float, nullable=False, default=0.0)

    # tuition + other charges + arrears
    gross_amount = Column(Float, nullable=False)
    discount_breakdown = Column(JSON, nullable=False, default=list)
    concession = Column(Float, nullable=False, default=0.0)
    net_amount = Column(Float, nullable=False)

    paid_amount = Column(Float, nullable=False, default=0.0)
    balance = Column(Float, nullable=False, default=0.0)
    status = Column(String(10), nullable=False, default=FeeStatus.PENDING.value)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Fee(student={self.student_id}, month={self.month}, status={self.status})>"
