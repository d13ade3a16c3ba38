from sqlalchemy import Boolean, Column, Date, Integer, String

from .base import TenantModel


class AcademicSession(TenantModel):
    __tablename__ = "academic_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)  # e.g. "2025-2026"
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<AcademicSession(name={self.name}, current={self.is_current})>"
