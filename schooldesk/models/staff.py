from sqlalchemy import Boolean, Column, Integer, String

from .base import TenantModel


class Staff(TenantModel):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    designation = Column(String(100), nullable=True)
    mobile = Column(String(30), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Staff(id={self.id}, name={self.full_name})>"
