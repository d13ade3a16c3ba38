from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String

from .base import Base, TimestampMixin
from schooldesk.schemas.enums import UserRole


class User(TimestampMixin, Base):
    """Staff account. Super admins carry no tenant."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(30), nullable=False, default=UserRole.SCHOOL_ADMIN.value)
    permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True)
    # Pre multi-tenant school reference, read only by the tenant resolver
    school_id = Column(Integer, nullable=True)

    preferred_language = Column(String(5), nullable=False, default="en")
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
