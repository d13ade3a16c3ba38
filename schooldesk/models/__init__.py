from .base import Base, TenantModel
from .tenant import Tenant
from .user import User
from .staff import Staff
from .family import Family
from .student import Student
from .discount import DiscountPolicy
from .fee import Fee
from .sessions import AcademicSession

__all__ = [
    'Base',
    'TenantModel',
    'Tenant',
    'User',
    'Staff',
    'Family',
    'Student',
    'DiscountPolicy',
    'Fee',
    'AcademicSession'
]
