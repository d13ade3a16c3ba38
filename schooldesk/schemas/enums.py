from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    ACCOUNTANT = "accountant"
    CASHIER = "cashier"
    RECEPTIONIST = "receptionist"
    LIBRARIAN = "librarian"
    TRANSPORT_MANAGER = "transport_manager"


class Feature(str, Enum):
    CORE = "core"
    FEES = "fees"
    EXAMS = "exams"
    TRANSPORT = "transport"
    SMS = "sms"
    ACCOUNTS = "accounts"
    LIBRARY = "library"
    HOSTEL = "hostel"
    HR = "hr"
    ATTENDANCE = "attendance"
    REPORTS = "reports"


class SubscriptionStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    TRIAL = "Trial"
    SUSPENDED = "Suspended"
    EXPIRED = "Expired"


class SubscriptionPlan(str, Enum):
    FREE = "Free"
    BASIC = "Basic"
    PREMIUM = "Premium"
    ENTERPRISE = "Enterprise"


class DiscountPolicyType(str, Enum):
    STAFF_CHILD = "Staff Child"
    SIBLING = "Sibling"
    MERIT = "Merit"
    FINANCIAL_AID = "Financial Aid"
    EARLY_PAYMENT = "Early Payment"
    CUSTOM = "Custom"


class DiscountMode(str, Enum):
    PERCENTAGE = "Percentage"
    FIXED_AMOUNT = "Fixed Amount"


class DiscountCategory(str, Enum):
    NONE = "None"
    STAFF_CHILD = "Staff Child"
    SIBLING = "Sibling"
    MERIT = "Merit"
    FINANCIAL_AID = "Financial Aid"
    OTHER = "Other"


class FeeStatus(str, Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
