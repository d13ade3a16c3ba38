# schooldesk/schemas/__init__.py

from .enums import (
    DiscountCategory,
    DiscountMode,
    DiscountPolicyType,
    Feature,
    FeeStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    UserRole,
)
from .auth import (
    AuthenticatedUser,
    CallerIdentity,
    LoginRequest,
    LoginResponse,
    SuperAdminLoginRequest,
    SuperAdminRegisterRequest,
)
from .common import ErrorResponse, MessageResponse
