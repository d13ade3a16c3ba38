from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .enums import UserRole


class CallerIdentity(BaseModel):
    """Decoded access token"""
    subject_id: int
    role: UserRole
    tenant_id: Optional[int] = None
    school_id: Optional[int] = None
    impersonated_by: Optional[int] = None
    token_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_impersonated(self) -> bool:
        return self.impersonated_by is not None


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class SuperAdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    setup_token: Optional[str] = Field(default=None, description="Required only to bootstrap the first super admin")


class SuperAdminRegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    setup_token: str


class AuthenticatedUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: UserRole
    tenant_id: Optional[int] = None
    school_name: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    impersonated: bool = False


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: AuthenticatedUser
    message: Optional[str] = None
