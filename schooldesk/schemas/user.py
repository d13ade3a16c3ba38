from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .enums import UserRole


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: UserRole = UserRole.TEACHER
    permissions: Optional[List[str]] = Field(
        default=None,
        description="Defaults to the role template when omitted"
    )


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: UserRole
    permissions: List[str] = Field(default_factory=list)
    is_active: bool
    tenant_id: Optional[int] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
