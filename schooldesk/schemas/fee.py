from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import FeeStatus

MONTH_PATTERN = r"^[A-Z][a-z]{2}-\d{4}$"


class FeeItem(BaseModel):
    label: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)


class FeeCreate(BaseModel):
    student_id: int
    month: str = Field(..., pattern=MONTH_PATTERN, description="e.g. Jan-2025")
    tuition_fee: Optional[float] = Field(default=None, ge=0)
    other_charges: List[FeeItem] = Field(default_factory=list)
    arrears: float = Field(default=0.0, ge=0)


class PaymentCreate(BaseModel):
    amount: float
    payment_date: Optional[datetime] = None

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: float) -> float:
        return round(v, 2)


class FeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    tenant_id: int
    student_id: int
    month: str
    tuition_fee: float
    other_charges: List[Dict[str, Any]] = Field(default_factory=list)
    arrears: float = 0.0
    gross_amount: float
    discount_breakdown: List[Dict[str, Any]] = Field(default_factory=list)
    concession: float = 0.0
    net_amount: float
    paid_amount: float = 0.0
    balance: float = 0.0
    status: FeeStatus
    payment_date: Optional[datetime] = None
