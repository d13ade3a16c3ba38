from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .fee import FeeResponse


class FamilyData(BaseModel):
    father_name: Optional[str] = None
    father_cnic: Optional[str] = None
    father_mobile: Optional[str] = None
    mother_name: Optional[str] = None
    mother_mobile: Optional[str] = None
    family_head_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class LinkSiblingsRequest(BaseModel):
    student_ids: List[int] = Field(default_factory=list)
    family_data: Optional[FamilyData] = None


class StudentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    roll_no: str
    full_name: str
    class_name: str
    section: str
    father_name: Optional[str] = None
    father_mobile: Optional[str] = None
    mother_mobile: Optional[str] = None
    admission_date: Optional[date] = None
    monthly_fee: Optional[float] = None
    family_id: Optional[int] = None
    sibling_discount_position: int = 1
    siblings: List[int] = Field(default_factory=list)


class FamilyResponse(FamilyData):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    total_children: int
    effective_whatsapp: Optional[str] = None
    effective_family_head: Optional[str] = None
    created_at: Optional[datetime] = None


class FamilyGroup(BaseModel):
    family_id: int
    family: Optional[FamilyResponse] = None
    students: List[StudentSummary]
    count: int


class MobileSuggestion(BaseModel):
    mobile: str
    suggested_father_name: Optional[str] = None
    suggested_mother_name: Optional[str] = None
    students: List[StudentSummary]
    count: int


class SiblingSuggestions(BaseModel):
    confirmed_families: List[FamilyGroup]
    suggested_by_mobile: List[MobileSuggestion]
    total_confirmed: int
    total_suggested: int


class LinkSiblingsResponse(BaseModel):
    family: FamilyResponse
    students: List[StudentSummary]
    total_children: int
    message: str


class MemberFee(BaseModel):
    student: StudentSummary
    fee: Optional[FeeResponse] = None
    preview: bool = False
    gross_amount: float
    concession: float
    net_amount: float
    paid_amount: float
    balance: float


class ConsolidatedFees(BaseModel):
    family_id: int
    month: str
    members: List[MemberFee]
    total_gross: float
    total_concession: float
    total_net: float
    total_paid: float
    total_balance: float
