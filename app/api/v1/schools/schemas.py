from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class SchoolSummary(BaseModel):
    """What a joining user sees after entering a code."""

    id: UUID
    name: str
    city: Optional[str] = None
    district_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class SchoolResponse(BaseModel):
    id: UUID
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    school_code: str
    owner_user_id: Optional[UUID] = None
    district_id: Optional[UUID] = None
    grades: List[int] = Field(default_factory=list)
    subscription_active: bool
    subscription_end_date: Optional[datetime] = None
    student_count: int
    student_cap: int

    class Config:
        from_attributes = True


class JoinSchoolRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=12)


class SwitchOrganizationRequest(BaseModel):
    organization_id: UUID


class LinkSchoolToDistrictRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=12)


class DistrictSchoolCreate(BaseModel):
    """School created and paid for by a district; no school admin account."""

    name: str = Field(..., min_length=1)
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    grades_from: int = Field(0, ge=0, le=12)
    grades_to: int = Field(12, ge=0, le=12)

    @model_validator(mode="after")
    def validate_grade_range(self) -> "DistrictSchoolCreate":
        if self.grades_from > self.grades_to:
            raise ValueError("grades_from must not be greater than grades_to")
        return self


class DistrictSchoolsResponse(BaseModel):
    district_id: UUID
    schools: List[SchoolResponse]
