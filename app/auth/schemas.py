from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator


class _AccountBase(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def validate_passwords(self):
        if self.password != self.confirm_password:
            raise ValueError("password and confirm_password do not match")
        return self


class SchoolSignupRequest(_AccountBase):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    grades_from: int = Field(0, ge=0, le=12)
    grades_to: int = Field(12, ge=0, le=12)
    # Optional; generated in backend when omitted. 6 letters/digits, any case.
    school_code: Optional[str] = None

    @model_validator(mode="after")
    def validate_grade_range(self) -> "SchoolSignupRequest":
        if self.grades_from > self.grades_to:
            raise ValueError("grades_from must not be greater than grades_to")
        return self


class DistrictSignupRequest(_AccountBase):
    district_name: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = ""
    number_of_schools: int = Field(..., ge=2, le=100)


class StaffSignupRequest(_AccountBase):
    """role is validated by the service ("teacher" or "sub")."""

    role: str
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)


class ParentSignupRequest(_AccountBase):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = ""


class JoinedOrganization(BaseModel):
    id: UUID
    name: str
    city: Optional[str] = None


class UserResponse(BaseModel):
    id: UUID
    email: Optional[str] = None
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    active_organization_id: Optional[UUID] = None
    joined_organizations: List[JoinedOrganization] = Field(default_factory=list)
    district_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SignupResponse(BaseModel):
    success: bool = True
    message: str = "Account created successfully"
    user: UserResponse
    school_id: Optional[UUID] = None
    school_code: Optional[str] = None  # Share with staff and families so they can join
    district_id: Optional[UUID] = None
    subscription_tier: Optional[str] = None
    price_per_school: Optional[Decimal] = None
    monthly_price: Optional[Decimal] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class StudentLoginRequest(BaseModel):
    student_code: str = Field(..., min_length=8, max_length=12)
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    issued_at: datetime


class DeleteAccountResponse(BaseModel):
    success: bool = True
    message: str = "Account deleted"
