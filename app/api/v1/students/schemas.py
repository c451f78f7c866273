from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

NAME_FIELDS = ("first_name", "middle_name", "last_name")


def _strip_names(model: BaseModel) -> None:
    for name in NAME_FIELDS:
        value = getattr(model, name)
        if value is None:
            continue
        value = value.strip()
        if not value:
            raise ValueError(f"{name} must not be blank")
        setattr(model, name, value)


class StudentCreate(BaseModel):
    """student_code is generated by the server; any client-supplied field outside this schema is rejected."""

    model_config = ConfigDict(extra="forbid")

    school_id: UUID
    first_name: str = Field(..., min_length=1, max_length=100)
    # Required: part of the duplicate key
    middle_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    grade_level: int = Field(..., ge=0, le=12)
    date_of_birth: Optional[date] = None
    notes: str = ""
    # Set after the caller has seen a duplicate warning and chooses to create anyway
    confirm_duplicate: bool = False

    @model_validator(mode="after")
    def validate_names(self) -> "StudentCreate":
        _strip_names(self)
        return self


class StudentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    grade_level: Optional[int] = Field(None, ge=0, le=12)
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_names(self) -> "StudentUpdate":
        _strip_names(self)
        return self


class StudentResponse(BaseModel):
    id: UUID
    first_name: str
    middle_name: str
    last_name: str
    full_name: str
    school_id: UUID
    student_code: str
    grade_level: int
    date_of_birth: Optional[date] = None
    notes: str = ""
    parent_ids: List[UUID] = Field(default_factory=list)
    uses_default_password: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class StudentCodeLookup(BaseModel):
    """Public-facing view of a student found by code (parent linking confirmation)."""

    id: UUID
    first_name: str
    last_name: str
    school_id: UUID
    grade_level: int

    class Config:
        from_attributes = True


class ChangeStudentPasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., min_length=6)


class DefaultPasswordStudent(BaseModel):
    id: UUID
    full_name: str
    student_code: str
    grade_level: int
    default_password: str


class DefaultPasswordReport(BaseModel):
    school_id: UUID
    total: int
    students: List[DefaultPasswordStudent]

