from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import ParentRelationship


class _LinkFlags(BaseModel):
    relationship: ParentRelationship = ParentRelationship.GUARDIAN
    is_primary_contact: bool = False
    can_pickup: bool = False
    emergency_contact: bool = False


class LinkChildByCodeRequest(_LinkFlags):
    """Parent portal: link a child using the 8-character student code from the school."""

    student_code: str = Field(..., min_length=1, max_length=12)


class StaffLinkRequest(_LinkFlags):
    parent_user_id: UUID
    student_id: UUID
    school_id: UUID


class ParentStudentLinkResponse(BaseModel):
    id: UUID
    parent_user_id: UUID
    student_id: UUID
    school_id: UUID
    relationship: str
    is_primary_contact: bool
    can_pickup: bool
    emergency_contact: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChildResponse(BaseModel):
    student_id: UUID
    first_name: str
    last_name: str
    full_name: str
    school_id: UUID
    student_code: str
    grade_level: int
    date_of_birth: Optional[date] = None
    relationship: Optional[str] = None
    is_primary_contact: bool = False
    can_pickup: bool = False
    emergency_contact: bool = False


class ChildrenResponse(BaseModel):
    children: List[ChildResponse]
