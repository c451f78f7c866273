from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import ClassType


class ClassCreate(BaseModel):
    school_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    grade: int = Field(..., ge=0, le=12)
    class_type: ClassType = ClassType.REGULAR
    teacher_ids: List[UUID] = Field(default_factory=list, description="User ids of teachers who joined the school")


class ClassEnrollmentRequest(BaseModel):
    student_ids: List[UUID] = Field(..., min_length=1)


class ClassResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    grade: int
    class_type: str
    teacher_ids: List[UUID] = Field(default_factory=list)
    student_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
