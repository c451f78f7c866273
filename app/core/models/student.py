import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String, Text, Uuid

from app.db.session import Base


class Student(Base):
    """
    Student record, owned by its school.

    - student_code: 8 chars A-Z0-9, globally UNIQUE, generated server-side only.
    - duplicate_key: first_middle_last_yyyymmdd (lower-cased); not unique, flags probable duplicates.
    - password_changed_at NULL => the live credential is student_code + "!" and password_hash is NULL.
    """

    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    school_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    student_code = Column(String(8), unique=True, nullable=False, index=True)
    grade_level = Column(Integer, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    notes = Column(Text, nullable=False, default="")
    parent_ids = Column(JSON, nullable=False, default=list)
    duplicate_key = Column(String(400), nullable=False, index=True)
    password_hash = Column(Text, nullable=True)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        if not self.middle_name:
            return f"{self.first_name} {self.last_name}"
        return f"{self.first_name} {self.middle_name} {self.last_name}"

    @property
    def uses_default_password(self) -> bool:
        return self.password_changed_at is None
