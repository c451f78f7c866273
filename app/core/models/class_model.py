"""School-scoped classes. Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Uuid

from app.db.session import Base


class SchoolClass(Base):
    """Class within a school. teacher_ids are user ids; they decide which teachers may edit the class and its students."""

    __tablename__ = "classes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    grade = Column(Integer, nullable=False)
    # regular | dlp | cross_cat | mixed | inclusion | other
    class_type = Column(String(20), nullable=False, default="regular")
    teacher_ids = Column(JSON, nullable=False, default=list)
    student_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
