import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, String, UniqueConstraint, Uuid

from app.db.session import Base


class Parent(Base):
    """Parent profile, one per parent user. children_ids / school_ids have set semantics."""

    __tablename__ = "parents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    children_ids = Column(JSON, nullable=False, default=list)
    school_ids = Column(JSON, nullable=False, default=list)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    push_notifications = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class ParentStudentLink(Base):
    """Guardian link between a parent user and a student. Many-to-many; one row per (parent, student)."""

    __tablename__ = "parent_student_links"
    __table_args__ = (
        UniqueConstraint("parent_user_id", "student_id", name="uq_parent_student_link"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    parent_user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    school_id = Column(Uuid(as_uuid=True), nullable=False)
    # mother | father | guardian | grandparent | other
    relationship = Column(String(20), nullable=False)
    is_primary_contact = Column(Boolean, nullable=False, default=False)
    can_pickup = Column(Boolean, nullable=False, default=False)
    emergency_contact = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
