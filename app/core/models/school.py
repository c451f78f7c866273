import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Uuid

from app.db.session import Base


class School(Base):
    """
    School organization.

    - id: internal key, referenced by every school-scoped record.
    - school_code: human-shareable join code (6 chars, A-Z0-9, stored uppercase). UNIQUE.
    - subscription_active / subscription_end_date: written only by the billing webhook.
    """

    __tablename__ = "schools"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip = Column(String(20), nullable=True)
    school_code = Column(String(6), unique=True, nullable=False, index=True)
    # Null for schools created by a district (no school admin account)
    owner_user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    district_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    grades = Column(JSON, nullable=False, default=list)
    subscription_active = Column(Boolean, nullable=False, default=False)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    student_count = Column(Integer, nullable=False, default=0)
    student_cap = Column(Integer, nullable=False, default=200)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
