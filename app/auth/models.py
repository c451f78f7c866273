import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Uuid

from app.db.session import Base


class Principal(Base):
    """Authentication principal (sign-in identity). Created first and committed on its own;
    directory records reference it by id but the database holds no foreign key to it."""

    __tablename__ = "principals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Stored lower-cased; one principal per email
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class User(Base):
    """Directory user. One per principal (id == principal id); student users are keyed by student_id instead.

    joined_organizations: ordered list of {"id", "name", "city"} (string values).
    Invariant: active_organization_id, if set, appears in joined_organizations,
    except for role=student where it is the student's school.
    """

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=True, index=True)
    # school | district | teacher | sub | parent | student (see UserRole)
    role = Column(String(20), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    active_organization_id = Column(Uuid(as_uuid=True), nullable=True)
    joined_organizations = Column(JSON, nullable=False, default=list)
    district_id = Column(Uuid(as_uuid=True), nullable=True)
    # Set only for role=student
    student_id = Column(Uuid(as_uuid=True), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    # Optimistic concurrency: every UPDATE checks and bumps this counter
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def joined_organization_ids(self) -> list:
        return [uuid.UUID(org["id"]) for org in (self.joined_organizations or [])]
