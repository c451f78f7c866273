import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, Uuid

from app.db.session import Base


class District(Base):
    """District: aggregates schools for billing and reporting. Holds no students itself.
    Pricing fields are a snapshot taken at creation time."""

    __tablename__ = "districts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    owner_user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    admin_first_name = Column(String(100), nullable=True)
    admin_last_name = Column(String(100), nullable=True)
    admin_email = Column(String(255), nullable=True)
    admin_phone = Column(String(50), nullable=True)
    school_count = Column(Integer, nullable=False)
    school_ids = Column(JSON, nullable=False, default=list)
    subscription_tier = Column(String(20), nullable=False)
    price_per_school = Column(Numeric(10, 2), nullable=False)
    monthly_price = Column(Numeric(10, 2), nullable=False)
    subscription_active = Column(Boolean, nullable=False, default=False)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    # Optimistic concurrency for school_ids read-modify-write
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
