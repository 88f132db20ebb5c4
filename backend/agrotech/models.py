import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Integer,
    Float,
    Text,
    JSON,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID

from .database import Base

SUBMISSION_STATUSES = ("pending", "approved", "rejected")
LOGIN_STATUSES = ("active", "inactive")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    """Local profile for an account whose credentials live with the auth provider."""

    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    username = Column(String)
    full_name = Column(String)
    phone = Column(String)
    address = Column(String)
    occupation = Column(String)
    education = Column(String)
    birth_date = Column(Date)
    first_access = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AccessLink(Base):
    __tablename__ = "access_links"
    id = Column(Integer, primary_key=True)
    link_code = Column(String, unique=True, nullable=False)
    uses_remaining = Column(Integer, default=1, nullable=False)
    email = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class InviteLink(Base):
    __tablename__ = "invite_links"
    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    email = Column(String)
    used_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)


class SoilAnalysis(Base):
    __tablename__ = "soil_analysis"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_soil_analysis_status"
        ),
    )
    id = Column(Integer, primary_key=True)
    user_email = Column(String, nullable=False, index=True)
    field_name = Column(String, nullable=False)
    crop_type = Column(String, nullable=False)
    ph = Column(Float)
    nitrogen = Column(Float)
    phosphorus = Column(Float)
    potassium = Column(Float)
    moisture = Column(Float)
    organic_matter = Column(Float)
    producer_name = Column(String)
    producer_contact = Column(String)
    producer_address = Column(String)
    property_name = Column(String)
    city = Column(String)
    crop_age = Column(String)
    production_type = Column(String)
    spacing = Column(String)
    area = Column(String)
    sample_depth = Column(String)
    collected_by = Column(String)
    moon_phase = Column(String)
    relative_humidity = Column(Float)
    precipitation = Column(Float)
    notes = Column(Text)
    soil_analysis_pdf = Column(String)
    attachments = Column(JSON, default=list)
    status = Column(String, default="pending", nullable=False)
    admin_comments = Column(Text)
    admin_file_urls = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)


class Login(Base):
    """Admin-provisioned username/password grant."""

    __tablename__ = "logins"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="ck_logins_status"),
    )
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    client_name = Column(String)
    email = Column(String, index=True)
    plan = Column(String)
    expires_at = Column(DateTime(timezone=True))
    status = Column(String, default="active", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_email = Column(String, nullable=False)
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(String)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
