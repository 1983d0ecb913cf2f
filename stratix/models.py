# stratix/models.py
from sqlalchemy import Column, String, Integer, Float, ForeignKey, Text, DateTime, Enum, Boolean, JSON, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from .db import Base
from .core.roles import RoleType


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProfileStatusEnum(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    pending = "pending"
    suspended = "suspended"


class SessionStatusEnum(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"
    expired = "expired"
    abandoned = "abandoned"


class InvitationStatusEnum(str, enum.Enum):
    pending = "pending"
    sent = "sent"
    accepted = "accepted"
    expired = "expired"
    cancelled = "cancelled"


class Company(Base):
    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: f"company_{uuid.uuid4()}")
    name = Column(String, nullable=False)
    industry = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    profiles = relationship("Profile", back_populates="company")


class Profile(Base):
    """Application user profile; ``id`` is the auth provider's user id."""
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    role_type = Column(Enum(RoleType), nullable=False, default=RoleType.empleado)
    company_id = Column(String, ForeignKey("companies.id"), nullable=True, index=True)
    department_id = Column(String, nullable=True)
    status = Column(Enum(ProfileStatusEnum), nullable=False, default=ProfileStatusEnum.active)
    profile_metadata = Column("metadata", JSON, nullable=True, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_active = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    company = relationship("Company", back_populates="profiles")

    __table_args__ = (
        Index("ix_profiles_company_role", "company_id", "role_type"),
    )


class OnboardingSession(Base):
    __tablename__ = "onboarding_sessions"

    id = Column(String, primary_key=True, default=lambda: f"session_{uuid.uuid4()}")
    user_id = Column(String, nullable=False, index=True)
    status = Column(Enum(SessionStatusEnum), nullable=False, default=SessionStatusEnum.in_progress)
    current_step = Column(Integer, nullable=False, default=1)
    total_steps = Column(Integer, nullable=False, default=5)
    form_data = Column(JSON, nullable=False, default=dict)
    ai_suggestions = Column(JSON, nullable=True)
    ai_analysis = Column(JSON, nullable=True)
    completion_percentage = Column(Float, nullable=False, default=0.0)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    progress = relationship(
        "OnboardingProgress",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="OnboardingProgress.step_number",
    )

    __table_args__ = (
        Index("ix_onboarding_sessions_user_status", "user_id", "status"),
    )


class OnboardingProgress(Base):
    __tablename__ = "onboarding_progress"

    id = Column(String, primary_key=True, default=lambda: f"progress_{uuid.uuid4()}")
    session_id = Column(String, ForeignKey("onboarding_sessions.id", ondelete="CASCADE"), nullable=False)
    step_number = Column(Integer, nullable=False)
    step_name = Column(String, nullable=False)
    step_data = Column(JSON, nullable=False, default=dict)
    completed = Column(Boolean, nullable=False, default=False)
    skipped = Column(Boolean, nullable=False, default=False)
    ai_validation = Column(JSON, nullable=True)
    completion_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    session = relationship("OnboardingSession", back_populates="progress")

    __table_args__ = (
        UniqueConstraint("session_id", "step_number", name="uq_onboarding_progress_session_step"),
    )


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=lambda: f"org_{uuid.uuid4()}")
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True, index=True)
    industry = Column(String, nullable=True)
    size = Column(String, nullable=True)
    employee_count = Column(Integer, nullable=True)
    website = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    country = Column(String, nullable=True)
    city = Column(String, nullable=True)
    founded_year = Column(Integer, nullable=True)
    okr_maturity = Column(String, nullable=True)
    business_goals = Column(JSON, nullable=True)
    current_challenges = Column(JSON, nullable=True)
    ai_insights = Column(JSON, nullable=True)
    settings = Column(JSON, nullable=True)  # team structure + preferences snapshot
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")
    objectives = relationship("Objective", back_populates="organization", cascade="all, delete-orphan")


class OrganizationMember(Base):
    __tablename__ = "organization_members"

    id = Column(String, primary_key=True, default=lambda: f"member_{uuid.uuid4()}")
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="member")
    department = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="members")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),
    )


class Objective(Base):
    __tablename__ = "objectives"

    id = Column(String, primary_key=True)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    owner = Column(String, nullable=True)
    priority = Column(String, nullable=False, default="medium")
    category = Column(String, nullable=False, default="business")
    time_horizon = Column(String, nullable=False, default="quarterly")
    status = Column(String, nullable=False, default="draft")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="objectives")
    key_results = relationship("KeyResult", back_populates="objective", cascade="all, delete-orphan")


class KeyResult(Base):
    __tablename__ = "key_results"

    id = Column(String, primary_key=True)
    objective_id = Column(String, ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    metric = Column(String, nullable=False)
    target = Column(String, nullable=False)
    unit = Column(String, nullable=True)
    baseline = Column(String, nullable=False, default="0")
    owner = Column(String, nullable=True)
    status = Column(String, nullable=False, default="draft")
    tracking_frequency = Column(String, nullable=False, default="weekly")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    objective = relationship("Objective", back_populates="key_results")


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    company_id = Column(String, nullable=False, index=True)
    role_type = Column(Enum(RoleType), nullable=False)
    department_id = Column(String, nullable=True)
    invitation_code = Column(String, nullable=False, unique=True)
    status = Column(Enum(InvitationStatusEnum), nullable=False, default=InvitationStatusEnum.pending)
    invitation_type = Column(String, nullable=False, default="standard")
    batch_id = Column(String, nullable=True, index=True)
    welcome_message = Column(Text, nullable=True)
    auto_activate = Column(Boolean, nullable=False, default=False)
    invited_by = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    invitation_metadata = Column("metadata", JSON, nullable=True, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # At most one live (pending or sent) invitation per email and company
    __table_args__ = (
        Index(
            "uq_invitations_active_email_company",
            "email",
            "company_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'sent')"),
            postgresql_where=text("status IN ('pending', 'sent')"),
        ),
    )
