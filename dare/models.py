from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, func, text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Accounts & RBAC
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(300))
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="mentee")
    district: Mapped[str | None] = mapped_column(String(50))
    profile_picture: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_editable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    grants: Mapped[list[RolePermission]] = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan",
    )


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("resource", "action", name="uq_permission_resource_action"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "resource", "action", name="uq_role_permission"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    role: Mapped[Role] = relationship("Role", back_populates="grants")


# ---------------------------------------------------------------------------
# Youth & businesses
# ---------------------------------------------------------------------------


class YouthProfile(Base):
    __tablename__ = "youth_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    participant_code: Mapped[str | None] = mapped_column(String(50), index=True)
    full_name: Mapped[str] = mapped_column(String(300), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    middle_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    preferred_name: Mapped[str] = mapped_column(String(100), default="")
    profile_picture: Mapped[str | None] = mapped_column(String(500))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    gender: Mapped[str | None] = mapped_column(String(20))
    marital_status: Mapped[str] = mapped_column(String(50), default="")
    children_count: Mapped[int] = mapped_column(Integer, default=0)
    national_id: Mapped[str | None] = mapped_column(String(50), index=True)
    pwd_status: Mapped[str] = mapped_column(String(50), default="")

    district: Mapped[str | None] = mapped_column(String(50))
    town: Mapped[str] = mapped_column(String(200), default="")
    home_address: Mapped[str] = mapped_column(Text, default="")
    country: Mapped[str] = mapped_column(String(100), default="Ghana")
    phone_number: Mapped[str] = mapped_column(String(50), default="")
    email: Mapped[str] = mapped_column(String(300), default="")

    core_skills: Mapped[str] = mapped_column(Text, default="")
    skill_level: Mapped[str] = mapped_column(String(50), default="")
    highest_education_level: Mapped[str] = mapped_column(String(100), default="")
    languages_spoken_json: Mapped[str] = mapped_column(Text, default="[]")

    business_interest: Mapped[str] = mapped_column(Text, default="")
    employment_status: Mapped[str] = mapped_column(String(100), default="")
    training_status: Mapped[str | None] = mapped_column(String(20))
    program_status: Mapped[str] = mapped_column(String(100), default="")
    transition_status: Mapped[str] = mapped_column(String(100), default="")
    onboarded_to_tracker: Mapped[bool] = mapped_column(Boolean, default=False)
    cohort: Mapped[str] = mapped_column(String(50), default="")
    dare_model: Mapped[str | None] = mapped_column(String(30))
    refugee_status: Mapped[bool] = mapped_column(Boolean, default=False)
    idp_status: Mapped[bool] = mapped_column(Boolean, default=False)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    business_links: Mapped[list[BusinessYouthRelationship]] = relationship(
        "BusinessYouthRelationship", back_populates="youth",
    )


class BusinessProfile(Base):
    __tablename__ = "business_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_name: Mapped[str] = mapped_column(String(300), nullable=False)
    business_logo: Mapped[str | None] = mapped_column(String(500))
    district: Mapped[str] = mapped_column(String(50), nullable=False)
    business_location: Mapped[str] = mapped_column(Text, default="")
    business_contact: Mapped[str] = mapped_column(String(200), default="")
    business_description: Mapped[str] = mapped_column(Text, default="")
    dare_model: Mapped[str | None] = mapped_column(String(30))
    business_start_date: Mapped[date | None] = mapped_column(Date)
    registration_status: Mapped[str | None] = mapped_column(String(20))
    registration_number: Mapped[str] = mapped_column(String(100), default="")
    registration_date: Mapped[date | None] = mapped_column(Date)
    business_objectives_json: Mapped[str] = mapped_column(Text, default="[]")
    short_term_goals_json: Mapped[str] = mapped_column(Text, default="[]")
    sub_partner_names_json: Mapped[str] = mapped_column(Text, default="[]")
    target_market: Mapped[str] = mapped_column(Text, default="")
    implementing_partner_name: Mapped[str] = mapped_column(String(200), default="")
    enterprise_type: Mapped[str | None] = mapped_column(String(50))
    enterprise_size: Mapped[str | None] = mapped_column(String(20))
    sector: Mapped[str | None] = mapped_column(String(100))
    payment_structure: Mapped[str | None] = mapped_column(String(20))
    primary_phone_number: Mapped[str] = mapped_column(String(50), default="")
    business_email: Mapped[str] = mapped_column(String(300), default="")
    country: Mapped[str] = mapped_column(String(100), default="Ghana")

    expected_weekly_revenue: Mapped[int | None] = mapped_column(Integer)
    expected_monthly_revenue: Mapped[int | None] = mapped_column(Integer)
    anticipated_monthly_expenditure: Mapped[int | None] = mapped_column(Integer)
    expected_monthly_profit: Mapped[int | None] = mapped_column(Integer)
    # Recomputed from the active members whenever membership changes.
    total_youth_in_work_reported: Mapped[int] = mapped_column(Integer, default=0)
    youth_refugee_count: Mapped[int] = mapped_column(Integer, default=0)
    youth_idp_count: Mapped[int] = mapped_column(Integer, default=0)
    youth_plwd_count: Mapped[int] = mapped_column(Integer, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    youth_links: Mapped[list[BusinessYouthRelationship]] = relationship(
        "BusinessYouthRelationship", back_populates="business", cascade="all, delete-orphan",
    )
    mentor_links: Mapped[list[MentorBusinessRelationship]] = relationship(
        "MentorBusinessRelationship", back_populates="business", cascade="all, delete-orphan",
    )
    makerspace_assignments: Mapped[list[BusinessMakerspaceAssignment]] = relationship(
        "BusinessMakerspaceAssignment", back_populates="business", cascade="all, delete-orphan",
    )
    resources: Mapped[list[BusinessResource]] = relationship(
        "BusinessResource", back_populates="business", cascade="all, delete-orphan",
    )
    tracking_records: Mapped[list[BusinessTracking]] = relationship(
        "BusinessTracking", back_populates="business", cascade="all, delete-orphan",
    )
    assessments: Mapped[list[FeasibilityAssessment]] = relationship(
        "FeasibilityAssessment", back_populates="business", cascade="all, delete-orphan",
    )
    messages: Mapped[list[MentorshipMessage]] = relationship(
        "MentorshipMessage", back_populates="business", cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class BusinessYouthRelationship(Base):
    __tablename__ = "business_youth_relationships"

    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), primary_key=True)
    youth_id: Mapped[int] = mapped_column(Integer, ForeignKey("youth_profiles.id"), primary_key=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="Member")
    join_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="youth_links")
    youth: Mapped[YouthProfile] = relationship("YouthProfile", back_populates="business_links")


# ---------------------------------------------------------------------------
# Mentorship
# ---------------------------------------------------------------------------


class Mentor(Base):
    __tablename__ = "mentors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="")
    email: Mapped[str] = mapped_column(String(300), default="")
    assigned_districts_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    specialization: Mapped[str] = mapped_column(String(200), default="")
    bio: Mapped[str] = mapped_column(Text, default="")
    profile_picture: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    user: Mapped[User] = relationship("User")
    business_links: Mapped[list[MentorBusinessRelationship]] = relationship(
        "MentorBusinessRelationship", back_populates="mentor",
    )


class MentorBusinessRelationship(Base):
    __tablename__ = "mentor_business_relationships"

    mentor_id: Mapped[int] = mapped_column(Integer, ForeignKey("mentors.id"), primary_key=True)
    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), primary_key=True)
    assigned_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mentorship_focus: Mapped[str | None] = mapped_column(String(50))
    meeting_frequency: Mapped[str] = mapped_column(String(20), default="Monthly")
    mentorship_goals_json: Mapped[str] = mapped_column(Text, default="[]")
    mentorship_progress: Mapped[str] = mapped_column(Text, default="")
    last_meeting_date: Mapped[date | None] = mapped_column(Date)
    next_meeting_date: Mapped[date | None] = mapped_column(Date)
    progress_rating: Mapped[int | None] = mapped_column(Integer)

    mentor: Mapped[Mentor] = relationship("Mentor", back_populates="business_links")
    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="mentor_links")


class MentorshipMessage(Base):
    __tablename__ = "mentorship_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mentor_id: Mapped[int] = mapped_column(Integer, ForeignKey("mentors.id"), nullable=False)
    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)  # "mentor" | "business"
    category: Mapped[str | None] = mapped_column(String(20))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="messages")


# ---------------------------------------------------------------------------
# Makerspaces & resources
# ---------------------------------------------------------------------------


class Makerspace(Base):
    __tablename__ = "makerspaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    address: Mapped[str] = mapped_column(Text, nullable=False)
    coordinates: Mapped[str] = mapped_column(String(100), default="")
    district: Mapped[str] = mapped_column(String(50), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(50), default="")
    contact_email: Mapped[str] = mapped_column(String(300), default="")
    contact_person: Mapped[str] = mapped_column(String(200), default="")
    operating_hours: Mapped[str] = mapped_column(String(200), default="")
    open_date: Mapped[date | None] = mapped_column(Date)
    facilities: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="Active")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    resources: Mapped[list[MakerspaceResource]] = relationship(
        "MakerspaceResource", back_populates="makerspace", cascade="all, delete-orphan",
    )
    assignments: Mapped[list[BusinessMakerspaceAssignment]] = relationship(
        "BusinessMakerspaceAssignment", back_populates="makerspace", cascade="all, delete-orphan",
    )


class BusinessMakerspaceAssignment(Base):
    __tablename__ = "business_makerspace_assignments"
    __table_args__ = (
        # A business holds at most one active makerspace assignment.
        Index(
            "uq_active_makerspace_per_business", "business_id", unique=True,
            sqlite_where=text("is_active = 1"), postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("business_profiles.id", ondelete="CASCADE"), nullable=False,
    )
    makerspace_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("makerspaces.id", ondelete="CASCADE"), nullable=False,
    )
    assigned_date: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    assigned_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    notes: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="makerspace_assignments")
    makerspace: Mapped[Makerspace] = relationship("Makerspace", back_populates="assignments")


class _ResourceColumns:
    """Columns shared by makerspace and business inventory items."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="Available")
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    acquisition_date: Mapped[date | None] = mapped_column(Date)
    unit_cost: Mapped[float | None] = mapped_column(Float)
    total_cost: Mapped[float | None] = mapped_column(Float)
    supplier: Mapped[str] = mapped_column(String(200), default="")
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())


class _CostColumns:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cost_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    cost_date: Mapped[date | None] = mapped_column(Date)
    description: Mapped[str] = mapped_column(Text, default="")
    receipt: Mapped[str | None] = mapped_column(String(500))
    recorded_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class MakerspaceResource(_ResourceColumns, Base):
    __tablename__ = "makerspace_resources"

    makerspace_id: Mapped[int] = mapped_column(Integer, ForeignKey("makerspaces.id"), nullable=False)

    makerspace: Mapped[Makerspace] = relationship("Makerspace", back_populates="resources")
    costs: Mapped[list[MakerspaceResourceCost]] = relationship(
        "MakerspaceResourceCost", back_populates="resource", cascade="all, delete-orphan",
        order_by="MakerspaceResourceCost.id",
    )


class MakerspaceResourceCost(_CostColumns, Base):
    __tablename__ = "makerspace_resource_costs"

    resource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("makerspace_resources.id", ondelete="CASCADE"), nullable=False,
    )

    resource: Mapped[MakerspaceResource] = relationship("MakerspaceResource", back_populates="costs")


class BusinessResource(_ResourceColumns, Base):
    __tablename__ = "business_resources"

    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), nullable=False)

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="resources")
    costs: Mapped[list[BusinessResourceCost]] = relationship(
        "BusinessResourceCost", back_populates="resource", cascade="all, delete-orphan",
        order_by="BusinessResourceCost.id",
    )


class BusinessResourceCost(_CostColumns, Base):
    __tablename__ = "business_resource_costs"

    resource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("business_resources.id", ondelete="CASCADE"), nullable=False,
    )

    resource: Mapped[BusinessResource] = relationship("BusinessResource", back_populates="costs")


# ---------------------------------------------------------------------------
# Tracking & assessment
# ---------------------------------------------------------------------------


class BusinessTracking(Base):
    __tablename__ = "business_tracking"
    __table_args__ = (
        UniqueConstraint("business_id", "tracking_period", "period_key", name="uq_tracking_period"),
        Index("ix_business_tracking_business_date", "business_id", "tracking_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), nullable=False)
    recorded_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    mentor_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("mentors.id"))

    tracking_date: Mapped[date] = mapped_column(Date, nullable=False)
    tracking_period: Mapped[str] = mapped_column(String(20), nullable=False, default="monthly")
    period_key: Mapped[str] = mapped_column(String(20), nullable=False)

    projected_revenue: Mapped[int | None] = mapped_column(Integer)
    actual_revenue: Mapped[int | None] = mapped_column(Integer)
    internal_revenue: Mapped[int | None] = mapped_column(Integer)
    external_revenue: Mapped[int | None] = mapped_column(Integer)
    actual_expenditure: Mapped[int | None] = mapped_column(Integer)
    actual_profit: Mapped[int | None] = mapped_column(Integer)

    projected_employees: Mapped[int | None] = mapped_column(Integer)
    actual_employees: Mapped[int | None] = mapped_column(Integer)
    new_employees: Mapped[int | None] = mapped_column(Integer)
    permanent_employees: Mapped[int | None] = mapped_column(Integer)
    temporary_employees: Mapped[int | None] = mapped_column(Integer)
    male_employees: Mapped[int | None] = mapped_column(Integer)
    female_employees: Mapped[int | None] = mapped_column(Integer)
    contract_workers: Mapped[int | None] = mapped_column(Integer)
    client_count: Mapped[int | None] = mapped_column(Integer)

    prominent_market: Mapped[str] = mapped_column(Text, default="")
    key_decisions_json: Mapped[str] = mapped_column(Text, default="[]")
    lessons_learned_json: Mapped[str] = mapped_column(Text, default="[]")
    next_steps_json: Mapped[str] = mapped_column(Text, default="[]")
    challenges_json: Mapped[str] = mapped_column(Text, default="[]")
    new_resources_json: Mapped[str] = mapped_column(Text, default="[]")

    mentor_feedback: Mapped[str] = mapped_column(Text, default="")
    business_insights: Mapped[str] = mapped_column(Text, default="")
    performance_rating: Mapped[int | None] = mapped_column(Integer)

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    verification_date: Mapped[datetime | None] = mapped_column(DateTime)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="tracking_records")

    __mapper_args__ = {"version_id_col": version}


class FeasibilityAssessment(Base):
    __tablename__ = "feasibility_assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(Integer, ForeignKey("business_profiles.id"), nullable=False)
    youth_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("youth_profiles.id"))
    assessment_date: Mapped[date] = mapped_column(Date, nullable=False)
    assessment_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")

    # Market
    market_demand: Mapped[int | None] = mapped_column(Integer)
    competition_level: Mapped[int | None] = mapped_column(Integer)
    customer_accessibility: Mapped[int | None] = mapped_column(Integer)
    pricing_power: Mapped[int | None] = mapped_column(Integer)
    marketing_effectiveness: Mapped[int | None] = mapped_column(Integer)
    market_comments: Mapped[str] = mapped_column(Text, default="")

    # Financial
    startup_costs: Mapped[int | None] = mapped_column(Integer)
    operating_costs: Mapped[int | None] = mapped_column(Integer)
    profit_margin: Mapped[int | None] = mapped_column(Integer)
    cash_flow: Mapped[int | None] = mapped_column(Integer)
    funding_accessibility: Mapped[int | None] = mapped_column(Integer)
    financial_comments: Mapped[str] = mapped_column(Text, default="")

    # Operational
    location_suitability: Mapped[int | None] = mapped_column(Integer)
    resource_availability: Mapped[int | None] = mapped_column(Integer)
    supply_chain_reliability: Mapped[int | None] = mapped_column(Integer)
    operational_efficiency: Mapped[int | None] = mapped_column(Integer)
    scalability_potential: Mapped[int | None] = mapped_column(Integer)
    operational_comments: Mapped[str] = mapped_column(Text, default="")

    # Team
    skillset_relevance: Mapped[int | None] = mapped_column(Integer)
    experience_level: Mapped[int | None] = mapped_column(Integer)
    team_commitment: Mapped[int | None] = mapped_column(Integer)
    team_cohesion: Mapped[int | None] = mapped_column(Integer)
    leadership_capacity: Mapped[int | None] = mapped_column(Integer)
    team_comments: Mapped[str] = mapped_column(Text, default="")

    # Digital readiness
    digital_skill_level: Mapped[int | None] = mapped_column(Integer)
    tech_infrastructure: Mapped[int | None] = mapped_column(Integer)
    digital_marketing_capacity: Mapped[int | None] = mapped_column(Integer)
    data_management: Mapped[int | None] = mapped_column(Integer)
    tech_adaptability: Mapped[int | None] = mapped_column(Integer)
    digital_comments: Mapped[str] = mapped_column(Text, default="")

    # Summary
    overall_feasibility_percentage: Mapped[float | None] = mapped_column(Float)
    strengths_json: Mapped[str] = mapped_column(Text, default="[]")
    weaknesses_json: Mapped[str] = mapped_column(Text, default="[]")
    risk_factors: Mapped[str] = mapped_column(Text, default="")
    growth_opportunities: Mapped[str] = mapped_column(Text, default="")
    recommendations: Mapped[str] = mapped_column(Text, default="")
    recommended_actions: Mapped[str] = mapped_column(Text, default="")

    # Review
    reviewed_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    review_date: Mapped[datetime | None] = mapped_column(DateTime)
    review_comments: Mapped[str] = mapped_column(Text, default="")

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    business: Mapped[BusinessProfile] = relationship("BusinessProfile", back_populates="assessments")

    __mapper_args__ = {"version_id_col": version}
