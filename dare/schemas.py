"""Pydantic request/response schemas for the DARE API."""
from __future__ import annotations

from datetime import date
from typing import Any

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from dare import enums
from dare.errors import ValidationError
from dare.utils import normalize_string_list


def validate(model_cls: type[BaseModel], raw: dict[str, Any]) -> BaseModel:
    """Validate a raw dict, raising ``dare.errors.ValidationError`` on failure.

    Every offending field is named in ``fields``; the message joins the
    individual pydantic messages.
    """
    try:
        return model_cls.model_validate(raw)
    except pydantic.ValidationError as exc:
        fields: list[str] = []
        messages: list[str] = []
        for err in exc.errors():
            name = ".".join(str(part) for part in err["loc"]) or "__root__"
            if name not in fields:
                fields.append(name)
            messages.append(f"{name}: {err['msg']}")
        raise ValidationError("; ".join(messages), fields=fields) from exc


# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------


def _one_of(value: str | None, allowed: tuple[str, ...], label: str) -> str | None:
    if value is None:
        return None
    if value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value


def normalize_district(value: str | None) -> str | None:
    """Strip the ", Ghana" suffix and require an exact program district."""
    if value is None:
        return None
    district = value.strip().removesuffix(enums.DISTRICT_SUFFIX).strip()
    if district not in enums.DISTRICTS:
        raise ValueError(f"district must be one of: {', '.join(enums.DISTRICTS)}")
    return district


def _score(value: int | None) -> int | None:
    if value is not None and not 1 <= value <= 5:
        raise ValueError("must be an integer from 1 to 5")
    return value


Score = int | None


# ---------------------------------------------------------------------------
# Users & RBAC
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1)
    email: str | None = None
    role: str = "mentee"
    district: str | None = None
    profile_picture: str | None = None
    is_active: bool = True

    @field_validator("role")
    @classmethod
    def role_known(cls, v: str) -> str:
        return _one_of(v, enums.USER_ROLES, "role")

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str | None) -> str | None:
        return normalize_district(v)


class UserUpdate(BaseModel):
    password: str | None = Field(default=None, min_length=6)
    full_name: str | None = None
    email: str | None = None
    role: str | None = None
    district: str | None = None
    profile_picture: str | None = None
    is_active: bool | None = None

    @field_validator("role")
    @classmethod
    def role_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.USER_ROLES, "role")

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str | None) -> str | None:
        return normalize_district(v)


class LoginRequest(BaseModel):
    username: str
    password: str


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    display_name: str = ""
    description: str = ""


class PermissionGrant(BaseModel):
    resource: str
    action: str

    @field_validator("resource")
    @classmethod
    def resource_known(cls, v: str) -> str:
        return _one_of(v, enums.PERMISSION_RESOURCES, "resource")

    @field_validator("action")
    @classmethod
    def action_known(cls, v: str) -> str:
        return _one_of(v, enums.PERMISSION_ACTIONS, "action")


# ---------------------------------------------------------------------------
# Youth profiles
# ---------------------------------------------------------------------------


class _YouthFields(BaseModel):
    participant_code: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    preferred_name: str | None = None
    profile_picture: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    marital_status: str | None = None
    children_count: int | None = Field(default=None, ge=0)
    national_id: str | None = None
    pwd_status: str | None = None
    district: str | None = None
    town: str | None = None
    home_address: str | None = None
    country: str | None = None
    phone_number: str | None = None
    email: str | None = None
    core_skills: str | None = None
    skill_level: str | None = None
    highest_education_level: str | None = None
    languages_spoken: list[str] | None = None
    business_interest: str | None = None
    employment_status: str | None = None
    training_status: str | None = None
    program_status: str | None = None
    transition_status: str | None = None
    onboarded_to_tracker: bool | None = None
    cohort: str | None = None
    dare_model: str | None = None
    refugee_status: bool | None = None
    idp_status: bool | None = None
    user_id: int | None = None

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str | None) -> str | None:
        return normalize_district(v)

    @field_validator("gender")
    @classmethod
    def gender_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.GENDERS, "gender")

    @field_validator("training_status")
    @classmethod
    def training_status_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.TRAINING_STATUSES, "training_status")

    @field_validator("dare_model")
    @classmethod
    def dare_model_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.DARE_MODELS, "dare_model")

    @field_validator("languages_spoken", mode="before")
    @classmethod
    def languages_as_list(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_string_list(v)


class YouthCreate(_YouthFields):
    full_name: str | None = None

    @model_validator(mode="after")
    def full_name_present(self) -> YouthCreate:
        if not (self.full_name or "").strip():
            parts = [self.first_name, self.middle_name, self.last_name]
            self.full_name = " ".join(p.strip() for p in parts if p and p.strip())
        if not self.full_name:
            raise ValueError("full_name (or first/last name) is required")
        self.full_name = self.full_name.strip()
        return self


class YouthUpdate(_YouthFields):
    full_name: str | None = Field(default=None, min_length=1)


# ---------------------------------------------------------------------------
# Business profiles
# ---------------------------------------------------------------------------

BUSINESS_LIST_FIELDS = ("business_objectives", "short_term_goals", "sub_partner_names")


class _BusinessFields(BaseModel):
    business_logo: str | None = None
    business_location: str | None = None
    business_contact: str | None = None
    business_description: str | None = None
    dare_model: str | None = None
    business_start_date: date | None = None
    registration_status: str | None = None
    registration_number: str | None = None
    registration_date: date | None = None
    business_objectives: list[str] | None = None
    short_term_goals: list[str] | None = None
    sub_partner_names: list[str] | None = None
    target_market: str | None = None
    implementing_partner_name: str | None = None
    enterprise_type: str | None = None
    enterprise_size: str | None = None
    sector: str | None = None
    payment_structure: str | None = None
    primary_phone_number: str | None = None
    business_email: str | None = None
    country: str | None = None
    expected_weekly_revenue: int | None = Field(default=None, ge=0)
    expected_monthly_revenue: int | None = Field(default=None, ge=0)
    anticipated_monthly_expenditure: int | None = Field(default=None, ge=0)
    expected_monthly_profit: int | None = None

    @field_validator("dare_model")
    @classmethod
    def dare_model_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.DARE_MODELS, "dare_model")

    @field_validator("registration_status")
    @classmethod
    def registration_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.REGISTRATION_STATUSES, "registration_status")

    @field_validator("enterprise_type")
    @classmethod
    def enterprise_type_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.ENTERPRISE_TYPES, "enterprise_type")

    @field_validator("enterprise_size")
    @classmethod
    def enterprise_size_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.ENTERPRISE_SIZES, "enterprise_size")

    @field_validator("sector")
    @classmethod
    def sector_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.SECTORS, "sector")

    @field_validator("payment_structure")
    @classmethod
    def payment_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.PAYMENT_STRUCTURES, "payment_structure")

    @field_validator(*BUSINESS_LIST_FIELDS, mode="before")
    @classmethod
    def lists_normalized(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_string_list(v)


class BusinessCreate(_BusinessFields):
    business_name: str
    district: str
    youth_ids: list[int] = []
    mentor_id: int | None = None

    @field_validator("business_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("business_name must not be empty")
        return v

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str) -> str:
        return normalize_district(v)


class BusinessUpdate(_BusinessFields):
    business_name: str | None = None
    district: str | None = None
    version: int | None = None

    @field_validator("business_name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("business_name must not be empty")
        return v

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str | None) -> str | None:
        return normalize_district(v)


class YouthAssignment(BaseModel):
    youth_id: int
    role: str = "Member"
    join_date: date | None = None
    on_capacity: str = "reject"

    @field_validator("role")
    @classmethod
    def role_known(cls, v: str) -> str:
        return _one_of(v, enums.YOUTH_BUSINESS_ROLES, "role")

    @field_validator("on_capacity")
    @classmethod
    def policy_known(cls, v: str) -> str:
        return _one_of(v, enums.OWNER_CAPACITY_POLICIES, "on_capacity")


# ---------------------------------------------------------------------------
# Mentors & mentorship
# ---------------------------------------------------------------------------


class _MentorFields(BaseModel):
    phone: str | None = None
    email: str | None = None
    assigned_districts: list[str] | None = None
    specialization: str | None = None
    bio: str | None = None
    profile_picture: str | None = None
    is_active: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def fold_single_district(cls, data: Any) -> Any:
        # Older clients send a single ``assigned_district``.
        if isinstance(data, dict) and data.get("assigned_district"):
            data = dict(data)
            merged = normalize_string_list(data.get("assigned_districts"))
            single = data.pop("assigned_district")
            if single not in merged:
                merged.append(single)
            data["assigned_districts"] = merged
        return data

    @field_validator("assigned_districts", mode="before")
    @classmethod
    def districts_known(cls, v: Any) -> list[str] | None:
        if v is None:
            return None
        out: list[str] = []
        for item in normalize_string_list(v):
            district = normalize_district(item)
            if district not in out:
                out.append(district)
        return out


class MentorCreate(_MentorFields):
    user_id: int
    name: str = Field(min_length=1)


class MentorUpdate(_MentorFields):
    name: str | None = Field(default=None, min_length=1)


class _MentorshipFields(BaseModel):
    mentorship_focus: str | None = None
    meeting_frequency: str | None = None
    mentorship_goals: list[str] | None = None

    @field_validator("mentorship_focus")
    @classmethod
    def focus_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.MENTORSHIP_FOCUSES, "mentorship_focus")

    @field_validator("meeting_frequency")
    @classmethod
    def frequency_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.MEETING_FREQUENCIES, "meeting_frequency")

    @field_validator("mentorship_goals", mode="before")
    @classmethod
    def goals_as_list(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_string_list(v)


class MentorAssignment(_MentorshipFields):
    mentor_id: int
    assigned_date: date | None = None


class MentorshipUpdate(_MentorshipFields):
    mentorship_progress: str | None = None
    last_meeting_date: date | None = None
    next_meeting_date: date | None = None
    progress_rating: int | None = None

    @field_validator("progress_rating")
    @classmethod
    def rating_range(cls, v: int | None) -> int | None:
        return _score(v)


class MessageCreate(BaseModel):
    mentor_id: int
    business_id: int
    message: str
    sender: str
    category: str | None = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be empty")
        return v

    @field_validator("sender")
    @classmethod
    def sender_known(cls, v: str) -> str:
        return _one_of(v, enums.MESSAGE_SENDERS, "sender")

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.MESSAGE_CATEGORIES, "category")


# ---------------------------------------------------------------------------
# Makerspaces & resources
# ---------------------------------------------------------------------------


class _MakerspaceFields(BaseModel):
    description: str | None = None
    coordinates: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    contact_person: str | None = None
    operating_hours: str | None = None
    open_date: date | None = None
    facilities: str | None = None
    status: str | None = None


class MakerspaceCreate(_MakerspaceFields):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    district: str

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str) -> str:
        return normalize_district(v)


class MakerspaceUpdate(_MakerspaceFields):
    name: str | None = Field(default=None, min_length=1)
    address: str | None = Field(default=None, min_length=1)
    district: str | None = None

    @field_validator("district")
    @classmethod
    def district_known(cls, v: str | None) -> str | None:
        return normalize_district(v)


class MakerspaceAssignmentCreate(BaseModel):
    makerspace_id: int
    assigned_by: int | None = None
    notes: str = ""
    replace: bool = False


class _ResourceFields(BaseModel):
    description: str | None = None
    status: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    acquisition_date: date | None = None
    unit_cost: float | None = Field(default=None, ge=0)
    supplier: str | None = None
    notes: str | None = None
    created_by: int | None = None

    @field_validator("status")
    @classmethod
    def status_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.RESOURCE_STATUSES, "status")


class MakerspaceResourceCreate(_ResourceFields):
    name: str = Field(min_length=1)
    category: str

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str) -> str:
        return _one_of(v, enums.MAKERSPACE_RESOURCE_CATEGORIES, "category")


class MakerspaceResourceUpdate(_ResourceFields):
    name: str | None = Field(default=None, min_length=1)
    category: str | None = None

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.MAKERSPACE_RESOURCE_CATEGORIES, "category")


class BusinessResourceCreate(_ResourceFields):
    name: str = Field(min_length=1)
    category: str

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str) -> str:
        return _one_of(v, enums.BUSINESS_RESOURCE_CATEGORIES, "category")


class BusinessResourceUpdate(_ResourceFields):
    name: str | None = Field(default=None, min_length=1)
    category: str | None = None

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.BUSINESS_RESOURCE_CATEGORIES, "category")


class CostCreate(BaseModel):
    cost_type: str
    amount: float = Field(ge=0)
    cost_date: date | None = None
    description: str = ""
    receipt: str | None = None
    recorded_by: int | None = None

    @field_validator("cost_type")
    @classmethod
    def cost_type_known(cls, v: str) -> str:
        return _one_of(v, enums.COST_TYPES, "cost_type")


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------

TRACKING_LIST_FIELDS = (
    "key_decisions", "lessons_learned", "next_steps", "challenges", "new_resources",
)


class _TrackingFields(BaseModel):
    mentor_id: int | None = None
    recorded_by: int | None = None
    projected_revenue: int | None = Field(default=None, ge=0)
    actual_revenue: int | None = Field(default=None, ge=0)
    internal_revenue: int | None = Field(default=None, ge=0)
    external_revenue: int | None = Field(default=None, ge=0)
    actual_expenditure: int | None = Field(default=None, ge=0)
    actual_profit: int | None = None
    projected_employees: int | None = Field(default=None, ge=0)
    actual_employees: int | None = Field(default=None, ge=0)
    new_employees: int | None = Field(default=None, ge=0)
    permanent_employees: int | None = Field(default=None, ge=0)
    temporary_employees: int | None = Field(default=None, ge=0)
    male_employees: int | None = Field(default=None, ge=0)
    female_employees: int | None = Field(default=None, ge=0)
    contract_workers: int | None = Field(default=None, ge=0)
    client_count: int | None = Field(default=None, ge=0)
    prominent_market: str | None = None
    key_decisions: list[str] | None = None
    lessons_learned: list[str] | None = None
    next_steps: list[str] | None = None
    challenges: list[str] | None = None
    new_resources: list[str] | None = None
    mentor_feedback: str | None = None
    business_insights: str | None = None
    performance_rating: int | None = None

    @field_validator("performance_rating")
    @classmethod
    def rating_range(cls, v: int | None) -> int | None:
        return _score(v)

    @field_validator(*TRACKING_LIST_FIELDS, mode="before")
    @classmethod
    def lists_normalized(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_string_list(v)


class TrackingCreate(_TrackingFields):
    tracking_date: date
    tracking_period: str = "monthly"

    @field_validator("tracking_period")
    @classmethod
    def period_known(cls, v: str) -> str:
        return _one_of(v, enums.TRACKING_PERIODS, "tracking_period")


class TrackingUpdate(_TrackingFields):
    tracking_date: date | None = None
    tracking_period: str | None = None
    version: int | None = None

    @field_validator("tracking_period")
    @classmethod
    def period_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.TRACKING_PERIODS, "tracking_period")


class TrackingVerify(BaseModel):
    verified_by: int | None = None


# ---------------------------------------------------------------------------
# Feasibility
# ---------------------------------------------------------------------------

SCORE_FIELDS = enums.FEASIBILITY_SCORE_FIELDS


class _AssessmentFields(BaseModel):
    youth_id: int | None = None
    assessment_date: date | None = None
    assessment_by: int | None = None

    market_demand: Score = None
    competition_level: Score = None
    customer_accessibility: Score = None
    pricing_power: Score = None
    marketing_effectiveness: Score = None
    market_comments: str | None = None

    startup_costs: Score = None
    operating_costs: Score = None
    profit_margin: Score = None
    cash_flow: Score = None
    funding_accessibility: Score = None
    financial_comments: str | None = None

    location_suitability: Score = None
    resource_availability: Score = None
    supply_chain_reliability: Score = None
    operational_efficiency: Score = None
    scalability_potential: Score = None
    operational_comments: str | None = None

    skillset_relevance: Score = None
    experience_level: Score = None
    team_commitment: Score = None
    team_cohesion: Score = None
    leadership_capacity: Score = None
    team_comments: str | None = None

    digital_skill_level: Score = None
    tech_infrastructure: Score = None
    digital_marketing_capacity: Score = None
    data_management: Score = None
    tech_adaptability: Score = None
    digital_comments: str | None = None

    strengths: list[str] | None = None
    weaknesses: list[str] | None = None
    risk_factors: str | None = None
    growth_opportunities: str | None = None
    recommendations: str | None = None
    recommended_actions: str | None = None

    @field_validator(*SCORE_FIELDS)
    @classmethod
    def score_range(cls, v: int | None) -> int | None:
        return _score(v)

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def lists_normalized(cls, v: Any) -> list[str] | None:
        return None if v is None else normalize_string_list(v)


class AssessmentCreate(_AssessmentFields):
    business_id: int
    status: str = enums.DRAFT

    @field_validator("status")
    @classmethod
    def status_editable(cls, v: str) -> str:
        return _one_of(v, (enums.DRAFT, enums.IN_PROGRESS), "status")


class AssessmentUpdate(_AssessmentFields):
    status: str | None = None
    review_comments: str | None = None
    version: int | None = None

    @field_validator("status")
    @classmethod
    def status_known(cls, v: str | None) -> str | None:
        return _one_of(v, enums.FEASIBILITY_STATUSES, "status")


class AssessmentReview(BaseModel):
    review_comments: str
    reviewed_by: int | None = None


# ---------------------------------------------------------------------------
# Misc responses
# ---------------------------------------------------------------------------


class ImportResult(BaseModel):
    total_imported: int
    duplicates_updated: int
    skipped: int
    errors: list[str] = []


class StatsOut(BaseModel):
    youth: int
    businesses: int
    mentors: int
    makerspaces: int
    businesses_by_district: dict[str, int]
    businesses_by_dare_model: dict[str, int]
    youth_by_district: dict[str, int]
    assessments_by_status: dict[str, int]
    tracking_verified: int
    tracking_pending: int
