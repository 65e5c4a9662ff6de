"""Closed value sets used by the program schema.

Every tuple here is exhaustive: a value outside it is a validation error,
never coerced to something close.
"""
from __future__ import annotations

# ---------------------------------------------------------------------------
# Geography & program model
# ---------------------------------------------------------------------------

DISTRICTS = ("Bekwai", "Gushegu", "Lower Manya Krobo", "Yilo Krobo")
DISTRICT_SUFFIX = ", Ghana"

DARE_MODELS = ("Collaborative", "MakerSpace", "Madam Anchor")

# ---------------------------------------------------------------------------
# Accounts & RBAC
# ---------------------------------------------------------------------------

USER_ROLES = ("admin", "reviewer", "mentor", "mentee", "user", "manager")

PERMISSION_ACTIONS = ("view", "create", "edit", "update", "delete", "manage")

PERMISSION_RESOURCES = (
    "users", "roles", "permissions",
    "youth_profiles", "businesses", "business_youth", "business_makerspace",
    "feasibility_assessment", "business_tracking",
    "mentors", "mentor_assignments", "mentorship_messages",
    "makerspaces", "resources", "dashboard", "reports", "system",
)

# ---------------------------------------------------------------------------
# Youth profiles
# ---------------------------------------------------------------------------

TRAINING_STATUSES = ("In Progress", "Completed", "Dropped")
GENDERS = ("Male", "Female", "Other")

# ---------------------------------------------------------------------------
# Business profiles
# ---------------------------------------------------------------------------

REGISTRATION_STATUSES = ("Registered", "Unregistered")

ENTERPRISE_TYPES = (
    "Sole Proprietorship", "Partnership", "Limited Liability Company",
    "Cooperative", "Social Enterprise", "Other",
)
# Used when a new business names a DARE model but no enterprise type.
ENTERPRISE_TYPE_BY_MODEL = {
    "Collaborative": "Partnership",
    "MakerSpace": "Social Enterprise",
    "Madam Anchor": "Sole Proprietorship",
}

ENTERPRISE_SIZES = ("Micro", "Small", "Medium", "Large")

SECTORS = (
    "Agriculture", "Manufacturing", "Construction", "Retail", "Food & Beverage",
    "Fashion & Apparel", "Beauty & Wellness", "ICT", "Creative Arts", "Education",
    "Healthcare", "Professional Services", "Other", "Unemployed",
    "Climate Adaptation & Resilience", "Digital Economy",
    "Enterprise/Business Development", "Youth Engagement",
    "Refugees & Displaced Populations", "Tourism & Hospitality", "Innovation",
    "Finance / Financial Services", "Information Not Available",
)

PAYMENT_STRUCTURES = ("Self-Pay", "Reinvestment", "Savings")

# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

OWNER = "Owner"
YOUTH_BUSINESS_ROLES = (OWNER, "Member", "Partner")
OWNER_CAPACITY_POLICIES = ("reject", "replace_oldest")

MENTORSHIP_FOCUSES = (
    "Business Growth", "Operations Improvement", "Market Expansion",
    "Financial Management", "Team Development",
)
MEETING_FREQUENCIES = ("Weekly", "Bi-weekly", "Monthly", "Quarterly", "As Needed")

MESSAGE_SENDERS = ("mentor", "business")
MESSAGE_CATEGORIES = ("operations", "marketing", "finance", "management", "strategy", "other")

# ---------------------------------------------------------------------------
# Makerspaces & resources
# ---------------------------------------------------------------------------

MAKERSPACE_RESOURCE_CATEGORIES = ("Tool", "Equipment", "Material", "Space")
BUSINESS_RESOURCE_CATEGORIES = ("Tool", "Equipment", "Material", "Supply")
RESOURCE_STATUSES = ("Available", "In Use", "Maintenance", "Out of Stock")
COST_TYPES = ("Purchase", "Maintenance", "Repair", "Upgrade", "Other")

# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------

TRACKING_PERIODS = ("weekly", "monthly", "quarterly", "semi_annual", "annual")

# ---------------------------------------------------------------------------
# Feasibility
# ---------------------------------------------------------------------------

DRAFT = "Draft"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
REVIEWED = "Reviewed"
FEASIBILITY_STATUSES = (DRAFT, IN_PROGRESS, COMPLETED, REVIEWED)

FEASIBILITY_CATEGORIES = {
    "market": (
        "market_demand", "competition_level", "customer_accessibility",
        "pricing_power", "marketing_effectiveness",
    ),
    "financial": (
        "startup_costs", "operating_costs", "profit_margin", "cash_flow",
        "funding_accessibility",
    ),
    "operational": (
        "location_suitability", "resource_availability", "supply_chain_reliability",
        "operational_efficiency", "scalability_potential",
    ),
    "team": (
        "skillset_relevance", "experience_level", "team_commitment",
        "team_cohesion", "leadership_capacity",
    ),
    "digital": (
        "digital_skill_level", "tech_infrastructure", "digital_marketing_capacity",
        "data_management", "tech_adaptability",
    ),
}
FEASIBILITY_SCORE_FIELDS = tuple(f for fields in FEASIBILITY_CATEGORIES.values() for f in fields)
