"""
Reference data shared by models, services and validators.

Geography follows Nigeria's 36 states plus the Federal Capital Territory,
grouped into the six geopolitical zones.
"""

NIGERIAN_STATES = (
    "Abia", "Adamawa", "Akwa Ibom", "Anambra", "Bauchi", "Bayelsa", "Benue",
    "Borno", "Cross River", "Delta", "Ebonyi", "Edo", "Ekiti", "Enugu",
    "Gombe", "Imo", "Jigawa", "Kaduna", "Kano", "Katsina", "Kebbi", "Kogi",
    "Kwara", "Lagos", "Nasarawa", "Niger", "Ogun", "Ondo", "Osun", "Oyo",
    "Plateau", "Rivers", "Sokoto", "Taraba", "Yobe", "Zamfara", "FCT",
)

NIGERIAN_REGIONS = {
    "North-West": ("Jigawa", "Kaduna", "Kano", "Katsina", "Kebbi", "Sokoto", "Zamfara"),
    "North-East": ("Adamawa", "Bauchi", "Borno", "Gombe", "Taraba", "Yobe"),
    "North-Central": ("Benue", "Kogi", "Kwara", "Nasarawa", "Niger", "Plateau", "FCT"),
    "South-West": ("Ekiti", "Lagos", "Ogun", "Ondo", "Osun", "Oyo"),
    "South-East": ("Abia", "Anambra", "Ebonyi", "Enugu", "Imo"),
    "South-South": ("Akwa Ibom", "Bayelsa", "Cross River", "Delta", "Edo", "Rivers"),
}

STATE_TO_REGION = {
    state: region
    for region, states in NIGERIAN_REGIONS.items()
    for state in states
}

ACTIVITY_STATUSES = ("Planned", "InProgress", "OnHold", "Completed", "Cancelled")
PRIORITY_LEVELS = ("Low", "Medium", "High", "Critical")
RISK_RATINGS = ("Low", "Medium", "High")
OBJECTIVE_STATUSES = ("Active", "Inactive", "Completed", "Archived")

# ── Roles ────────────────────────────────────────────────────────────────

ROLE_ADMIN = "Admin"
ROLE_PROJECT_MANAGER = "ProjectManager"
ROLE_FINANCE = "Finance"
ROLE_COMMITTEE = "CommitteeMember"
ROLE_AUDITOR = "Auditor"

USER_ROLES = (ROLE_ADMIN, ROLE_PROJECT_MANAGER, ROLE_FINANCE, ROLE_COMMITTEE, ROLE_AUDITOR)

# ── Approval workflow ────────────────────────────────────────────────────

STATE_SUBMITTED = "Submitted"
STATE_FINANCE_APPROVED = "FinanceApproved"
STATE_COMMITTEE_APPROVED = "CommitteeApproved"
STATE_REJECTED = "Rejected"

APPROVAL_STATES = (STATE_SUBMITTED, STATE_FINANCE_APPROVED, STATE_COMMITTEE_APPROVED, STATE_REJECTED)
TERMINAL_APPROVAL_STATES = frozenset({STATE_COMMITTEE_APPROVED, STATE_REJECTED})

APPROVAL_TARGET_TYPES = ("EstimateChange", "ActualEntry", "StatusChange")

# Yearly estimate columns accepted on activities, imports and exports
ESTIMATE_YEARS = tuple(range(2020, 2041))

ALLOWED_ATTACHMENT_EXTENSIONS = frozenset({
    ".pdf", ".png", ".jpg", ".jpeg", ".gif", ".doc", ".docx",
    ".xls", ".xlsx", ".csv", ".txt",
})
MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024


def regions_for_states(states):
    """Return the sorted, de-duplicated regions covering *states*."""
    return sorted({STATE_TO_REGION[s] for s in states if s in STATE_TO_REGION})
