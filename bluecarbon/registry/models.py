# -*- coding: utf-8 -*-
"""
Registry Data Models - Blue Carbon Registry

Pydantic v2 data models for the registry. Stored records and API payloads
use camelCase keys (``ecosystemType``, ``actualCredits``) produced by an
alias generator, so Python code works with snake_case attributes while the
JSON collections keep the flat camelCase layout.

Models:
    - Enums: EcosystemType, StakeholderType, ProjectStatus, MRVStatus,
             ProjectAction, MRVAction, StakeholderAction, ActorRole
    - Records: Project, Stakeholder, MRVData, CarbonCredit, Transaction,
               Notification, StatusChange
    - Requests: ProjectCreate, StakeholderCreate, MRVSubmission,
                Measurements, ProjectStatusUpdate, MRVReview,
                StakeholderApproval, CreditMint, CreditRetire,
                TransactionCreate
    - Derived: RegistryStatistics, Pagination

The coded enums carry an explicit bidirectional table between the enum
value, the numeric code used by the on-chain registry and a display name.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Shared patterns
# =============================================================================

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"
COORDINATES_PATTERN = r"^-?\d+\.?\d*,-?\d+\.?\d*$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^[\+]?[0-9\s\-\(\)]{10,15}$"
PERSON_NAME_PATTERN = r"^[a-zA-Z\s\.]+$"


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Coded enumerations
# =============================================================================


class CodedEnum(str, Enum):
    """String enum with an explicit numeric code and display name per member.

    The table for each subclass lives in ``_CODE_TABLES`` and is the only
    place where codes and names are related.
    """

    @classmethod
    def _table(cls) -> Dict[Any, Tuple[int, str]]:
        return _CODE_TABLES[cls]

    def to_code(self) -> int:
        """Numeric code of this member."""
        return self._table()[self][0]

    @property
    def display_name(self) -> str:
        """Human readable name of this member."""
        return self._table()[self][1]

    @classmethod
    def from_code(cls, code: int) -> "CodedEnum":
        """Member for a numeric code.

        Raises:
            ValueError: If no member has this code.
        """
        for member, (member_code, _) in cls._table().items():
            if member_code == int(code):
                return member
        raise ValueError(f"Unknown {cls.__name__} code: {code}")

    @classmethod
    def parse(cls, name: Any) -> "CodedEnum":
        """Member matching a value, member name or display name.

        Matching ignores case, spaces and underscores, so "Salt Marsh",
        "SALTMARSH" and "saltmarsh" all resolve to the same member.

        Raises:
            ValueError: If nothing matches.
        """
        if isinstance(name, cls):
            return name
        key = _fold(str(name))
        for member, (_, display) in cls._table().items():
            if key in (_fold(member.value), _fold(member.name), _fold(display)):
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid {cls.__name__} '{name}'; expected one of: {valid}")


def _fold(text: str) -> str:
    return text.replace(" ", "").replace("_", "").lower()


class EcosystemType(CodedEnum):
    """Blue-carbon ecosystem of a restoration project."""
    MANGROVE = "mangrove"
    SEAGRASS = "seagrass"
    SALTMARSH = "saltmarsh"
    TIDALMARSH = "tidalmarsh"
    COASTAL_WETLAND = "coastalWetland"


class StakeholderType(CodedEnum):
    """Kind of organization or individual registering as a stakeholder."""
    NGO = "NGO"
    COMMUNITY = "Community"
    PANCHAYAT = "Panchayat"
    RESEARCHER = "Researcher"
    GOVERNMENT = "Government"
    PRIVATE = "Private"


class ProjectStatus(CodedEnum):
    """Lifecycle state of a project."""
    PENDING = "pending"
    ACTIVE = "active"
    VERIFIED = "verified"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


_CODE_TABLES: Dict[type, Dict[Any, Tuple[int, str]]] = {
    EcosystemType: {
        EcosystemType.MANGROVE: (0, "Mangrove"),
        EcosystemType.SEAGRASS: (1, "Seagrass"),
        EcosystemType.SALTMARSH: (2, "Salt Marsh"),
        EcosystemType.TIDALMARSH: (3, "Tidal Marsh"),
        EcosystemType.COASTAL_WETLAND: (4, "Coastal Wetland"),
    },
    StakeholderType: {
        StakeholderType.NGO: (0, "NGO"),
        StakeholderType.COMMUNITY: (1, "Community"),
        StakeholderType.PANCHAYAT: (2, "Panchayat"),
        StakeholderType.RESEARCHER: (3, "Researcher"),
        StakeholderType.GOVERNMENT: (4, "Government"),
        StakeholderType.PRIVATE: (5, "Private"),
    },
    ProjectStatus: {
        ProjectStatus.PENDING: (0, "Pending"),
        ProjectStatus.ACTIVE: (1, "Active"),
        ProjectStatus.VERIFIED: (2, "Verified"),
        ProjectStatus.SUSPENDED: (3, "Suspended"),
        ProjectStatus.REJECTED: (4, "Rejected"),
    },
}


# =============================================================================
# Plain enumerations
# =============================================================================


class MRVStatus(str, Enum):
    """Lifecycle state of an MRV data record."""
    SUBMITTED = "submitted"
    UNDER_REVIEW = "underReview"
    VERIFIED = "verified"
    REJECTED = "rejected"
    REQUIRES_UPDATE = "requiresUpdate"


class ProjectAction(str, Enum):
    """Actions accepted by ``PUT /projects/{id}/status``."""
    APPROVE = "approve"
    VERIFY = "verify"
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    REJECT = "reject"


class MRVAction(str, Enum):
    """Actions accepted by ``PUT /mrv-data/{id}/verify``."""
    REVIEW = "review"
    VERIFY = "verify"
    REJECT = "reject"
    REQUEST_UPDATE = "request_update"


class StakeholderAction(str, Enum):
    """Actions on a stakeholder's approval state."""
    APPROVE = "approve"


class ActorRole(str, Enum):
    """Role of the actor requesting a transition."""
    ADMIN = "admin"
    VERIFIER = "verifier"
    STAKEHOLDER = "stakeholder"
    PUBLIC = "public"

    def satisfies(self, required: "ActorRole") -> bool:
        """Whether this role may perform an action requiring ``required``."""
        return required in _ROLE_GRANTS[self]


_ROLE_GRANTS: Dict[ActorRole, Tuple[ActorRole, ...]] = {
    ActorRole.ADMIN: (
        ActorRole.ADMIN, ActorRole.VERIFIER, ActorRole.STAKEHOLDER, ActorRole.PUBLIC,
    ),
    ActorRole.VERIFIER: (ActorRole.VERIFIER, ActorRole.STAKEHOLDER, ActorRole.PUBLIC),
    ActorRole.STAKEHOLDER: (ActorRole.STAKEHOLDER, ActorRole.PUBLIC),
    ActorRole.PUBLIC: (ActorRole.PUBLIC,),
}


# =============================================================================
# Base models
# =============================================================================


class RegistryModel(BaseModel):
    """Base for persisted records: camelCase on the wire, extras preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the flat JSON object stored in a collection."""
        return self.model_dump(mode="json", by_alias=True)


class RequestModel(BaseModel):
    """Base for API payloads: camelCase keys, whitespace stripped, finite floats."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class StatusChange(RegistryModel):
    """One entry of a record's status history."""

    from_state: Optional[str] = Field(None, description="State before the change")
    to_state: str = Field(..., description="State after the change")
    action: str = Field(..., description="Action that caused the change")
    actor: Optional[str] = Field(None, description="Actor address or id")
    reason: Optional[str] = Field(None, description="Optional reason")
    at: datetime = Field(default_factory=_utcnow, description="When it happened")


# =============================================================================
# Records
# =============================================================================


class Project(RegistryModel):
    """A blue-carbon restoration project."""

    id: str = Field(default_factory=_new_id, description="Server-generated id")
    name: str = Field(..., description="Project name")
    location: str = Field(..., description="Free-text location")
    area: float = Field(..., description="Area in hectares")
    ecosystem_type: EcosystemType = Field(..., description="Ecosystem type")
    status: ProjectStatus = Field(default=ProjectStatus.PENDING)
    owner: str = Field(default="unknown", description="Owner address or id")
    description: Optional[str] = None
    coordinates: Optional[str] = None
    document_hashes: List[str] = Field(
        default_factory=list, description="Upload ids of supporting documents",
    )
    estimated_credits: int = Field(default=0)
    actual_credits: float = Field(
        default=0.0, description="Sum of verified MRV carbon sequestration",
    )

    created_at: datetime = Field(default_factory=_utcnow)
    last_modified: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    suspension_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    status_history: List[StatusChange] = Field(default_factory=list)


class Stakeholder(RegistryModel):
    """An organization or individual participating in the registry."""

    id: str = Field(default_factory=_new_id)
    address: Optional[str] = Field(None, description="Wallet address, opaque")
    name: str
    organization: str
    stakeholder_type: StakeholderType
    location: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    approved: bool = False
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    reputation_score: int = Field(default=100)
    project_ids: List[str] = Field(default_factory=list)
    registered_at: datetime = Field(default_factory=_utcnow)
    status_history: List[StatusChange] = Field(default_factory=list)

    def matches(self, identifier: str) -> bool:
        """Whether ``identifier`` is this stakeholder's id or address."""
        if identifier == self.id:
            return True
        return bool(self.address) and self.address.lower() == identifier.lower()


class MRVData(RegistryModel):
    """A field-data submission for a project."""

    id: str = Field(default_factory=_new_id)
    project_id: str
    collector: str = Field(..., description="Collector address or id")
    data_hash: Optional[str] = None
    coordinates: str
    carbon_sequestration: float
    measurements: Dict[str, Any] = Field(default_factory=dict)
    observations: Optional[str] = None
    photos: List[str] = Field(default_factory=list, description="Upload ids")
    status: MRVStatus = Field(default=MRVStatus.SUBMITTED)
    collected_at: Optional[datetime] = None
    submitted_at: datetime = Field(default_factory=_utcnow)
    reviewed_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verifier: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    update_requested_at: Optional[datetime] = None
    update_reason: Optional[str] = None
    supersedes: Optional[str] = None
    superseded_by: Optional[str] = None
    status_history: List[StatusChange] = Field(default_factory=list)


class CarbonCredit(RegistryModel):
    """A minted batch of credits attributed to a project."""

    id: str = Field(default_factory=_new_id)
    project_id: str
    owner: str
    amount: float
    verification_hash: str
    minted_at: datetime = Field(default_factory=_utcnow)
    retired: bool = False
    retired_at: Optional[datetime] = None
    retirement_reason: Optional[str] = None
    status: str = "active"


class Transaction(RegistryModel):
    """An on-chain transaction recorded for reference."""

    id: str = Field(default_factory=_new_id)
    transaction_hash: str
    contract_address: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    status: str = "pending"
    timestamp: datetime = Field(default_factory=_utcnow)


class Notification(RegistryModel):
    """A message for one recipient (or ``all``)."""

    id: str = Field(default_factory=_new_id)
    recipient: str
    title: str
    message: str
    kind: str = "info"
    read: bool = False
    read_at: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Requests
# =============================================================================


class ProjectCreate(RequestModel):
    """Project registration payload."""

    name: str = Field(..., min_length=3, max_length=200)
    location: str = Field(..., min_length=3, max_length=200)
    area: float = Field(..., gt=0, le=100000, description="Hectares")
    ecosystem_type: EcosystemType
    description: Optional[str] = Field(None, max_length=2000)
    estimated_credits: int = Field(default=0, ge=0)
    coordinates: Optional[str] = Field(None, pattern=COORDINATES_PATTERN)
    document_hashes: List[str] = Field(default_factory=list)
    owner_address: Optional[str] = Field(None, max_length=200)

    @field_validator("ecosystem_type", mode="before")
    @classmethod
    def parse_ecosystem_type(cls, v: Any) -> EcosystemType:
        """Accept any spelling the code table knows."""
        return EcosystemType.parse(v)


class StakeholderCreate(RequestModel):
    """Stakeholder self-registration payload."""

    name: str = Field(..., min_length=2, max_length=100, pattern=PERSON_NAME_PATTERN)
    organization: str = Field(..., min_length=2, max_length=200)
    stakeholder_type: StakeholderType
    location: str = Field(..., min_length=3, max_length=200)
    address: Optional[str] = Field(None, pattern=ADDRESS_PATTERN)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    website: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("stakeholder_type", mode="before")
    @classmethod
    def parse_stakeholder_type(cls, v: Any) -> StakeholderType:
        """Accept any spelling the code table knows."""
        return StakeholderType.parse(v)


class Measurements(RequestModel):
    """Optional field measurements attached to an MRV submission."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow",
        allow_inf_nan=False,
    )

    tree_count: Optional[int] = Field(None, ge=0)
    avg_height: Optional[float] = Field(None, ge=0)
    crown_coverage: Optional[int] = Field(None, ge=0, le=100)
    health_score: Optional[int] = Field(None, ge=1, le=10)
    ph_level: Optional[float] = Field(None, ge=0, le=14)
    salinity: Optional[float] = Field(None, ge=0)
    water_temp: Optional[float] = Field(None, ge=-10, le=50)
    turbidity: Optional[float] = Field(None, ge=0)
    organic_carbon: Optional[float] = Field(None, ge=0, le=100)
    soil_depth: Optional[int] = Field(None, ge=0)
    bulk_density: Optional[float] = Field(None, ge=0)
    moisture_content: Optional[int] = Field(None, ge=0, le=100)


class MRVSubmission(RequestModel):
    """MRV data submission payload."""

    project_id: str = Field(..., min_length=1)
    collector_address: str = Field(..., min_length=2, max_length=100)
    data_hash: str = Field(..., min_length=10, max_length=200)
    coordinates: str = Field(..., pattern=COORDINATES_PATTERN)
    carbon_sequestration: float = Field(..., ge=0, allow_inf_nan=False)
    measurements: Optional[Measurements] = None
    observations: Optional[str] = Field(None, max_length=2000)
    photos: List[str] = Field(default_factory=list)
    timestamp: Optional[datetime] = None
    supersedes: Optional[str] = None


class ProjectStatusUpdate(RequestModel):
    """Admin/verifier action on a project."""

    action: Optional[ProjectAction] = None
    target_state: Optional[ProjectStatus] = None
    reason: Optional[str] = Field(None, max_length=500)
    admin_address: str = Field(..., pattern=ADDRESS_PATTERN)


class MRVReview(RequestModel):
    """Verifier action on an MRV record."""

    action: Optional[MRVAction] = None
    target_state: Optional[MRVStatus] = None
    reason: Optional[str] = Field(None, max_length=500)
    admin_address: str = Field(..., pattern=ADDRESS_PATTERN)


class StakeholderApproval(RequestModel):
    """Admin approval of a stakeholder."""

    admin_address: str = Field(..., pattern=ADDRESS_PATTERN)
    reason: Optional[str] = Field(None, max_length=500)


class CreditMint(RequestModel):
    """Credit minting payload."""

    amount: float = Field(..., ge=0.01)
    project_id: str = Field(..., min_length=1)
    verification_hash: str = Field(..., min_length=10, max_length=200)
    recipient_address: str = Field(..., pattern=ADDRESS_PATTERN)


class CreditRetire(RequestModel):
    """Credit retirement payload."""

    amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)
    owner_address: str = Field(..., min_length=1)


class TransactionCreate(RequestModel):
    """On-chain transaction reference payload."""

    transaction_hash: str = Field(..., pattern=TX_HASH_PATTERN)
    contract_address: Optional[str] = Field(None, pattern=ADDRESS_PATTERN)
    from_address: Optional[str] = Field(None, pattern=ADDRESS_PATTERN)
    to_address: Optional[str] = Field(None, pattern=ADDRESS_PATTERN)


# =============================================================================
# Derived
# =============================================================================


class RegistryStatistics(RegistryModel):
    """Aggregate recomputed from the collections on every read."""

    total_projects: int = 0
    total_verified_projects: int = 0
    total_stakeholders: int = 0
    total_carbon_sequestered: float = 0.0
    total_area_under_restoration: float = 0.0


class Pagination(RegistryModel):
    """Page metadata returned by list endpoints."""

    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


__all__ = [
    "ADDRESS_PATTERN",
    "TX_HASH_PATTERN",
    "COORDINATES_PATTERN",
    "CodedEnum",
    "EcosystemType",
    "StakeholderType",
    "ProjectStatus",
    "MRVStatus",
    "ProjectAction",
    "MRVAction",
    "StakeholderAction",
    "ActorRole",
    "RegistryModel",
    "RequestModel",
    "StatusChange",
    "Project",
    "Stakeholder",
    "MRVData",
    "CarbonCredit",
    "Transaction",
    "Notification",
    "ProjectCreate",
    "StakeholderCreate",
    "Measurements",
    "MRVSubmission",
    "ProjectStatusUpdate",
    "MRVReview",
    "StakeholderApproval",
    "CreditMint",
    "CreditRetire",
    "TransactionCreate",
    "RegistryStatistics",
    "Pagination",
]
