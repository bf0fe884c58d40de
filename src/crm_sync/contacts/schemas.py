"""Pydantic schemas for contact reconciliation -- records, comparisons, sync operations.

Defines all structured types for the contact sync lifecycle:
- Enums: MatchStatus, Severity, EmailVerificationStatus, SyncOperationStatus
- Store records: SourceContact (Supabase row), CrmContact (HubSpot contact object)
- Adapter payloads: SourceContactFilter/Page, CrmContactFilter/Page
- Comparison results: ContactDifference, ContactComparison, ComparisonSummary
- Caller contract: ReconciliationRequest, PaginationMeta, ReconciliationResponse
- Sync tracking: SyncError, SyncOperation, SyncOperationSummary
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ── Enums ───────────────────────────────────────────────────────────────────


class MatchStatus(str, Enum):
    """Classification of a reconciled contact pair."""

    MATCHED = "matched"
    SOURCE_ONLY = "source_only"
    CRM_ONLY = "crm_only"
    MISMATCH = "mismatch"


class Severity(str, Enum):
    """How consequential a field difference is."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EmailVerificationStatus(str, Enum):
    """Values accepted when pushing a verification status to the CRM."""

    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    PENDING = "pending"
    BOUNCED = "bounced"
    COMPLAINED = "complained"


class SyncOperationStatus(str, Enum):
    """Lifecycle state of a single sync operation."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


STATUS_FILTER_ALL = "all"


# ── Store Records ───────────────────────────────────────────────────────────


class SourceContact(BaseModel):
    """A contact row from the source store (Supabase ``contacts`` table)."""

    id: int | str
    name: str = ""
    email: str = ""
    email_verification_status: str | None = None
    hs_object_id: str = ""
    created_at: str | None = None
    updated_at: str | None = None


class CrmContactProperties(BaseModel):
    """Property bag of a HubSpot contact (only the fields we reconcile)."""

    firstname: str = ""
    lastname: str = ""
    email: str = ""
    email_verification_status: str | None = None
    hs_object_id: str = ""

    @property
    def full_name(self) -> str:
        """First and last name joined by a single space, trimmed."""
        return f"{self.firstname} {self.lastname}".strip()


class CrmContact(BaseModel):
    """A HubSpot contact object."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    properties: CrmContactProperties = Field(default_factory=CrmContactProperties)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")


# ── Adapter Payloads ────────────────────────────────────────────────────────


SourceSortField = Literal[
    "created_at", "updated_at", "email", "firstname", "lastname", "email_verification_status"
]


class SourceContactFilter(BaseModel):
    """Query options for the source store."""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=25, ge=1, le=1000)
    search: str | None = None
    verification_statuses: list[str] = Field(default_factory=list)
    has_crm_id: bool = False
    date_from: str | None = None
    date_to: str | None = None
    sort_by: SourceSortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class SourceContactPage(BaseModel):
    """One page of source rows plus the store-wide total for the query."""

    records: list[SourceContact] = Field(default_factory=list)
    total: int = 0


DEFAULT_CRM_PROPERTIES = [
    "hs_object_id",
    "firstname",
    "lastname",
    "email",
    "email_verification_status",
    "createdate",
    "lastmodifieddate",
]


class CrmContactFilter(BaseModel):
    """Query options for the CRM contact search.

    ``limit`` is the total number of contacts wanted; ``page_size`` caps a
    single search call.
    """

    limit: int = Field(default=100, ge=1)
    page_size: int = Field(default=100, ge=1, le=100)
    after: str | None = None
    search: str | None = None
    sort_by: str = "createdate"
    sort_order: Literal["asc", "desc"] = "desc"
    properties: list[str] = Field(default_factory=lambda: list(DEFAULT_CRM_PROPERTIES))


class CrmContactPage(BaseModel):
    """Contacts returned by the CRM plus the cursor to continue from."""

    records: list[CrmContact] = Field(default_factory=list)
    has_more: bool = False
    next_after: str | None = None


# ── Comparison Results ──────────────────────────────────────────────────────


class ContactDifference(BaseModel):
    """A single field that disagrees between the two stores."""

    field: str
    source_value: Any = None
    crm_value: Any = None
    severity: Severity


class ContactComparison(BaseModel):
    """A source row and/or CRM contact paired by external identifier."""

    id: str
    source_record: SourceContact | None = None
    crm_record: CrmContact | None = None
    match_status: MatchStatus
    differences: list[ContactDifference] = Field(default_factory=list)
    last_sync: datetime | None = None


class ComparisonSummary(BaseModel):
    """Match-status counts over the full, unfiltered comparison set."""

    matched: int = Field(default=0, ge=0)
    source_only: int = Field(default=0, ge=0)
    crm_only: int = Field(default=0, ge=0)
    mismatch: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return self.matched + self.source_only + self.crm_only + self.mismatch


# ── Caller Contract ─────────────────────────────────────────────────────────


class ReconciliationRequest(BaseModel):
    """Caller-facing query for the comparison view.

    ``filter_status`` stays a plain string so unknown values reach the
    service and are reported instead of being silently coerced.
    """

    page: int = 1
    page_size: int = 25
    filter_status: str = STATUS_FILTER_ALL
    search: str | None = None


class PaginationMeta(BaseModel):
    """Pagination metadata over the filtered comparison set."""

    page: int = 1
    page_size: int = 25
    total: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False


class ReconciliationResponse(BaseModel):
    """Envelope returned for every comparison request, success or not."""

    success: bool
    data: list[ContactComparison] = Field(default_factory=list)
    pagination: PaginationMeta = Field(default_factory=PaginationMeta)
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
    error: str | None = None

    @classmethod
    def failure(cls, error: str, page: int = 1, page_size: int = 25) -> ReconciliationResponse:
        """Build a well-formed empty response carrying an error message."""
        return cls(
            success=False,
            pagination=PaginationMeta(page=page, page_size=page_size),
            error=error,
        )


# ── Sync Tracking ───────────────────────────────────────────────────────────


class SyncError(BaseModel):
    """Why a sync operation failed and whether retrying can help."""

    code: str
    message: str
    can_retry: bool = False


class SyncOperation(BaseModel):
    """A single push of a field value from the source store to the CRM."""

    id: str
    source_contact_id: int | str
    crm_contact_id: str
    status: SyncOperationStatus = SyncOperationStatus.PENDING
    started_at: datetime
    completed_at: datetime | None = None
    source_value: str | None = None
    target_value: str | None = None
    result: str | None = None
    error: SyncError | None = None
    initiated_by: str = "user"
    retry_count: int = 0


class SyncOperationSummary(BaseModel):
    """Counts of recorded sync operations by status."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    failed: int = 0
    pending: int = 0
