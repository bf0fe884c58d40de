"""Contact reconciliation engine -- pairing, classification, diffing, filtering, paging.

Pairs source-store rows with CRM contacts by the external identifier both
stores carry (``hs_object_id``), classifies every pair, computes field-level
differences, and slices the derived set for display.

Everything here is pure and synchronous: inputs are treated as immutable
snapshots, all working state is local to the call, and nothing performs I/O.
Summary counts are always taken over the full comparison set, while
pagination metadata describes the filtered set.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

from src.crm_sync.contacts.schemas import (
    STATUS_FILTER_ALL,
    ComparisonSummary,
    ContactComparison,
    ContactDifference,
    CrmContact,
    MatchStatus,
    Severity,
    SourceContact,
)

VALID_STATUS_FILTERS = frozenset({STATUS_FILTER_ALL, *(s.value for s in MatchStatus)})


# ── Difference Detection ────────────────────────────────────────────────────


def diff_contacts(source: SourceContact, crm: CrmContact) -> list[ContactDifference]:
    """Compare the reconciled fields of a paired source row and CRM contact.

    Rules are evaluated independently and in a fixed order
    (verification status, email, name):

    - ``email_verification_status``: any inequality, None included -> warning
    - ``email``: exact string inequality -> error
    - ``name``: trimmed, case-insensitive comparison of the source display
      name against "<firstname> <lastname>"; skipped when either is empty -> info

    Returns:
        Ordered list of differences, empty when the pair agrees.
    """
    differences: list[ContactDifference] = []
    props = crm.properties

    if source.email_verification_status != props.email_verification_status:
        differences.append(
            ContactDifference(
                field="email_verification_status",
                source_value=source.email_verification_status,
                crm_value=props.email_verification_status,
                severity=Severity.WARNING,
            )
        )

    if source.email != props.email:
        differences.append(
            ContactDifference(
                field="email",
                source_value=source.email,
                crm_value=props.email,
                severity=Severity.ERROR,
            )
        )

    source_name = source.name.strip()
    crm_name = props.full_name
    if source_name and crm_name and source_name.lower() != crm_name.lower():
        differences.append(
            ContactDifference(
                field="name",
                source_value=source.name,
                crm_value=crm_name,
                severity=Severity.INFO,
            )
        )

    return differences


# ── Matching & Classification ───────────────────────────────────────────────


def reconcile(
    source_records: Sequence[SourceContact],
    crm_records: Sequence[CrmContact],
    *,
    now: datetime | None = None,
) -> list[ContactComparison]:
    """Pair source rows with CRM contacts and classify every record.

    Output order is a contract: source-derived comparisons in source order,
    then unmatched CRM contacts in CRM order. Empty join keys never match.

    Args:
        source_records: Source-store rows in fetch order.
        crm_records: CRM contacts in fetch order.
        now: Timestamp stamped on paired comparisons. Defaults to UTC now.

    Returns:
        One comparison per source row plus one per unmatched CRM contact.
    """
    sync_time = now or datetime.now(timezone.utc)

    # Join key -> (position, record); first CRM record for a key wins
    crm_by_key: dict[str, tuple[int, CrmContact]] = {}
    for position, crm in enumerate(crm_records):
        key = crm.properties.hs_object_id
        if key and key not in crm_by_key:
            crm_by_key[key] = (position, crm)

    consumed: set[int] = set()
    comparisons: list[ContactComparison] = []

    for source in source_records:
        hit = crm_by_key.get(source.hs_object_id) if source.hs_object_id else None

        if hit is None:
            comparisons.append(
                ContactComparison(
                    id=f"comparison-{source.id}",
                    source_record=source,
                    crm_record=None,
                    match_status=MatchStatus.SOURCE_ONLY,
                )
            )
            continue

        position, crm = hit
        consumed.add(position)
        differences = diff_contacts(source, crm)
        comparisons.append(
            ContactComparison(
                id=f"comparison-{source.id}",
                source_record=source,
                crm_record=crm,
                match_status=MatchStatus.MISMATCH if differences else MatchStatus.MATCHED,
                differences=differences,
                last_sync=sync_time,
            )
        )

    for position, crm in enumerate(crm_records):
        if position in consumed:
            continue
        comparisons.append(
            ContactComparison(
                id=f"comparison-{crm.id}",
                source_record=None,
                crm_record=crm,
                match_status=MatchStatus.CRM_ONLY,
            )
        )

    return comparisons


# ── Filtering & Search ──────────────────────────────────────────────────────


def _search_fields(comparison: ContactComparison) -> list[str]:
    fields: list[str] = []
    if comparison.source_record is not None:
        fields.append(comparison.source_record.name)
        fields.append(comparison.source_record.email)
    if comparison.crm_record is not None:
        fields.append(comparison.crm_record.properties.full_name)
        fields.append(comparison.crm_record.properties.email)
    return fields


def apply_filters(
    comparisons: Sequence[ContactComparison],
    status_filter: str = STATUS_FILTER_ALL,
    search_term: str | None = None,
) -> list[ContactComparison]:
    """Keep comparisons matching both the status filter and the search term.

    Args:
        comparisons: Full comparison set.
        status_filter: ``"all"`` or one MatchStatus value (exact equality).
        search_term: Case-insensitive substring matched against source
            name/email and CRM full name/email. Blank terms are ignored.

    Raises:
        ValueError: If status_filter is not a recognized value.
    """
    if status_filter not in VALID_STATUS_FILTERS:
        raise ValueError(f"Unknown status filter: {status_filter!r}")

    result = list(comparisons)

    if status_filter != STATUS_FILTER_ALL:
        result = [c for c in result if c.match_status.value == status_filter]

    term = (search_term or "").strip().lower()
    if term:
        result = [
            c for c in result
            if any(term in value.lower() for value in _search_fields(c))
        ]

    return result


# ── Pagination & Summary ────────────────────────────────────────────────────


@dataclass
class ComparisonPage:
    """A page slice of the filtered comparison set with its metadata."""

    items: list[ContactComparison] = field(default_factory=list)
    page: int = 1
    page_size: int = 25
    total: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False


def paginate(
    comparisons: Sequence[ContactComparison],
    page: int,
    page_size: int,
) -> ComparisonPage:
    """Slice a 1-indexed page out of the filtered comparisons.

    Pages past the end return an empty slice rather than an error. page and
    page_size below 1 are treated as 1.
    """
    page = max(1, page)
    page_size = max(1, page_size)
    total = len(comparisons)
    total_pages = math.ceil(total / page_size) if total else 0
    start = (page - 1) * page_size

    return ComparisonPage(
        items=list(comparisons[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1,
    )


def summarize(comparisons: Sequence[ContactComparison]) -> ComparisonSummary:
    """Count comparisons per match status (pass the unfiltered set)."""
    counts = {status: 0 for status in MatchStatus}
    for comparison in comparisons:
        counts[comparison.match_status] += 1

    return ComparisonSummary(
        matched=counts[MatchStatus.MATCHED],
        source_only=counts[MatchStatus.SOURCE_ONLY],
        crm_only=counts[MatchStatus.CRM_ONLY],
        mismatch=counts[MatchStatus.MISMATCH],
    )
