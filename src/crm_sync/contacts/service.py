"""Reconciliation service -- fetches both contact stores and builds the comparison response.

Bridges the adapters (I/O) and the pure reconciliation engine:

1. Normalize the caller's request (clamp paging, reject unknown filters)
2. Fetch the source store and the CRM concurrently, over-fetching a working
   set rather than a UI page
3. Reconcile, summarize the full set, filter, then paginate

A failed fetch on one side degrades to an empty list for that side; the
response names the failed side. Only when both sides fail, or something
unexpected breaks, is ``success`` false. Adapter errors never propagate.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from src.crm_sync.contacts.crm.adapter import AdapterError, CrmAdapter, SourceStoreAdapter
from src.crm_sync.contacts.reconciliation import (
    VALID_STATUS_FILTERS,
    apply_filters,
    paginate,
    reconcile,
    summarize,
)
from src.crm_sync.contacts.schemas import (
    STATUS_FILTER_ALL,
    CrmContact,
    CrmContactFilter,
    PaginationMeta,
    ReconciliationRequest,
    ReconciliationResponse,
    SourceContact,
    SourceContactFilter,
)
from src.crm_sync.core.monitoring import (
    adapter_fetch_failures_total,
    reconciliation_comparisons_total,
    reconciliation_duration_seconds,
    reconciliation_runs_total,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_PAGE_SIZE = 1000
DEFAULT_FETCH_LIMIT = 1000


class InvalidReconciliationRequest(ValueError):
    """Raised when a request carries a value that cannot be normalized."""


def normalize_request(request: ReconciliationRequest) -> ReconciliationRequest:
    """Clamp paging values and validate the status filter.

    - page below 1 becomes 1
    - page_size is clamped to 1..MAX_PAGE_SIZE
    - a blank filter means "all"; an unknown one is rejected
    - the search term is trimmed, blank becomes None

    Raises:
        InvalidReconciliationRequest: If filter_status is not recognized.
    """
    status_filter = (request.filter_status or STATUS_FILTER_ALL).strip() or STATUS_FILTER_ALL
    if status_filter not in VALID_STATUS_FILTERS:
        allowed = ", ".join(sorted(VALID_STATUS_FILTERS))
        raise InvalidReconciliationRequest(
            f"Invalid filter_status {request.filter_status!r}. Must be one of: {allowed}"
        )

    search = (request.search or "").strip() or None

    return ReconciliationRequest(
        page=max(1, request.page),
        page_size=min(max(1, request.page_size), MAX_PAGE_SIZE),
        filter_status=status_filter,
        search=search,
    )


class ReconciliationService:
    """Fetches both contact stores and produces paginated comparison responses.

    Args:
        source: Source-store adapter, or None when not configured.
        crm: CRM adapter, or None when not configured.
        fetch_limit: Rows fetched from each side per reconciliation.
        clock: Returns the timestamp stamped on paired comparisons.
    """

    def __init__(
        self,
        source: SourceStoreAdapter | None,
        crm: CrmAdapter | None,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._crm = crm
        self._fetch_limit = fetch_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _fetch_source(self) -> list[SourceContact]:
        if self._source is None:
            raise AdapterError("source store is not configured")
        page = await self._source.fetch_contacts(SourceContactFilter(limit=self._fetch_limit))
        if page.total > len(page.records):
            logger.warning(
                "reconciliation.source_truncated",
                fetched=len(page.records),
                total=page.total,
            )
        return page.records

    async def _fetch_crm(self) -> list[CrmContact]:
        if self._crm is None:
            raise AdapterError("CRM is not configured")
        page = await self._crm.fetch_contacts(CrmContactFilter(limit=self._fetch_limit))
        if page.has_more:
            logger.warning("reconciliation.crm_truncated", fetched=len(page.records))
        return page.records

    @staticmethod
    def _settle(result: list[T] | BaseException, side: str, errors: list[str]) -> list[T] | None:
        """Turn a gather() result into records, or None after logging the failure."""
        if not isinstance(result, BaseException):
            return result
        if not isinstance(result, Exception):
            raise result  # cancellation belongs to the caller

        adapter_fetch_failures_total.labels(side=side).inc()
        logger.warning(
            "reconciliation.fetch_failed",
            side=side,
            error=str(result),
            error_type=type(result).__name__,
        )
        errors.append(f"{side} fetch failed: {result}")
        return None

    async def fetch_working_sets(
        self,
    ) -> tuple[list[SourceContact] | None, list[CrmContact] | None, list[str]]:
        """Fetch both stores concurrently.

        Returns:
            (source records or None if failed, CRM records or None if failed,
            error messages naming each failed side)
        """
        results: list[list | BaseException] = await asyncio.gather(
            self._fetch_source(),
            self._fetch_crm(),
            return_exceptions=True,
        )
        errors: list[str] = []
        source_records = self._settle(results[0], "source store", errors)
        crm_records = self._settle(results[1], "CRM", errors)
        return source_records, crm_records, errors

    async def get_comparison(self, request: ReconciliationRequest) -> ReconciliationResponse:
        """Reconcile both stores and return one page of comparisons.

        Raises:
            InvalidReconciliationRequest: If the request has an unknown filter.
        """
        try:
            req = normalize_request(request)
        except InvalidReconciliationRequest:
            reconciliation_runs_total.labels(outcome="invalid").inc()
            raise

        start_time = time.perf_counter()
        try:
            source_records, crm_records, errors = await self.fetch_working_sets()

            if source_records is None and crm_records is None:
                reconciliation_runs_total.labels(outcome="failed").inc()
                return ReconciliationResponse.failure(
                    "; ".join(errors), page=req.page, page_size=req.page_size
                )

            comparisons = reconcile(source_records or [], crm_records or [], now=self._clock())
            summary = summarize(comparisons)
            filtered = apply_filters(comparisons, req.filter_status, req.search)
            page = paginate(filtered, req.page, req.page_size)
        except Exception as exc:
            logger.exception("reconciliation.unexpected_error")
            reconciliation_runs_total.labels(outcome="failed").inc()
            return ReconciliationResponse.failure(
                f"Reconciliation failed: {exc}", page=req.page, page_size=req.page_size
            )
        finally:
            reconciliation_duration_seconds.observe(time.perf_counter() - start_time)

        for status, count in summary.model_dump(exclude={"total"}).items():
            if count:
                reconciliation_comparisons_total.labels(match_status=status).inc(count)
        reconciliation_runs_total.labels(outcome="partial" if errors else "complete").inc()

        logger.info(
            "reconciliation.complete",
            source_count=len(source_records or []),
            crm_count=len(crm_records or []),
            comparisons=len(comparisons),
            filtered=page.total,
            page=page.page,
            filter_status=req.filter_status,
            failed_sides=len(errors),
        )

        return ReconciliationResponse(
            success=True,
            data=page.items,
            pagination=PaginationMeta(
                page=page.page,
                page_size=page.page_size,
                total=page.total,
                total_pages=page.total_pages,
                has_next=page.has_next,
                has_previous=page.has_previous,
            ),
            summary=summary,
            error="; ".join(errors) or None,
        )
