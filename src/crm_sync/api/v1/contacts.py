"""Raw contact listing endpoints for each store.

- GET /contacts/source: one page of source-store rows
- GET /contacts/crm: one page of CRM contacts plus the next cursor
- GET /contacts/crm/all: every CRM contact, up to the adapter's page cap

Adapter failures return 502 with an ApiResponse carrying the error.
"""

from __future__ import annotations

import math
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.crm_sync.api.deps import get_crm_adapter, get_source_adapter
from src.crm_sync.api.schemas import ApiResponse
from src.crm_sync.contacts.crm.adapter import AdapterError, CrmAdapter, SourceStoreAdapter
from src.crm_sync.contacts.schemas import (
    CrmContactFilter,
    CrmContactPage,
    PaginationMeta,
    SourceContactFilter,
    SourceContactPage,
    SourceSortField,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/contacts", tags=["contacts"])

# 1000 search calls of 100 contacts each
CRM_ALL_CONTACTS_LIMIT = 100_000


def _adapter_failure(exc: AdapterError) -> JSONResponse:
    logger.warning("contacts.fetch_failed", side=exc.side, error=str(exc))
    body = ApiResponse(success=False, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=body.model_dump(mode="json"),
    )


@router.get("/source", response_model=ApiResponse[SourceContactPage])
async def list_source_contacts(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=1000),
    search: str | None = Query(None),
    verification_status: str | None = Query(
        None, alias="status", description="Comma-separated verification statuses"
    ),
    has_crm_id: bool = Query(False),
    sort_by: SourceSortField = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    adapter: SourceStoreAdapter = Depends(get_source_adapter),
) -> ApiResponse[SourceContactPage]:
    """List one page of source-store contacts."""
    statuses = [s.strip() for s in (verification_status or "").split(",") if s.strip()]
    filters = SourceContactFilter(
        offset=(page - 1) * page_size,
        limit=page_size,
        search=search,
        verification_statuses=statuses,
        has_crm_id=has_crm_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        result = await adapter.fetch_contacts(filters)
    except AdapterError as exc:
        return _adapter_failure(exc)

    total_pages = math.ceil(result.total / page_size) if result.total else 0
    return ApiResponse(
        data=result,
        pagination=PaginationMeta(
            page=page,
            page_size=page_size,
            total=result.total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        ),
    )


@router.get("/crm", response_model=ApiResponse[CrmContactPage])
async def list_crm_contacts(
    limit: int = Query(25, ge=1, le=100),
    after: str | None = Query(None),
    search: str | None = Query(None),
    sort_by: str = Query("createdate"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    adapter: CrmAdapter = Depends(get_crm_adapter),
) -> ApiResponse[CrmContactPage]:
    """List one page of CRM contacts; continue with ``after=next_after``."""
    filters = CrmContactFilter(
        limit=limit,
        page_size=limit,
        after=after,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        result = await adapter.fetch_contacts(filters)
    except AdapterError as exc:
        return _adapter_failure(exc)
    return ApiResponse(data=result)


@router.get("/crm/all", response_model=ApiResponse[CrmContactPage])
async def list_all_crm_contacts(
    search: str | None = Query(None),
    adapter: CrmAdapter = Depends(get_crm_adapter),
) -> ApiResponse[CrmContactPage]:
    """Fetch every CRM contact. ``has_more`` is true if the page cap was hit."""
    filters = CrmContactFilter(limit=CRM_ALL_CONTACTS_LIMIT, search=search)
    try:
        result = await adapter.fetch_contacts(filters)
    except AdapterError as exc:
        return _adapter_failure(exc)

    logger.info("contacts.crm_all_fetched", count=len(result.records), has_more=result.has_more)
    return ApiResponse(data=result)
