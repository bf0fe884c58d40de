"""Contact comparison endpoint -- the reconciliation view over both stores.

Always answers with a ReconciliationResponse. Store failures come back as
``success: false`` (or a partial result naming the failed side) with HTTP
200; an unknown status filter is a 400 carrying the same envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.crm_sync.api.deps import get_reconciliation_service
from src.crm_sync.contacts.schemas import (
    STATUS_FILTER_ALL,
    ReconciliationRequest,
    ReconciliationResponse,
)
from src.crm_sync.contacts.service import (
    MAX_PAGE_SIZE,
    InvalidReconciliationRequest,
    ReconciliationService,
)

router = APIRouter(prefix="/comparison", tags=["comparison"])

DEFAULT_PAGE_SIZE = 25


@router.get("", response_model=ReconciliationResponse)
async def get_comparison(
    page: int = Query(1),
    page_size: int | None = Query(None),
    limit: int | None = Query(None, description="Alias of page_size"),
    page_size_camel: int | None = Query(
        None, alias="pageSize", description="Alias of page_size"
    ),
    status_filter: str = Query(STATUS_FILTER_ALL, alias="status"),
    search: str | None = Query(None),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ReconciliationResponse:
    """Reconcile source and CRM contacts and return one page of comparisons."""
    if page_size is None:
        page_size = page_size_camel if page_size_camel is not None else limit
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE

    request = ReconciliationRequest(
        page=page,
        page_size=page_size,
        filter_status=status_filter,
        search=search,
    )
    try:
        return await service.get_comparison(request)
    except InvalidReconciliationRequest as exc:
        body = ReconciliationResponse.failure(
            str(exc), page=max(1, page), page_size=min(max(1, page_size), MAX_PAGE_SIZE)
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=body.model_dump(mode="json"),
        )
