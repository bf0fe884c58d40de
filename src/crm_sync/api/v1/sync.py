"""Email verification sync endpoints.

- POST /sync/email-verification: push a verification status to the CRM
- GET /sync/operations: every recorded operation plus a status summary
- GET /sync/operations/{operation_id}: one operation, 404 if unknown
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.crm_sync.api.deps import get_operation_log, get_sync_service
from src.crm_sync.api.schemas import ApiResponse
from src.crm_sync.contacts.operation_log import OperationLog, summarize_operations
from src.crm_sync.contacts.schemas import (
    EmailVerificationStatus,
    SyncOperation,
    SyncOperationStatus,
    SyncOperationSummary,
)
from src.crm_sync.contacts.sync import EmailVerificationSyncService

router = APIRouter(prefix="/sync", tags=["sync"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class EmailVerificationSyncRequest(BaseModel):
    """Request body for pushing a verification status to the CRM."""

    source_contact_id: int | str
    crm_contact_id: str = Field(min_length=1)
    email_verification_status: EmailVerificationStatus


class SyncOperationList(BaseModel):
    """All recorded operations plus counts by status."""

    operations: list[SyncOperation] = Field(default_factory=list)
    summary: SyncOperationSummary = Field(default_factory=SyncOperationSummary)


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/email-verification", response_model=ApiResponse[SyncOperation])
async def sync_email_verification(
    body: EmailVerificationSyncRequest,
    service: EmailVerificationSyncService = Depends(get_sync_service),
) -> ApiResponse[SyncOperation]:
    """Sync one contact's email verification status to the CRM.

    The operation is returned whether it completed or failed; ``success``
    mirrors its final status.
    """
    operation = await service.sync_to_crm(
        body.source_contact_id,
        body.crm_contact_id,
        body.email_verification_status,
    )
    return ApiResponse(
        success=operation.status == SyncOperationStatus.COMPLETED,
        data=operation,
        error=operation.error.message if operation.error else None,
    )


@router.get("/operations", response_model=ApiResponse[SyncOperationList])
async def list_sync_operations(
    operation_log: OperationLog = Depends(get_operation_log),
) -> ApiResponse[SyncOperationList]:
    """List recorded sync operations, oldest first."""
    operations = await operation_log.list()
    return ApiResponse(
        data=SyncOperationList(
            operations=operations,
            summary=summarize_operations(operations),
        )
    )


@router.get("/operations/{operation_id}", response_model=ApiResponse[SyncOperation])
async def get_sync_operation(
    operation_id: str,
    operation_log: OperationLog = Depends(get_operation_log),
) -> ApiResponse[SyncOperation]:
    """Fetch one sync operation by id."""
    operation = await operation_log.get(operation_id)
    if operation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Sync operation {operation_id} not found",
        )
    return ApiResponse(data=operation)
