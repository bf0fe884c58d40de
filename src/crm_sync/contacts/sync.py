"""Email verification sync -- pushes a source contact's verification status to the CRM.

Each call produces one SyncOperation that moves through
in_progress -> completed | failed. Every transition is written to the
operation log so the sync-status endpoints can report on it while it runs.

Failure handling:
- Source contact missing: failed, CONTACT_NOT_FOUND, not retryable
- Source store or CRM adapter error: failed, SYNC_ERROR, retryable
- Anything unexpected (e.g. an unparseable response): failed, SYNC_ERROR, retryable
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.crm_sync.contacts.crm.adapter import AdapterError, CrmAdapter, SourceStoreAdapter
from src.crm_sync.contacts.operation_log import OperationLog
from src.crm_sync.contacts.schemas import (
    EmailVerificationStatus,
    SyncError,
    SyncOperation,
    SyncOperationStatus,
)
from src.crm_sync.core.monitoring import sync_operations_total

logger = structlog.get_logger(__name__)

VERIFICATION_PROPERTY = "email_verification_status"


def new_operation_id() -> str:
    return f"sync_{uuid.uuid4().hex[:16]}"


class EmailVerificationSyncService:
    """Syncs email verification status from the source store to the CRM.

    Args:
        source: Source-store adapter used to load the contact.
        crm: CRM adapter receiving the property update.
        operation_log: Where operations are recorded.
        clock: Returns timestamps for started_at/completed_at.
    """

    def __init__(
        self,
        source: SourceStoreAdapter,
        crm: CrmAdapter,
        operation_log: OperationLog,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._crm = crm
        self._log = operation_log
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _finish(
        self,
        operation: SyncOperation,
        status: SyncOperationStatus,
        result: str,
        error: SyncError | None = None,
        source_value: str | None = None,
    ) -> SyncOperation:
        finished = operation.model_copy(
            update={
                "status": status,
                "completed_at": self._clock(),
                "result": result,
                "error": error,
                "source_value": source_value,
            }
        )
        await self._log.record(finished)
        sync_operations_total.labels(status=status.value).inc()
        return finished

    async def sync_to_crm(
        self,
        source_contact_id: int | str,
        crm_contact_id: str,
        status: EmailVerificationStatus,
        initiated_by: str = "user",
    ) -> SyncOperation:
        """Push ``status`` to the CRM contact and return the final operation.

        Never raises for adapter or unexpected failures; the returned operation carries
        the error instead.
        """
        operation = SyncOperation(
            id=new_operation_id(),
            source_contact_id=source_contact_id,
            crm_contact_id=crm_contact_id,
            status=SyncOperationStatus.IN_PROGRESS,
            started_at=self._clock(),
            target_value=status.value,
            initiated_by=initiated_by,
        )
        await self._log.record(operation)

        try:
            contact = await self._source.get_contact(source_contact_id)
            if contact is None:
                logger.warning(
                    "sync.contact_not_found",
                    operation_id=operation.id,
                    source_contact_id=source_contact_id,
                )
                message = "Contact not found in source store"
                return await self._finish(
                    operation,
                    SyncOperationStatus.FAILED,
                    message,
                    error=SyncError(code="CONTACT_NOT_FOUND", message=message, can_retry=False),
                )

            await self._crm.update_contact_properties(
                crm_contact_id, {VERIFICATION_PROPERTY: status}
            )
        except AdapterError as exc:
            logger.error(
                "sync.failed",
                operation_id=operation.id,
                crm_contact_id=crm_contact_id,
                error=str(exc),
                side=exc.side,
            )
            return await self._finish(
                operation,
                SyncOperationStatus.FAILED,
                "Sync operation failed",
                error=SyncError(code="SYNC_ERROR", message=str(exc), can_retry=True),
            )
        except Exception as exc:
            logger.exception(
                "sync.unexpected_error",
                operation_id=operation.id,
                crm_contact_id=crm_contact_id,
            )
            return await self._finish(
                operation,
                SyncOperationStatus.FAILED,
                "Sync operation failed",
                error=SyncError(code="SYNC_ERROR", message=str(exc), can_retry=True),
            )

        logger.info(
            "sync.completed",
            operation_id=operation.id,
            source_contact_id=source_contact_id,
            crm_contact_id=crm_contact_id,
            status=status.value,
        )
        return await self._finish(
            operation,
            SyncOperationStatus.COMPLETED,
            "Email verification status synced successfully",
            source_value=contact.email_verification_status,
        )
