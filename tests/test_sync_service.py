"""Tests for EmailVerificationSyncService and the operation log.

Uses the in-memory store doubles from conftest.py and a recording
operation log to assert every state transition.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from src.crm_sync.contacts.crm.adapter import CrmApiError, SourceStoreError
from src.crm_sync.contacts.crm.hubspot import HubSpotAdapter
from src.crm_sync.contacts.operation_log import InMemoryOperationLog, summarize_operations
from src.crm_sync.contacts.schemas import (
    CrmContact,
    CrmContactProperties,
    EmailVerificationStatus,
    SourceContact,
    SyncOperation,
    SyncOperationStatus,
)
from src.crm_sync.contacts.sync import EmailVerificationSyncService

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class RecordingOperationLog(InMemoryOperationLog):
    """Operation log that also keeps every recorded snapshot."""

    def __init__(self) -> None:
        super().__init__()
        self.history: list[SyncOperation] = []

    async def record(self, operation: SyncOperation) -> None:
        self.history.append(operation)
        await super().record(operation)


def _ticking_clock():
    ticks = iter(START + timedelta(seconds=i) for i in range(100))
    return lambda: next(ticks)


@pytest.fixture
def stores(source_store, crm):
    source_store.records = [
        SourceContact(
            id=1,
            name="Ada Lovelace",
            email="ada@example.com",
            email_verification_status="bounced",
            hs_object_id="501",
        )
    ]
    crm.records = [
        CrmContact(
            id="501",
            properties=CrmContactProperties(
                firstname="Ada",
                lastname="Lovelace",
                email="ada@example.com",
                email_verification_status="verified",
                hs_object_id="501",
            ),
        )
    ]
    return source_store, crm


@pytest.fixture
def log() -> RecordingOperationLog:
    return RecordingOperationLog()


@pytest.fixture
def service(stores, log) -> EmailVerificationSyncService:
    source_store, crm = stores
    return EmailVerificationSyncService(
        source=source_store, crm=crm, operation_log=log, clock=_ticking_clock()
    )


class TestSyncToCrm:
    """Test the in_progress -> completed | failed lifecycle."""

    async def test_success(self, service, stores, log):
        _, crm = stores

        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.BOUNCED)

        assert op.status == SyncOperationStatus.COMPLETED
        assert op.id.startswith("sync_")
        assert op.source_value == "bounced"
        assert op.target_value == "bounced"
        assert op.result == "Email verification status synced successfully"
        assert op.error is None
        assert op.started_at == START
        assert op.completed_at == START + timedelta(seconds=1)
        assert crm.updates == [("501", {"email_verification_status": EmailVerificationStatus.BOUNCED})]
        assert crm.records[0].properties.email_verification_status == "bounced"

    async def test_every_transition_recorded(self, service, log):
        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.VERIFIED)

        assert [o.status for o in log.history] == [
            SyncOperationStatus.IN_PROGRESS,
            SyncOperationStatus.COMPLETED,
        ]
        assert {o.id for o in log.history} == {op.id}
        assert await log.get(op.id) == op
        assert len(log) == 1

    async def test_contact_not_found(self, service, stores):
        _, crm = stores

        op = await service.sync_to_crm(999, "501", EmailVerificationStatus.VERIFIED)

        assert op.status == SyncOperationStatus.FAILED
        assert op.error.code == "CONTACT_NOT_FOUND"
        assert op.error.can_retry is False
        assert op.source_value is None
        assert op.completed_at is not None
        assert crm.updates == []

    async def test_crm_failure_is_retryable(self, service, stores):
        _, crm = stores

        op = await service.sync_to_crm(1, "missing", EmailVerificationStatus.PENDING)

        assert op.status == SyncOperationStatus.FAILED
        assert op.error.code == "SYNC_ERROR"
        assert op.error.can_retry is True
        assert "404" in op.error.message
        assert op.result == "Sync operation failed"

    async def test_source_failure_is_retryable(self, service, stores):
        source_store, _ = stores
        source_store.fail_with = SourceStoreError("Supabase lookup failed: HTTP 503", 503)

        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.VERIFIED)

        assert op.status == SyncOperationStatus.FAILED
        assert op.error.code == "SYNC_ERROR"
        assert op.error.can_retry is True

    async def test_rate_limited_crm(self, service, stores):
        _, crm = stores
        crm.fail_with = CrmApiError("HubSpot contact update failed: rate limit exceeded", 429)

        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.COMPLAINED)

        assert op.status == SyncOperationStatus.FAILED
        assert "rate limit" in op.error.message

    async def test_unexpected_error_finishes_as_failed(self, service, stores, log):
        _, crm = stores
        crm.fail_with = ValueError("unexpected payload")

        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.VERIFIED)

        assert op.status == SyncOperationStatus.FAILED
        assert op.error.code == "SYNC_ERROR"
        assert op.error.can_retry is True
        assert "unexpected payload" in op.error.message
        assert op.completed_at is not None
        assert [o.status for o in log.history] == [
            SyncOperationStatus.IN_PROGRESS,
            SyncOperationStatus.FAILED,
        ]

    async def test_non_json_crm_response_finishes_as_failed(self, stores, log):
        source_store, _ = stores

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, text="<html>maintenance</html>", headers={"Content-Type": "text/html"}
            )

        crm = HubSpotAdapter(api_key="pat-test", transport=httpx.MockTransport(handler))
        service = EmailVerificationSyncService(source=source_store, crm=crm, operation_log=log)

        op = await service.sync_to_crm(1, "501", EmailVerificationStatus.VERIFIED)

        assert op.status == SyncOperationStatus.FAILED
        assert op.error.code == "SYNC_ERROR"
        assert (await log.get(op.id)).status == SyncOperationStatus.FAILED

    async def test_initiated_by(self, service):
        op = await service.sync_to_crm(
            1, "501", EmailVerificationStatus.VERIFIED, initiated_by="scheduler"
        )
        assert op.initiated_by == "scheduler"


class TestInMemoryOperationLog:
    """Test storage, replacement, eviction and summary counts."""

    def _op(self, id: str, status: SyncOperationStatus) -> SyncOperation:
        return SyncOperation(
            id=id,
            source_contact_id=1,
            crm_contact_id="501",
            status=status,
            started_at=START,
        )

    async def test_record_replaces_by_id(self):
        log = InMemoryOperationLog()
        await log.record(self._op("sync_1", SyncOperationStatus.IN_PROGRESS))
        await log.record(self._op("sync_1", SyncOperationStatus.COMPLETED))

        ops = await log.list()
        assert len(ops) == 1
        assert ops[0].status == SyncOperationStatus.COMPLETED

    async def test_unknown_id(self):
        assert await InMemoryOperationLog().get("sync_nope") is None

    async def test_oldest_evicted(self):
        log = InMemoryOperationLog(max_entries=2)
        for i in range(3):
            await log.record(self._op(f"sync_{i}", SyncOperationStatus.COMPLETED))

        assert [op.id for op in await log.list()] == ["sync_1", "sync_2"]
        assert await log.get("sync_0") is None

    def test_summarize_operations(self):
        summary = summarize_operations(
            [
                self._op("a", SyncOperationStatus.COMPLETED),
                self._op("b", SyncOperationStatus.COMPLETED),
                self._op("c", SyncOperationStatus.FAILED),
                self._op("d", SyncOperationStatus.IN_PROGRESS),
                self._op("e", SyncOperationStatus.PENDING),
            ]
        )
        assert summary.model_dump() == {
            "total": 5,
            "completed": 2,
            "in_progress": 1,
            "failed": 1,
            "pending": 1,
        }
