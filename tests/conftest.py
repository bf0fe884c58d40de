"""Shared test fixtures.

Provides:
- In-memory source store and CRM test doubles implementing the adapter ABCs
- A FastAPI app with the doubles, services and operation log on app.state
- Authenticated and anonymous async HTTP clients for API tests
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.crm_sync.contacts.crm.adapter import (
    CrmAdapter,
    CrmApiError,
    SourceStoreAdapter,
)
from src.crm_sync.contacts.operation_log import InMemoryOperationLog
from src.crm_sync.contacts.schemas import (
    CrmContact,
    CrmContactFilter,
    CrmContactPage,
    CrmContactProperties,
    SourceContact,
    SourceContactFilter,
    SourceContactPage,
)
from src.crm_sync.contacts.service import ReconciliationService
from src.crm_sync.contacts.sync import EmailVerificationSyncService
from src.crm_sync.main import create_app

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemorySourceStore(SourceStoreAdapter):
    """Source store backed by a list of records; ``fail_with`` makes every call raise."""

    def __init__(self, records: list[SourceContact] | None = None) -> None:
        self.records: list[SourceContact] = list(records or [])
        self.fail_with: Exception | None = None
        self.filters_seen: list[SourceContactFilter] = []

    async def fetch_contacts(self, filters: SourceContactFilter) -> SourceContactPage:
        self.filters_seen.append(filters)
        if self.fail_with is not None:
            raise self.fail_with
        window = self.records[filters.offset:filters.offset + filters.limit]
        return SourceContactPage(records=window, total=len(self.records))

    async def get_contact(self, contact_id: int | str) -> SourceContact | None:
        if self.fail_with is not None:
            raise self.fail_with
        for record in self.records:
            if str(record.id) == str(contact_id):
                return record
        return None


class InMemoryCrm(CrmAdapter):
    """CRM backed by a list of contacts; records property updates."""

    def __init__(self, records: list[CrmContact] | None = None) -> None:
        self.records: list[CrmContact] = list(records or [])
        self.fail_with: Exception | None = None
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def fetch_contacts(self, filters: CrmContactFilter) -> CrmContactPage:
        if self.fail_with is not None:
            raise self.fail_with
        start = int(filters.after or 0)
        window = self.records[start:start + filters.limit]
        end = start + len(window)
        has_more = end < len(self.records)
        return CrmContactPage(
            records=window,
            has_more=has_more,
            next_after=str(end) if has_more else None,
        )

    async def update_contact_properties(
        self, contact_id: str, properties: dict[str, Any]
    ) -> CrmContact:
        if self.fail_with is not None:
            raise self.fail_with
        for index, record in enumerate(self.records):
            if record.id == contact_id:
                self.updates.append((contact_id, properties))
                values = {k: getattr(v, "value", v) for k, v in properties.items()}
                updated = record.model_copy(
                    update={
                        "properties": CrmContactProperties(
                            **{**record.properties.model_dump(), **values}
                        )
                    }
                )
                self.records[index] = updated
                return updated
        raise CrmApiError(f"HubSpot contact update failed: HTTP 404 {contact_id}", status_code=404)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def source_store() -> InMemorySourceStore:
    return InMemorySourceStore()


@pytest.fixture
def crm() -> InMemoryCrm:
    return InMemoryCrm()


@pytest.fixture
def operation_log() -> InMemoryOperationLog:
    return InMemoryOperationLog()


@pytest.fixture
def app(source_store, crm, operation_log):
    """FastAPI app wired to the in-memory doubles (lifespan is not run)."""
    application = create_app()
    application.state.source_adapter = source_store
    application.state.crm_adapter = crm
    application.state.operation_log = operation_log
    application.state.reconciliation_service = ReconciliationService(
        source=source_store, crm=crm, clock=lambda: FIXED_NOW
    )
    application.state.sync_service = EmailVerificationSyncService(
        source=source_store, crm=crm, operation_log=operation_log
    )
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client sending a Bearer token."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": "Bearer test-token"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def anonymous_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without credentials."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
