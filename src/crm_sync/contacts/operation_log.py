"""Sync operation log -- where email-verification sync operations are recorded.

The log is injected into the sync service and the sync-status endpoints
rather than living as module state, so tests and alternative backends can
supply their own store.

Interface:
- record(op): insert or replace an operation by id
- get(id): fetch one operation, None if unknown
- list(): all operations, oldest first
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Iterable

import structlog

from src.crm_sync.contacts.schemas import SyncOperation, SyncOperationStatus, SyncOperationSummary

logger = structlog.get_logger(__name__)


class OperationLog(ABC):
    """Abstract store of sync operations."""

    @abstractmethod
    async def record(self, operation: SyncOperation) -> None:
        """Insert or replace an operation (keyed by ``operation.id``)."""
        ...

    @abstractmethod
    async def get(self, operation_id: str) -> SyncOperation | None:
        """Fetch an operation by id."""
        ...

    @abstractmethod
    async def list(self) -> list[SyncOperation]:
        """Return all recorded operations, oldest first."""
        ...


class InMemoryOperationLog(OperationLog):
    """Process-local operation log bounded to the most recent entries.

    Args:
        max_entries: Oldest operations are evicted beyond this many.
    """

    def __init__(self, max_entries: int = 1000) -> None:
        self._operations: OrderedDict[str, SyncOperation] = OrderedDict()
        self._max_entries = max_entries
        self._lock = asyncio.Lock()

    async def record(self, operation: SyncOperation) -> None:
        async with self._lock:
            self._operations[operation.id] = operation
            while len(self._operations) > self._max_entries:
                evicted_id, _ = self._operations.popitem(last=False)
                logger.debug("operation_log.evicted", operation_id=evicted_id)

    async def get(self, operation_id: str) -> SyncOperation | None:
        return self._operations.get(operation_id)

    async def list(self) -> list[SyncOperation]:
        return list(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


def summarize_operations(operations: Iterable[SyncOperation]) -> SyncOperationSummary:
    """Count operations by status."""
    summary = SyncOperationSummary()
    for op in operations:
        summary.total += 1
        if op.status == SyncOperationStatus.COMPLETED:
            summary.completed += 1
        elif op.status == SyncOperationStatus.IN_PROGRESS:
            summary.in_progress += 1
        elif op.status == SyncOperationStatus.FAILED:
            summary.failed += 1
        elif op.status == SyncOperationStatus.PENDING:
            summary.pending += 1
    return summary
