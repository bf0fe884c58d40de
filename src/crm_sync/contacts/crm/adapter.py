"""Contact store adapter abstract base classes -- the interfaces reconciliation consumes.

Two backends feed the reconciliation engine: the relational source store
(Supabase) and the CRM (HubSpot). Each exposes a uniform "fetch a page of
contacts" capability with its own native filter vocabulary, plus the single
lookups and writes the email-verification sync needs.

Adapters own all I/O concerns (retries, timeouts, paging). The engine only
ever sees already-fetched lists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.crm_sync.contacts.schemas import (
    CrmContact,
    CrmContactFilter,
    CrmContactPage,
    SourceContact,
    SourceContactFilter,
    SourceContactPage,
)


class AdapterError(Exception):
    """Raised when a backing store cannot be read or written.

    Attributes:
        side: Human-readable name of the store that failed.
        status_code: Upstream HTTP status, if the failure had one.
    """

    side = "adapter"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SourceStoreError(AdapterError):
    """Source store (Supabase) request failed."""

    side = "source store"


class CrmApiError(AdapterError):
    """CRM (HubSpot) request failed."""

    side = "CRM"


class SourceStoreAdapter(ABC):
    """Abstract interface for the relational contact table.

    Methods:
        fetch_contacts: Fetch one page of rows plus the total row count.
        get_contact: Fetch one row by primary key.
    """

    @abstractmethod
    async def fetch_contacts(self, filters: SourceContactFilter) -> SourceContactPage:
        """Fetch one page of contacts matching the filters."""
        ...

    @abstractmethod
    async def get_contact(self, contact_id: int | str) -> SourceContact | None:
        """Fetch a contact by primary key, None if absent."""
        ...


class CrmAdapter(ABC):
    """Abstract interface for the CRM contact API.

    Methods:
        fetch_contacts: Fetch up to ``filters.limit`` contacts from a cursor.
        update_contact_properties: Write properties onto a CRM contact.
    """

    @abstractmethod
    async def fetch_contacts(self, filters: CrmContactFilter) -> CrmContactPage:
        """Fetch contacts matching the filters, with the continuation cursor."""
        ...

    @abstractmethod
    async def update_contact_properties(
        self, contact_id: str, properties: dict[str, Any]
    ) -> CrmContact:
        """Update properties on a CRM contact and return the updated contact."""
        ...
