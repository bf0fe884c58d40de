"""HubSpot CRM adapter -- contact search and property updates via the CRM v3 API.

Implements CrmAdapter with httpx against ``/crm/v3/objects/contacts``.

Key implementation details:
- Contact reads use the search endpoint so sorting and free-text queries
  are handled upstream; paging follows ``paging.next.after`` cursors
  through PagedIterator (no hand-written while/sleep loops)
- Rate limiting (429), 5xx and network errors are retried with tenacity
  (3 attempts, exponential backoff 1-10s); other errors fail fast
- Every failure surfaces as CrmApiError carrying the HTTP status
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.crm_sync.contacts.crm.adapter import CrmAdapter, CrmApiError
from src.crm_sync.contacts.crm.field_mapping import from_hubspot_object, to_hubspot_properties
from src.crm_sync.contacts.crm.paging import Page, PagedIterator
from src.crm_sync.contacts.crm.retry import transient_http_retry
from src.crm_sync.contacts.schemas import CrmContact, CrmContactFilter, CrmContactPage

logger = structlog.get_logger(__name__)

HUBSPOT_MAX_PAGE_SIZE = 100
CONTACTS_PATH = "/crm/v3/objects/contacts"


def _error_detail(response: httpx.Response) -> str:
    """Pull HubSpot's ``message`` out of an error body, falling back to text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:500]


def _to_crm_error(exc: httpx.HTTPError, action: str) -> CrmApiError:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 401:
            message = f"HubSpot {action} failed: authentication rejected"
        elif status == 429:
            message = f"HubSpot {action} failed: rate limit exceeded"
        else:
            message = f"HubSpot {action} failed: HTTP {status} {_error_detail(exc.response)}".rstrip()
        return CrmApiError(message, status_code=status)
    return CrmApiError(f"HubSpot {action} failed: {exc}")


class HubSpotAdapter(CrmAdapter):
    """CRM adapter for HubSpot contacts.

    Args:
        api_key: HubSpot private-app access token.
        base_url: API root, normally https://api.hubapi.com.
        page_size: Largest page requested per search call (<= 100).
        max_pages: Safety cap on search calls per fetch.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.hubapi.com",
        page_size: int = HUBSPOT_MAX_PAGE_SIZE,
        max_pages: int = 1000,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = max(1, min(page_size, HUBSPOT_MAX_PAGE_SIZE))
        self._max_pages = max_pages
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one request."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def build_search_body(
        filters: CrmContactFilter, after: str | None, size: int
    ) -> dict[str, Any]:
        """Build the JSON body for one contacts search call."""
        body: dict[str, Any] = {
            "limit": size,
            "sorts": [
                {
                    "propertyName": filters.sort_by,
                    "direction": "ASCENDING" if filters.sort_order == "asc" else "DESCENDING",
                }
            ],
            "properties": list(filters.properties),
            "filterGroups": [],
        }
        if after:
            body["after"] = after
        term = (filters.search or "").strip()
        if term:
            body["query"] = term
        return body

    @transient_http_retry
    async def _search(self, body: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(f"{CONTACTS_PATH}/search", json=body)
            response.raise_for_status()
            return response.json()

    @transient_http_retry
    async def _patch(self, contact_id: str, body: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.patch(f"{CONTACTS_PATH}/{contact_id}", json=body)
            response.raise_for_status()
            return response.json()

    def pages(self, filters: CrmContactFilter) -> PagedIterator[CrmContact, str]:
        """Paged view over contacts matching ``filters`` from ``filters.after``."""

        async def fetch(after: str | None, size: int) -> Page[CrmContact, str]:
            data = await self._search(self.build_search_body(filters, after, size))
            results = data.get("results") or []
            next_after = ((data.get("paging") or {}).get("next") or {}).get("after")
            logger.debug(
                "hubspot.page_fetched",
                count=len(results),
                after=after,
                next_after=next_after,
            )
            return Page(
                items=[from_hubspot_object(obj) for obj in results],
                next_cursor=str(next_after) if next_after else None,
                total=data.get("total"),
            )

        return PagedIterator(
            fetch,
            page_size=min(filters.page_size, self._page_size),
            start=filters.after,
            max_items=filters.limit,
            max_pages=self._max_pages,
            name="hubspot.contacts",
        )

    async def fetch_contacts(self, filters: CrmContactFilter) -> CrmContactPage:
        """Fetch up to ``filters.limit`` contacts starting at ``filters.after``.

        Raises:
            CrmApiError: On HTTP or network failure after retries.
        """
        try:
            collected = await self.pages(filters).collect()
        except httpx.HTTPError as exc:
            raise _to_crm_error(exc, "contact search") from exc

        logger.info(
            "hubspot.contacts_fetched",
            count=len(collected.items),
            pages=collected.pages,
            has_more=collected.has_more,
        )
        return CrmContactPage(
            records=collected.items,
            has_more=collected.has_more,
            next_after=collected.next_cursor,
        )

    async def update_contact_properties(
        self, contact_id: str, properties: dict[str, Any]
    ) -> CrmContact:
        """Update contact properties via PATCH.

        Raises:
            CrmApiError: On HTTP or network failure after retries
                (status_code 404 when the contact does not exist).
        """
        payload = {"properties": to_hubspot_properties(properties)}
        try:
            data = await self._patch(contact_id, payload)
        except httpx.HTTPError as exc:
            raise _to_crm_error(exc, "contact update") from exc

        logger.info(
            "hubspot.contact_updated",
            contact_id=contact_id,
            properties=sorted(payload["properties"]),
        )
        return from_hubspot_object(data)
