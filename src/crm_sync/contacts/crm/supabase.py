"""Supabase source-store adapter -- PostgREST reads of the contacts table.

Implements SourceStoreAdapter against Supabase's REST endpoint
(``<project>/rest/v1/<table>``) with httpx.

Key implementation details:
- Offset paging through PagedIterator; PostgREST caps a single response at
  1000 rows, so larger windows are fetched in several calls
- ``Prefer: count=exact`` so the store-wide total comes back in Content-Range
- Transient failures retried with tenacity (3 attempts, exponential backoff)
- Every failure surfaces as SourceStoreError
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.crm_sync.contacts.crm.adapter import SourceStoreAdapter, SourceStoreError
from src.crm_sync.contacts.crm.field_mapping import from_supabase_row
from src.crm_sync.contacts.crm.paging import Page, PagedIterator
from src.crm_sync.contacts.crm.retry import transient_http_retry
from src.crm_sync.contacts.schemas import SourceContact, SourceContactFilter, SourceContactPage

logger = structlog.get_logger(__name__)

POSTGREST_MAX_ROWS = 1000


def parse_content_range_total(header: str | None) -> int | None:
    """Extract the total from a PostgREST ``Content-Range`` header.

    ``"0-24/573"`` -> 573, ``"*/0"`` -> 0, unknown total ``"0-24/*"`` -> None.
    """
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1].strip()
    return int(total) if total.isdigit() else None


def _quote_ilike(term: str) -> str:
    # PostgREST reserves , ( ) inside or=() filters
    cleaned = term.replace(",", " ").replace("(", " ").replace(")", " ").strip()
    return f"*{cleaned}*"


class SupabaseAdapter(SourceStoreAdapter):
    """Source-store adapter for a Supabase ``contacts`` table.

    Args:
        url: Supabase project URL.
        api_key: Supabase anon or service key.
        table: Contacts table name.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = "contacts",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = f"{url.rstrip('/')}/rest/v1/{table}"
        self._table = table
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one request."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _build_params(self, filters: SourceContactFilter) -> list[tuple[str, str]]:
        """Translate a SourceContactFilter into PostgREST query parameters."""
        params: list[tuple[str, str]] = [
            ("select", "*"),
            ("order", f"{filters.sort_by}.{filters.sort_order}"),
        ]

        if filters.verification_statuses:
            params.append(
                ("email_verification_status", f"in.({','.join(filters.verification_statuses)})")
            )
        if filters.has_crm_id:
            params.append(("hs_object_id", "not.is.null"))
        if filters.date_from:
            params.append(("created_at", f"gte.{filters.date_from}"))
        if filters.date_to:
            params.append(("created_at", f"lte.{filters.date_to}"))

        term = (filters.search or "").strip()
        if term:
            pattern = _quote_ilike(term)
            params.append(
                (
                    "or",
                    f"(firstname.ilike.{pattern},lastname.ilike.{pattern},email.ilike.{pattern})",
                )
            )

        return params

    @transient_http_retry
    async def _get(
        self, params: list[tuple[str, str]], prefer: str | None = None
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        async with self._client() as client:
            response = await client.get(self._base_url, params=params, headers=headers)
            response.raise_for_status()
            return response

    async def _fetch_page(
        self, filters: SourceContactFilter, offset: int | None, size: int
    ) -> Page[SourceContact, int]:
        start = offset or 0
        params = self._build_params(filters)
        params.extend([("offset", str(start)), ("limit", str(size))])

        response = await self._get(params, prefer="count=exact")
        rows: list[dict[str, Any]] = response.json() or []
        total = parse_content_range_total(response.headers.get("Content-Range"))

        end = start + len(rows)
        more = bool(rows) and (end < total if total is not None else len(rows) == size)

        return Page(
            items=[from_supabase_row(row) for row in rows],
            next_cursor=end if more else None,
            total=total,
        )

    def pages(self, filters: SourceContactFilter) -> PagedIterator[SourceContact, int]:
        """Paged view over the rows matching ``filters`` from ``filters.offset``."""

        async def fetch(offset: int | None, size: int) -> Page[SourceContact, int]:
            return await self._fetch_page(filters, offset, size)

        return PagedIterator(
            fetch,
            page_size=min(filters.limit, POSTGREST_MAX_ROWS),
            start=filters.offset,
            max_items=filters.limit,
            name=f"supabase.{self._table}",
        )

    async def fetch_contacts(self, filters: SourceContactFilter) -> SourceContactPage:
        """Fetch up to ``filters.limit`` rows starting at ``filters.offset``.

        Raises:
            SourceStoreError: On HTTP or network failure.
        """
        try:
            collected = await self.pages(filters).collect()
        except httpx.HTTPStatusError as exc:
            raise SourceStoreError(
                f"Supabase query failed: HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceStoreError(f"Supabase request failed: {exc}") from exc

        total = collected.total if collected.total is not None else len(collected.items)
        logger.info(
            "supabase.contacts_fetched",
            table=self._table,
            count=len(collected.items),
            total=total,
            pages=collected.pages,
        )
        return SourceContactPage(records=collected.items, total=total)

    async def get_contact(self, contact_id: int | str) -> SourceContact | None:
        """Fetch a single row by primary key.

        Raises:
            SourceStoreError: On HTTP or network failure.
        """
        params = [("select", "*"), ("id", f"eq.{contact_id}"), ("limit", "1")]
        try:
            response = await self._get(params)
        except httpx.HTTPStatusError as exc:
            raise SourceStoreError(
                f"Supabase lookup failed: HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceStoreError(f"Supabase request failed: {exc}") from exc

        rows = response.json() or []
        if not rows:
            return None
        return from_supabase_row(rows[0])
