"""Tests for HubSpotAdapter against an httpx.MockTransport.

Covers search body construction, cursor paging, retry on rate limiting and
server errors, CrmApiError mapping, and property updates.
"""

from __future__ import annotations

import json

import httpx
import pytest
from tenacity import wait_none

from src.crm_sync.contacts.crm.adapter import CrmApiError
from src.crm_sync.contacts.crm.hubspot import HubSpotAdapter
from src.crm_sync.contacts.schemas import CrmContactFilter, EmailVerificationStatus


@pytest.fixture(autouse=True)
def _no_retry_wait(monkeypatch):
    """Skip tenacity backoff so retry tests run instantly."""
    monkeypatch.setattr(HubSpotAdapter._search.retry, "wait", wait_none())
    monkeypatch.setattr(HubSpotAdapter._patch.retry, "wait", wait_none())


def _contact(i: int) -> dict:
    return {
        "id": str(i),
        "properties": {
            "firstname": f"First{i}",
            "lastname": f"Last{i}",
            "email": f"user{i}@example.com",
            "email_verification_status": "verified",
            "hs_object_id": str(i),
        },
        "createdAt": "2026-01-01T00:00:00Z",
        "updatedAt": "2026-01-02T00:00:00Z",
    }


def _paged_handler(total: int, seen: list[dict]):
    """Search handler serving ``total`` contacts with numeric ``after`` cursors."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        start = int(body.get("after") or 0)
        end = min(start + body["limit"], total)
        payload: dict = {"total": total, "results": [_contact(i) for i in range(start, end)]}
        if end < total:
            payload["paging"] = {"next": {"after": str(end)}}
        return httpx.Response(200, json=payload)

    return handler


def _make_adapter(handler, **kwargs) -> HubSpotAdapter:
    return HubSpotAdapter(
        api_key="pat-test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestBuildSearchBody:
    def test_defaults(self):
        body = HubSpotAdapter.build_search_body(CrmContactFilter(), None, 100)
        assert body["limit"] == 100
        assert body["sorts"] == [{"propertyName": "createdate", "direction": "DESCENDING"}]
        assert "hs_object_id" in body["properties"]
        assert "email_verification_status" in body["properties"]
        assert body["filterGroups"] == []
        assert "after" not in body
        assert "query" not in body

    def test_cursor_sort_and_query(self):
        filters = CrmContactFilter(sort_by="lastname", sort_order="asc", search="  turing ")
        body = HubSpotAdapter.build_search_body(filters, "200", 50)
        assert body["after"] == "200"
        assert body["query"] == "turing"
        assert body["sorts"][0] == {"propertyName": "lastname", "direction": "ASCENDING"}


class TestFetchContacts:
    """Test cursor paging through the search endpoint."""

    async def test_follows_cursor_until_exhausted(self):
        seen: list[dict] = []
        adapter = _make_adapter(_paged_handler(250, seen))

        page = await adapter.fetch_contacts(CrmContactFilter(limit=1000))

        assert len(page.records) == 250
        assert page.has_more is False
        assert page.next_after is None
        assert [body.get("after") for body in seen] == [None, "100", "200"]
        assert page.records[0].properties.full_name == "First0 Last0"

    async def test_limit_shrinks_last_request(self):
        seen: list[dict] = []
        adapter = _make_adapter(_paged_handler(500, seen))

        page = await adapter.fetch_contacts(CrmContactFilter(limit=150))

        assert len(page.records) == 150
        assert [body["limit"] for body in seen] == [100, 50]
        assert page.has_more is True
        assert page.next_after == "150"

    async def test_null_result_entry_does_not_abort_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"total": 2, "results": [_contact(1), None]})

        page = await _make_adapter(handler).fetch_contacts(CrmContactFilter(limit=10))

        assert len(page.records) == 2
        assert page.records[0].id == "1"
        assert page.records[1].id == ""

    async def test_single_page_with_cursor(self):
        seen: list[dict] = []
        adapter = _make_adapter(_paged_handler(500, seen))

        page = await adapter.fetch_contacts(CrmContactFilter(limit=25, page_size=25, after="100"))

        assert [c.id for c in page.records][:2] == ["100", "101"]
        assert page.next_after == "125"
        assert len(seen) == 1

    async def test_max_pages_cap(self):
        seen: list[dict] = []
        adapter = _make_adapter(_paged_handler(10_000, seen), max_pages=3)

        page = await adapter.fetch_contacts(CrmContactFilter(limit=100_000))

        assert len(seen) == 3
        assert len(page.records) == 300
        assert page.has_more is True

    async def test_sends_bearer_token(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"total": 0, "results": []})

        page = await _make_adapter(handler).fetch_contacts(CrmContactFilter())

        assert page.records == []
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/crm/v3/objects/contacts/search"
        assert requests[0].headers["Authorization"] == "Bearer pat-test"


class TestErrorHandling:
    """Test retry policy and CrmApiError mapping."""

    async def test_rate_limit_retried(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(429, json={"message": "Too many requests"})
            return httpx.Response(200, json={"results": [_contact(1)]})

        page = await _make_adapter(handler).fetch_contacts(CrmContactFilter())
        assert len(page.records) == 1
        assert calls["count"] == 2

    async def test_persistent_rate_limit(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "Too many requests"})

        with pytest.raises(CrmApiError, match="rate limit exceeded") as exc_info:
            await _make_adapter(handler).fetch_contacts(CrmContactFilter())
        assert exc_info.value.status_code == 429

    async def test_server_error_exhausts_retries(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(CrmApiError) as exc_info:
            await _make_adapter(handler).fetch_contacts(CrmContactFilter())

        assert exc_info.value.status_code == 502
        assert exc_info.value.side == "CRM"
        assert calls["count"] == 3

    async def test_auth_failure_not_retried(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(401, json={"message": "expired token"})

        with pytest.raises(CrmApiError, match="authentication rejected"):
            await _make_adapter(handler).fetch_contacts(CrmContactFilter())
        assert calls["count"] == 1

    async def test_error_detail_included(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid property lastname2"})

        with pytest.raises(CrmApiError, match="Invalid property lastname2"):
            await _make_adapter(handler).fetch_contacts(CrmContactFilter())

    async def test_timeout_mapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(CrmApiError, match="timed out") as exc_info:
            await _make_adapter(handler).fetch_contacts(CrmContactFilter())
        assert exc_info.value.status_code is None


class TestUpdateContactProperties:
    async def test_patch_body(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            updated = _contact(42)
            updated["properties"]["email_verification_status"] = "bounced"
            return httpx.Response(200, json=updated)

        contact = await _make_adapter(handler).update_contact_properties(
            "42", {"email_verification_status": EmailVerificationStatus.BOUNCED}
        )

        assert requests[0].method == "PATCH"
        assert requests[0].url.path == "/crm/v3/objects/contacts/42"
        assert json.loads(requests[0].content) == {
            "properties": {"email_verification_status": "bounced"}
        }
        assert contact.properties.email_verification_status == "bounced"

    async def test_missing_contact(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "resource not found"})

        with pytest.raises(CrmApiError) as exc_info:
            await _make_adapter(handler).update_contact_properties(
                "999", {"email_verification_status": "verified"}
            )
        assert exc_info.value.status_code == 404
