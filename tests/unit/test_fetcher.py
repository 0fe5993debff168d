"""
Unit tests for the paginated report API fetcher
"""

import httpx
import pytest

from core.exceptions import (
    AuthenticationError,
    RateLimitError,
    ResourceNotFoundError,
    TransportError,
)
from ingestion.extractors.report_api import PagedFetcher, create_report_api_client, parse_page
from models.window import QueryWindow

BASE_URL = "https://acme.reports.example.com/api/v2/reports/"


def make_fetcher(handler) -> PagedFetcher:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return PagedFetcher(client, page_param="page")


async def collect(fetcher, endpoint="general_ledger", params=None):
    window = QueryWindow(params=params or {"posted_on_from": "01/01/2024"})
    return [page async for page in fetcher.fetch(endpoint, window)]


class TestParsePage:
    """Test response body shapes"""

    def test_bare_list_is_terminal_page(self):
        page = parse_page([{"id": 1}, {"id": 2}])

        assert len(page.records) == 2
        assert page.is_last

    def test_object_with_cursor(self):
        page = parse_page({"results": [{"id": 1}], "next_page_url": "https://x/next"})

        assert page.records == [{"id": 1}]
        assert not page.is_last

    def test_null_results_and_cursor(self):
        page = parse_page({"results": None, "next_page_url": None})

        assert page.records == []
        assert page.is_last


class TestPagedFetcher:
    """Test cursor pagination and failure handling"""

    @pytest.mark.asyncio
    async def test_follows_cursor_until_exhausted(self):
        """Test three linked pages are yielded in order"""
        seen = []

        def handler(request: httpx.Request):
            seen.append(request.url)
            page = request.url.params.get("cursor")
            if page is None:
                return httpx.Response(200, json={
                    "results": [{"id": 1}],
                    "next_page_url": "https://acme.reports.example.com/api/v2/reports/general_ledger.json?cursor=2",
                })
            if page == "2":
                return httpx.Response(200, json={
                    "results": [{"id": 2}],
                    "next_page_url": "https://acme.reports.example.com/api/v2/reports/general_ledger.json?cursor=3",
                })
            return httpx.Response(200, json={"results": [{"id": 3}], "next_page_url": None})

        pages = await collect(make_fetcher(handler))

        assert [p.records[0]["id"] for p in pages] == [1, 2, 3]
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_initial_request_carries_window_params(self):
        """Test the first request targets <endpoint>.json with the window params"""
        requests = []

        def handler(request: httpx.Request):
            requests.append(request)
            return httpx.Response(200, json=[])

        await collect(make_fetcher(handler), params={"posted_on_from": "01/01/2024", "posted_on_to": "03/31/2024"})

        assert requests[0].url.path == "/api/v2/reports/general_ledger.json"
        assert requests[0].url.params["posted_on_from"] == "01/01/2024"
        assert requests[0].url.params["posted_on_to"] == "03/31/2024"

    @pytest.mark.asyncio
    async def test_cursor_url_requested_verbatim(self):
        """Test follow-up requests do not re-send the window params"""
        requests = []
        next_url = "https://acme.reports.example.com/api/v2/reports/general_ledger.json?metadata_id=abc&page=2"

        def handler(request: httpx.Request):
            requests.append(request)
            if len(requests) == 1:
                return httpx.Response(200, json={"results": [{"id": 1}], "next_page_url": next_url})
            return httpx.Response(200, json={"results": [], "next_page_url": None})

        await collect(make_fetcher(handler))

        assert str(requests[1].url) == next_url
        assert "posted_on_from" not in requests[1].url.params

    @pytest.mark.asyncio
    async def test_empty_result_is_single_empty_page(self):
        """Test an empty report yields one page with no records"""
        pages = await collect(make_fetcher(lambda request: httpx.Response(200, json={"results": []})))

        assert len(pages) == 1
        assert pages[0].records == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 404, 429, 500, 503])
    async def test_http_failure_becomes_empty_terminal_page(self, status_code, caplog):
        """Test failed requests end the window with an empty page and an error log"""
        pages = await collect(make_fetcher(lambda request: httpx.Response(status_code, text="nope")))

        assert len(pages) == 1
        assert pages[0].records == []
        assert pages[0].is_last
        assert "treating page as empty" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_mid_pagination_truncates(self):
        """Test a failure after the first page stops pagination there"""
        calls = {"count": 0}

        def handler(request: httpx.Request):
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(200, json={
                    "results": [{"id": 1}],
                    "next_page_url": "https://acme.reports.example.com/next",
                })
            raise httpx.ConnectError("connection reset")

        pages = await collect(make_fetcher(handler))

        assert [len(p.records) for p in pages] == [1, 0]

    @pytest.mark.asyncio
    async def test_invalid_json_becomes_empty_page(self):
        """Test an unparseable body is treated like a failed request"""
        pages = await collect(make_fetcher(lambda request: httpx.Response(200, text="<html>")))

        assert pages[0].records == []

    @pytest.mark.asyncio
    async def test_status_classification(self):
        """Test each failure status maps to its exception type"""
        cases = {
            401: AuthenticationError,
            403: AuthenticationError,
            404: ResourceNotFoundError,
            429: RateLimitError,
            502: TransportError,
        }
        for status_code, error_type in cases.items():
            fetcher = make_fetcher(lambda request, code=status_code: httpx.Response(
                code, headers={"Retry-After": "30"}
            ))
            with pytest.raises(error_type):
                await fetcher._request("general_ledger.json")

    @pytest.mark.asyncio
    async def test_rate_limit_keeps_retry_after(self):
        fetcher = make_fetcher(lambda request: httpx.Response(429, headers={"Retry-After": "30"}))

        with pytest.raises(RateLimitError) as exc_info:
            await fetcher._request("general_ledger.json")

        assert exc_info.value.retry_after == 30

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            await make_fetcher(handler)._request("general_ledger.json")


class TestPageBatches:
    """Test concurrent numbered page batches"""

    @pytest.mark.asyncio
    async def test_batches_until_a_page_is_last(self):
        """Test batches stop after the one containing the final page"""
        requested = []

        def handler(request: httpx.Request):
            number = int(request.url.params["page"])
            requested.append(number)
            if number < 6:
                return httpx.Response(200, json={"results": [{"page": number}], "next_page_url": "more"})
            return httpx.Response(200, json={"results": [], "next_page_url": None})

        fetcher = make_fetcher(handler)
        window = QueryWindow(params={"posted_on_from": "01/01/2024"})
        batches = [batch async for batch in fetcher.fetch_page_batches("general_ledger", window, batch_size=3)]

        assert len(batches) == 2
        assert sorted(requested) == [2, 3, 4, 5, 6, 7]
        assert [p.records[0]["page"] for p in batches[0]] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_batch_requests_keep_window_params(self):
        """Test numbered requests send the window params plus the page number"""
        requests = []

        def handler(request: httpx.Request):
            requests.append(request)
            return httpx.Response(200, json=[])

        fetcher = make_fetcher(handler)
        window = QueryWindow(params={"posted_on_from": "01/01/2024"})
        [batch async for batch in fetcher.fetch_page_batches("general_ledger", window, batch_size=2)]

        assert {r.url.params["posted_on_from"] for r in requests} == {"01/01/2024"}
        assert {r.url.params["page"] for r in requests} == {"2", "3"}


class TestClientFactory:
    """Test the shared HTTP client configuration"""

    @pytest.mark.asyncio
    async def test_basic_auth_and_base_url(self):
        client = create_report_api_client(
            base_url="https://acme.reports.example.com/api/v2/reports",
            client_id="client",
            client_secret="secret",
            timeout=5.0,
        )
        try:
            assert str(client.base_url) == BASE_URL
            assert client.timeout.read == 5.0
            assert client.headers["Accept"] == "application/json"
        finally:
            await client.aclose()
