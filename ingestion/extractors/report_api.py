"""
Report API extractor with cursor pagination.

This module provides:
- HTTP basic authentication against the report API
- Cursor pagination: each response may carry ``next_page_url``, which is
  requested verbatim until a page arrives without one
- Optional concurrent batches of numbered pages for very large reports
- Status classification into the pipeline's exception hierarchy

Failed requests are not retried here. A failure is logged and surfaces as an
empty, terminal page; the report-level retry in ReportProcessor decides what
happens next.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import asyncio
import logging

import httpx

from core.config import settings
from core.exceptions import (
    APIExtractionError,
    AuthenticationError,
    ExtractionError,
    RateLimitError,
    ResourceNotFoundError,
    TransportError,
)
from models.window import Page, QueryWindow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_BATCH_SIZE = 15


def create_report_api_client(
    base_url: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    timeout: Optional[float] = None
) -> httpx.AsyncClient:
    """Build the shared HTTP client for one sync pass"""
    base_url = base_url or settings.REPORT_API_BASE_URL
    client_id = client_id or settings.REPORT_API_CLIENT_ID
    client_secret = client_secret or settings.REPORT_API_CLIENT_SECRET

    return httpx.AsyncClient(
        base_url=base_url.rstrip("/") + "/",
        auth=httpx.BasicAuth(client_id or "", client_secret or ""),
        timeout=timeout or settings.REPORT_API_TIMEOUT,
        headers={"Accept": "application/json"},
    )


def parse_page(data: Any) -> Page:
    """
    Parse one response body.

    A bare JSON array is a complete, unpaginated result. An object carries
    ``results`` and, when more pages exist, ``next_page_url``.
    """
    if isinstance(data, list):
        return Page(records=data)
    if isinstance(data, dict):
        return Page(
            records=data.get("results") or [],
            next_page_url=data.get("next_page_url") or None,
        )
    return Page.empty()


class PagedFetcher:
    """
    Fetch the pages of one report window.

    Attributes:
        client: Authenticated client whose base URL is the reports root
        page_param: Query parameter carrying an explicit page number
    """

    def __init__(self, client: httpx.AsyncClient, page_param: Optional[str] = None):
        self.client = client
        self.page_param = page_param or settings.REPORT_API_PAGE_PARAM

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Page:
        """
        Issue one GET and classify the outcome.

        Raises:
            TransportError: Network failure, timeout or unexpected status
            AuthenticationError: HTTP 401/403
            ResourceNotFoundError: HTTP 404
            RateLimitError: HTTP 429
            APIExtractionError: Body is not JSON
        """
        try:
            response = await self.client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise TransportError(
                "Request timeout",
                context={"url": url},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise TransportError(
                "Network error",
                context={"url": url},
                original_exception=e
            )

        context = {"url": url, "status_code": response.status_code}

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Authentication failed for {url}", context=context)

        if response.status_code == 404:
            raise ResourceNotFoundError(f"Report endpoint not found: {url}", context=context)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limit exceeded for {url}",
                context=context,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        if not response.is_success:
            context["response_body"] = response.text[:500]
            raise TransportError(f"Unexpected status {response.status_code}", context=context)

        try:
            data = response.json()
        except ValueError as e:
            raise APIExtractionError(
                "Failed to parse JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        return parse_page(data)

    async def _request_or_empty(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        endpoint: str
    ) -> Page:
        try:
            return await self._request(url, params)
        except ExtractionError as e:
            # Indistinguishable from end-of-data for the caller; keep it loud here
            logger.error(
                f"Fetch failed for {endpoint}, treating page as empty: {e}",
                extra={"error_context": e.to_dict(), "params": params}
            )
            return Page.empty()

    async def fetch(self, endpoint: str, window: QueryWindow) -> AsyncIterator[Page]:
        """
        Yield the pages of one window in order.

        Args:
            endpoint: Report endpoint name
            window: Query window whose params start the pagination

        Yields:
            Page objects; the last one has no next_page_url
        """
        url = f"{endpoint}.json"
        params: Optional[Dict[str, Any]] = window.params
        page_count = 0

        while True:
            logger.info(f"Fetching {endpoint} page {page_count + 1} ({url if page_count else 'initial request'})")
            page = await self._request_or_empty(url, params, endpoint)
            page_count += 1

            logger.info(f"Fetched {len(page.records)} records from {endpoint}")
            yield page

            if page.is_last:
                break

            url, params = page.next_page_url, None

    async def fetch_page_batches(
        self,
        endpoint: str,
        window: QueryWindow,
        start_page: int = 2,
        batch_size: int = DEFAULT_PAGE_BATCH_SIZE
    ) -> AsyncIterator[List[Page]]:
        """
        Yield batches of explicitly numbered pages fetched concurrently.

        The next batch is only requested once the consumer resumes the
        generator, so batches never overlap. Iteration stops after the first
        batch in which any page reports no further pages.
        """
        url = f"{endpoint}.json"
        page_number = start_page

        while True:
            numbers = list(range(page_number, page_number + batch_size))
            logger.info(f"Fetching {endpoint} pages {numbers[0]}-{numbers[-1]} concurrently")

            pages = await asyncio.gather(*(
                self._request_or_empty(url, {**window.params, self.page_param: number}, endpoint)
                for number in numbers
            ))
            yield list(pages)

            if any(page.is_last for page in pages):
                break

            page_number += batch_size
