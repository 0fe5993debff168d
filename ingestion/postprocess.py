"""
Steps run once after every sync pass, whatever the report outcomes were.

- Warehouse stored procedure (``POST_SYNC_PROCEDURE``)
- Tableau workbook extract refresh (``TABLEAU_*`` settings)

Both are optional. Failures are logged and never interrupt the scheduler.
"""

from typing import Any, Callable, Dict, Optional
import logging
import re

import httpx

from core.config import settings
from core.database import WarehouseClient
from core.exceptions import APIExtractionError, ConfigurationError, ETLException

logger = logging.getLogger(__name__)

_PROCEDURE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)*$")


async def run_post_sync_procedure(
    warehouse: WarehouseClient,
    procedure: Optional[str] = None
) -> bool:
    """
    Call the configured stored procedure.

    Returns:
        True when the procedure ran, False when none is configured
    """
    procedure = procedure or settings.POST_SYNC_PROCEDURE
    if not procedure:
        return False

    if not _PROCEDURE_NAME.match(procedure):
        raise ConfigurationError(
            "Invalid post-sync procedure name",
            context={"procedure": procedure}
        )

    logger.info(f"Calling post-sync procedure {procedure}")
    await warehouse.execute(f"CALL {procedure}()")
    logger.info(f"Post-sync procedure {procedure} completed")
    return True


class TableauRefresher:
    """
    Trigger a workbook extract refresh through the Tableau REST API.

    Signs in with a personal access token, requests the refresh with the
    session token, then signs out.
    """

    def __init__(
        self,
        server: Optional[str] = None,
        api_version: Optional[str] = None,
        site_id: Optional[str] = None,
        site_content_url: Optional[str] = None,
        workbook_id: Optional[str] = None,
        pat_name: Optional[str] = None,
        pat_secret: Optional[str] = None,
        client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient
    ):
        self.server = (server or settings.TABLEAU_SERVER or "").rstrip("/")
        self.api_version = api_version or settings.TABLEAU_API_VERSION
        self.site_id = site_id or settings.TABLEAU_SITE_ID
        self.site_content_url = (
            site_content_url if site_content_url is not None else settings.TABLEAU_SITE_CONTENT_URL
        )
        self.workbook_id = workbook_id or settings.TABLEAU_WORKBOOK_ID
        self.pat_name = pat_name or settings.TABLEAU_PAT_NAME
        self.pat_secret = pat_secret or settings.TABLEAU_PAT_SECRET
        self.client_factory = client_factory

    @property
    def enabled(self) -> bool:
        return all([self.server, self.site_id, self.workbook_id, self.pat_name, self.pat_secret])

    @property
    def api_root(self) -> str:
        return f"{self.server}/api/{self.api_version}"

    async def _sign_in(self, client: httpx.AsyncClient) -> str:
        payload = {
            "credentials": {
                "personalAccessTokenName": self.pat_name,
                "personalAccessTokenSecret": self.pat_secret,
                "site": {"contentUrl": self.site_content_url},
            }
        }
        response = await client.post(f"{self.api_root}/auth/signin", json=payload)
        if response.status_code != 200:
            raise APIExtractionError(
                "Tableau sign-in failed",
                context={"status_code": response.status_code, "response_body": response.text[:500]}
            )

        try:
            return response.json()["credentials"]["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise APIExtractionError(
                "Tableau sign-in returned no token",
                context={"response_body": response.text[:500]},
                original_exception=e
            )

    async def refresh(self) -> bool:
        """
        Request the workbook refresh.

        Returns:
            True when the refresh was accepted, False when Tableau is not configured

        Raises:
            APIExtractionError: Sign-in or refresh rejected
        """
        if not self.enabled:
            return False

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        async with self.client_factory(headers=headers, timeout=60.0) as client:
            logger.info("Signing in to Tableau")
            token = await self._sign_in(client)
            auth = {"X-Tableau-Auth": token}

            try:
                logger.info(f"Triggering extract refresh for workbook {self.workbook_id}")
                response = await client.post(
                    f"{self.api_root}/sites/{self.site_id}/workbooks/{self.workbook_id}/refresh",
                    json={},
                    headers=auth,
                )
                if response.status_code not in (200, 202):
                    raise APIExtractionError(
                        "Tableau extract refresh rejected",
                        context={
                            "workbook_id": self.workbook_id,
                            "status_code": response.status_code,
                            "response_body": response.text[:500],
                        }
                    )
            finally:
                try:
                    await client.post(f"{self.api_root}/auth/signout", headers=auth)
                except httpx.HTTPError as e:
                    logger.warning(f"Tableau sign-out failed: {e}")

        logger.info("Tableau extract refresh triggered")
        return True


async def run_post_sync_steps(
    warehouse: WarehouseClient,
    refresher: Optional[TableauRefresher] = None
) -> Dict[str, Any]:
    """
    Run every post-pass step, logging failures instead of raising.

    Returns:
        Mapping of step name to "success", "skipped" or "failed"
    """
    refresher = refresher or TableauRefresher()
    outcome: Dict[str, Any] = {}

    try:
        ran = await run_post_sync_procedure(warehouse)
        outcome["procedure"] = "success" if ran else "skipped"
    except ETLException as e:
        outcome["procedure"] = "failed"
        logger.error(f"Post-sync procedure failed: {e.message}", extra={"error_context": e.to_dict()})

    try:
        ran = await refresher.refresh()
        outcome["tableau_refresh"] = "success" if ran else "skipped"
    except ETLException as e:
        outcome["tableau_refresh"] = "failed"
        logger.error(f"Tableau refresh failed: {e.message}", extra={"error_context": e.to_dict()})
    except httpx.HTTPError as e:
        outcome["tableau_refresh"] = "failed"
        logger.error(f"Tableau refresh failed: {e}")

    return outcome
