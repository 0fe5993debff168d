"""
One full sync pass over the report catalog.

A pass opens a single warehouse connection and a single HTTP client, processes
every report sequentially, runs the post-pass steps and closes both again.
A report that exhausts its attempts is logged and skipped; it never stops
the remaining reports.
"""

from typing import Any, Callable, Dict, List, Optional
import logging
import time

import httpx

from core.database import WarehouseClient, get_warehouse_client
from core.exceptions import ReportFailedError
from ingestion.catalog import build_report_catalog
from ingestion.checkpoint import SyncStateStore
from ingestion.extractors.report_api import PagedFetcher, create_report_api_client
from ingestion.loaders.warehouse_tables import WarehouseTables
from ingestion.postprocess import run_post_sync_steps
from ingestion.runner import ReportProcessor
from models.report import ReportDefinition

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Runs sync passes; every collaborator can be swapped for tests"""

    def __init__(
        self,
        state_store: Optional[SyncStateStore] = None,
        warehouse_factory: Callable[[], WarehouseClient] = get_warehouse_client,
        http_client_factory: Callable[[], httpx.AsyncClient] = create_report_api_client,
        catalog_builder: Callable[[], List[ReportDefinition]] = build_report_catalog,
        post_sync: Callable[[WarehouseClient], Any] = run_post_sync_steps
    ):
        self.state_store = state_store or SyncStateStore()
        self.warehouse_factory = warehouse_factory
        self.http_client_factory = http_client_factory
        self.catalog_builder = catalog_builder
        self.post_sync = post_sync

    async def run_pass(self) -> Dict[str, Any]:
        """
        Process every report once.

        Returns:
            Summary with per-report results, counts and post-pass outcome
        """
        started = time.monotonic()
        reports = self.catalog_builder()
        results: List[Dict[str, Any]] = []

        logger.info(f"Starting sync pass over {len(reports)} reports")

        warehouse = self.warehouse_factory()
        await warehouse.connect()
        try:
            async with self.http_client_factory() as http_client:
                processor = ReportProcessor(
                    fetcher=PagedFetcher(http_client),
                    tables=WarehouseTables(warehouse),
                    state_store=self.state_store,
                )

                for index, report in enumerate(reports, start=1):
                    logger.info(f"Starting report {index}/{len(reports)}: {report.name}")
                    try:
                        results.append(await processor.process(report))
                    except ReportFailedError as e:
                        logger.error(
                            f"Skipping report {report.name} after "
                            f"{e.context.get('attempts')} failed attempts",
                            extra={"error_context": e.to_dict()}
                        )
                        results.append({
                            "status": "failed",
                            "report": report.name,
                            "attempts": e.context.get("attempts"),
                            "error": str(e.original_exception or e.message),
                        })

            post_sync = await self.post_sync(warehouse)
        finally:
            await warehouse.disconnect()

        failed = [r["report"] for r in results if r["status"] != "success"]
        summary = {
            "status": "success" if not failed else "partial_success",
            "reports": results,
            "succeeded": len(results) - len(failed),
            "failed": failed,
            "post_sync": post_sync,
            "duration_seconds": round(time.monotonic() - started, 2),
        }
        logger.info(
            f"Sync pass finished: {summary['succeeded']} succeeded, "
            f"{len(failed)} failed in {summary['duration_seconds']}s"
        )
        return summary
