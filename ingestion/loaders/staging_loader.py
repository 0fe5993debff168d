"""
Load one report run into a staging table, then swap it into place.

The destination table is never written directly. Every run fills
``<table><STAGING_SUFFIX>`` and finalize replaces the destination with it, so
a failed run leaves the previous destination untouched.
"""

from typing import Any, Dict, List, Optional
import logging

from core.config import settings
from core.exceptions import DatabaseError, StagingError
from ingestion.loaders.warehouse_tables import WarehouseTables, collect_columns
from models.base import LoadMethod
from models.report import ReportDefinition
from models.window import WindowPlan

logger = logging.getLogger(__name__)


class StagingLoader:
    """
    Staging table lifecycle for a single report run.

    Usage:
        loader = StagingLoader(tables, report)
        await loader.begin(plan)
        await loader.load_page(records)
        await loader.finalize()
    """

    def __init__(
        self,
        tables: WarehouseTables,
        report: ReportDefinition,
        batch_size: Optional[int] = None
    ):
        self.tables = tables
        self.report = report
        self.batch_size = batch_size or settings.ETL_BATCH_SIZE
        self.staging_created = False
        self.rows_loaded = 0

    @property
    def staging_table(self) -> str:
        return self.report.staging_table_name

    @property
    def destination_table(self) -> str:
        return self.report.table_name

    async def begin(self, plan: WindowPlan) -> None:
        """
        Prepare staging for the planned run.

        Incremental upserts start from a copy of the destination with the
        re-fetched date range removed. Everything else starts empty and
        creates staging from the first page that has rows.
        """
        self.staging_created = False
        self.rows_loaded = 0

        await self.tables.drop_table(self.staging_table)

        if plan.is_first_run or plan.bounds is None or not self.report.is_upsert:
            return

        if not await self.tables.table_exists(self.destination_table):
            logger.warning(
                f"Destination '{self.destination_table}' missing for incremental run of "
                f"{self.report.name}; rebuilding from fetched pages only"
            )
            return

        await self.tables.duplicate_table(self.destination_table, self.staging_table)
        self.staging_created = True

        deleted = await self.tables.delete_date_window(
            self.staging_table,
            self.report.dedupe_field,
            self.report.date_format,
            plan.bounds,
        )
        logger.info(
            f"Staging for {self.report.name} seeded from destination, "
            f"{deleted} rows in the re-fetched range removed"
        )

    async def _insert(self, rows: List[Dict[str, Any]]) -> int:
        if self.report.load_method == LoadMethod.BULK_INSERT:
            return await self.tables.bulk_insert(self.staging_table, rows)
        return await self.tables.batch_insert(self.staging_table, rows)

    async def load_page(self, records: List[Dict[str, Any]]) -> int:
        """
        Append one transformed page to staging.

        Returns:
            Number of rows loaded
        """
        if not records:
            return 0

        if not self.staging_created:
            await self.tables.ensure_table_exists(self.staging_table, collect_columns(records))
            self.staging_created = True

        loaded = await self._insert(records)
        self.rows_loaded += loaded
        return loaded

    async def load_page_batch(self, pages: List[List[Dict[str, Any]]]) -> int:
        """Load the pages of a concurrent batch, each with its own insert"""
        loaded = 0
        for records in pages:
            loaded += await self.load_page(records)
        return loaded

    async def finalize(self) -> bool:
        """
        Swap staging into place as the destination.

        Returns:
            False when no rows were ever staged and the destination was left as is
        """
        if not self.staging_created:
            logger.warning(
                f"No rows fetched for {self.report.name}; "
                f"leaving '{self.destination_table}' unchanged"
            )
            return False

        try:
            await self.tables.swap_in(self.staging_table, self.destination_table)
        except DatabaseError as e:
            raise StagingError(
                f"Failed to swap staging into '{self.destination_table}'",
                context={
                    "report": self.report.name,
                    "staging_table": self.staging_table,
                    "table_name": self.destination_table,
                },
                original_exception=e
            )

        logger.info(
            f"Finalized {self.report.name}: {self.rows_loaded} new rows, "
            f"'{self.destination_table}' replaced"
        )
        return True
