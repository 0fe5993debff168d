# ============================================================================
# File: ingestion/runner.py
# Description: Per-report orchestration with whole-run retries
# ============================================================================
"""
Report Processor - runs one report from planning to the table swap.

Each attempt walks the report through:
    pending -> fetching -> loading -> finalizing -> done

Any exception moves the attempt to ``failed``. A failed attempt restarts the
whole run from planning (the staging table is rebuilt, the destination is
never touched until finalize). After the last attempt a ReportFailedError is
raised for the pipeline to log.
"""

from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
from zoneinfo import ZoneInfo

from core.config import settings
from core.exceptions import ETLException, ReportFailedError, TransformationError
from ingestion.checkpoint import SyncStateStore
from ingestion.extractors.report_api import PagedFetcher
from ingestion.loaders.staging_loader import StagingLoader
from ingestion.loaders.warehouse_tables import WarehouseTables
from ingestion.planner import PARAM_DATE_FORMAT, plan_windows
from ingestion.transformers.record_transformer import RecordTransformer
from models.base import ReportRunState
from models.report import ReportDefinition
from models.sync_state import SyncState
from models.window import Page, QueryWindow

logger = logging.getLogger(__name__)


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.SCHEDULE_TIMEZONE)).date()


class ReportProcessor:
    """
    Orchestrates Fetch -> Transform -> Load for one report at a time.

    Responsibilities:
    - Plan the query windows from the report's sync state
    - Stream every page of every window into staging
    - Swap staging into place and advance the sync state
    - Retry the whole run on failure
    """

    def __init__(
        self,
        fetcher: PagedFetcher,
        tables: WarehouseTables,
        state_store: SyncStateStore,
        today: Callable[[], date] = local_today
    ):
        self.fetcher = fetcher
        self.tables = tables
        self.state_store = state_store
        self.today = today
        self.run_states: Dict[str, ReportRunState] = {}

    def _transition(self, report: ReportDefinition, state: ReportRunState) -> None:
        self.run_states[report.name] = state
        logger.debug(f"{report.name} -> {state.value}")

    async def process(
        self,
        report: ReportDefinition,
        max_attempts: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Run a report, retrying the whole run on failure.

        Args:
            report: Report definition
            max_attempts: Total attempts before giving up

        Returns:
            Dictionary with run statistics:
            - status: "success"
            - report: Report name
            - attempts: Attempt that succeeded
            - windows / pages / records_loaded: Volumes of that attempt
            - is_first_run: Whether the run rebuilt the full history

        Raises:
            ReportFailedError: Every attempt failed
        """
        max_attempts = max_attempts or settings.MAX_RETRIES
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Processing report {report.name} (attempt {attempt}/{max_attempts})")
            self._transition(report, ReportRunState.PENDING)

            try:
                result = await self._run_once(report)

            except ETLException as e:
                last_error = e
                self._transition(report, ReportRunState.FAILED)
                logger.error(
                    f"Report {report.name} failed on attempt {attempt}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )

            except Exception as e:
                last_error = e
                self._transition(report, ReportRunState.FAILED)
                logger.exception(f"Unexpected error in report {report.name} on attempt {attempt}")

            else:
                result["attempts"] = attempt
                logger.info(
                    f"Report {report.name} completed: {result['records_loaded']} records, "
                    f"{result['pages']} pages, {result['windows']} windows"
                )
                return result

            if attempt < max_attempts:
                logger.warning(f"Retrying report {report.name} (attempt {attempt + 1}/{max_attempts})")

        raise ReportFailedError(
            f"Report {report.name} failed after {max_attempts} attempts",
            context={"report_name": report.name, "attempts": max_attempts},
            original_exception=last_error
        )

    async def _run_once(self, report: ReportDefinition) -> Dict[str, Any]:
        # --------------------------------------------------
        # PHASE 1: PLAN
        # --------------------------------------------------
        state = self.state_store.get(report.name)
        plan = plan_windows(report, state, self.today())

        loader = StagingLoader(self.tables, report)
        transformer = RecordTransformer(report)
        await loader.begin(plan)

        # --------------------------------------------------
        # PHASE 2: FETCH + LOAD, window by window
        # --------------------------------------------------
        pages = 0
        records_loaded = 0
        for index, window in enumerate(plan.windows, start=1):
            logger.info(f"{report.name}: window {index}/{len(plan.windows)} {window.params}")
            window_pages, window_records = await self._load_window(report, window, loader, transformer)
            pages += window_pages
            records_loaded += window_records

        # --------------------------------------------------
        # PHASE 3: FINALIZE
        # --------------------------------------------------
        self._transition(report, ReportRunState.FINALIZING)
        await loader.finalize()

        # --------------------------------------------------
        # PHASE 4: ADVANCE SYNC STATE
        # --------------------------------------------------
        current = self.state_store.get(report.name)
        if current != state:
            logger.warning(
                f"Sync state of {report.name} changed during the run "
                f"(is_first_run={current.is_first_run}), not advancing it"
            )
        else:
            last_from, last_to = plan.advisory_bounds(PARAM_DATE_FORMAT)
            self.state_store.set(
                report.name,
                SyncState(is_first_run=False, last_from=last_from, last_to=last_to)
            )
        self._transition(report, ReportRunState.DONE)

        return {
            "status": "success",
            "report": report.name,
            "windows": len(plan.windows),
            "pages": pages,
            "records_loaded": records_loaded,
            "is_first_run": plan.is_first_run,
        }

    async def _load_window(
        self,
        report: ReportDefinition,
        window: QueryWindow,
        loader: StagingLoader,
        transformer: RecordTransformer
    ) -> Tuple[int, int]:
        """
        Load every page of one window.

        The first page always follows the cursor. Reports with a
        ``page_batch_size`` then switch to concurrent batches of numbered pages.
        """
        pages = 0
        records_loaded = 0
        use_batches = False

        page_iter = self.fetcher.fetch(report.endpoint, window)
        try:
            async for page in page_iter:
                self._transition(report, ReportRunState.FETCHING)
                pages += 1
                self._transition(report, ReportRunState.LOADING)
                records_loaded += await loader.load_page(self._transform(report, transformer, page, window))

                if report.page_batch_size and not page.is_last:
                    use_batches = True
                    break
        finally:
            await page_iter.aclose()

        if not use_batches:
            return pages, records_loaded

        async for batch in self.fetcher.fetch_page_batches(
            report.endpoint,
            window,
            start_page=2,
            batch_size=report.page_batch_size
        ):
            self._transition(report, ReportRunState.LOADING)
            pages += len(batch)
            records_loaded += await loader.load_page_batch(
                [self._transform(report, transformer, page, window) for page in batch]
            )

        return pages, records_loaded

    @staticmethod
    def _transform(
        report: ReportDefinition,
        transformer: RecordTransformer,
        page: Page,
        window: QueryWindow
    ) -> List[Dict[str, Any]]:
        try:
            return transformer.transform(page.records, window)
        except (TypeError, ValueError, AttributeError) as e:
            raise TransformationError(
                f"Failed to transform page of {report.name}",
                context={"report_name": report.name, "params": window.params},
                original_exception=e
            )
