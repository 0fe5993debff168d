"""
Report listing and sync state reset endpoints
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from api.dependencies import get_state_store
from core.exceptions import CheckpointError
from ingestion.catalog import build_report_catalog, get_report
from ingestion.checkpoint import SyncStateStore
from schemas.api import ReportListResponse, ReportStatus, ResetResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("", response_model=ReportListResponse)
async def list_reports(store: SyncStateStore = Depends(get_state_store)):
    """List configured reports with their sync state"""
    reports = []
    for report in build_report_catalog():
        state = store.get(report.name)
        reports.append(ReportStatus(
            name=report.name,
            endpoint=report.endpoint,
            table_name=report.table_name,
            insert_mode=report.insert_mode,
            load_method=report.load_method,
            is_first_run=state.is_first_run,
            last_from=state.last_from,
            last_to=state.last_to,
        ))
    return ReportListResponse(total_reports=len(reports), reports=reports)


@router.post("/{report_name}/reset", response_model=ResetResponse)
async def reset_report(report_name: str, store: SyncStateStore = Depends(get_state_store)):
    """
    Force a report back to first run.

    The next pass rebuilds the report's whole history.
    """
    if get_report(report_name) is None:
        raise HTTPException(status_code=404, detail=f"Unknown report: {report_name}")

    try:
        state = store.reset(report_name)
    except CheckpointError as e:
        logger.error(f"Failed to reset {report_name}: {e}", extra={"error_context": e.to_dict()})
        raise HTTPException(status_code=500, detail=f"Failed to reset {report_name} sync state")

    logger.info(f"Sync state of {report_name} reset to first run")
    return ResetResponse(
        report=report_name,
        is_first_run=state.is_first_run,
        message=f"{report_name} will rebuild its full history on the next pass",
    )
