"""
Health check endpoint with warehouse and sync state status
"""

from fastapi import APIRouter, Depends
import logging

from api.dependencies import get_state_store, get_warehouse
from core.database import WarehouseClient
from core.exceptions import DatabaseError
from ingestion.catalog import build_report_catalog
from ingestion.checkpoint import SyncStateStore
from schemas.api import HealthCheckResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    store: SyncStateStore = Depends(get_state_store),
    warehouse: WarehouseClient = Depends(get_warehouse)
):
    """
    Health check endpoint.

    Returns:
    - Warehouse connectivity status
    - Reports still waiting for their first full run
    """
    warehouse_connected = False
    error = None

    try:
        await warehouse.connect()
        await warehouse.scalar("SELECT 1")
        warehouse_connected = True
    except DatabaseError as e:
        error = e.message
        logger.error(f"Warehouse connection failed: {e}")

    reports = build_report_catalog()
    states = store.all()
    first_run = [
        report.name for report in reports
        if states.get(report.name) is None or states[report.name].is_first_run
    ]

    return HealthCheckResponse(
        status="healthy" if warehouse_connected else "unhealthy",
        warehouse_connected=warehouse_connected,
        state_file=str(store.path),
        total_reports=len(reports),
        first_run_reports=first_run,
        error=error,
    )
