"""
Pydantic schemas for API request/response models
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from models.base import InsertMode, LoadMethod


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Report Schemas
# ============================================================================

class ReportStatus(BaseModel):
    """Configured report with its persisted sync state"""
    name: str
    endpoint: str
    table_name: str
    insert_mode: InsertMode
    load_method: LoadMethod
    is_first_run: bool
    last_from: str = ""
    last_to: str = ""

    class Config:
        use_enum_values = True


class ReportListResponse(BaseModel):
    total_reports: int
    reports: List[ReportStatus] = Field(default_factory=list)


class ResetResponse(BaseModel):
    """Result of resetting a report to first run"""
    report: str
    is_first_run: bool
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "report": "general_ledger",
                "is_first_run": True,
                "message": "general_ledger will rebuild its full history on the next pass",
            }
        }


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utc_now)
    warehouse_connected: bool
    state_file: str
    total_reports: int = 0
    first_run_reports: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "warehouse_connected": True,
                "state_file": "temp/report_sync_state.json",
                "total_reports": 7,
                "first_run_reports": [],
            }
        }
