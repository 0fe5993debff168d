"""
Pydantic schemas for the admin API.

Schemas:
    api: Health, report listing and reset responses

Usage:
    from schemas.api import HealthCheckResponse, ReportStatus, ResetResponse
"""

__all__ = [
    "HealthCheckResponse",
    "ReportListResponse",
    "ReportStatus",
    "ResetResponse",
]
