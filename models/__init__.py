"""
Domain models for the report sync pipeline.

Models:
    base: Shared enums (InsertMode, LoadMethod, ReportRunState)
    report: ReportDefinition and its parameter variants
    sync_state: Persisted per-report SyncState
    window: DateFormat, DateRange, QueryWindow, WindowPlan, Page

Usage:
    from models.report import ReportDefinition, DailySnapshotParams
    from models.sync_state import SyncState
    from models.window import DateRange, Page

Example:
    rent_roll = ReportDefinition(
        name="rent_roll",
        endpoint="rent_roll",
        insert_mode=InsertMode.UPSERT_BY_DATE_WINDOW,
        dedupe_field="as_of_date",
        date_format=DateFormat.ISO,
        params=DailySnapshotParams(
            date_param="as_of_to",
            start_date=date(2023, 1, 1),
        ),
    )
"""

__all__ = [
    "InsertMode",
    "LoadMethod",
    "ReportRunState",
    "ReportDefinition",
    "DailySnapshotParams",
    "DateRangeParams",
    "StaticParams",
    "SyncState",
    "DateFormat",
    "DateRange",
    "QueryWindow",
    "WindowPlan",
    "Page",
]
