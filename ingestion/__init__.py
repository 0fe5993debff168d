"""
Report sync pipeline components.

Modules:
    catalog: Report definitions, rebuilt at the start of every pass
    checkpoint: Per-report sync state persisted in a JSON file
    planner: Query window planning (first run vs incremental)
    runner: ReportProcessor, one report from planning to table swap
    pipeline: SyncPipeline, one pass over every report
    postprocess: Stored procedure call and Tableau refresh after a pass
    schedule_gate: Allowed operating hours
    scheduler: APScheduler loop driving the passes

Subpackages:
    extractors: Paginated report API fetcher
    transformers: Record normalization
    loaders: Staging table lifecycle and warehouse table operations

Architecture:
    Every report run follows the same flow:

    1. Plan - Compute query windows from the report's sync state
    2. Fetch - Page through each window (cursor or concurrent batches)
    3. Load - Append transformed pages into a staging table
    4. Swap - Replace the destination with staging in one transaction

    The destination is never written directly, so a failed run leaves the
    previous data in place and the whole run is simply retried.

Usage:
    from ingestion.pipeline import SyncPipeline

    summary = await SyncPipeline().run_pass()
"""

__all__ = [
    "ReportProcessor",
    "ScheduleGate",
    "SyncPipeline",
    "SyncScheduler",
    "SyncStateStore",
    "build_report_catalog",
    "plan_windows",
]
