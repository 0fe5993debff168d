"""
Query window planning.

Turns a report definition plus its sync state into the ordered list of
parameter sets to request from the report API.

First runs rebuild the report's whole history from its start date.
Incremental runs (upsert reports only) re-cover a trailing period so rows the
source system finalizes late are picked up:

    daily_snapshot  - the previous month as well while today.day <= 14,
                      then the current month to date
    date_range      - a single range over the last ``lookback_months`` months
"""

from datetime import date, timedelta
from typing import List
import calendar
import logging

from models.report import (
    DailySnapshotParams,
    DateRangeParams,
    ReportDefinition,
    StaticParams,
)
from models.sync_state import SyncState
from models.window import DateFormat, DateRange, QueryWindow, WindowPlan

logger = logging.getLogger(__name__)

# Last day of the month on which the previous month is still re-swept
PREVIOUS_MONTH_CUTOFF_DAY = 14

PARAM_DATE_FORMAT = DateFormat.US


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by whole months, clamping to the target month's last day"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def incremental_day_range(today: date) -> DateRange:
    month_start = today.replace(day=1)
    if today.day <= PREVIOUS_MONTH_CUTOFF_DAY:
        previous_month_start = (month_start - timedelta(days=1)).replace(day=1)
        return DateRange(start=previous_month_start, end=today)
    return DateRange(start=month_start, end=today)


def month_chunks(coverage: DateRange, chunk_months: int) -> List[DateRange]:
    """Split ``coverage`` into consecutive, non-overlapping month-sized ranges"""
    chunks = []
    current = coverage.start
    while current <= coverage.end:
        chunk_end = min(shift_months(current, chunk_months) - timedelta(days=1), coverage.end)
        chunks.append(DateRange(start=current, end=chunk_end))
        current = chunk_end + timedelta(days=1)
    return chunks


def daily_windows(params: DailySnapshotParams, coverage: DateRange) -> List[QueryWindow]:
    return [
        QueryWindow(
            params={**params.filters, params.date_param: PARAM_DATE_FORMAT.format_date(day)},
            date_range=DateRange.single_day(day),
        )
        for day in coverage.days()
    ]


def range_windows(params: DateRangeParams, ranges: List[DateRange]) -> List[QueryWindow]:
    windows = []
    for date_range in ranges:
        date_from, date_to = date_range.to_text(PARAM_DATE_FORMAT)
        windows.append(QueryWindow(
            params={**params.filters, params.from_param: date_from, params.to_param: date_to},
            date_range=date_range,
        ))
    return windows


def _coverage(start: date, today: date):
    if start > today:
        return None
    return DateRange(start=start, end=today)


def plan_windows(report: ReportDefinition, state: SyncState, today: date) -> WindowPlan:
    """
    Compute the ordered query windows for one report run.

    Args:
        report: Report definition
        state: Current sync state of the report
        today: Current local date

    Returns:
        WindowPlan with the windows and, for incremental runs, the advisory
        bounds of the re-fetched date range
    """
    # Replace-style reports always rebuild their whole history
    first_run = state.is_first_run or not report.is_upsert
    params = report.params

    if isinstance(params, StaticParams):
        windows = [QueryWindow(params=dict(params.filters))]

    elif isinstance(params, DailySnapshotParams):
        if first_run:
            coverage = _coverage(params.start_date, today)
        else:
            coverage = incremental_day_range(today)
            coverage = _coverage(max(coverage.start, params.start_date), today)
        windows = daily_windows(params, coverage) if coverage else []

    elif isinstance(params, DateRangeParams):
        if first_run:
            coverage = _coverage(params.start_date, today)
            ranges = month_chunks(coverage, params.chunk_months) if coverage else []
        else:
            lookback_start = shift_months(today.replace(day=1), -params.lookback_months)
            coverage = _coverage(max(lookback_start, params.start_date), today)
            ranges = [coverage] if coverage else []
        windows = range_windows(params, ranges)

    else:
        raise ValueError(f"Unsupported report params: {type(params).__name__}")

    bounds = None
    if not first_run and windows:
        bounds = DateRange(
            start=windows[0].date_range.start,
            end=windows[-1].date_range.end,
        )

    logger.info(
        f"Planned {len(windows)} windows for {report.name} "
        f"(first_run={first_run}, bounds={bounds.to_text(PARAM_DATE_FORMAT) if bounds else '-'})"
    )
    return WindowPlan(windows=windows, bounds=bounds, is_first_run=first_run)
