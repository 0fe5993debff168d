"""
Report catalog.

The catalog is rebuilt at the start of every pass because some filters are
relative to the current date (current budget year, end of the current month).
"""

from datetime import date
from typing import Dict, List, Optional
import calendar

from models.base import InsertMode, LoadMethod
from models.report import (
    DailySnapshotParams,
    DateRangeParams,
    ReportDefinition,
    StaticParams,
)
from models.window import DateFormat

HISTORY_START = date(2023, 1, 1)
TICKLER_HISTORY_START = date(2024, 1, 1)

ALL_PROPERTIES = {"property_visibility": "all"}


def _end_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def build_report_catalog(today: Optional[date] = None) -> List[ReportDefinition]:
    """Return every configured report, in processing order"""
    today = today or date.today()

    return [
        ReportDefinition(
            name="general_ledger",
            endpoint="general_ledger",
            insert_mode=InsertMode.UPSERT_BY_DATE_WINDOW,
            load_method=LoadMethod.BULK_INSERT,
            dedupe_field="posted_on",
            date_format=DateFormat.US,
            page_batch_size=15,
            params=DateRangeParams(
                from_param="posted_on_from",
                to_param="posted_on_to",
                start_date=HISTORY_START,
                chunk_months=3,
                lookback_months=3,
                filters={
                    **ALL_PROPERTIES,
                    "project_visibility": "all",
                    "accounting_basis": "accrual",
                },
            ),
        ),
        ReportDefinition(
            name="rent_roll",
            endpoint="rent_roll",
            insert_mode=InsertMode.UPSERT_BY_DATE_WINDOW,
            load_method=LoadMethod.BULK_INSERT,
            dedupe_field="as_of_date",
            date_format=DateFormat.ISO,
            params=DailySnapshotParams(
                date_param="as_of_to",
                start_date=HISTORY_START,
                filters={
                    **ALL_PROPERTIES,
                    "unit_visibility": "all",
                    "non_revenue_units": "1",
                },
            ),
        ),
        ReportDefinition(
            name="property_budget",
            endpoint="property_budget",
            load_method=LoadMethod.BATCH_INSERT,
            params=StaticParams(filters={
                **ALL_PROPERTIES,
                "period_from": f"Jan {today.year}",
                "period_to": f"Dec {today.year + 1}",
            }),
        ),
        ReportDefinition(
            name="income_statement",
            endpoint="income_statement",
            load_method=LoadMethod.BATCH_INSERT,
            params=StaticParams(filters={
                **ALL_PROPERTIES,
                "accounting_basis": "Accrual",
                "level_of_detail": "detail_view",
                "include_zero_balance_gl_accounts": "1",
                "posted_on_to": f"{today.year}-12",
            }),
        ),
        ReportDefinition(
            name="tenant_tickler",
            endpoint="tenant_tickler",
            load_method=LoadMethod.BULK_INSERT,
            params=DateRangeParams(
                from_param="occurred_on_from",
                to_param="occurred_on_to",
                start_date=TICKLER_HISTORY_START,
                chunk_months=12,
                filters=dict(ALL_PROPERTIES),
            ),
        ),
        ReportDefinition(
            name="unit_vacancy",
            endpoint="unit_vacancy",
            insert_mode=InsertMode.APPEND_ONLY,
            load_method=LoadMethod.BATCH_INSERT,
            params=StaticParams(filters={
                **ALL_PROPERTIES,
                "unit_visibility": "all",
            }),
        ),
        ReportDefinition(
            name="aged_receivables",
            endpoint="aged_receivables_detail",
            load_method=LoadMethod.BATCH_INSERT,
            params=StaticParams(filters={
                **ALL_PROPERTIES,
                "paginate_results": "false",
                "occurred_on_to": DateFormat.US.format_date(_end_of_month(today)),
            }),
        ),
    ]


def get_report(name: str, today: Optional[date] = None) -> Optional[ReportDefinition]:
    reports: Dict[str, ReportDefinition] = {r.name: r for r in build_report_catalog(today)}
    return reports.get(name)
