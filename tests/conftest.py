"""
Pytest configuration and fixtures
"""

from datetime import date
from typing import Any, Callable, Dict, List

import pytest

from core.exceptions import DatabaseError
from ingestion.checkpoint import SyncStateStore
from ingestion.loaders.warehouse_tables import collect_columns, to_text
from models.base import InsertMode, LoadMethod
from models.report import (
    DailySnapshotParams,
    DateRangeParams,
    ReportDefinition,
    StaticParams,
)
from models.window import DateFormat, Page, QueryWindow


class InMemoryTables:
    """
    Warehouse double with the WarehouseTables interface.

    Tables are lists of row dicts. ``fail_next`` maps an operation name to the
    number of upcoming calls that should raise DatabaseError.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.columns: Dict[str, List[str]] = {}
        self.operations: List[tuple] = []
        self.fail_next: Dict[str, int] = {}

    def _record(self, name: str, *args):
        self.operations.append((name,) + args)
        if self.fail_next.get(name, 0) > 0:
            self.fail_next[name] -= 1
            raise DatabaseError(f"{name} failed", context={"operation": name})

    async def table_exists(self, table_name):
        return table_name in self.tables

    async def ensure_table_exists(self, table_name, columns):
        self._record("ensure_table_exists", table_name)
        if table_name not in self.tables:
            self.tables[table_name] = []
            self.columns[table_name] = list(columns)

    async def drop_table(self, table_name):
        self._record("drop_table", table_name)
        self.tables.pop(table_name, None)
        self.columns.pop(table_name, None)

    async def duplicate_table(self, source_table, target_table):
        self._record("duplicate_table", source_table, target_table)
        if target_table in self.tables:
            raise DatabaseError(f"relation {target_table} already exists")
        self.tables[target_table] = [dict(row) for row in self.tables[source_table]]
        self.columns[target_table] = list(self.columns.get(source_table, []))

    async def swap_in(self, staging_table, table_name):
        self._record("swap_in", staging_table, table_name)
        self.tables[table_name] = self.tables.pop(staging_table)
        self.columns[table_name] = self.columns.pop(staging_table, [])

    async def delete_date_window(self, table_name, date_field, date_format, date_range):
        self._record("delete_date_window", table_name, date_field)
        kept, deleted = [], 0
        for row in self.tables[table_name]:
            value = row.get(date_field)
            if value and date_range.contains(date_format.parse_date(value)):
                deleted += 1
            else:
                kept.append(row)
        self.tables[table_name] = kept
        return deleted

    async def _insert(self, name, table_name, rows):
        self._record(name, table_name, len(rows))
        if table_name not in self.tables:
            raise DatabaseError(f"relation {table_name} does not exist")
        for column in collect_columns(rows):
            if column not in self.columns[table_name]:
                self.columns[table_name].append(column)
        self.tables[table_name].extend(
            {key: to_text(value) for key, value in row.items()} for row in rows
        )
        return len(rows)

    async def batch_insert(self, table_name, rows):
        return await self._insert("batch_insert", table_name, rows)

    async def bulk_insert(self, table_name, rows):
        return await self._insert("bulk_insert", table_name, rows)


class FakeFetcher:
    """
    PagedFetcher double.

    ``pages_for`` receives the window and returns the pages to serve, in order.
    Cursor fetches serve them one by one; batch fetches serve the pages after
    the first in groups.
    """

    def __init__(self, pages_for: Callable[[QueryWindow], List[Page]]):
        self.pages_for = pages_for
        self.windows: List[QueryWindow] = []
        self.batch_calls: List[int] = []

    async def fetch(self, endpoint, window):
        self.windows.append(window)
        for page in self.pages_for(window):
            yield page
            if page.is_last:
                break

    async def fetch_page_batches(self, endpoint, window, start_page=2, batch_size=15):
        remaining = self.pages_for(window)[start_page - 1:]
        while remaining:
            batch, remaining = remaining[:batch_size], remaining[batch_size:]
            self.batch_calls.append(len(batch))
            yield batch
            if any(page.is_last for page in batch):
                break


def make_pages(*record_lists: List[Dict[str, Any]]) -> List[Page]:
    """Chain record lists into cursor-linked pages"""
    pages = []
    for index, records in enumerate(record_lists):
        last = index == len(record_lists) - 1
        pages.append(Page(
            records=records,
            next_page_url=None if last else f"https://reports.example.com/next?page={index + 2}",
        ))
    return pages


@pytest.fixture
def warehouse_tables():
    return InMemoryTables()


@pytest.fixture
def state_store(tmp_path):
    return SyncStateStore(tmp_path / "state" / "sync_state.json")


@pytest.fixture
def replace_report():
    return ReportDefinition(
        name="unit_directory",
        endpoint="unit_directory",
        insert_mode=InsertMode.REPLACE,
        load_method=LoadMethod.BATCH_INSERT,
        params=StaticParams(filters={"property_visibility": "all"}),
    )


@pytest.fixture
def range_upsert_report():
    return ReportDefinition(
        name="ledger",
        endpoint="general_ledger",
        insert_mode=InsertMode.UPSERT_BY_DATE_WINDOW,
        load_method=LoadMethod.BULK_INSERT,
        dedupe_field="posted_on",
        date_format=DateFormat.US,
        params=DateRangeParams(
            from_param="posted_on_from",
            to_param="posted_on_to",
            start_date=date(2024, 1, 1),
            chunk_months=3,
            lookback_months=3,
        ),
    )


@pytest.fixture
def daily_upsert_report():
    return ReportDefinition(
        name="rent_roll",
        endpoint="rent_roll",
        insert_mode=InsertMode.UPSERT_BY_DATE_WINDOW,
        load_method=LoadMethod.BATCH_INSERT,
        dedupe_field="as_of_date",
        date_format=DateFormat.ISO,
        params=DailySnapshotParams(date_param="as_of_to", start_date=date(2024, 1, 1)),
    )
