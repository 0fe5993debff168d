"""
Table-level warehouse operations used by the staging loader.

All report columns are TEXT. Identifiers are always double-quoted so report
field names keep their case and cannot collide with SQL keywords.
"""

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence
import json
import logging
import uuid

from core.config import settings
from core.database import WarehouseClient
from models.window import DateFormat, DateRange

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def to_text(value: Any) -> Optional[str]:
    """Render a record value as warehouse text (None stays NULL)"""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def csv_cell(value: Any) -> str:
    text = to_text(value)
    if text is None:
        return ""
    return '"' + text.replace('"', '""') + '"'


def collect_columns(rows: List[Dict[str, Any]]) -> List[str]:
    """Field names of a page in first-seen order"""
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def chunked(rows: List[Dict[str, Any]], size: int) -> Iterator[List[Dict[str, Any]]]:
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


class WarehouseTables:
    """
    Create, copy, swap and fill report tables.

    Attributes:
        client: Connected warehouse client
        batch_size: Rows per insert statement / per bulk file
        stage_dir: Root of the per-table directories holding bulk files
    """

    def __init__(
        self,
        client: WarehouseClient,
        batch_size: Optional[int] = None,
        stage_dir: Optional[str] = None
    ):
        self.client = client
        self.batch_size = batch_size or settings.ETL_BATCH_SIZE
        self.stage_dir = Path(stage_dir or settings.BULK_STAGE_DIR)

    async def table_exists(self, table_name: str) -> bool:
        return await self.client.table_exists(table_name)

    async def ensure_table_exists(self, table_name: str, columns: Sequence[str]) -> None:
        column_sql = ", ".join(f"{quote_identifier(c)} TEXT" for c in columns)
        await self.client.execute(
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({column_sql})"
        )
        logger.info(f"Table '{table_name}' checked/created with {len(columns)} columns")

    async def drop_table(self, table_name: str) -> None:
        await self.client.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")
        logger.info(f"Table '{table_name}' dropped (if it existed)")

    async def duplicate_table(self, source_table: str, target_table: str) -> None:
        await self.client.execute(
            f"CREATE TABLE {quote_identifier(target_table)} AS "
            f"SELECT * FROM {quote_identifier(source_table)}"
        )
        logger.info(f"Table '{source_table}' duplicated as '{target_table}'")

    async def swap_in(self, staging_table: str, table_name: str) -> None:
        """Replace ``table_name`` with ``staging_table`` in one transaction"""
        async with self.client.transaction():
            await self.client.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")
            await self.client.execute(
                f"ALTER TABLE {quote_identifier(staging_table)} "
                f"RENAME TO {quote_identifier(table_name)}"
            )
        logger.info(f"Staging table '{staging_table}' swapped in as '{table_name}'")

    async def delete_date_window(
        self,
        table_name: str,
        date_field: str,
        date_format: DateFormat,
        date_range: DateRange
    ) -> int:
        """Delete rows whose ``date_field`` falls inside ``date_range``"""
        date_from, date_to = date_range.to_text(date_format)
        field = f"NULLIF({quote_identifier(date_field)}, '')"
        deleted = await self.client.execute(
            f"DELETE FROM {quote_identifier(table_name)} "
            f"WHERE to_date({field}, :date_format) "
            f"BETWEEN to_date(:date_from, :date_format) AND to_date(:date_to, :date_format)",
            {"date_format": date_format.sql_pattern, "date_from": date_from, "date_to": date_to}
        )
        logger.info(f"Deleted {deleted} rows from '{table_name}' dated {date_from}..{date_to}")
        return deleted

    async def batch_insert(self, table_name: str, rows: List[Dict[str, Any]]) -> int:
        """
        Insert rows with one parameterized INSERT per batch.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        columns = collect_columns(rows)
        placeholders = ", ".join(f":p{i}" for i in range(len(columns)))
        sql = (
            f"INSERT INTO {quote_identifier(table_name)} "
            f"({', '.join(quote_identifier(c) for c in columns)}) VALUES ({placeholders})"
        )

        inserted = 0
        for index, batch in enumerate(chunked(rows, self.batch_size), start=1):
            binds = [
                {f"p{i}": to_text(row.get(column)) for i, column in enumerate(columns)}
                for row in batch
            ]
            inserted += await self.client.execute_many(sql, binds)
            logger.info(f"Batch {index}: inserted {len(batch)} rows into '{table_name}'")

        return inserted

    def write_bulk_file(self, table_name: str, rows: List[Dict[str, Any]], columns: List[str]) -> Path:
        table_dir = self.stage_dir / table_name
        table_dir.mkdir(parents=True, exist_ok=True)
        path = table_dir / f"{table_name}_{uuid.uuid4().hex}.csv"

        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(",".join(csv_cell(c) for c in columns) + "\n")
            for row in rows:
                handle.write(",".join(csv_cell(row.get(c)) for c in columns) + "\n")

        return path

    async def bulk_insert(self, table_name: str, rows: List[Dict[str, Any]]) -> int:
        """
        Load rows through CSV files and the warehouse COPY command.

        Each batch gets its own file, removed after the load whether or not
        the load succeeded.
        """
        if not rows:
            return 0

        columns = collect_columns(rows)
        loaded = 0

        for batch in chunked(rows, self.batch_size):
            path = self.write_bulk_file(table_name, batch, columns)
            try:
                logger.info(f"Copying {len(batch)} rows from {path.name} into '{table_name}'")
                loaded += await self.client.copy_from_file(table_name, str(path), columns)
            finally:
                path.unlink(missing_ok=True)

        return loaded
