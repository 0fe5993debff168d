"""
Warehouse connection management with SQLAlchemy async
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
import logging
import re

import asyncpg
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from core.config import settings
from core.exceptions import DatabaseError

logger = logging.getLogger(__name__)

_COPY_STATUS = re.compile(r"COPY (\d+)")


def _operation(sql: str) -> str:
    words = sql.split()
    return words[0].upper() if words else ""


class WarehouseClient:
    """
    Single shared warehouse connection for one sync pass.

    Every statement commits on its own unless it runs inside
    ``transaction()``. Failures are wrapped in DatabaseError so callers only
    deal with the pipeline's exception hierarchy.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or settings.WAREHOUSE_URL
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._connection: Optional[AsyncConnection] = None
        self._in_transaction = False

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Open the shared connection (no-op when already connected)."""
        if self._connection is not None:
            return

        self._engine = create_async_engine(
            self.url,
            echo=self.echo,
            poolclass=NullPool,
        )
        try:
            self._connection = await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            await self._engine.dispose()
            self._engine = None
            raise DatabaseError(
                "Failed to connect to warehouse",
                context={"operation": "CONNECT"},
                original_exception=e
            )

        logger.info("Connected to warehouse")

    async def disconnect(self) -> None:
        """Close the shared connection and dispose of the engine."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Disconnected from warehouse")

    def _require_connection(self) -> AsyncConnection:
        if self._connection is None:
            raise DatabaseError(
                "Warehouse client is not connected",
                context={"operation": "EXECUTE"}
            )
        return self._connection

    async def _run(self, sql: str, params: Any):
        conn = self._require_connection()
        try:
            result = await conn.execute(text(sql), params)
            if not self._in_transaction:
                await conn.commit()
            return result
        except SQLAlchemyError as e:
            if not self._in_transaction:
                await conn.rollback()
            raise DatabaseError(
                "Warehouse statement failed",
                context={"operation": _operation(sql), "sql": sql[:500]},
                original_exception=e
            )

    async def execute(self, sql: str, binds: Optional[Dict[str, Any]] = None) -> int:
        """Execute one statement and return the affected row count (0 for DDL)."""
        logger.debug(f"Executing SQL: {sql}")
        result = await self._run(sql, binds or {})
        return max(result.rowcount, 0)

    async def execute_many(self, sql: str, rows: List[Dict[str, Any]]) -> int:
        """Execute one parameterized statement for every row in ``rows``."""
        if not rows:
            return 0
        logger.debug(f"Executing SQL for {len(rows)} rows: {sql}")
        await self._run(sql, rows)
        return len(rows)

    async def scalar(self, sql: str, binds: Optional[Dict[str, Any]] = None) -> Any:
        result = await self._run(sql, binds or {})
        return result.scalar()

    async def table_exists(self, table_name: str) -> bool:
        return bool(await self.scalar(
            "SELECT EXISTS ("
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = :table_name"
            ")",
            {"table_name": table_name}
        ))

    async def copy_from_file(
        self,
        table_name: str,
        file_path: str,
        columns: Sequence[str]
    ) -> int:
        """
        Bulk load a CSV file (with header row) using the warehouse COPY command.

        Args:
            table_name: Target table
            file_path: Local CSV file
            columns: Column order of the file

        Returns:
            Number of rows copied
        """
        conn = self._require_connection()
        try:
            raw = await conn.get_raw_connection()
            driver: asyncpg.Connection = raw.driver_connection
            status = await driver.copy_to_table(
                table_name,
                source=file_path,
                columns=list(columns),
                format="csv",
                header=True,
                null="",
            )
        except (SQLAlchemyError, asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(
                "Bulk copy failed",
                context={"operation": "COPY", "table_name": table_name, "file": file_path},
                original_exception=e
            )

        match = _COPY_STATUS.match(status or "")
        return int(match.group(1)) if match else 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["WarehouseClient"]:
        """Run the enclosed statements in one transaction."""
        conn = self._require_connection()
        if self._in_transaction:
            yield self
            return

        self._in_transaction = True
        try:
            yield self
            await conn.commit()
        except SQLAlchemyError as e:
            await conn.rollback()
            raise DatabaseError(
                "Warehouse transaction failed",
                context={"operation": "COMMIT"},
                original_exception=e
            )
        except Exception:
            await conn.rollback()
            raise
        finally:
            self._in_transaction = False


def get_warehouse_client() -> WarehouseClient:
    """Create a warehouse client from settings"""
    return WarehouseClient(
        settings.WAREHOUSE_URL,
        echo=settings.ENVIRONMENT == "development" and settings.LOG_LEVEL.upper() == "DEBUG",
    )
