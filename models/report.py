"""
Static report definitions.

Each report's query parameters are one of three shapes, discriminated by
``kind``, so the planner knows statically how to window a report:

    daily_snapshot  - one request per day, the day passed in ``date_param``
    date_range      - month-chunked ranges passed in ``from_param``/``to_param``
    static          - fixed filters, one request per run
"""

from datetime import date
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from core.config import settings
from models.base import InsertMode, LoadMethod
from models.window import DateFormat


class DailySnapshotParams(BaseModel):
    kind: Literal["daily_snapshot"] = "daily_snapshot"
    date_param: str
    start_date: date
    filters: Dict[str, Any] = Field(default_factory=dict)


class DateRangeParams(BaseModel):
    kind: Literal["date_range"] = "date_range"
    from_param: str
    to_param: str
    start_date: date
    chunk_months: int = Field(12, ge=1)
    lookback_months: int = Field(3, ge=0)
    filters: Dict[str, Any] = Field(default_factory=dict)


class StaticParams(BaseModel):
    kind: Literal["static"] = "static"
    filters: Dict[str, Any] = Field(default_factory=dict)


ReportParams = Annotated[
    Union[DailySnapshotParams, DateRangeParams, StaticParams],
    Field(discriminator="kind"),
]


class ReportDefinition(BaseModel):
    """
    One report pulled from the report API into its own destination table.

    Attributes:
        name: Report name, also used for the destination table name
        endpoint: Report API endpoint (``{base}/{endpoint}.json``)
        insert_mode: How fresh data replaces the destination
        load_method: Batch inserts or bulk file copy into staging
        params: Windowing rule and base filters
        dedupe_field: Destination column holding the row date
            (upsert_by_date_window only)
        date_format: Text format of ``dedupe_field`` and of ``as_of_date``
        page_batch_size: Fetch pages concurrently in batches of this size
    """

    name: str = Field(..., min_length=1, pattern=r"^[a-z][a-z0-9_]*$")
    endpoint: str = Field(..., min_length=1)
    insert_mode: InsertMode = InsertMode.REPLACE
    load_method: LoadMethod = LoadMethod.BULK_INSERT
    params: ReportParams
    dedupe_field: Optional[str] = None
    date_format: DateFormat = DateFormat.US
    page_batch_size: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_upsert_settings(self):
        if self.insert_mode == InsertMode.UPSERT_BY_DATE_WINDOW:
            if not self.dedupe_field:
                raise ValueError(f"Report '{self.name}' needs a dedupe_field to upsert by date window")
            if isinstance(self.params, StaticParams):
                raise ValueError(f"Report '{self.name}' has no date window to upsert by")
        return self

    @property
    def is_upsert(self) -> bool:
        return self.insert_mode == InsertMode.UPSERT_BY_DATE_WINDOW

    @property
    def table_name(self) -> str:
        return f"{settings.TABLE_PREFIX}{self.name}"

    @property
    def staging_table_name(self) -> str:
        return f"{self.table_name}{settings.STAGING_SUFFIX}"
