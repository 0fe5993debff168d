"""
Date, window and page value objects shared by the planner, fetcher and loader
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple
import enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DateFormat(str, enum.Enum):
    """
    Text representation of a date, in both Python and warehouse notation.

    US is what the report API expects in query params; ISO is the canonical
    warehouse representation for derived date columns.
    """
    US = "us"
    ISO = "iso"

    @property
    def strftime_pattern(self) -> str:
        return _PATTERNS[self][0]

    @property
    def sql_pattern(self) -> str:
        return _PATTERNS[self][1]

    def format_date(self, value: date) -> str:
        return value.strftime(self.strftime_pattern)

    def parse_date(self, value: str) -> date:
        return datetime.strptime(value, self.strftime_pattern).date()


_PATTERNS = {
    DateFormat.US: ("%m/%d/%Y", "MM/DD/YYYY"),
    DateFormat.ISO: ("%Y-%m-%d", "YYYY-MM-DD"),
}


class DateRange(BaseModel):
    """Inclusive range of calendar days"""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")
        return self

    @classmethod
    def single_day(cls, day: date) -> "DateRange":
        return cls(start=day, end=day)

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_text(self, fmt: DateFormat) -> Tuple[str, str]:
        return fmt.format_date(self.start), fmt.format_date(self.end)


class QueryWindow(BaseModel):
    """One parameter set sent to the report API"""

    params: Dict[str, Any] = Field(default_factory=dict)
    date_range: Optional[DateRange] = None


class WindowPlan(BaseModel):
    """
    Ordered windows for one report run.

    bounds is the advisory range used to delete re-fetched rows from the
    destination; it is None on a first run.
    """

    windows: List[QueryWindow] = Field(default_factory=list)
    bounds: Optional[DateRange] = None
    is_first_run: bool = True

    def advisory_bounds(self, fmt: DateFormat = DateFormat.US) -> Tuple[str, str]:
        if self.bounds is None:
            return "", ""
        return self.bounds.to_text(fmt)


class Page(BaseModel):
    """One response unit from the report API"""

    records: List[Dict[str, Any]] = Field(default_factory=list)
    next_page_url: Optional[str] = None

    @classmethod
    def empty(cls) -> "Page":
        return cls()

    @property
    def is_last(self) -> bool:
        return not self.next_page_url
