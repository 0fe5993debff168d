"""
Normalize raw report records before they are loaded into the warehouse
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

from models.report import ReportDefinition
from models.window import QueryWindow

logger = logging.getLogger(__name__)

DIGIT_FIELD_PREFIX = "field_"
FETCHED_AT_FIELD = "fetched_at"
AS_OF_DATE_FIELD = "as_of_date"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordTransformer:
    """
    Normalize the records of one page.

    Handles:
    - Column names that start with a digit (not valid warehouse identifiers)
    - ``fetched_at`` timestamp on every record
    - ``as_of_date`` for upsert reports, taken from the window's date

    Values are never converted; missing values stay None.
    """

    def __init__(
        self,
        report: ReportDefinition,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.report = report
        self.clock = clock

    @staticmethod
    def sanitize_field_name(name: str) -> str:
        if name[:1].isdigit():
            return f"{DIGIT_FIELD_PREFIX}{name}"
        return name

    @staticmethod
    def _free_name(name: str, taken: Mapping[str, Any]) -> str:
        suffix = 2
        while f"{name}_{suffix}" in taken:
            suffix += 1
        return f"{name}_{suffix}"

    def _as_of_date(self, window: Optional[QueryWindow]) -> Optional[str]:
        if not self.report.is_upsert or window is None or window.date_range is None:
            return None
        return self.report.date_format.format_date(window.date_range.end)

    def transform_record(
        self,
        record: Any,
        fetched_at: str,
        as_of_date: Optional[str] = None
    ) -> Dict[str, Any]:
        if not isinstance(record, Mapping):
            record = {"value": record}

        transformed: Dict[str, Any] = {}
        for key, value in record.items():
            name = self.sanitize_field_name(str(key))
            if name in transformed:
                name = self._free_name(name, transformed)
                logger.warning(
                    f"{self.report.name}: field '{key}' collides with an existing "
                    f"column, loading it as '{name}'"
                )
            transformed[name] = value
        transformed[FETCHED_AT_FIELD] = fetched_at
        if as_of_date is not None:
            transformed[AS_OF_DATE_FIELD] = as_of_date
        return transformed

    def transform(
        self,
        records: List[Any],
        window: Optional[QueryWindow] = None
    ) -> List[Dict[str, Any]]:
        """
        Transform every record of a page.

        Returns:
            New list of dictionaries; the input is left untouched
        """
        fetched_at = self.clock().isoformat()
        as_of_date = self._as_of_date(window)
        return [self.transform_record(record, fetched_at, as_of_date) for record in records]
