import enum


# ============================================================================
# ENUMS
# ============================================================================

class InsertMode(str, enum.Enum):
    """How a report's fresh data replaces the destination table"""
    REPLACE = "replace"
    APPEND_ONLY = "append_only"
    UPSERT_BY_DATE_WINDOW = "upsert_by_date_window"


class LoadMethod(str, enum.Enum):
    """How pages are written into the staging table"""
    BATCH_INSERT = "batch_insert"
    BULK_INSERT = "bulk_insert"


class ReportRunState(str, enum.Enum):
    """Report run status"""
    PENDING = "pending"
    FETCHING = "fetching"
    LOADING = "loading"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
