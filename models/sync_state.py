from pydantic import BaseModel


class SyncState(BaseModel):
    """
    Tracks incremental sync progress per report.

    Purpose:
    - Distinguish the historical backfill from incremental runs
    - Remember the last synced window (advisory only)

    Design:
    - One entry per report in the state file
    - is_first_run flips to False once, after the first successful run, and
      only an explicit reset sets it back
    - last_from/last_to are MM/DD/YYYY strings, empty after a first run
    """

    is_first_run: bool = True
    last_from: str = ""
    last_to: str = ""
