"""
Per-report sync state persisted in a single JSON file.

The file holds one object mapping report name to SyncState. It is read in
full on every access and rewritten in full on every update; the rewrite goes
through a temporary file and ``os.replace`` so a crash never leaves a
half-written state file behind.
"""

from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging
import os
import tempfile

from core.config import settings
from core.exceptions import CheckpointError, StateCorruptionError
from models.sync_state import SyncState

logger = logging.getLogger(__name__)


class SyncStateStore:
    """
    Durable key-value store of SyncState per report.

    Responsibilities:
    - Return the default first-run state for unknown reports
    - Treat an unreadable file as empty (every report first-run)
    - Rewrite the whole file atomically on every update
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or settings.STATE_FILE)

    def _load_all(self) -> Dict[str, SyncState]:
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("State file root must be a JSON object")
            return {
                name: SyncState.model_validate(value)
                for name, value in raw.items()
            }
        except (OSError, ValueError) as e:
            error = StateCorruptionError(
                "Unreadable sync state, treating every report as first run",
                context={"state_file": str(self.path), "operation": "read"},
                original_exception=e
            )
            logger.warning(str(error))
            return {}

    def _write_all(self, states: Dict[str, SyncState]) -> None:
        payload = {name: state.model_dump() for name, state in states.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2, sort_keys=True)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise CheckpointError(
                "Failed to write sync state",
                context={"state_file": str(self.path), "operation": "write"},
                original_exception=e
            )

    def get(self, report_name: str) -> SyncState:
        """Return the persisted state, or the first-run default"""
        return self._load_all().get(report_name, SyncState())

    def set(self, report_name: str, state: SyncState) -> None:
        states = self._load_all()
        states[report_name] = state
        self._write_all(states)
        logger.info(
            f"Saved sync state for {report_name}: first_run={state.is_first_run}, "
            f"window={state.last_from or '-'}..{state.last_to or '-'}"
        )

    def reset(self, report_name: str) -> SyncState:
        """Put a report back into first-run (full backfill) mode"""
        state = SyncState()
        self.set(report_name, state)
        return state

    def all(self) -> Dict[str, SyncState]:
        return self._load_all()
