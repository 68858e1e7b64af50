from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.activity_record import StatusChangeRecord

"""Status change activity log.

- JSON Lines, fixed key set (see StatusChangeRecord)
- one file per run: ``logs/status-changes-YYYYMMDD-HHMMSS.log`` (UTC)
- records are buffered and appended on flush(); nothing is written for a run
  without changes
"""

__all__ = [
    "ActivityLogBuffer",
    "StatusChangeRecord",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ActivityLogBuffer:
    """In-memory buffer of status changes. flush() appends them as JSON Lines."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[StatusChangeRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            logs_dir = self._logs_dir if self._logs_dir is not None else LOGS_DIR
            logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = logs_dir / f"status-changes-{stamp}.log"
        return self._file_path

    def append(self, record: StatusChangeRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> list[StatusChangeRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when empty."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
