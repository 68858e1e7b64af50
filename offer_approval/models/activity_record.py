from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""StatusChangeRecord model for the activity log.

One record per row whose status text actually changed (including a row being
cleared). Serialised as one JSON object per line with a fixed key set.
"""

__all__ = [
    "StatusChangeRecord",
]


@dataclass(frozen=True)
class StatusChangeRecord:
    """Audit entry for a status change.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        row: 1-based sheet row
        model: Model cell text at the time of the change ("" when cleared)
        old_status: stored status text before the change
        new_status: stored status text after the change ("" = blank/cleared)
        user: who triggered the change (CLI user or approver)
    """
    timestamp: str  # ISO8601 UTC
    row: int
    model: str
    old_status: str
    new_status: str
    user: str

    @staticmethod
    def create(row: int, model: str, old_status: str, new_status: str, user: str) -> StatusChangeRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return StatusChangeRecord(
            timestamp=ts,
            row=row,
            model=model,
            old_status=old_status,
            new_status=new_status,
            user=user,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
