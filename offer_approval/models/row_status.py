from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config_models import StatusVocabulary

"""RowStatus enum and StatusDecision result type.

State transitions: blank -> draft -> pending -> (approved_original | approved_new | rejected)
-> revised_by_ae -> pending ...

The enum values double as attribute names on StatusVocabulary, which holds
the text actually stored in the sheet.
"""

__all__ = [
    "FINALIZED_STATUSES",
    "RowStatus",
    "StatusDecision",
]


class RowStatus(Enum):
    """Approval status of one offer line.

    - BLANK: no status (empty row or row emptied by paste/delete)
    - DRAFT: row has a model but required data is missing or was just edited
    - PENDING: complete row waiting for an approver
    - APPROVED_ORIGINAL / APPROVED_NEW / REJECTED: closed out by an approver
    - REVISED_BY_AE: a finalized row whose key data was changed afterwards
    """
    BLANK = "blank"
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED_ORIGINAL = "approved_original"
    APPROVED_NEW = "approved_new"
    REJECTED = "rejected"
    REVISED_BY_AE = "revised_by_ae"

    @property
    def is_finalized(self) -> bool:
        return self in FINALIZED_STATUSES


FINALIZED_STATUSES = frozenset(
    {RowStatus.APPROVED_ORIGINAL, RowStatus.APPROVED_NEW, RowStatus.REJECTED}
)


@dataclass(frozen=True)
class StatusDecision:
    """Outcome of the status engine for one row.

    Exactly one of the two variants holds:
    - ``clear_row`` is True and ``status`` is None: the caller must wipe the row
    - ``status`` is a RowStatus and ``clear_row`` is False
    """
    status: RowStatus | None
    clear_row: bool = False

    def __post_init__(self) -> None:
        if self.clear_row == (self.status is not None):
            raise ValueError("StatusDecision needs either a status or clear_row, not both")

    @classmethod
    def clear(cls) -> StatusDecision:
        return cls(status=None, clear_row=True)

    @classmethod
    def of(cls, status: RowStatus) -> StatusDecision:
        return cls(status=status)

    def to_cell(self, vocabulary: StatusVocabulary) -> str:
        """Text to store in the status column ("" for a cleared row)."""
        if self.status is None:
            return ""
        return vocabulary.text(self.status)

    def __str__(self) -> str:  # pragma: no cover (debug helper)
        return "CLEAR" if self.clear_row else str(self.status.value if self.status else "")
