from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model for the offer approval workflow.

RowData is one line of the offer sheet as seen at a single moment: its 1-based
sheet position and the raw cell values starting at the table's start column.
Positions are a snapshot fact; they shift on row insert/delete/move.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Logical representation of a single sheet row.

    ``values[0]`` corresponds to the table's start column. Values are kept raw
    (empty string, None and NaN are all possible).
    """
    row_number: int  # 1-based sheet row
    values: tuple[Any, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.values, tuple):
            object.__setattr__(self, "values", tuple(self.values))

    def value(self, offset: int) -> Any:
        """Value at an array offset, None when the row is shorter."""
        if 0 <= offset < len(self.values):
            return self.values[offset]
        return None
