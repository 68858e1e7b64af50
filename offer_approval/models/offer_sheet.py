from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from .config_models import WorkflowConfig
from .row_data import RowData

"""OfferSheet: in-memory offer table.

Holds the rows of one offer sheet (plus the header block above the first data
row) and plays the collaborator roles the core functions need: row snapshot
provider, full-table TableSource, and the exclusive section callers hold
around read-modify-write-reconcile sequences.
"""

__all__ = [
    "OfferSheet",
    "SheetBusyError",
]

DEFAULT_LOCK_TIMEOUT = 30.0


class SheetBusyError(Exception):
    """Raised when the exclusive section cannot be acquired in time."""


class OfferSheet:
    """Mutable table of offer rows addressed by 1-based sheet row number.

    Data row ``i`` (0-based) lives at sheet row ``start_data_row + i``; each row
    array starts at ``config.start_col`` and is padded to the mapped width.
    Cells outside the mapped span (left of ``start_col`` and right of the last
    mapped column) are kept per row in ``unmapped`` and move with their row.
    """

    def __init__(
        self,
        config: WorkflowConfig,
        rows: Sequence[Sequence[Any]] | None = None,
        header_rows: Sequence[Sequence[Any]] | None = None,
        unmapped: Sequence[tuple[Sequence[Any], Sequence[Any]]] | None = None,
    ) -> None:
        self.config = config
        self.width = config.field_index.last_column - config.start_col + 1
        self.rows: list[list[Any]] = [self._pad(r) for r in (rows or [])]
        # (leading cells, trailing cells) per data row
        self.unmapped: list[tuple[list[Any], list[Any]]] = [
            (list(lead), list(tail)) for lead, tail in (unmapped or [])
        ]
        if len(self.unmapped) > len(self.rows):
            raise ValueError(f"{len(self.unmapped)} unmapped entries for {len(self.rows)} row(s)")
        self.unmapped.extend(([], []) for _ in range(len(self.rows) - len(self.unmapped)))
        self.header_rows: list[list[Any]] = [list(r) for r in (header_rows or [])]
        self._lock = threading.Lock()

    def _pad(self, values: Sequence[Any]) -> list[Any]:
        row = list(values)[: self.width]
        if len(row) < self.width:
            row.extend([""] * (self.width - len(row)))
        return row

    # --- addressing -------------------------------------------------------
    @property
    def start_data_row(self) -> int:
        return self.config.start_data_row

    @property
    def start_col(self) -> int:
        return self.config.start_col

    @property
    def last_row(self) -> int:
        """Last data row number (start_data_row - 1 when the table is empty)."""
        return self.start_data_row + len(self.rows) - 1

    def row_numbers(self) -> range:
        return range(self.start_data_row, self.last_row + 1)

    def _position(self, row_number: int) -> int:
        pos = row_number - self.start_data_row
        if pos < 0 or pos >= len(self.rows):
            raise IndexError(
                f"row {row_number} outside data rows {self.start_data_row}-{self.last_row}"
            )
        return pos

    # --- reads ------------------------------------------------------------
    def row_values(self, row_number: int) -> list[Any]:
        """Copy of the row's current values."""
        return list(self.rows[self._position(row_number)])

    def get(self, row_number: int, field: str) -> Any:
        return self.rows[self._position(row_number)][self.config.field_index.offset(field, self.start_col)]

    def read_rows(self) -> list[RowData]:
        """Consistent snapshot of every data row."""
        return [
            RowData(row_number=self.start_data_row + i, values=tuple(values))
            for i, values in enumerate(self.rows)
        ]

    def snapshot(self) -> list[list[Any]]:
        """Consistent copy of all data rows as plain lists."""
        return [list(values) for values in self.rows]

    def unmapped_cells(self, row_number: int) -> tuple[list[Any], list[Any]]:
        """(leading, trailing) cells of a row outside the mapped column span."""
        lead, tail = self.unmapped[self._position(row_number)]
        return list(lead), list(tail)

    # --- writes -----------------------------------------------------------
    def set_row_values(self, row_number: int, values: Sequence[Any]) -> None:
        self.rows[self._position(row_number)] = self._pad(values)

    def set(self, row_number: int, field: str, value: Any) -> None:
        self.rows[self._position(row_number)][self.config.field_index.offset(field, self.start_col)] = value

    def append_row(self, values: Sequence[Any]) -> int:
        self.rows.append(self._pad(values))
        self.unmapped.append(([], []))
        return self.last_row

    def move_row(self, source_row: int, destination_row: int) -> None:
        """Move a row so that it ends up at ``destination_row``; rows in between shift."""
        src = self._position(source_row)
        dst = self._position(destination_row)
        if src == dst:
            return
        values = self.rows.pop(src)
        self.rows.insert(dst, values)
        self.unmapped.insert(dst, self.unmapped.pop(src))

    def save_state(self) -> tuple[list[list[Any]], list[tuple[list[Any], list[Any]]]]:
        """Copy of rows and unmapped cells for restore_state()."""
        return (
            [list(values) for values in self.rows],
            [(list(lead), list(tail)) for lead, tail in self.unmapped],
        )

    def restore_state(self, state: tuple[list[list[Any]], list[tuple[list[Any], list[Any]]]]) -> None:
        rows, unmapped = state
        self.rows = [list(values) for values in rows]
        self.unmapped = [(list(lead), list(tail)) for lead, tail in unmapped]

    # --- exclusive section ------------------------------------------------
    @contextmanager
    def exclusive(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[OfferSheet]:
        """Hold the table lock for a read-modify-write sequence.

        Raises:
            SheetBusyError: lock not acquired within ``timeout`` seconds
        """
        if not self._lock.acquire(timeout=timeout):
            raise SheetBusyError("The sheet is busy, please try again in a moment.")
        try:
            yield self
        finally:
            self._lock.release()
