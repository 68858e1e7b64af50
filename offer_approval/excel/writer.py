from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.offer_sheet import OfferSheet

"""Offer workbook writer.

Writes the header block and the data rows back to one sheet with the
openpyxl engine. Other sheets of an existing workbook are kept.
"""

__all__ = [
    "sheet_to_frame",
    "write_offer_sheet",
]


def _cell(value: Any) -> Any:
    if value == "":
        return None
    # Excel は tz 付き datetime を扱えない
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def sheet_to_frame(sheet: OfferSheet) -> pd.DataFrame:
    """Full sheet grid (header block + data rows at their columns, unmapped cells included)."""
    grid: list[list[Any]] = [[_cell(v) for v in row] for row in sheet.header_rows]
    # 見出しブロックが短い場合は空行で埋める
    while len(grid) < sheet.start_data_row - 1:
        grid.append([])
    for row_number, values in zip(sheet.row_numbers(), sheet.snapshot()):
        lead, tail = sheet.unmapped_cells(row_number)
        lead = lead + [""] * (sheet.start_col - 1 - len(lead))
        grid.append([_cell(v) for v in lead + values + tail])
    width = max((len(r) for r in grid), default=0)
    return pd.DataFrame([r + [None] * (width - len(r)) for r in grid])


def write_offer_sheet(sheet: OfferSheet, path: Path, sheet_name: str) -> Path:
    """Write the sheet to ``path`` (replacing only that sheet when the file exists)."""
    df = sheet_to_frame(sheet)
    if path.exists():
        with pd.ExcelWriter(path, engine="openpyxl", mode="a", if_sheet_exists="replace") as writer:
            df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_excel(path, sheet_name=sheet_name, header=False, index=False, engine="openpyxl")
    return path
