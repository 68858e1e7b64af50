from __future__ import annotations

import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.config_models import WorkflowConfig, column_index_from_letter
from ..models.offer_sheet import OfferSheet
from ..services.cell_values import cell_text

"""Offer workbook reader.

Rows above ``start_data_row`` are the offer header block (title, customer,
deal flag ...) and are carried through untouched. Data rows are split into the
mapped column span and the cells around it (kept so a write-back does not
lose them); trailing empty rows are dropped.

Cells come back as plain Python values: empty cells become "", numpy scalars
become int/float, timestamps become datetime. Text such as "NA" is kept as
text (no default NaN strings).
"""

__all__ = [
    "OfferWorkbook",
    "SheetHeaderError",
    "read_deal_flag",
    "read_offer_workbook",
]

_A1 = re.compile(r"^([A-Za-z]{1,3})([1-9][0-9]*)$")


class SheetHeaderError(Exception):
    """Raised when the offer sheet is missing or its header block is incomplete."""


@dataclass
class OfferWorkbook:
    path: Path
    sheet_name: str
    sheet: OfferSheet
    is_telekom_deal: bool


def _plain(value: Any) -> Any:
    """pandas/numpy cell -> plain Python value ("" for empty)."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        # list-like cells refuse a scalar NA test
        return value
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        return value.item()
    return value


def read_deal_flag(df: pd.DataFrame, cell: str | None) -> bool:
    """True when the deal flag cell (A1 notation) holds "yes" (any case)."""
    if not cell:
        return False
    m = _A1.match(cell.strip())
    if m is None:
        raise SheetHeaderError(f"invalid deal flag cell: {cell!r}")
    col = column_index_from_letter(m.group(1)) - 1
    row = int(m.group(2)) - 1
    if row >= df.shape[0] or col >= df.shape[1]:
        return False
    return cell_text(_plain(df.iat[row, col])).strip().lower() == "yes"


def read_offer_workbook(path: Path, config: WorkflowConfig) -> OfferWorkbook:
    """Read the offer sheet of a workbook into an OfferSheet.

    Raises:
        SheetHeaderError: sheet not found, or fewer rows than the header block
    """
    # 書き戻し前にファイルハンドルを閉じる
    with pd.ExcelFile(path) as xls:
        names = [str(n) for n in xls.sheet_names]
        if config.sheet_name is not None:
            if config.sheet_name not in names:
                raise SheetHeaderError(f"sheet '{config.sheet_name}' not found in {path.name}")
            sheet_name = config.sheet_name
        else:
            if not names:
                raise SheetHeaderError(f"{path.name} has no sheets")
            sheet_name = names[0]

        # ヘッダなしで生読み ("NA" などの文字列はそのまま残す)
        df = xls.parse(sheet_name, header=None, keep_default_na=False)

    header_count = config.start_data_row - 1
    if df.shape[0] < header_count:
        raise SheetHeaderError(
            f"sheet '{sheet_name}' has {df.shape[0]} row(s), expected a header block of {header_count}"
        )

    header_rows = [[_plain(v) for v in row] for row in df.iloc[:header_count].itertuples(index=False)]

    first = config.start_col - 1
    last = config.field_index.last_column
    data_rows: list[list[Any]] = []
    unmapped: list[tuple[list[Any], list[Any]]] = []
    for row in df.iloc[header_count:].itertuples(index=False):
        cells = [_plain(v) for v in row]
        tail = cells[last:]
        while tail and tail[-1] == "":
            tail.pop()
        data_rows.append(cells[first:last])
        unmapped.append((cells[:first], tail))
    while data_rows and all(v == "" for v in data_rows[-1] + unmapped[-1][0] + unmapped[-1][1]):
        data_rows.pop()
        unmapped.pop()

    sheet = OfferSheet(config, rows=data_rows, header_rows=header_rows, unmapped=unmapped)
    return OfferWorkbook(
        path=path,
        sheet_name=sheet_name,
        sheet=sheet,
        is_telekom_deal=read_deal_flag(df, config.telekom_deal_cell),
    )
