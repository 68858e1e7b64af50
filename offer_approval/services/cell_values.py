from __future__ import annotations

import math
import numbers
import re
from collections.abc import Sequence
from typing import Any

"""Cell value helpers shared by the status and bundle engines.

Sheet cells arrive raw: str, int/float (numpy scalars via pandas), None, NaN
for empty cells read by pandas, bool, datetime. These helpers give one
consistent notion of "blank", "text" and "number" over all of them.
"""

__all__ = [
    "RowShapeError",
    "cell_text",
    "get_numeric_value",
    "is_blank",
    "value_at",
]

_CURRENCY_CHARS = re.compile(r"[€$]")
_NUMERIC_TEXT = re.compile(r"^-?\d*\.?\d*$")


class RowShapeError(Exception):
    """Raised when row values are not a sequence of cells."""


def is_blank(value: Any) -> bool:
    """True for None, NaN, empty string, 0 and False (falsy cells)."""
    if value is None:
        return True
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return value == 0 or math.isnan(value)
    if isinstance(value, str):
        return value == ""
    try:
        return not bool(value)
    except (TypeError, ValueError):
        # pandas NA refuses truth tests
        return True


def cell_text(value: Any) -> str:
    """Render a cell as comparable text.

    Blank cells render as "", integral floats without a trailing ".0" (so a
    quantity read as 10.0 compares equal to "10").
    """
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        f = float(value)
        if math.isfinite(f) and f.is_integer():
            return str(int(f))
        return repr(f)
    return str(value)


def get_numeric_value(value: Any) -> float:
    """Coerce a cell into a number; anything unparseable becomes 0.

    Numbers pass through (NaN -> 0). Strings may carry a currency sign and
    thousands separators ("1,299.00 €"). Booleans and other types are 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, numbers.Real):
        f = float(value)
        return 0 if math.isnan(f) else value
    if not isinstance(value, str) or value.strip() == "":
        return 0
    number_string = _CURRENCY_CHARS.sub("", value).strip()
    number_string = number_string.replace(",", "")
    if not _NUMERIC_TEXT.match(number_string):
        return 0
    try:
        return float(number_string)
    except ValueError:
        # "", "-", "." pass the pattern but are not numbers
        return 0


def value_at(row_values: Sequence[Any], offset: int) -> Any:
    """Value at an array offset; None when out of range.

    Raises:
        RowShapeError: row_values is not a list/tuple-like sequence
    """
    if isinstance(row_values, (str, bytes)) or not isinstance(row_values, Sequence):
        raise RowShapeError(
            f"row values must be a sequence, got {type(row_values).__name__}"
        )
    if 0 <= offset < len(row_values):
        return row_values[offset]
    return None
