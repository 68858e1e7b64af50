from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from offer_approval.services.cell_values import (
    RowShapeError,
    cell_text,
    get_numeric_value,
    is_blank,
    value_at,
)


@pytest.mark.parametrize("value", [None, "", 0, 0.0, float("nan"), False])
def test_blank_cells(value):
    assert is_blank(value) is True


@pytest.mark.parametrize("value", [" ", "x", 1, -2.5, True, datetime(2024, 1, 1)])
def test_non_blank_cells(value):
    assert is_blank(value) is False


@pytest.mark.parametrize(
    "value, expected",
    [
        (10, "10"),
        (10.0, "10"),
        (np.int64(24), "24"),
        (np.float64(24.0), "24"),
        (2.5, "2.5"),
        ("abc", "abc"),
        (None, ""),
        (True, "true"),
    ],
)
def test_cell_text(value, expected):
    assert cell_text(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (42, 42),
        (1.5, 1.5),
        ("1,299.50 €", 1299.5),
        ("$2,000", 2000.0),
        ("-3", -3.0),
        ("abc", 0),
        ("", 0),
        ("-", 0),
        (None, 0),
        (True, 0),
        (float("nan"), 0),
        (datetime(2024, 1, 1), 0),
    ],
)
def test_get_numeric_value(value, expected):
    assert get_numeric_value(value) == expected


def test_value_at_out_of_range_is_none():
    assert value_at(["a", "b"], 1) == "b"
    assert value_at(["a", "b"], 5) is None
    assert value_at(("a",), -1) is None


@pytest.mark.parametrize("row", ["abc", 12, None, {"a": 1}])
def test_value_at_rejects_non_sequences(row):
    with pytest.raises(RowShapeError):
        value_at(row, 0)
