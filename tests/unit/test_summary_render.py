from __future__ import annotations

from datetime import UTC, datetime

import pytest

from offer_approval.models.bundle import BundleErrorCode, BundleScan
from offer_approval.models.processing_result import RecalculationResult
from offer_approval.services.summary import format_elapsed, render_summary_line


def _result(**overrides) -> RecalculationResult:
    t = datetime(2024, 1, 1, tzinfo=UTC)
    fields = dict(
        total_rows=5,
        changed_rows=2,
        cleared_rows=1,
        indexed_rows=0,
        start_time=t,
        end_time=t,
        elapsed_seconds=0.25,
    )
    fields.update(overrides)
    return RecalculationResult(**fields)


def test_summary_counts_bundles():
    result = _result(
        bundles=[
            BundleScan("A", 7, 8, True),
            BundleScan("B", 9, 11, False, BundleErrorCode.GAP_DETECTED),
            BundleScan("C", 12, 13, True),
        ]
    )
    assert render_summary_line(result) == (
        "SUMMARY rows=5 changed=2 cleared=1 bundles_valid=2 bundles_invalid=1 elapsed_sec=0.25"
    )


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0"), (3.0, "3"), (1.23456, "1.235"), (0.0001234, "0.000123"), (0.005, "0.005")],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected
