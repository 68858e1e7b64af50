from __future__ import annotations

from offer_approval.models.bundle import BundleErrorCode
from offer_approval.models.config_models import FieldIndex
from offer_approval.models.row_data import RowData
from offer_approval.services.bundle_service import (
    bundle_key,
    find_all_bundle_errors,
    find_all_bundles,
    find_bundle_range,
    group_rows_by_bundle,
    validate_bundle,
)

FI = FieldIndex.default()


def test_bundle_key_normalises_cells():
    assert bundle_key(" 12 ") == "12"
    assert bundle_key(12.0) == "12"
    assert bundle_key(None) == ""
    assert bundle_key(float("nan")) == ""


def test_bundle_ids_are_case_sensitive(make_rows):
    rows = make_rows(("a", 1, 1), ("A", 1, 1))
    groups = group_rows_by_bundle(rows, FI, 1)
    assert set(groups) == {"a", "A"}


def test_numeric_and_text_ids_group_together(make_rows):
    rows = make_rows((5, 24, 1), ("5", 24, 1), (" 5", 24, 1))
    result = validate_bundle(rows, 5, FI, 1)
    assert result.is_valid is True
    assert (result.start_row, result.end_row) == (7, 9)


def test_unknown_bundle_is_valid_without_range(make_rows):
    rows = make_rows(("1", 24, 1), ("1", 24, 1))
    result = validate_bundle(rows, "404", FI, 1)
    assert result.is_valid is True
    assert result.start_row is None and result.end_row is None


def test_empty_bundle_id_is_valid_without_range(make_rows):
    result = validate_bundle(make_rows(("", 1, 1)), "  ", FI, 1)
    assert (result.is_valid, result.start_row, result.end_row) == (True, None, None)


def test_single_member_is_valid_and_not_a_bundle(make_rows):
    rows = make_rows(("1", 24, 1), ("2", 36, 3))
    result = validate_bundle(rows, "2", FI, 1)
    assert result.is_valid is True
    assert result.start_row == result.end_row == 8
    assert find_all_bundles(rows, FI, 1) == []


def test_gap_reports_min_and_max_rows(make_rows):
    rows = make_rows(("7", 24, 1), ("", "", ""), ("", "", ""), ("7", 24, 1))
    result = validate_bundle(rows, "7", FI, 1)
    assert result.is_valid is False
    assert result.error_code is BundleErrorCode.GAP_DETECTED
    assert (result.start_row, result.end_row) == (7, 10)
    assert "gap was detected for bundle #7" in result.error_message


def test_gap_is_reported_before_mismatch(make_rows):
    rows = make_rows(("7", 24, 1), ("", "", ""), ("7", 36, 2))
    assert validate_bundle(rows, "7", FI, 1).error_code is BundleErrorCode.GAP_DETECTED


def test_quantity_mismatch_carries_expected_values(make_rows):
    rows = make_rows(("3", 24, 5), ("3", 24, 5), ("3", 24, 6))
    result = validate_bundle(rows, "3", FI, 1)
    assert result.is_valid is False
    assert result.error_code is BundleErrorCode.MISMATCH
    assert result.expected == {"term": 24, "quantity": 5}
    assert "Row 9 has mismatched values" in result.error_message


def test_equal_values_in_different_types_match(make_rows):
    rows = make_rows(("3", 24, 5), ("3", "24", 5.0))
    assert validate_bundle(rows, "3", FI, 1).is_valid is True


def test_empty_term_and_quantity_are_homogeneous(make_rows):
    rows = make_rows(("3", "", ""), ("3", None, float("nan")))
    assert validate_bundle(rows, "3", FI, 1).is_valid is True


def test_member_order_follows_row_numbers_not_input_order(make_row):
    rows = [
        RowData(12, make_row(bundle_number="X", term=12, quantity=1)),
        RowData(11, make_row(bundle_number="X", term=12, quantity=1)),
    ]
    result = validate_bundle(rows, "X", FI, 1)
    assert (result.is_valid, result.start_row, result.end_row) == (True, 11, 12)


def test_find_all_bundles_sorted_by_start_row(make_rows):
    rows = make_rows(("B", 1, 1), ("B", 1, 1), ("A", 1, 1), ("A", 2, 1), ("C", 1, 1), ("", "", ""), ("C", 1, 1))
    scans = find_all_bundles(rows, FI, 1)
    assert [(s.bundle_id, s.start_row, s.end_row, s.is_valid) for s in scans] == [
        ("B", 7, 8, True),
        ("A", 9, 10, False),
        ("C", 11, 13, False),
    ]
    assert scans[1].error_code is BundleErrorCode.MISMATCH
    assert scans[2].error_code is BundleErrorCode.GAP_DETECTED


def test_find_all_bundle_errors_one_per_invalid_bundle(make_rows):
    rows = make_rows(("A", 1, 1), ("A", 2, 1), ("B", 1, 1), ("B", 1, 1))
    errors = find_all_bundle_errors(rows, FI, 1)
    assert len(errors) == 1
    assert errors[0].bundle_id == "A"
    assert errors[0].to_dict()["error_code"] == "MISMATCH"


def test_find_bundle_range_without_validation(make_rows):
    rows = make_rows(("Z", 1, 1), ("", "", ""), ("Z", 5, 5))
    assert find_bundle_range(rows, "Z", FI, 1) == (7, 9)
    assert find_bundle_range(rows, "nope", FI, 1) == (None, None)


def test_snapshot_is_not_mutated(make_rows):
    rows = make_rows(("A", 1, 1), ("A", 2, 1))
    before = [r.values for r in rows]
    find_all_bundles(rows, FI, 1)
    validate_bundle(rows, "A", FI, 1)
    assert [r.values for r in rows] == before
