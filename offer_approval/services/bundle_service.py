from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.bundle import BundleError, BundleErrorCode, BundleScan, BundleValidation
from ..models.config_models import BUNDLE_NUMBER, QUANTITY, TERM, FieldIndex
from ..models.row_data import RowData
from .cell_values import cell_text

"""Bundle grouping & validation engine.

Rows sharing a (trimmed, case-sensitive) bundle number form a group. A group
of two or more rows is a bundle; it is valid when its members sit in strictly
consecutive rows and all share the first member's Term and Quantity.

Every function works on an in-memory snapshot (rows in sheet order, each
carrying its own row number) and never touches the sheet.
"""

__all__ = [
    "bundle_key",
    "find_all_bundle_errors",
    "find_all_bundles",
    "find_bundle_range",
    "group_rows_by_bundle",
    "validate_bundle",
]

logger = logging.getLogger(__name__)


def bundle_key(value: Any) -> str:
    """Normalise a bundle-number cell into its grouping key ("" = no bundle)."""
    return cell_text(value).strip()


def group_rows_by_bundle(
    all_rows_in_order: Sequence[RowData],
    field_index: FieldIndex,
    start_col: int = 1,
) -> dict[str, list[RowData]]:
    """Group rows by bundle number, keeping first-appearance order of keys."""
    offset = field_index.offset(BUNDLE_NUMBER, start_col)
    groups: dict[str, list[RowData]] = {}
    for row in all_rows_in_order:
        key = bundle_key(row.value(offset))
        if key:
            groups.setdefault(key, []).append(row)
    return groups


def _evaluate_group(
    bundle_id: str,
    members: Sequence[RowData],
    field_index: FieldIndex,
    start_col: int,
) -> BundleValidation:
    """Contiguity then homogeneity check for a group of two or more rows."""
    ordered = sorted(members, key=lambda r: r.row_number)
    start_row = ordered[0].row_number
    end_row = ordered[-1].row_number

    for prev, cur in zip(ordered, ordered[1:]):
        if cur.row_number != prev.row_number + 1:
            return BundleValidation(
                is_valid=False,
                start_row=start_row,
                end_row=end_row,
                error_code=BundleErrorCode.GAP_DETECTED,
                error_message=(
                    f"Bundle items must be in consecutive rows. "
                    f"A gap was detected for bundle #{bundle_id}."
                ),
            )

    term_offset = field_index.offset(TERM, start_col)
    qty_offset = field_index.offset(QUANTITY, start_col)
    first_term = ordered[0].value(term_offset)
    first_qty = ordered[0].value(qty_offset)
    for row in ordered[1:]:
        if (
            cell_text(row.value(term_offset)) != cell_text(first_term)
            or cell_text(row.value(qty_offset)) != cell_text(first_qty)
        ):
            return BundleValidation(
                is_valid=False,
                start_row=start_row,
                end_row=end_row,
                error_code=BundleErrorCode.MISMATCH,
                error_message=(
                    f"All items in bundle #{bundle_id} must have the same Quantity and Term. "
                    f"Row {row.row_number} has mismatched values."
                ),
                expected={"term": first_term, "quantity": first_qty},
            )

    return BundleValidation(is_valid=True, start_row=start_row, end_row=end_row)


def validate_bundle(
    all_rows_in_order: Sequence[RowData],
    bundle_id: Any,
    field_index: FieldIndex,
    start_col: int = 1,
) -> BundleValidation:
    """Validate one bundle id against a full-table snapshot.

    - no row carries the id: valid, start_row/end_row None
    - a single row carries it: valid (not a bundle), start_row == end_row
    - two or more rows: contiguity, then Term/Quantity homogeneity
    """
    key = bundle_key(bundle_id)
    if not key:
        return BundleValidation(is_valid=True, start_row=None, end_row=None)

    offset = field_index.offset(BUNDLE_NUMBER, start_col)
    members = [row for row in all_rows_in_order if bundle_key(row.value(offset)) == key]
    logger.debug("bundle #%s: %d member row(s)", key, len(members))

    if not members:
        return BundleValidation(is_valid=True, start_row=None, end_row=None)
    if len(members) == 1:
        row_number = members[0].row_number
        return BundleValidation(is_valid=True, start_row=row_number, end_row=row_number)

    result = _evaluate_group(key, members, field_index, start_col)
    if not result.is_valid:
        logger.debug("bundle #%s invalid: %s", key, result.error_code.value if result.error_code else "")
    return result


def find_all_bundles(
    all_rows_in_order: Sequence[RowData],
    field_index: FieldIndex,
    start_col: int = 1,
) -> list[BundleScan]:
    """Scan every row and report each group of two or more rows, sorted by start row."""
    scans: list[BundleScan] = []
    for key, members in group_rows_by_bundle(all_rows_in_order, field_index, start_col).items():
        if len(members) <= 1:
            continue
        result = _evaluate_group(key, members, field_index, start_col)
        scans.append(
            BundleScan(
                bundle_id=key,
                start_row=result.start_row,  # type: ignore[arg-type]
                end_row=result.end_row,  # type: ignore[arg-type]
                is_valid=result.is_valid,
                error_code=result.error_code,
            )
        )
    scans.sort(key=lambda s: (s.start_row, s.bundle_id))
    logger.debug("full bundle scan: %d bundle(s)", len(scans))
    return scans


def find_all_bundle_errors(
    all_rows_in_order: Sequence[RowData],
    field_index: FieldIndex,
    start_col: int = 1,
) -> list[BundleError]:
    """One user-facing error per invalid bundle (a gap wins over a mismatch)."""
    errors: list[BundleError] = []
    for key, members in group_rows_by_bundle(all_rows_in_order, field_index, start_col).items():
        if len(members) <= 1:
            continue
        result = _evaluate_group(key, members, field_index, start_col)
        if result.is_valid or result.error_code is None:
            continue
        errors.append(
            BundleError(
                bundle_id=key,
                error_code=result.error_code,
                error_message=result.error_message or "",
                expected=result.expected,
            )
        )
    return errors


def find_bundle_range(
    all_rows_in_order: Sequence[RowData],
    bundle_id: Any,
    field_index: FieldIndex,
    start_col: int = 1,
) -> tuple[int | None, int | None]:
    """First and last row carrying the bundle id, without validating anything."""
    key = bundle_key(bundle_id)
    if not key:
        return (None, None)
    offset = field_index.offset(BUNDLE_NUMBER, start_col)
    rows = sorted(r.row_number for r in all_rows_in_order if bundle_key(r.value(offset)) == key)
    if not rows:
        return (None, None)
    return (rows[0], rows[-1])
