from __future__ import annotations

import logging
from typing import Any

from ..models.config_models import BUNDLE_NUMBER, QUANTITY, TERM
from ..models.offer_sheet import DEFAULT_LOCK_TIMEOUT, OfferSheet, SheetBusyError
from .bundle_service import bundle_key
from .reconciler import BundleReconciler, ReconciliationError

"""Bundle corrections.

User-confirmed repairs for bundles reported invalid by the grouping engine:

- apply_bundle_correction: force one Term/Quantity onto every member
- fix_bundle_gaps: move members directly below the first member
- dissolve_bundle: clear the bundle number from every member

Each runs inside the sheet's exclusive section and rebuilds bundle metadata
afterwards, so the descriptor store never lags behind the table.
"""

__all__ = [
    "CorrectionError",
    "SheetBusyError",
    "apply_bundle_correction",
    "dissolve_bundle",
    "fix_bundle_gaps",
]

logger = logging.getLogger(__name__)


class CorrectionError(Exception):
    """Raised when a bundle correction cannot be applied.

    Attributes:
        bundle_id: bundle that was being corrected
        start_row / end_row: member range at the time of failure (None if unknown)
    """

    def __init__(
        self,
        bundle_id: str,
        message: str,
        start_row: int | None = None,
        end_row: int | None = None,
    ) -> None:
        self.bundle_id = bundle_id
        self.start_row = start_row
        self.end_row = end_row
        where = f" (rows {start_row}-{end_row})" if start_row is not None else ""
        super().__init__(f"bundle #{bundle_id}{where}: {message}")


def _member_rows(sheet: OfferSheet, key: str) -> list[int]:
    offset = sheet.config.field_index.offset(BUNDLE_NUMBER, sheet.start_col)
    return [row.row_number for row in sheet.read_rows() if bundle_key(row.value(offset)) == key]


def _reconcile(reconciler: BundleReconciler, key: str, members: list[int]) -> None:
    try:
        reconciler.reconcile()
    except ReconciliationError as e:
        raise CorrectionError(key, str(e), members[0], members[-1]) from e


def apply_bundle_correction(
    sheet: OfferSheet,
    bundle_id: Any,
    term: Any,
    quantity: Any,
    reconciler: BundleReconciler,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> list[int]:
    """Set Term and Quantity on every member of the bundle.

    Returns:
        The member rows that were updated

    Raises:
        CorrectionError: no row carries the bundle id
        SheetBusyError: the sheet is locked by another operation
    """
    key = bundle_key(bundle_id)
    with sheet.exclusive(timeout):
        members = _member_rows(sheet, key) if key else []
        if not members:
            raise CorrectionError(key, "could not find the rows of this bundle")
        logger.info(f"applying Term={term}, Quantity={quantity} to bundle #{key} ({len(members)} row(s))")
        try:
            for row_number in members:
                sheet.set(row_number, TERM, term)
                sheet.set(row_number, QUANTITY, quantity)
        except (IndexError, KeyError) as e:
            raise CorrectionError(key, str(e), members[0], members[-1]) from e
        _reconcile(reconciler, key, members)
    return members


def fix_bundle_gaps(
    sheet: OfferSheet,
    bundle_id: Any,
    reconciler: BundleReconciler,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> list[tuple[int, int]]:
    """Make a bundle contiguous, anchored at its first member.

    Remaining members keep their relative order and end up in the rows directly
    below the anchor; rows that were in between shift down.

    Returns:
        (source_row, destination_row) per move actually performed
    """
    key = bundle_key(bundle_id)
    moves: list[tuple[int, int]] = []
    with sheet.exclusive(timeout):
        members = _member_rows(sheet, key) if key else []
        if len(members) <= 1:
            logger.info(f"bundle #{key} has {len(members)} row(s), nothing to re-order")
            return moves
        anchor = members[0]
        saved = sheet.save_state()
        try:
            # moving member k up only shifts rows above its old position,
            # so the later members keep their row numbers
            for k, source_row in enumerate(members[1:], start=1):
                destination_row = anchor + k
                if source_row != destination_row:
                    sheet.move_row(source_row, destination_row)
                    moves.append((source_row, destination_row))
        except IndexError as e:
            # 途中までの移動を戻して元の並びのままにする
            sheet.restore_state(saved)
            raise CorrectionError(key, str(e), members[0], members[-1]) from e
        logger.info(f"bundle #{key} re-ordered: {len(moves)} row(s) moved below row {anchor}")
        _reconcile(reconciler, key, [anchor, anchor + len(members) - 1])
    return moves


def dissolve_bundle(
    sheet: OfferSheet,
    bundle_id: Any,
    reconciler: BundleReconciler,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> list[int]:
    """Clear the bundle number from every member.

    Returns:
        The rows whose bundle number was cleared (empty when none carried it)
    """
    key = bundle_key(bundle_id)
    with sheet.exclusive(timeout):
        members = _member_rows(sheet, key) if key else []
        if not members:
            logger.info(f"could not find any items for bundle #{key}")
            return members
        for row_number in members:
            sheet.set(row_number, BUNDLE_NUMBER, "")
        logger.info(f"bundle #{key} dissolved ({len(members)} row(s))")
        _reconcile(reconciler, key, members)
    return members
