from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from ..logging.activity_log import ActivityLogBuffer
from ..models.activity_record import StatusChangeRecord
from ..models.config_models import (
    APPROVAL_DATE,
    APPROVED_BY,
    APPROVER_ACTION,
    BUNDLE_NUMBER,
    FINANCE_APPROVED_PRICE,
    INDEX,
    MODEL,
    QUANTITY,
    STATUS,
    TERM,
    ApproverActions,
    FieldIndex,
    StatusVocabulary,
    WorkflowConfig,
)
from ..models.offer_sheet import OfferSheet
from ..models.processing_result import RecalculationResult
from ..models.row_status import RowStatus, StatusDecision
from .bundle_service import (
    bundle_key,
    find_all_bundle_errors,
    find_all_bundles,
    validate_bundle,
)
from .approval_workflow import (
    ApprovalOutcome,
    bulk_approve_row,
    process_approval_action,
    repair_finalized_row,
)
from .calculations import update_calculations_for_row
from .cell_values import cell_text, get_numeric_value, is_blank, value_at
from .progress import ProgressTracker
from .reconciler import BundleReconciler
from .status_logic import TransitionOptions, compute_new_status

"""Service orchestration for the offer approval workflow.

Glues the pure engines to an OfferSheet:

- process_row_edit: one edited row (index, previews, status, bundle integrity)
- apply_approver_action: one approver dropdown choice on one row
- recalculate_all_rows: bulk pass over every data row, e.g. after the deal
  type changed, followed by a full bundle metadata rebuild
- run_health_check: finalized rows without an approval date back to Pending
- approve_all_rows: bulk approval of every Pending/Revised row

All of them run inside the sheet's exclusive section and report status changes to an
optional ActivityLogBuffer.
"""

__all__ = [
    "ProcessingError",
    "apply_approver_action",
    "apply_status_decision",
    "approve_all_rows",
    "next_available_index",
    "process_row_edit",
    "recalculate_all_rows",
    "run_health_check",
]

logger = logging.getLogger(__name__)

# Status values after which the approver has to pick an action again
_RESET_ACTION_STATUSES = (RowStatus.DRAFT, RowStatus.PENDING, RowStatus.REVISED_BY_AE)


class ProcessingError(Exception):
    """Raised when a row cannot be processed at all (e.g. row out of range)."""


def next_available_index(rows: Sequence[Sequence[Any]], field_index: FieldIndex, start_col: int) -> int:
    """Next running index: highest numeric Index in the table + 1 (1 when none)."""
    offset = field_index.offset(INDEX, start_col)
    max_index: float = 0
    for values in rows:
        number = get_numeric_value(value_at(values, offset))
        if number > max_index:
            max_index = number
    return int(max_index) + 1


def apply_status_decision(
    values: Sequence[Any],
    original: Sequence[Any],
    decision: StatusDecision,
    field_index: FieldIndex,
    start_col: int,
    vocabulary: StatusVocabulary,
    actions: ApproverActions | None = None,
) -> list[Any]:
    """Write a StatusDecision into a copy of the row.

    - CLEAR wipes every cell of the row
    - a status change to Draft / Pending / Revised resets the approver action
    - leaving a finalized status wipes finance price, approved-by and date
    """
    actions = actions or ApproverActions()
    status = decision.status
    if status is None:
        return [""] * len(values)

    result = list(values)
    initial = vocabulary.parse(value_at(original, field_index.offset(STATUS, start_col)))
    if status is initial:
        return result

    result[field_index.offset(STATUS, start_col)] = vocabulary.text(status)
    if status in _RESET_ACTION_STATUSES:
        result[field_index.offset(APPROVER_ACTION, start_col)] = actions.none
    if initial.is_finalized and not status.is_finalized:
        for name in (FINANCE_APPROVED_PRICE, APPROVED_BY, APPROVAL_DATE):
            result[field_index.offset(name, start_col)] = ""
    return result


def _assign_defaults(
    values: list[Any],
    field_index: FieldIndex,
    start_col: int,
    actions: ApproverActions,
    next_index: int | None,
    rows_for_index: Sequence[Sequence[Any]],
) -> tuple[int | None, bool]:
    """Give a row with a Model its running index and default approver action.

    Returns the updated next index and whether an index was assigned.
    """
    if is_blank(value_at(values, field_index.offset(MODEL, start_col))):
        return next_index, False
    assigned = False
    index_offset = field_index.offset(INDEX, start_col)
    if is_blank(values[index_offset]):
        if next_index is None:
            next_index = next_available_index(rows_for_index, field_index, start_col)
        values[index_offset] = next_index
        next_index += 1
        assigned = True
    action_offset = field_index.offset(APPROVER_ACTION, start_col)
    if is_blank(values[action_offset]):
        values[action_offset] = actions.none
    return next_index, assigned


def _record_change(
    activity_log: ActivityLogBuffer | None,
    row_number: int,
    before: Sequence[Any],
    after: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    user: str,
) -> bool:
    """Append an activity record when the stored status text changed."""
    status_offset = field_index.offset(STATUS, start_col)
    old_text = cell_text(value_at(before, status_offset))
    new_text = cell_text(value_at(after, status_offset))
    if old_text == new_text:
        return False
    if activity_log is not None:
        model_offset = field_index.offset(MODEL, start_col)
        model = cell_text(value_at(after, model_offset)) or cell_text(value_at(before, model_offset))
        activity_log.append(StatusChangeRecord.create(row_number, model, old_text, new_text, user))
    return True


def _bundle_fields_changed(
    current: Sequence[Any], original: Sequence[Any], field_index: FieldIndex, start_col: int
) -> bool:
    for name in (BUNDLE_NUMBER, QUANTITY, TERM):
        offset = field_index.offset(name, start_col)
        if cell_text(value_at(current, offset)) != cell_text(value_at(original, offset)):
            return True
    return False


def _force_draft(
    sheet: OfferSheet,
    key: str,
    config: WorkflowConfig,
    activity_log: ActivityLogBuffer | None,
    user: str,
) -> None:
    """Set Draft on every member of a bundle; rows in a gap are not members."""
    fi, start_col = config.field_index, config.start_col
    bundle_offset = fi.offset(BUNDLE_NUMBER, start_col)
    for row in sheet.read_rows():
        if bundle_key(row.value(bundle_offset)) != key:
            continue
        row_number = row.row_number
        values = list(row.values)
        if is_blank(value_at(values, fi.offset(MODEL, start_col))):
            continue
        updated = apply_status_decision(
            values, values, StatusDecision.of(RowStatus.DRAFT), fi, start_col, config.statuses, config.actions
        )
        sheet.set_row_values(row_number, updated)
        _record_change(activity_log, row_number, values, updated, fi, start_col, user)


def process_row_edit(
    sheet: OfferSheet,
    row_number: int,
    original_values: Sequence[Any],
    is_telekom_deal: bool,
    config: WorkflowConfig,
    activity_log: ActivityLogBuffer | None = None,
    *,
    user: str = "",
    reconciler: BundleReconciler | None = None,
) -> StatusDecision:
    """Re-evaluate one row after a user edit.

    ``original_values`` is the row as it was before the edit; the edited
    values are read from the sheet. When Bundle/Term/Quantity changed the
    row's bundle is re-validated: members of an invalid bundle are forced to
    Draft (``enforce_bundle_integrity``) and bundle metadata is rebuilt.

    Raises:
        ProcessingError: row_number is not a data row
        SheetBusyError: the sheet is locked by another operation
    """
    fi, start_col = config.field_index, config.start_col
    with sheet.exclusive():
        try:
            values = sheet.row_values(row_number)
        except IndexError as e:
            raise ProcessingError(str(e)) from e

        _assign_defaults(values, fi, start_col, config.actions, None, sheet.snapshot())
        decision = compute_new_status(
            values, original_values, is_telekom_deal, TransitionOptions(), start_col, fi, config.statuses
        )
        updated = apply_status_decision(
            values, original_values, decision, fi, start_col, config.statuses, config.actions
        )
        if not decision.clear_row:
            updated = update_calculations_for_row(updated, fi, start_col, config.statuses, is_telekom_deal)
        sheet.set_row_values(row_number, updated)
        _record_change(activity_log, row_number, original_values, updated, fi, start_col, user)
        logger.debug("row %d: %s", row_number, decision)

        if _bundle_fields_changed(updated, original_values, fi, start_col):
            bundle_offset = fi.offset(BUNDLE_NUMBER, start_col)
            keys = {
                bundle_key(value_at(updated, bundle_offset)),
                bundle_key(value_at(original_values, bundle_offset)),
            }
            rows = sheet.read_rows()
            for key in sorted(k for k in keys if k):
                result = validate_bundle(rows, key, fi, start_col)
                if result.is_valid:
                    continue
                logger.warning(result.error_message or f"bundle #{key} is invalid")
                if config.enforce_bundle_integrity:
                    _force_draft(sheet, key, config, activity_log, user)
            if reconciler is not None:
                reconciler.reconcile()
    return decision


def recalculate_all_rows(
    sheet: OfferSheet,
    config: WorkflowConfig,
    is_telekom_deal: bool,
    force_revision: bool = False,
    activity_log: ActivityLogBuffer | None = None,
    *,
    user: str = "",
    reconciler: BundleReconciler | None = None,
) -> RecalculationResult:
    """Recalculate every data row of the sheet.

    Per row: running index and default approver action for rows with a Model,
    status engine (``force_revision`` marks every finalized row Revised by
    AE), Draft on members of invalid bundles when ``enforce_bundle_integrity``
    is set, then LRF / contract value previews. Finally the bundle metadata
    is rebuilt through ``reconciler`` when given.
    """
    start_time = datetime.now(UTC)
    fi, start_col = config.field_index, config.start_col
    options = TransitionOptions(force_revision_of_finalized_items=force_revision)

    changed = cleared = indexed = 0
    with sheet.exclusive():
        before = sheet.snapshot()
        if not before:
            logger.info("no data rows found, nothing to recalculate")

        broken: set[str] = set()
        if config.enforce_bundle_integrity:
            broken = {e.bundle_id for e in find_all_bundle_errors(sheet.read_rows(), fi, start_col)}
            if broken:
                logger.info(f"{len(broken)} invalid bundle(s), members are kept in Draft")

        working = [list(values) for values in before]
        bundle_offset = fi.offset(BUNDLE_NUMBER, start_col)
        next_index: int | None = None

        with ProgressTracker(len(working), description="Recalculating rows") as progress:
            for i, values in enumerate(working):
                row_number = sheet.start_data_row + i
                original = before[i]

                next_index, assigned = _assign_defaults(values, fi, start_col, config.actions, next_index, working)
                if assigned:
                    indexed += 1

                decision = compute_new_status(
                    values, original, is_telekom_deal, options, start_col, fi, config.statuses
                )
                if (
                    not decision.clear_row
                    and bundle_key(value_at(values, bundle_offset)) in broken
                    and not is_blank(value_at(values, fi.offset(MODEL, start_col)))
                ):
                    decision = StatusDecision.of(RowStatus.DRAFT)

                updated = apply_status_decision(
                    values, original, decision, fi, start_col, config.statuses, config.actions
                )
                if decision.clear_row:
                    cleared += 1
                else:
                    updated = update_calculations_for_row(updated, fi, start_col, config.statuses, is_telekom_deal)
                working[i] = updated
                sheet.set_row_values(row_number, updated)

                if _record_change(activity_log, row_number, original, updated, fi, start_col, user):
                    changed += 1
                progress.advance()
                progress.set_postfix(changed=changed, cleared=cleared)

        rows = sheet.read_rows()
        if reconciler is not None:
            reconciler.reconcile()
        bundles = find_all_bundles(rows, fi, start_col)
        bundle_errors = find_all_bundle_errors(rows, fi, start_col)

    end_time = datetime.now(UTC)
    logger.info(f"recalculated {len(before)} row(s): {changed} status change(s), {cleared} cleared")
    return RecalculationResult(
        total_rows=len(before),
        changed_rows=changed,
        cleared_rows=cleared,
        indexed_rows=indexed,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        bundles=bundles,
        bundle_errors=bundle_errors,
    )


def apply_approver_action(
    sheet: OfferSheet,
    row_number: int,
    action: str,
    config: WorkflowConfig,
    approver: str,
    timestamp: datetime,
    is_telekom_deal: bool,
    activity_log: ActivityLogBuffer | None = None,
) -> ApprovalOutcome:
    """Apply an approver's dropdown choice to one row of the sheet.

    The row's bundle is validated first; previews are refreshed after an
    accepted action since the rental price follows the approved price.

    Raises:
        ProcessingError: row_number is not a data row
        SheetBusyError: the sheet is locked by another operation
    """
    fi, start_col = config.field_index, config.start_col
    with sheet.exclusive():
        try:
            values = sheet.row_values(row_number)
        except IndexError as e:
            raise ProcessingError(str(e)) from e

        bundle_validation = None
        key = bundle_key(value_at(values, fi.offset(BUNDLE_NUMBER, start_col)))
        if key:
            bundle_validation = validate_bundle(sheet.read_rows(), key, fi, start_col)

        outcome = process_approval_action(
            values,
            fi,
            start_col,
            action,
            config.statuses,
            approver,
            timestamp,
            bundle_validation,
            previous_action=value_at(values, fi.offset(APPROVER_ACTION, start_col)),
            actions=config.actions,
            row_number=row_number,
        )
        updated = list(outcome.values)
        if outcome.accepted:
            updated = update_calculations_for_row(updated, fi, start_col, config.statuses, is_telekom_deal)
        sheet.set_row_values(row_number, updated)
        _record_change(activity_log, row_number, values, updated, fi, start_col, approver)
    return outcome


def run_health_check(
    sheet: OfferSheet,
    config: WorkflowConfig,
    activity_log: ActivityLogBuffer | None = None,
    *,
    user: str = "",
) -> list[int]:
    """Send finalized rows that lack an approval date back to Pending Approval.

    Returns:
        The repaired row numbers
    """
    fi, start_col = config.field_index, config.start_col
    repaired: list[int] = []
    with sheet.exclusive():
        for row in sheet.read_rows():
            fixed = repair_finalized_row(row.values, fi, start_col, config.statuses, config.actions)
            if fixed is None:
                continue
            logger.debug("row %d: finalized without approval date", row.row_number)
            sheet.set_row_values(row.row_number, fixed)
            _record_change(activity_log, row.row_number, row.values, fixed, fi, start_col, user)
            repaired.append(row.row_number)

    if repaired:
        logger.info(f"health check: reverted {len(repaired)} row(s) with inconsistent status to '{config.statuses.pending}'")
    else:
        logger.info("health check: no inconsistencies found")
    return repaired


def approve_all_rows(
    sheet: OfferSheet,
    config: WorkflowConfig,
    approver: str,
    timestamp: datetime,
    is_telekom_deal: bool,
    activity_log: ActivityLogBuffer | None = None,
) -> list[int]:
    """Approve every Pending Approval / Revised by AE row in one pass.

    Draft, Rejected and already approved rows are left alone. Previews are
    refreshed on every approved row.

    Returns:
        The approved row numbers
    """
    fi, start_col = config.field_index, config.start_col
    approved: list[int] = []
    with sheet.exclusive():
        for row in sheet.read_rows():
            outcome = bulk_approve_row(
                row.values, fi, start_col, config.statuses, approver, timestamp, row_number=row.row_number
            )
            if not outcome.accepted:
                continue
            updated = update_calculations_for_row(
                list(outcome.values), fi, start_col, config.statuses, is_telekom_deal
            )
            sheet.set_row_values(row.row_number, updated)
            _record_change(activity_log, row.row_number, row.values, updated, fi, start_col, approver)
            approved.append(row.row_number)

    if approved:
        logger.info(f"bulk approval complete: {len(approved)} item(s) processed")
    else:
        vocab = config.statuses
        logger.info(f"no items with status '{vocab.pending}' or '{vocab.revised_by_ae}' were found to process")
    return approved
