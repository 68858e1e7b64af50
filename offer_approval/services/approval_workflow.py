from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models.bundle import BundleValidation
from ..models.config_models import (
    APPROVAL_DATE,
    APPROVED_BY,
    APPROVER_ACTION,
    APPROVER_COMMENTS,
    APPROVER_PRICE_PROPOSAL,
    FINANCE_APPROVED_PRICE,
    LRF_PREVIEW,
    SALES_ASK_PRICE,
    STATUS,
    ApproverActions,
    FieldIndex,
    StatusVocabulary,
)
from ..models.row_status import RowStatus
from .cell_values import get_numeric_value, is_blank, value_at

"""Approver action handling.

An approver picks one action per row from the dropdown. The action is applied
only when every guard passes; otherwise the row is left as it was and the
previous dropdown value is restored.

Guards, in order:
1. the row's bundle (if any) must be valid
2. status must be Pending Approval or Revised by AE
3. approvals need LRF > 0
4. Approve Original needs a sales ask price > 0, Approve New needs an approver
   price proposal > 0, Reject needs a comment

Two sheet-wide helpers work row by row without those guards:

- repair_finalized_row: a finalized row without an approval date goes back
  to Pending Approval (health check)
- bulk_approve_row: approve a Pending/Revised row with the approver proposal
  when there is one, otherwise with the original price
"""

__all__ = [
    "ApprovalOutcome",
    "bulk_approve_row",
    "process_approval_action",
    "repair_finalized_row",
]

logger = logging.getLogger(__name__)

_PROCESSABLE = (RowStatus.PENDING, RowStatus.REVISED_BY_AE)


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of one approver action.

    values is always the row to write back: the approved/rejected row when
    accepted, the original row with the previous action restored when blocked.
    """
    accepted: bool
    values: tuple[Any, ...]
    old_status: RowStatus
    new_status: RowStatus
    message: str = ""


def _row_label(row_number: int | None) -> str:
    return f"Row {row_number}" if row_number is not None else "Row"


def process_approval_action(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    action: str,
    vocabulary: StatusVocabulary,
    approver: str,
    timestamp: datetime,
    bundle_validation: BundleValidation | None = None,
    *,
    previous_action: Any = None,
    actions: ApproverActions | None = None,
    row_number: int | None = None,
) -> ApprovalOutcome:
    """Apply an approver action to a copy of the row.

    Args:
        bundle_validation: verdict for the row's bundle, None when the row is
            not part of a bundle
        previous_action: dropdown value to restore when the action is blocked
            (defaults to "Choose Action")
    """
    actions = actions or ApproverActions()
    values = list(row_values)

    def off(name: str) -> int:
        return field_index.offset(name, start_col)

    width = field_index.last_column - start_col + 1
    if len(values) < width:
        values.extend([""] * (width - len(values)))

    status = vocabulary.parse(value_at(values, off(STATUS)))
    label = _row_label(row_number)

    def blocked(message: str) -> ApprovalOutcome:
        logger.warning(f"{message} Reverting action.")
        values[off(APPROVER_ACTION)] = actions.none if previous_action is None else previous_action
        return ApprovalOutcome(False, tuple(values), status, status, message)

    if not action or action == actions.none:
        return ApprovalOutcome(False, tuple(values), status, status)

    known = (actions.approve_original, actions.approve_new, actions.reject)
    if action not in known:
        return blocked(f"{label}: Unknown approver action '{action}'.")

    if bundle_validation is not None and not bundle_validation.is_valid:
        return blocked(f"Action blocked for {label.lower()}. The bundle has an error that must be fixed first.")

    if status not in _PROCESSABLE:
        return blocked(
            f"{label} cannot be processed because its status is '{vocabulary.text(status)}'."
        )

    is_approval = action in (actions.approve_original, actions.approve_new)
    final_price: float | None = None
    if is_approval and get_numeric_value(value_at(values, off(LRF_PREVIEW))) <= 0:
        return blocked(f"{label}: Cannot approve with an invalid or missing LRF.")

    if action == actions.approve_original:
        final_price = get_numeric_value(value_at(values, off(SALES_ASK_PRICE)))
        if final_price <= 0:
            return blocked(f"{label}: Cannot '{action}' without a valid 'AE Sales Ask Price'.")
        new_status = RowStatus.APPROVED_ORIGINAL
    elif action == actions.approve_new:
        final_price = get_numeric_value(value_at(values, off(APPROVER_PRICE_PROPOSAL)))
        if final_price <= 0:
            return blocked(f"{label}: Cannot '{action}' without a valid 'Approver Price Proposal'.")
        new_status = RowStatus.APPROVED_NEW
    else:
        comment = value_at(values, off(APPROVER_COMMENTS))
        if is_blank(comment) or str(comment).strip() == "":
            return blocked(f"{label}: Cannot '{action}' without adding a comment.")
        new_status = RowStatus.REJECTED

    values[off(APPROVER_ACTION)] = action
    values[off(STATUS)] = vocabulary.text(new_status)
    values[off(APPROVED_BY)] = approver
    values[off(APPROVAL_DATE)] = timestamp
    if final_price is not None:
        values[off(FINANCE_APPROVED_PRICE)] = final_price

    logger.info(f"{label}: {vocabulary.text(status)} -> {vocabulary.text(new_status)} by {approver}")
    return ApprovalOutcome(True, tuple(values), status, new_status)


def repair_finalized_row(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    vocabulary: StatusVocabulary,
    actions: ApproverActions | None = None,
) -> tuple[Any, ...] | None:
    """Repaired copy of a finalized row that lacks an approval date, else None.

    The row goes back to Pending Approval with finance price, approved-by and
    the approver action cleared.
    """
    actions = actions or ApproverActions()
    values = list(row_values)

    def off(name: str) -> int:
        return field_index.offset(name, start_col)

    status = vocabulary.parse(value_at(values, off(STATUS)))
    if not status.is_finalized or not is_blank(value_at(values, off(APPROVAL_DATE))):
        return None

    width = field_index.last_column - start_col + 1
    if len(values) < width:
        values.extend([""] * (width - len(values)))
    values[off(STATUS)] = vocabulary.pending
    values[off(FINANCE_APPROVED_PRICE)] = ""
    values[off(APPROVED_BY)] = ""
    values[off(APPROVER_ACTION)] = actions.none
    return tuple(values)


def bulk_approve_row(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    vocabulary: StatusVocabulary,
    approver: str,
    timestamp: datetime,
    *,
    row_number: int | None = None,
) -> ApprovalOutcome:
    """Approve one row as part of a bulk approval.

    Rows not in Pending Approval / Revised by AE are returned unchanged with
    accepted=False. A positive approver price proposal wins over the sales
    ask price; the approver action cell is left as it is.
    """
    values = list(row_values)

    def off(name: str) -> int:
        return field_index.offset(name, start_col)

    status = vocabulary.parse(value_at(values, off(STATUS)))
    if status not in _PROCESSABLE:
        return ApprovalOutcome(False, tuple(values), status, status)

    width = field_index.last_column - start_col + 1
    if len(values) < width:
        values.extend([""] * (width - len(values)))

    proposal = get_numeric_value(value_at(values, off(APPROVER_PRICE_PROPOSAL)))
    if proposal > 0:
        new_status, final_price = RowStatus.APPROVED_NEW, proposal
    else:
        new_status = RowStatus.APPROVED_ORIGINAL
        final_price = get_numeric_value(value_at(values, off(SALES_ASK_PRICE)))

    values[off(STATUS)] = vocabulary.text(new_status)
    values[off(FINANCE_APPROVED_PRICE)] = final_price
    values[off(APPROVED_BY)] = approver
    values[off(APPROVAL_DATE)] = timestamp
    logger.debug(f"{_row_label(row_number)}: bulk {vocabulary.text(status)} -> {vocabulary.text(new_status)}")
    return ApprovalOutcome(True, tuple(values), status, new_status)
