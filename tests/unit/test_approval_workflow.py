from __future__ import annotations

from datetime import datetime

import pytest

from offer_approval.models.bundle import BundleErrorCode, BundleValidation
from offer_approval.models.config_models import ApproverActions, FieldIndex, StatusVocabulary
from offer_approval.models.row_status import RowStatus
from offer_approval.services.approval_workflow import (
    bulk_approve_row,
    process_approval_action,
    repair_finalized_row,
)

FI = FieldIndex.default()
VOCAB = StatusVocabulary()
ACTIONS = ApproverActions()
WHEN = datetime(2024, 5, 1, 9, 30)


def _off(name: str) -> int:
    return FI.offset(name, 1)


def _apply(row, action, **kwargs):
    return process_approval_action(row, FI, 1, action, VOCAB, "finance@example.com", WHEN, row_number=9, **kwargs)


@pytest.fixture()
def pending_row(complete_row):
    def _make(**overrides):
        fields = {"status": VOCAB.pending, "lrf_preview": 1.2}
        fields.update(overrides)
        return complete_row(**fields)

    return _make


def test_approve_original_sets_finance_price(pending_row):
    outcome = _apply(pending_row(), ACTIONS.approve_original)
    assert outcome.accepted is True
    assert outcome.old_status is RowStatus.PENDING
    assert outcome.new_status is RowStatus.APPROVED_ORIGINAL
    values = outcome.values
    assert values[_off("status")] == VOCAB.approved_original
    assert values[_off("finance_approved_price")] == 50
    assert values[_off("approved_by")] == "finance@example.com"
    assert values[_off("approval_date")] == WHEN
    assert values[_off("approver_action")] == ACTIONS.approve_original


def test_approve_new_uses_proposal(pending_row):
    outcome = _apply(pending_row(approver_price_proposal=42), ACTIONS.approve_new)
    assert outcome.new_status is RowStatus.APPROVED_NEW
    assert outcome.values[_off("finance_approved_price")] == 42


def test_reject_with_comment(pending_row):
    outcome = _apply(pending_row(approver_comments="too cheap"), ACTIONS.reject)
    assert outcome.new_status is RowStatus.REJECTED
    assert outcome.values[_off("finance_approved_price")] == ""


def test_revised_rows_can_be_processed(pending_row):
    outcome = _apply(pending_row(status=VOCAB.revised_by_ae), ACTIONS.approve_original)
    assert outcome.accepted is True
    assert outcome.old_status is RowStatus.REVISED_BY_AE


def test_choose_action_is_a_no_op(pending_row):
    row = pending_row()
    outcome = _apply(row, ACTIONS.none)
    assert outcome.accepted is False
    assert outcome.message == ""
    assert list(outcome.values) == row


@pytest.mark.parametrize(
    "fields, action, fragment",
    [
        ({"status": VOCAB.draft}, ACTIONS.approve_original, "cannot be processed because its status is 'Draft'"),
        ({"status": VOCAB.approved_new}, ACTIONS.reject, "cannot be processed"),
        ({"lrf_preview": ""}, ACTIONS.approve_original, "invalid or missing LRF"),
        ({"lrf_preview": 0}, ACTIONS.approve_new, "invalid or missing LRF"),
        ({"sales_ask_price": 0}, ACTIONS.approve_original, "'AE Sales Ask Price'"),
        ({}, ACTIONS.approve_new, "'Approver Price Proposal'"),
        ({"approver_comments": "   "}, ACTIONS.reject, "without adding a comment"),
    ],
)
def test_guards_block_and_restore_previous_action(pending_row, fields, action, fragment):
    row = pending_row(**fields)
    outcome = _apply(row, action, previous_action="Reject with Comment")
    assert outcome.accepted is False
    assert fragment in outcome.message
    assert outcome.message.startswith("Row 9")
    assert outcome.values[_off("approver_action")] == "Reject with Comment"
    assert outcome.values[_off("status")] == row[_off("status")]
    assert outcome.new_status is outcome.old_status


def test_reject_without_lrf_is_allowed(pending_row):
    outcome = _apply(pending_row(lrf_preview="", approver_comments="no"), ACTIONS.reject)
    assert outcome.accepted is True


def test_blocked_action_defaults_to_choose_action(pending_row):
    outcome = _apply(pending_row(status=VOCAB.draft), ACTIONS.approve_original)
    assert outcome.values[_off("approver_action")] == ACTIONS.none


def test_invalid_bundle_blocks_before_status_check(pending_row):
    broken = BundleValidation(False, 7, 9, BundleErrorCode.GAP_DETECTED, "gap")
    outcome = _apply(pending_row(status=VOCAB.draft), ACTIONS.approve_original, bundle_validation=broken)
    assert "bundle has an error" in outcome.message


def test_valid_bundle_does_not_block(pending_row):
    ok = BundleValidation(True, 7, 9)
    assert _apply(pending_row(), ACTIONS.approve_original, bundle_validation=ok).accepted is True


def test_unknown_action_is_blocked(pending_row):
    outcome = _apply(pending_row(), "Approve Everything")
    assert outcome.accepted is False
    assert "Unknown approver action" in outcome.message


def test_blocked_action_is_logged(pending_row, caplog):
    with caplog.at_level("WARNING", logger="offer_approval"):
        _apply(pending_row(status=VOCAB.draft), ACTIONS.approve_original)
    assert "Reverting action." in caplog.text


def test_input_row_not_mutated(pending_row):
    row = pending_row()
    before = list(row)
    _apply(row, ACTIONS.approve_original)
    assert row == before


# --- health check / bulk approval --------------------------------------------

@pytest.mark.parametrize("status", [VOCAB.approved_original, VOCAB.approved_new, VOCAB.rejected])
def test_finalized_row_without_date_goes_back_to_pending(complete_row, status):
    row = complete_row(status=status, finance_approved_price=50, approved_by="cfo", approver_action=ACTIONS.reject)
    fixed = repair_finalized_row(row, FI, 1, VOCAB)
    assert fixed[_off("status")] == VOCAB.pending
    assert fixed[_off("finance_approved_price")] == ""
    assert fixed[_off("approved_by")] == ""
    assert fixed[_off("approver_action")] == ACTIONS.none
    assert fixed[_off("model")] == "Laptop X1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": VOCAB.approved_original, "approval_date": WHEN},
        {"status": VOCAB.pending},
        {"status": VOCAB.draft},
        {"status": ""},
    ],
)
def test_healthy_rows_are_not_repaired(complete_row, overrides):
    assert repair_finalized_row(complete_row(**overrides), FI, 1, VOCAB) is None


def test_bulk_approve_prefers_positive_proposal(pending_row):
    outcome = bulk_approve_row(pending_row(approver_price_proposal=42), FI, 1, VOCAB, "cfo", WHEN)
    assert outcome.accepted is True
    assert outcome.new_status is RowStatus.APPROVED_NEW
    values = outcome.values
    assert values[_off("finance_approved_price")] == 42
    assert values[_off("approved_by")] == "cfo"
    assert values[_off("approval_date")] == WHEN


@pytest.mark.parametrize("proposal", ["", 0, -5, "n/a"])
def test_bulk_approve_falls_back_to_original_price(pending_row, proposal):
    outcome = bulk_approve_row(
        pending_row(status=VOCAB.revised_by_ae, approver_price_proposal=proposal), FI, 1, VOCAB, "cfo", WHEN
    )
    assert outcome.old_status is RowStatus.REVISED_BY_AE
    assert outcome.new_status is RowStatus.APPROVED_ORIGINAL
    assert outcome.values[_off("finance_approved_price")] == 50


@pytest.mark.parametrize("status", [VOCAB.draft, VOCAB.rejected, VOCAB.approved_new, ""])
def test_bulk_approve_skips_other_statuses(pending_row, status):
    row = pending_row(status=status)
    outcome = bulk_approve_row(row, FI, 1, VOCAB, "cfo", WHEN)
    assert outcome.accepted is False
    assert outcome.values == tuple(row)
