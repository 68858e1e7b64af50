from __future__ import annotations

import pytest

from offer_approval.models.config_models import FieldIndex, StatusVocabulary
from offer_approval.services.calculations import (
    compute_lrf,
    rental_price,
    update_calculations_for_row,
)

FI = FieldIndex.default()
VOCAB = StatusVocabulary()
LRF = FI.offset("lrf_preview", 1)
CV = FI.offset("contract_value_preview", 1)


def _calc(row, telekom=False):
    return update_calculations_for_row(row, FI, 1, VOCAB, telekom)


def test_previews_from_sales_ask_price(complete_row):
    out = _calc(complete_row(sales_ask_price=50, term=24, ep_capex=1000, quantity=10))
    assert out[LRF] == pytest.approx(1.2)
    assert out[CV] == 12000


def test_proposal_overrides_ask_price(complete_row):
    out = _calc(complete_row(approver_price_proposal=40))
    assert out[LRF] == pytest.approx(40 * 24 / 1000)


def test_approved_row_uses_finance_price(complete_row):
    row = complete_row(status=VOCAB.approved_new, approver_price_proposal=40, finance_approved_price=45)
    assert rental_price(row, FI, 1, VOCAB) == 45


def test_pending_row_ignores_finance_price(complete_row):
    row = complete_row(status=VOCAB.pending, finance_approved_price=45)
    assert rental_price(row, FI, 1, VOCAB) == 50


def test_telekom_deal_uses_telekom_capex(complete_row):
    out = _calc(complete_row(ep_capex=1000, telekom_capex=600), telekom=True)
    assert out[LRF] == pytest.approx(2.0)


@pytest.mark.parametrize("fields", [{"sales_ask_price": 0}, {"ep_capex": 0}, {"ep_capex": -1}])
def test_previews_blank_without_price_or_capex(complete_row, fields):
    out = _calc(complete_row(lrf_preview=9, contract_value_preview=9, **fields))
    assert out[LRF] == "" and out[CV] == ""


def test_contract_value_needs_quantity(complete_row):
    out = _calc(complete_row(quantity=""))
    assert out[LRF] == pytest.approx(1.2)
    assert out[CV] == ""


def test_zero_term_blanks_both_previews(complete_row):
    out = _calc(complete_row(term=0))
    assert out[LRF] == "" and out[CV] == ""


def test_input_row_is_not_mutated(complete_row):
    row = complete_row()
    _calc(row)
    assert row[LRF] == ""


def test_short_row_is_padded():
    out = _calc(["SKU"])
    assert len(out) == CV + 1


def test_compute_lrf():
    assert compute_lrf(50, 24, 1000) == pytest.approx(1.2)
    assert compute_lrf(0, 24, 1000) is None
    assert compute_lrf(50, 0, 1000) is None
    assert compute_lrf(50, 24, 0) is None
