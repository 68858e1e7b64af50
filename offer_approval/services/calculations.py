from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.config_models import (
    APPROVER_PRICE_PROPOSAL,
    CONTRACT_VALUE_PREVIEW,
    EP_CAPEX,
    FINANCE_APPROVED_PRICE,
    LRF_PREVIEW,
    QUANTITY,
    SALES_ASK_PRICE,
    STATUS,
    TELEKOM_CAPEX,
    TERM,
    FieldIndex,
    StatusVocabulary,
)
from ..models.row_status import RowStatus
from .cell_values import get_numeric_value, value_at

"""LRF / contract value preview calculations.

rental price = Finance Approved Price once approved, otherwise the approver's
proposal when set, otherwise the AE sales ask price.

  LRF            = price * term / capex             (term > 0)
  contract value = price * term * quantity          (term > 0, quantity > 0)

Both previews are "" when price is 0 or capex <= 0.
"""

__all__ = [
    "compute_lrf",
    "rental_price",
    "update_calculations_for_row",
]

logger = logging.getLogger(__name__)

_APPROVED = (RowStatus.APPROVED_ORIGINAL, RowStatus.APPROVED_NEW)


def rental_price(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    vocabulary: StatusVocabulary,
) -> float:
    """Price the previews are calculated from."""
    status = vocabulary.parse(value_at(row_values, field_index.offset(STATUS, start_col)))
    if status in _APPROVED:
        return get_numeric_value(value_at(row_values, field_index.offset(FINANCE_APPROVED_PRICE, start_col)))
    proposal = get_numeric_value(value_at(row_values, field_index.offset(APPROVER_PRICE_PROPOSAL, start_col)))
    if proposal > 0:
        return proposal
    return get_numeric_value(value_at(row_values, field_index.offset(SALES_ASK_PRICE, start_col)))


def compute_lrf(price: float, term: float, capex: float) -> float | None:
    """LRF, or None when it is not defined for the inputs."""
    if price == 0 or capex <= 0 or term <= 0:
        return None
    return price * term / capex


def update_calculations_for_row(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    vocabulary: StatusVocabulary,
    is_telekom_deal: bool,
) -> list[Any]:
    """Return a copy of the row with LRF and contract value previews refreshed."""
    values = list(row_values)
    lrf_offset = field_index.offset(LRF_PREVIEW, start_col)
    cv_offset = field_index.offset(CONTRACT_VALUE_PREVIEW, start_col)
    width = max(lrf_offset, cv_offset) + 1
    if len(values) < width:
        values.extend([""] * (width - len(values)))

    price = rental_price(values, field_index, start_col, vocabulary)
    capex_field = TELEKOM_CAPEX if is_telekom_deal else EP_CAPEX
    capex = get_numeric_value(value_at(values, field_index.offset(capex_field, start_col)))

    if price == 0 or capex <= 0:
        values[lrf_offset] = ""
        values[cv_offset] = ""
        return values

    term = get_numeric_value(value_at(values, field_index.offset(TERM, start_col)))
    quantity = get_numeric_value(value_at(values, field_index.offset(QUANTITY, start_col)))
    lrf = compute_lrf(price, term, capex)
    values[lrf_offset] = "" if lrf is None else lrf
    values[cv_offset] = price * term * quantity if term > 0 and quantity > 0 else ""
    logger.debug("previews: price=%s capex=%s lrf=%r cv=%r", price, capex, values[lrf_offset], values[cv_offset])
    return values
