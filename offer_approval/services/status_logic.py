from __future__ import annotations

import logging
import numbers
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..models.config_models import (
    EP_CAPEX,
    KEY_FIELDS,
    MODEL,
    QUANTITY,
    SALES_ASK_PRICE,
    STATUS,
    TELEKOM_CAPEX,
    TERM,
    FieldIndex,
    StatusVocabulary,
)
from ..models.row_status import RowStatus, StatusDecision
from .cell_values import RowShapeError, cell_text, get_numeric_value, is_blank, value_at

"""Row status state machine.

Three pure functions decide which status a row should carry after an edit:

- is_row_complete: are all required fields present (capex field by deal type)
- was_key_field_edited: did any trigger field change between two snapshots
- compute_new_status: transition rules first, then a completeness refinement

None of them mutate their inputs. They only raise RowShapeError when handed
something that is not a row at all.
"""

__all__ = [
    "RowShapeError",
    "TransitionOptions",
    "compute_new_status",
    "is_row_complete",
    "was_key_field_edited",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionOptions:
    """Per-call switches for compute_new_status.

    force_revision_of_finalized_items: treat every finalized row as revised,
    used by bulk recalculation passes (e.g. after the deal type changed).
    """
    force_revision_of_finalized_items: bool = False


def _field(row_values: Sequence[Any], field_index: FieldIndex, name: str, start_col: int) -> Any:
    return value_at(row_values, field_index.offset(name, start_col))


def is_row_complete(
    row_values: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
    is_telekom_deal: bool,
) -> bool:
    """Check whether a row holds every field required for "Pending Approval".

    Required: Model, Sales Ask Price, Quantity, Term and the capex column of the
    active deal type (Telekom Capex for Telekom deals, EP Capex otherwise).
    Numeric fields must coerce to a number > 0.
    """
    capex_field, capex_label = (TELEKOM_CAPEX, "Telekom Capex") if is_telekom_deal else (EP_CAPEX, "EP Capex")
    required: dict[str, Any] = {
        "Model": _field(row_values, field_index, MODEL, start_col),
        "Sales Ask Price": get_numeric_value(_field(row_values, field_index, SALES_ASK_PRICE, start_col)),
        "Quantity": get_numeric_value(_field(row_values, field_index, QUANTITY, start_col)),
        "Term": get_numeric_value(_field(row_values, field_index, TERM, start_col)),
        capex_label: get_numeric_value(
            _field(row_values, field_index, capex_field, start_col)
        ),
    }
    for name, value in required.items():
        if is_blank(value) or (isinstance(value, numbers.Real) and value <= 0):
            logger.debug("row incomplete: missing or invalid '%s' (value=%r)", name, value)
            return False
    return True


def was_key_field_edited(
    current_row: Sequence[Any],
    original_row: Sequence[Any],
    field_index: FieldIndex,
    start_col: int,
) -> bool:
    """Return True when any trigger field differs between the two snapshots."""
    for name in KEY_FIELDS:
        offset = field_index.offset(name, start_col)
        before = cell_text(value_at(original_row, offset))
        after = cell_text(value_at(current_row, offset))
        if before != after:
            logger.debug("key field '%s' changed: %r -> %r", name, before, after)
            return True
    return False


def compute_new_status(
    current_row: Sequence[Any],
    original_row: Sequence[Any],
    is_telekom_deal: bool,
    options: TransitionOptions | None,
    start_col: int,
    field_index: FieldIndex,
    vocabulary: StatusVocabulary | None = None,
) -> StatusDecision:
    """Decide the status a row should carry after an edit.

    Pass 1 (transition rules, first match wins):
      R1 model removed                                   -> clear the row
      R2 finalized and (key field edited or forced)      -> Revised by AE
      R3 key field edited or model newly entered         -> Draft
      otherwise                                          -> previous status
    Pass 2 (resting status from completeness, skipped after R1):
      complete:   Draft / blank are promoted to Pending Approval
      incomplete: a row with a model drops to Draft; a row without one is reset
                  to blank when its status changed and was not finalized

    Returns:
        StatusDecision.clear() for R1, otherwise StatusDecision.of(status)
    """
    options = options or TransitionOptions()
    vocabulary = vocabulary or StatusVocabulary()

    initial_status = vocabulary.parse(_field(original_row, field_index, STATUS, start_col))
    original_model = _field(original_row, field_index, MODEL, start_col)
    current_model = _field(current_row, field_index, MODEL, start_col)
    had_model = not is_blank(original_model)
    has_model = not is_blank(current_model)
    key_field_edited = was_key_field_edited(current_row, original_row, field_index, start_col)

    # Pass 1: transition rules
    new_status: RowStatus | None
    if had_model and not has_model:
        logger.debug("R1 model deleted -> clear row")
        new_status = None
    elif initial_status.is_finalized and (key_field_edited or options.force_revision_of_finalized_items):
        logger.debug("R2 finalized row revised (initial=%s)", initial_status.value)
        new_status = RowStatus.REVISED_BY_AE
    elif key_field_edited or (not had_model and has_model):
        logger.debug("R3 new row or key field edit -> draft")
        new_status = RowStatus.DRAFT
    else:
        new_status = initial_status

    if new_status is None:
        return StatusDecision.clear()

    # Pass 2: resting status from data completeness
    if is_row_complete(current_row, field_index, start_col, is_telekom_deal):
        if new_status in (RowStatus.DRAFT, RowStatus.BLANK):
            new_status = RowStatus.PENDING
    elif has_model:
        new_status = RowStatus.DRAFT
    elif new_status is not initial_status and not initial_status.is_finalized:
        # row emptied by paste/delete
        new_status = RowStatus.BLANK

    logger.debug("status %s -> %s", initial_status.value, new_status.value)
    return StatusDecision.of(new_status)
