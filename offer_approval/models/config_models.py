from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .row_status import RowStatus

"""Config dataclasses for the offer approval workflow.

This module defines the configuration objects handed to every core function:
the named-field to column map (FieldIndex), the stored status strings
(StatusVocabulary) and the root WorkflowConfig. Nothing here is a module level
singleton; callers build one object per table shape and pass it in.
"""

__all__ = [
    "FIELD_NAMES",
    "KEY_FIELDS",
    "ApproverActions",
    "FieldIndex",
    "StatusVocabulary",
    "WorkflowConfig",
    "column_index_from_letter",
]

# Named fields of one offer line. Values are looked up via FieldIndex.
SKU = "sku"
INDEX = "index"
BUNDLE_NUMBER = "bundle_number"
MODEL = "model"
EP_CAPEX = "ep_capex"
TELEKOM_CAPEX = "telekom_capex"
SALES_ASK_PRICE = "sales_ask_price"
QUANTITY = "quantity"
TERM = "term"
APPROVER_ACTION = "approver_action"
APPROVER_COMMENTS = "approver_comments"
APPROVER_PRICE_PROPOSAL = "approver_price_proposal"
LRF_PREVIEW = "lrf_preview"
CONTRACT_VALUE_PREVIEW = "contract_value_preview"
STATUS = "status"
FINANCE_APPROVED_PRICE = "finance_approved_price"
APPROVED_BY = "approved_by"
APPROVAL_DATE = "approval_date"

FIELD_NAMES: tuple[str, ...] = (
    SKU,
    INDEX,
    BUNDLE_NUMBER,
    MODEL,
    EP_CAPEX,
    TELEKOM_CAPEX,
    SALES_ASK_PRICE,
    QUANTITY,
    TERM,
    APPROVER_ACTION,
    APPROVER_COMMENTS,
    APPROVER_PRICE_PROPOSAL,
    LRF_PREVIEW,
    CONTRACT_VALUE_PREVIEW,
    STATUS,
    FINANCE_APPROVED_PRICE,
    APPROVED_BY,
    APPROVAL_DATE,
)

# Trigger fields for re-evaluation. Independent of the deal type.
KEY_FIELDS: tuple[str, ...] = (
    MODEL,
    SALES_ASK_PRICE,
    QUANTITY,
    TERM,
    EP_CAPEX,
    TELEKOM_CAPEX,
)

DEFAULT_COLUMNS: dict[str, str] = {
    SKU: "A",
    INDEX: "B",
    BUNDLE_NUMBER: "C",
    MODEL: "D",
    EP_CAPEX: "E",
    TELEKOM_CAPEX: "F",
    SALES_ASK_PRICE: "G",
    QUANTITY: "H",
    TERM: "I",
    APPROVER_ACTION: "J",
    APPROVER_COMMENTS: "K",
    APPROVER_PRICE_PROPOSAL: "L",
    LRF_PREVIEW: "M",
    CONTRACT_VALUE_PREVIEW: "N",
    STATUS: "O",
    FINANCE_APPROVED_PRICE: "P",
    APPROVED_BY: "Q",
    APPROVAL_DATE: "R",
}


def column_index_from_letter(letter: str) -> int:
    """Convert a column letter (A, Z, AA ...) to its 1-based index.

    Returns -1 for empty or non A-Z input.
    """
    if not letter or not isinstance(letter, str):
        return -1
    column = 0
    for ch in letter.strip().upper():
        value = ord(ch) - 64
        if value < 1 or value > 26:
            return -1
        column = column * 26 + value
    return column


@dataclass(frozen=True)
class FieldIndex:
    """Named field -> absolute 1-based column.

    Row value arrays are offset by a start column; ``offset()`` turns a field
    name into the array position for a given start column.
    """
    columns: Mapping[str, int]

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    @classmethod
    def from_letters(cls, letters: Mapping[str, str]) -> FieldIndex:
        columns: dict[str, int] = {}
        for name, letter in letters.items():
            idx = column_index_from_letter(letter)
            if idx < 1:
                raise ValueError(f"invalid column letter for '{name}': {letter!r}")
            columns[name] = idx
        return cls(columns)

    @classmethod
    def default(cls) -> FieldIndex:
        return cls.from_letters(DEFAULT_COLUMNS)

    def column(self, name: str) -> int:
        try:
            return self.columns[name]
        except KeyError:
            raise KeyError(f"field '{name}' is not mapped to a column") from None

    def offset(self, name: str, start_col: int) -> int:
        return self.column(name) - start_col

    @property
    def first_column(self) -> int:
        return min(self.columns.values())

    @property
    def last_column(self) -> int:
        return max(self.columns.values())

    @property
    def width(self) -> int:
        """Number of columns spanned from the first to the last mapped field."""
        return self.last_column - self.first_column + 1


@dataclass(frozen=True)
class StatusVocabulary:
    """Stored text for each RowStatus.

    parse() is lenient: unknown text maps to BLANK so the state machine stays
    total over whatever the sheet holds.
    """
    draft: str = "Draft"
    pending: str = "Pending Approval"
    approved_original: str = "Approved (Original)"
    approved_new: str = "Approved (New)"
    rejected: str = "Rejected"
    revised_by_ae: str = "Revised by AE"

    def text(self, status: RowStatus) -> str:
        if status is RowStatus.BLANK:
            return ""
        return getattr(self, status.value)

    def parse(self, value: Any) -> RowStatus:
        if value is None or not isinstance(value, str):
            return RowStatus.BLANK
        text = value.strip()
        if not text:
            return RowStatus.BLANK
        for status in RowStatus:
            if status is not RowStatus.BLANK and self.text(status) == text:
                return status
        return RowStatus.BLANK


@dataclass(frozen=True)
class ApproverActions:
    """Approver dropdown texts."""
    none: str = "Choose Action"
    approve_original: str = "Approve Original Price"
    approve_new: str = "Approve New Price"
    reject: str = "Reject with Comment"


@dataclass(frozen=True)
class WorkflowConfig:
    """Root configuration object for one offer sheet."""
    field_index: FieldIndex = field(default_factory=FieldIndex.default)
    start_data_row: int = 7
    sheet_name: str | None = None  # None -> first sheet of the workbook
    telekom_deal_cell: str | None = None  # A1 notation, e.g. "L1"
    statuses: StatusVocabulary = field(default_factory=StatusVocabulary)
    actions: ApproverActions = field(default_factory=ApproverActions)
    enforce_bundle_integrity: bool = True

    @property
    def start_col(self) -> int:
        """Absolute column represented by index 0 of every row array."""
        return self.field_index.first_column
