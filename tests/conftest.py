# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from offer_approval.logging.init import reset_logging
from offer_approval.models.config_models import WorkflowConfig
from offer_approval.models.offer_sheet import OfferSheet
from offer_approval.models.row_data import RowData


@pytest.fixture(autouse=True)
def _clean_logging():
    # handler は setup 時の sys.stdout に束縛されるので毎回作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """sheet_name: Offer
start_data_row: 7
telekom_deal_cell: L1
enforce_bundle_integrity: true
columns:
  sku: A
  index: B
  bundle_number: C
  model: D
  ep_capex: E
  telekom_capex: F
  sales_ask_price: G
  quantity: H
  term: I
  approver_action: J
  approver_comments: K
  approver_price_proposal: L
  lrf_preview: M
  contract_value_preview: N
  status: O
  finance_approved_price: P
  approved_by: Q
  approval_date: R
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "workflow.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def config() -> WorkflowConfig:
    return WorkflowConfig()


@pytest.fixture()
def make_row(config: WorkflowConfig) -> Callable[..., list[Any]]:
    """Build one row array (columns A..R) from named fields."""
    width = config.field_index.last_column - config.start_col + 1

    def _make(**fields: Any) -> list[Any]:
        values: list[Any] = [""] * width
        for name, value in fields.items():
            values[config.field_index.offset(name, config.start_col)] = value
        return values

    return _make


@pytest.fixture()
def make_rows(config: WorkflowConfig, make_row) -> Callable[..., list[RowData]]:
    """RowData snapshot from (bundle, term, quantity) tuples, starting at start_data_row."""

    def _make(*specs: tuple[Any, Any, Any], start: int | None = None) -> list[RowData]:
        first = config.start_data_row if start is None else start
        return [
            RowData(first + i, make_row(bundle_number=b, term=t, quantity=q, model=f"M{i}"))
            for i, (b, t, q) in enumerate(specs)
        ]

    return _make


@pytest.fixture()
def complete_row(make_row) -> Callable[..., list[Any]]:
    """A row holding every field required for Pending Approval (EP deal)."""

    def _make(**overrides: Any) -> list[Any]:
        fields: dict[str, Any] = {
            "sku": "SKU-1",
            "model": "Laptop X1",
            "ep_capex": 1000,
            "telekom_capex": 900,
            "sales_ask_price": 50,
            "quantity": 10,
            "term": 24,
        }
        fields.update(overrides)
        return make_row(**fields)

    return _make


@pytest.fixture()
def offer_sheet(config: WorkflowConfig) -> Callable[..., OfferSheet]:
    def _make(rows: list[list[Any]]) -> OfferSheet:
        header = [["Offer"], [], [], [], [], ["SKU", "Index", "Bundle"]]
        return OfferSheet(config, rows=rows, header_rows=header)

    return _make


@pytest.fixture()
def write_workbook(temp_workdir: Path) -> Callable[..., Path]:
    """Write an offer workbook: 6 header rows, deal flag at L1, data from row 7."""

    def _write(rows: list[list[Any]], *, telekom: str = "No", name: str = "offer.xlsx") -> Path:
        header: list[list[Any]] = [[None] * 18 for _ in range(6)]
        header[0][0] = "Offer for ACME"
        header[0][10] = "Telekom Deal?"
        header[0][11] = telekom
        header[5][:4] = ["SKU", "Index", "Bundle", "Model"]
        grid = header + [[None if v == "" else v for v in r] for r in rows]
        path = temp_workdir / "data" / name
        pd.DataFrame(grid).to_excel(path, sheet_name="Offer", header=False, index=False, engine="openpyxl")
        return path

    return _write
