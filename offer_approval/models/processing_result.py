from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .bundle import BundleError, BundleScan

"""Result models for bulk recalculation runs.

RecalculationResult carries every counter the SUMMARY line needs plus the
bundle findings of the final reconcile pass.
"""

__all__ = [
    "RecalculationResult",
]


@dataclass(frozen=True)
class RecalculationResult:
    """Aggregated outcome of recalculate_all_rows."""
    total_rows: int  # 走査したデータ行数
    changed_rows: int  # ステータス文字列が変わった行数
    cleared_rows: int  # Model 削除でクリアした行数
    indexed_rows: int  # 新しく Index を振った行数
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    bundles: list[BundleScan] = field(default_factory=list)
    bundle_errors: list[BundleError] = field(default_factory=list)

    @property
    def valid_bundles(self) -> int:
        return sum(1 for b in self.bundles if b.is_valid)

    @property
    def invalid_bundles(self) -> int:
        return sum(1 for b in self.bundles if not b.is_valid)
