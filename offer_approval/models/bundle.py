from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

"""Bundle domain models.

BundleDescriptor is the structural metadata stored per bundle row
({bundle_id, start_row, end_row}); BundleValidation / BundleScan / BundleError
are verdicts produced by the grouping engine.
"""

__all__ = [
    "BundleDescriptor",
    "BundleError",
    "BundleErrorCode",
    "BundleScan",
    "BundleValidation",
]


class BundleErrorCode(Enum):
    GAP_DETECTED = "GAP_DETECTED"
    MISMATCH = "MISMATCH"


@dataclass(frozen=True)
class BundleDescriptor:
    """Row range of a valid bundle."""
    bundle_id: str
    start_row: int
    end_row: int

    def contains(self, row_number: int) -> bool:
        return self.start_row <= row_number <= self.end_row

    def to_json(self) -> str:
        return json.dumps(
            {"bundleId": self.bundle_id, "startRow": self.start_row, "endRow": self.end_row},
            ensure_ascii=False,
        )

    @staticmethod
    def from_json(text: str) -> BundleDescriptor:
        """Parse a stored descriptor.

        Raises:
            ValueError: text is not a JSON object with bundleId/startRow/endRow
        """
        try:
            data = json.loads(text)
            return BundleDescriptor(
                bundle_id=str(data["bundleId"]),
                start_row=int(data["startRow"]),
                end_row=int(data["endRow"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"invalid bundle descriptor: {text!r}") from e


@dataclass(frozen=True)
class BundleValidation:
    """Verdict for one bundle id.

    start_row / end_row are the sorted min/max member rows even for invalid
    bundles, and None when no row carries the id.
    """
    is_valid: bool
    start_row: int | None
    end_row: int | None
    error_code: BundleErrorCode | None = None
    error_message: str | None = None
    expected: dict[str, Any] | None = None  # {"term": ..., "quantity": ...} on MISMATCH


@dataclass(frozen=True)
class BundleScan:
    """One group found by a full scan (size > 1)."""
    bundle_id: str
    start_row: int
    end_row: int
    is_valid: bool
    error_code: BundleErrorCode | None = None

    def descriptor(self) -> BundleDescriptor:
        return BundleDescriptor(self.bundle_id, self.start_row, self.end_row)


@dataclass(frozen=True)
class BundleError:
    """User-facing bundle problem found by a full scan."""
    bundle_id: str
    error_code: BundleErrorCode
    error_message: str
    expected: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["error_code"] = self.error_code.value
        return data
