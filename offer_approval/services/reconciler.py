from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..models.bundle import BundleDescriptor, BundleValidation
from ..models.config_models import FieldIndex
from ..models.row_data import RowData
from .bundle_service import bundle_key, find_all_bundles, validate_bundle
from .metadata_store import BundleDescriptorStore

"""Bundle metadata reconciler.

Rebuilds the authoritative set of {bundle_id, start_row, end_row} records from
raw rows. A full reconcile always throws away every stored descriptor first
and writes back only bundles that pass contiguity and homogeneity; invalid
bundles get no descriptor and are surfaced separately by the caller.

Phases of BundleReconciler.reconcile():
1. clear  - store.remove_all()
2. scan   - source.read_rows() + validation
3. write  - store.set_range() per valid bundle
"""

__all__ = [
    "BundleReconciler",
    "ReconciliationError",
    "TableSource",
    "reconcile_all_bundles",
]

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Raised when a collaborator fails during reconciliation.

    Attributes:
        phase: "clear", "scan" or "write"
        bundle_id: bundle being processed when the failure happened (or None)
    """

    def __init__(self, phase: str, message: str, bundle_id: str | None = None) -> None:
        self.phase = phase
        self.bundle_id = bundle_id
        where = f" bundle #{bundle_id}" if bundle_id else ""
        super().__init__(f"reconcile failed in {phase} phase{where}: {message}")


@runtime_checkable
class TableSource(Protocol):
    """Provides one consistent snapshot of all data rows in sheet order."""

    def read_rows(self) -> list[RowData]: ...


def reconcile_all_bundles(
    all_rows_in_order: Sequence[RowData],
    field_index: FieldIndex,
    start_col: int = 1,
) -> list[BundleDescriptor]:
    """Compute descriptors for every valid bundle (idempotent full rebuild)."""
    return [
        scan.descriptor()
        for scan in find_all_bundles(all_rows_in_order, field_index, start_col)
        if scan.is_valid
    ]


class BundleReconciler:
    """Keeps a BundleDescriptorStore in line with a TableSource."""

    def __init__(
        self,
        source: TableSource,
        store: BundleDescriptorStore,
        field_index: FieldIndex,
        start_col: int = 1,
    ) -> None:
        self.source = source
        self.store = store
        self.field_index = field_index
        self.start_col = start_col

    def _read_rows(self) -> list[RowData]:
        try:
            return self.source.read_rows()
        except Exception as e:
            raise ReconciliationError("scan", str(e)) from e

    def reconcile(self) -> list[BundleDescriptor]:
        """Full rebuild of the descriptor store.

        Returns:
            The descriptors written (valid bundles only)

        Raises:
            ReconciliationError: store or source failure; the store is left
                empty when the scan fails
        """
        try:
            self.store.remove_all()
        except Exception as e:
            raise ReconciliationError("clear", str(e)) from e

        rows = self._read_rows()
        descriptors = reconcile_all_bundles(rows, self.field_index, self.start_col)

        for descriptor in descriptors:
            try:
                self.store.set_range(descriptor)
            except Exception as e:
                raise ReconciliationError("write", str(e), bundle_id=descriptor.bundle_id) from e

        logger.info(f"bundle metadata rebuilt: {len(descriptors)} valid bundle(s)")
        return descriptors

    def revalidate_bundle(self, bundle_id: str) -> BundleValidation:
        """Re-validate a single bundle and refresh its descriptor.

        Every stored descriptor of this bundle is dropped first, including rows
        that have since left it; the descriptor is written back only when the
        bundle is valid and has 2+ members.
        """
        key = bundle_key(bundle_id)
        rows = self._read_rows()
        result = validate_bundle(rows, key, self.field_index, self.start_col)
        if not key:
            return result

        try:
            self.store.remove_bundle(key)
            if (
                result.is_valid
                and result.start_row is not None
                and result.end_row is not None
                and result.end_row > result.start_row
            ):
                self.store.set_range(BundleDescriptor(key, result.start_row, result.end_row))
        except Exception as e:
            raise ReconciliationError("write", str(e), bundle_id=key) from e
        return result

    def is_bundle_still_invalid(self, bundle_id: str) -> bool:
        """True while a previously reported bundle error has not been fixed."""
        rows = self._read_rows()
        return not validate_bundle(rows, bundle_id, self.field_index, self.start_col).is_valid
