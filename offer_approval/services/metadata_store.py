from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ..models.bundle import BundleDescriptor

"""Bundle descriptor store.

Descriptors are attached per row (every member row of a valid bundle carries
the same JSON payload), which lets a caller answer "which bundle is this row
in" with a single lookup. The store has last-write-wins semantics only; the
reconciler always rebuilds it completely.
"""

__all__ = [
    "BundleDescriptorStore",
    "InMemoryBundleDescriptorStore",
]

logger = logging.getLogger(__name__)


@runtime_checkable
class BundleDescriptorStore(Protocol):
    """Key-value store of bundle descriptors keyed by row number."""

    def set_range(self, descriptor: BundleDescriptor) -> None: ...

    def remove_range(self, start_row: int, end_row: int) -> None: ...

    def remove_bundle(self, bundle_id: str) -> None: ...

    def remove_all(self) -> None: ...

    def get_for_row(self, row_number: int) -> BundleDescriptor | None: ...


class InMemoryBundleDescriptorStore:
    """Row-keyed descriptor store holding JSON payloads in a dict."""

    def __init__(self) -> None:
        self._rows: dict[int, str] = {}

    def set_range(self, descriptor: BundleDescriptor) -> None:
        payload = descriptor.to_json()
        for row in range(descriptor.start_row, descriptor.end_row + 1):
            self._rows[row] = payload
        logger.debug(
            "descriptor set for bundle #%s rows %d-%d",
            descriptor.bundle_id, descriptor.start_row, descriptor.end_row,
        )

    def remove_range(self, start_row: int, end_row: int) -> None:
        for row in range(start_row, end_row + 1):
            self._rows.pop(row, None)

    def remove_bundle(self, bundle_id: str) -> None:
        """Drop every row carrying a descriptor of this bundle, wherever it sits."""
        stale = []
        for row in self._rows:
            d = self.get_for_row(row)
            if d is not None and d.bundle_id == bundle_id:
                stale.append(row)
        for row in stale:
            del self._rows[row]

    def remove_all(self) -> None:
        self._rows.clear()

    def get_for_row(self, row_number: int) -> BundleDescriptor | None:
        payload = self._rows.get(row_number)
        if payload is None:
            return None
        try:
            return BundleDescriptor.from_json(payload)
        except ValueError as e:
            logger.warning("unreadable bundle descriptor on row %d: %s", row_number, e)
            return None

    def descriptors(self) -> list[BundleDescriptor]:
        """Distinct descriptors currently stored, ordered by start row."""
        seen: dict[str, BundleDescriptor] = {}
        for row in sorted(self._rows):
            d = self.get_for_row(row)
            if d is not None and d.to_json() not in seen:
                seen[d.to_json()] = d
        return sorted(seen.values(), key=lambda d: d.start_row)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._rows)
