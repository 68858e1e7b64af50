from __future__ import annotations

from ..models.processing_result import RecalculationResult

"""SUMMARY line rendering for recalculation runs.

Format:
SUMMARY rows={rows} changed={changed} cleared={cleared} bundles_valid={valid}
bundles_invalid={invalid} elapsed_sec={elapsed}
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Render seconds without scientific notation or a trailing ".0"."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(result: RecalculationResult) -> str:
    """Render the SUMMARY line of a recalculation.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> r = RecalculationResult(
        ...     total_rows=12, changed_rows=3, cleared_rows=1, indexed_rows=0,
        ...     start_time=t, end_time=t, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(r)
        'SUMMARY rows=12 changed=3 cleared=1 bundles_valid=0 bundles_invalid=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY rows={result.total_rows} "
        f"changed={result.changed_rows} "
        f"cleared={result.cleared_rows} "
        f"bundles_valid={result.valid_bundles} "
        f"bundles_invalid={result.invalid_bundles} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
