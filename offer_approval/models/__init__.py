"""Domain models for the offer approval workflow.

This package contains the configuration objects, row and status types, bundle
verdicts and the in-memory offer table used throughout the application.
"""

from .activity_record import StatusChangeRecord
from .bundle import BundleDescriptor, BundleError, BundleErrorCode, BundleScan, BundleValidation
from .config_models import ApproverActions, FieldIndex, StatusVocabulary, WorkflowConfig
from .offer_sheet import OfferSheet, SheetBusyError
from .processing_result import RecalculationResult
from .row_data import RowData
from .row_status import RowStatus, StatusDecision

__all__ = [
    # Configuration models
    "ApproverActions",
    "FieldIndex",
    "StatusVocabulary",
    "WorkflowConfig",
    # Row & status models
    "RowData",
    "RowStatus",
    "StatusDecision",
    # Bundle models
    "BundleDescriptor",
    "BundleError",
    "BundleErrorCode",
    "BundleScan",
    "BundleValidation",
    # Sheet & results
    "OfferSheet",
    "RecalculationResult",
    "SheetBusyError",
    "StatusChangeRecord",
]
