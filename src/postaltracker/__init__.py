"""Parcel tracking for Brazilian postal codes: normalizer, proxy and CLI."""

from .models import NormalizedEvent, TrackingRecord
from .normalizer import is_import_code, normalize, normalize_object
from .validation import is_valid_tracking_code

__version__ = "0.1.0"

__all__ = [
    "NormalizedEvent",
    "TrackingRecord",
    "is_import_code",
    "is_valid_tracking_code",
    "normalize",
    "normalize_object",
    "__version__",
]
