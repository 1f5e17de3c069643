"""Tracking code validation shared by the HTTP proxy and the CLI."""

from __future__ import annotations

import re
from typing import Any, List

from .errors import BatchTooLargeError, EmptyBatchError, InvalidTrackingCodeError

# 2 letters + 9 digits + 2 letters, e.g. AA123456789BR
TRACKING_CODE_RE = re.compile(r"[A-Z]{2}[0-9]{9}[A-Z]{2}", re.IGNORECASE | re.ASCII)

MAX_BATCH_SIZE = 10

INVALID_CODE_MESSAGE = "Invalid tracking code."
INVALID_CODE_DETAIL = (
    "The code must have the format: 2 letters + 9 digits + 2 letters "
    "(e.g. AA123456789BR)"
)


def is_valid_tracking_code(code: Any) -> bool:
    if not isinstance(code, str):
        return False
    return TRACKING_CODE_RE.fullmatch(code) is not None


def normalize_tracking_code(code: str) -> str:
    return code.strip().upper()


def validate_tracking_code(code: Any) -> str:
    """Return the upper-cased code or raise InvalidTrackingCodeError."""
    if not isinstance(code, str) or not is_valid_tracking_code(code.strip()):
        raise InvalidTrackingCodeError(INVALID_CODE_MESSAGE, detail=INVALID_CODE_DETAIL)
    return normalize_tracking_code(code)


def validate_batch(codes: Any) -> List[str]:
    """Validate a batch of codes, reporting every invalid entry at once."""
    if not isinstance(codes, list) or not codes:
        raise EmptyBatchError(
            'Provide an array of codes in the body: { "codigos": ["AA123456789BR"] }'
        )
    if len(codes) > MAX_BATCH_SIZE:
        raise BatchTooLargeError(f"At most {MAX_BATCH_SIZE} codes per request.")

    invalid = [
        c for c in codes if not (isinstance(c, str) and is_valid_tracking_code(c.strip()))
    ]
    if invalid:
        raise InvalidTrackingCodeError("Invalid codes found.", codes=invalid)
    return [normalize_tracking_code(c) for c in codes]
