from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

import httpx


class TrackingValidationError(ValueError):
    """Raised for input rejected before any upstream call is made."""

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        codes: Optional[Sequence[object]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.codes: List[object] = list(codes or [])

    def to_dict(self) -> dict:
        out: dict = {"error": self.message}
        if self.detail:
            out["detalhe"] = self.detail
        if self.codes:
            out["codigos"] = self.codes
        return out


class InvalidTrackingCodeError(TrackingValidationError):
    """One or more codes do not match 2 letters + 9 digits + 2 letters."""


class EmptyBatchError(TrackingValidationError):
    """A batch request carried no codes (or not a list of codes)."""


class BatchTooLargeError(TrackingValidationError):
    """A batch request carried more codes than allowed."""


class MissingCredentialsError(RuntimeError):
    """Raised when the upstream API key is not configured."""


class UpstreamErrorKind(str, Enum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    GATEWAY = "gateway"


def upstream_status(exc: httpx.HTTPError) -> Optional[int]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def classify_upstream_error(exc: httpx.HTTPError) -> UpstreamErrorKind:
    """Map a failed upstream call to the category the proxy reports.

    Transport errors (timeouts, refused connections) have no status and are
    reported as gateway failures.
    """
    status = upstream_status(exc)
    if status in (401, 403):
        return UpstreamErrorKind.AUTH
    if status == 429:
        return UpstreamErrorKind.RATE_LIMIT
    if status == 404:
        return UpstreamErrorKind.NOT_FOUND
    return UpstreamErrorKind.GATEWAY


def upstream_message(exc: httpx.HTTPError) -> str:
    """Best-effort error message from the upstream body, else the exception text."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    return str(exc)
