"""Validate codes, call the carrier and normalize what comes back."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import httpx

from .client import CarrierClient
from .models import TrackingRecord
from .normalizer import normalize, upstream_objects
from .validation import validate_batch, validate_tracking_code

logger = logging.getLogger(__name__)


async def track(
    code: Any,
    *,
    carrier: Optional[CarrierClient] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[TrackingRecord]:
    """Track one code. Returns None when the carrier knows no such object."""
    code = validate_tracking_code(code)
    carrier = carrier or CarrierClient()
    payload = await carrier.fetch_async(code, client=client)
    record = normalize(upstream_objects(payload))
    if record is None:
        logger.info("%s: no object returned", code)
    return record


async def track_batch(
    codes: Any,
    *,
    carrier: Optional[CarrierClient] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Optional[TrackingRecord]]:
    """Track up to MAX_BATCH_SIZE codes concurrently.

    Any failed upstream call fails the whole batch. Results keep the input
    order; a code the carrier does not know yields None in its slot.
    """
    codes = validate_batch(codes)
    carrier = carrier or CarrierClient()
    payloads = await asyncio.gather(
        *(carrier.fetch_async(c, client=client) for c in codes)
    )
    results: List[Optional[TrackingRecord]] = []
    for payload in payloads:
        objects = upstream_objects(payload)
        results.append(normalize(objects[:1]))
    logger.info("batch of %d codes tracked", len(codes))
    return results


def track_sync(code: Any, *, carrier: Optional[CarrierClient] = None) -> Optional[TrackingRecord]:
    """Blocking variant of track() for scripts and the CLI."""
    code = validate_tracking_code(code)
    carrier = carrier or CarrierClient()
    return normalize(upstream_objects(carrier.fetch(code)))
