from __future__ import annotations

from datetime import datetime
from typing import Optional, Iterable
import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)


def parse_dt_iso(s: Optional[str]) -> Optional[datetime]:
    """Parse the naive ISO timestamps produced by the normalizer.

    Supports:
    - 2026-02-19T11:22:32 (event timestamps)
    - 2026-02-19 (expected delivery dates) -> midnight
    Returns None if parsing fails.
    """
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.strip())
    except ValueError:
        for fmt in ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
            try:
                return datetime.strptime(s, fmt)
            except ValueError:
                continue
    return None


def format_datetime(s: str) -> str:
    """'2024-01-15T14:30:00' -> '15/01/2024 at 14:30'; unparseable input is returned as-is."""
    dt = parse_dt_iso(s)
    if dt is None:
        return s or ""
    return f"{dt:%d/%m/%Y} at {dt:%H:%M}"


def format_date(s: Optional[str]) -> str:
    """'2024-01-15' -> '15/01/2024'."""
    dt = parse_dt_iso(s)
    if dt is None:
        return s or ""
    return f"{dt:%d/%m/%Y}"


def relative_time(s: Optional[str], *, now: Optional[datetime] = None) -> str:
    """Coarse 'time ago' label: just now, 5 min ago, 3h ago, yesterday, 4 days ago."""
    dt = parse_dt_iso(s)
    if dt is None:
        return ""
    now = now or datetime.now(dt.tzinfo)
    seconds = (now - dt).total_seconds()

    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "yesterday"
    return f"{days} days ago"


def get_with_retries(
    url: str,
    *,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = 20.0,
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    status_forcelist: Iterable[int] = (500, 502, 503, 504),
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Response:
    """HTTP GET with simple retries for transient errors."""
    attempt = 0
    last_exc: Optional[Exception] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            with httpx.Client(timeout=timeout, transport=transport) as client:
                resp = client.get(url, params=params, headers=headers)
                if resp.status_code in status_forcelist and attempt < max_attempts:
                    logger.warning("GET %s -> %s, retrying (attempt %d)", url, resp.status_code, attempt)
                    time.sleep(backoff_base * (2 ** (attempt - 1)))
                    continue
                resp.raise_for_status()
                return resp
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            last_exc = e
            if attempt < max_attempts:
                logger.warning("GET %s failed: %s, retrying (attempt %d)", url, e, attempt)
                time.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            raise
    assert last_exc is not None
    raise last_exc


async def async_get_with_retries(
    url: str,
    *,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = 20.0,
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    status_forcelist: Iterable[int] = (500, 502, 503, 504),
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """Async HTTP GET with simple retries for transient errors."""
    attempt = 0
    last_exc: Optional[Exception] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=timeout) as ac:
                    resp = await ac.get(url, params=params, headers=headers)
            else:
                resp = await client.get(url, params=params, headers=headers, timeout=timeout)
            if resp.status_code in status_forcelist and attempt < max_attempts:
                logger.warning("GET %s -> %s, retrying (attempt %d)", url, resp.status_code, attempt)
                await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            last_exc = e
            if attempt < max_attempts:
                logger.warning("GET %s failed: %s, retrying (attempt %d)", url, e, attempt)
                await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            raise
    assert last_exc is not None
    raise last_exc
