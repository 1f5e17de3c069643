"""Client for the carrier tracking API hosted on RapidAPI (PacoteVicio).

The API accepts a single tracking code per request and answers with one
object in the Correios SRO schema (see ``normalizer``).

API URL Format: https://{host}/correios?tracking_code={code} (GET)

Headers:
- X-RapidAPI-Key: required, account key
- X-RapidAPI-Host: required, must match the host

Error handling:
- 401/403: key invalid or not subscribed to the API
- 429: plan quota exceeded
- 404: unknown tracking code
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import MissingCredentialsError
from .utils import async_get_with_retries, get_with_retries

logger = logging.getLogger(__name__)


class CarrierClient:
    """Fetch raw tracking payloads, one code per call."""

    user_agent: str = "postaltracker/0.1"
    path: str = "/correios"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base

    @property
    def url(self) -> str:
        return f"{self.settings.base_url}{self.path}"

    def ensure_credential(self) -> str:
        """Return the configured API key or raise a helpful error."""
        key = self.settings.rapidapi_key
        if not key:
            raise MissingCredentialsError(
                "RAPIDAPI_KEY is not set. Sign up at rapidapi.com and add the key to your .env file."
            )
        return key

    def build_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "X-RapidAPI-Key": self.ensure_credential(),
            "X-RapidAPI-Host": self.settings.rapidapi_host,
        }

    def fetch(self, code: str) -> Any:
        """Return the decoded JSON body for one tracking code (synchronous)."""
        headers = self.build_headers()
        logger.debug("fetching %s", code)
        resp = get_with_retries(
            self.url,
            params={"tracking_code": code},
            headers=headers,
            timeout=self.settings.timeout,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
        )
        return resp.json()

    async def fetch_async(
        self, code: str, *, client: Optional[httpx.AsyncClient] = None
    ) -> Any:
        """Async version of fetch(); reuses ``client`` when given."""
        headers = self.build_headers()
        logger.debug("fetching %s", code)
        resp = await async_get_with_retries(
            self.url,
            params={"tracking_code": code},
            headers=headers,
            timeout=self.settings.timeout,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            client=client,
        )
        return resp.json()
