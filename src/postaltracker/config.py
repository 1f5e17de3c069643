from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_RAPIDAPI_HOST = "correios-rastreamento-de-encomendas.p.rapidapi.com"
DEFAULT_HISTORY_FILE = Path.home() / ".postaltracker" / "history.json"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and .env)."""

    rapidapi_key: Optional[str] = None
    rapidapi_host: str = DEFAULT_RAPIDAPI_HOST
    base_url: str = f"https://{DEFAULT_RAPIDAPI_HOST}"
    timeout: float = 20.0
    port: int = 3000
    app_env: str = "development"
    rate_limit: int = 100
    rate_window: float = 15 * 60
    history_file: Path = DEFAULT_HISTORY_FILE
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        host = os.getenv("RAPIDAPI_HOST") or DEFAULT_RAPIDAPI_HOST
        history = os.getenv("POSTALTRACKER_HISTORY_FILE")
        return cls(
            rapidapi_key=os.getenv("RAPIDAPI_KEY") or None,
            rapidapi_host=host,
            base_url=(os.getenv("POSTALTRACKER_BASE_URL") or f"https://{host}").rstrip("/"),
            timeout=float(os.getenv("POSTALTRACKER_TIMEOUT", "20")),
            port=int(os.getenv("PORT", "3000")),
            app_env=os.getenv("APP_ENV", "development"),
            rate_limit=int(os.getenv("POSTALTRACKER_RATE_LIMIT", "100")),
            rate_window=float(os.getenv("POSTALTRACKER_RATE_WINDOW", str(15 * 60))),
            history_file=Path(history).expanduser() if history else DEFAULT_HISTORY_FILE,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def setup_logging(level: str = "INFO") -> None:
    """
    Single stdout handler on the root logger:
    - level from settings (LOG_LEVEL)
    - existing handlers removed to avoid duplicate lines
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)

    logging.getLogger("httpx").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING
    )
