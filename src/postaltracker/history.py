"""Local history of queried codes, stored as a JSON file.

Most recent query first, one entry per code, at most MAX_HISTORY entries.
Storage problems are logged and swallowed: history must never break tracking.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from .models import HistoryEntry, TrackingRecord

logger = logging.getLogger(__name__)

MAX_HISTORY = 20


class HistoryStore:
    def __init__(self, path: Union[str, Path], *, max_entries: int = MAX_HISTORY) -> None:
        self.path = Path(path)
        self.max_entries = max_entries

    def list(self) -> List[HistoryEntry]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("could not read history %s: %s", self.path, exc)
            return []
        try:
            data = json.loads(text) if text.strip() else []
            return [HistoryEntry.model_validate(item) for item in data]
        except (ValueError, TypeError, ValidationError) as exc:
            logger.warning("ignoring corrupt history %s: %s", self.path, exc)
            return []

    def add(self, entry: HistoryEntry) -> None:
        entries = [h for h in self.list() if h.code != entry.code]
        self._write([entry, *entries][: self.max_entries])

    def add_record(self, record: TrackingRecord) -> None:
        self.add(HistoryEntry.from_record(record))

    def remove(self, code: str) -> None:
        entries = self.list()
        kept = [h for h in entries if h.code != code]
        if len(kept) != len(entries):
            self._write(kept)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("could not clear history %s: %s", self.path, exc)

    def get(self, code: str) -> Optional[HistoryEntry]:
        for entry in self.list():
            if entry.code == code:
                return entry
        return None

    def _write(self, entries: List[HistoryEntry]) -> None:
        payload = [e.model_dump(mode="json", by_alias=True) for e in entries]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            logger.warning("could not write history %s: %s", self.path, exc)
