"""Normalize carrier tracking payloads into TrackingRecord values.

The carrier (PacoteVicio via RapidAPI) returns objects in the Correios SRO
schema. Shape is loosely controlled, so every field read here has a default.

Raw object fields:
- codObjeto: tracking code
- tipoPostal: {categoria, descricao}
- eventos: list of events, newest first
- dtPrevista / prazoEntrega: expected delivery, usually "DD/MM/YYYY"

Raw event fields:
- dtHrCriado: PHP DateTime object
  {"date": "2026-02-19 11:22:32.000000", "timezone_type": 3,
   "timezone": "America/Sao_Paulo"} or an already formatted string
- descricao: status label
- detalhe / descricaoFrontEnd: detail text
- codigo, tipo: event code and event type code
- unidade.endereco: {cidade, uf, pais}
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .models import NormalizedEvent, TrackingRecord

DEFAULT_CATEGORY = "Unknown"
DEFAULT_DESCRIPTION = ""
DEFAULT_LOCATION = "Not informed"
NO_EVENTS_STATUS = "No events recorded"

DOMESTIC_COUNTRY = "Brasil"
DOMESTIC_SUFFIX = "BR"

# Final delivery attempt codes: delivered, not delivered, returned.
DELIVERY_EVENT_TYPES = frozenset({"BDE", "BDI", "BDR"})

LOCATION_SEPARATOR = " / "

_IMPORT_CODE_RE = re.compile(r"[A-Z]{2}[0-9]{9}[A-Z]{2}")
_DATE_ONLY_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})", re.ASCII)
_FRACTION_RE = re.compile(r"\.\d+$", re.ASCII)


@dataclass(frozen=True)
class StructuredTimestamp:
    date: str


@dataclass(frozen=True)
class PlainTimestamp:
    value: str


@dataclass(frozen=True)
class AbsentTimestamp:
    pass


TimestampValue = Union[StructuredTimestamp, PlainTimestamp, AbsentTimestamp]
_TIMESTAMP_TYPES = (StructuredTimestamp, PlainTimestamp, AbsentTimestamp)


def classify_timestamp(value: Any) -> TimestampValue:
    """Tag a raw ``dtHrCriado`` value by shape."""
    if not value:
        return AbsentTimestamp()
    if isinstance(value, Mapping):
        date = value.get("date")
        if not date:
            return AbsentTimestamp()
        return StructuredTimestamp(date=str(date))
    return PlainTimestamp(value=str(value))


def normalize_timestamp(value: Any) -> str:
    """Return a naive ISO-8601 string ("2026-02-19T11:22:32") or ""."""
    ts = value if isinstance(value, _TIMESTAMP_TYPES) else classify_timestamp(value)
    if isinstance(ts, StructuredTimestamp):
        return _FRACTION_RE.sub("", ts.date.replace(" ", "T", 1))
    if isinstance(ts, PlainTimestamp):
        return ts.value
    return ""


def normalize_date_only(value: Any) -> Optional[str]:
    """Rewrite "DD/MM/YYYY" to "YYYY-MM-DD"; pass other values through."""
    if not value:
        return None
    match = _DATE_ONLY_RE.fullmatch(str(value))
    if match:
        day, month, year = match.groups()
        return f"{year}-{month}-{day}"
    return value if isinstance(value, str) else str(value)


def format_location(event: Optional[Mapping[str, Any]]) -> str:
    address = ((event or {}).get("unidade") or {}).get("endereco") or {}
    parts: List[str] = []
    city = address.get("cidade")
    state = address.get("uf")
    country = address.get("pais")
    if city:
        parts.append(str(city))
    if state:
        parts.append(str(state))
    if country and country != DOMESTIC_COUNTRY:
        parts.append(str(country))
    return LOCATION_SEPARATOR.join(parts) or DEFAULT_LOCATION


def is_delivered(event: Optional[Mapping[str, Any]]) -> bool:
    if not event:
        return False
    return event.get("tipo") in DELIVERY_EVENT_TYPES


def is_import_code(code: Any) -> bool:
    """International codes have the canonical shape and a non-BR suffix."""
    if not isinstance(code, str) or not _IMPORT_CODE_RE.fullmatch(code):
        return False
    return code[-2:] != DOMESTIC_SUFFIX


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_event(event: Mapping[str, Any]) -> NormalizedEvent:
    return NormalizedEvent(
        date=normalize_timestamp(event.get("dtHrCriado")),
        status=_text(event.get("descricao")),
        detail=_text(event.get("detalhe") or event.get("descricaoFrontEnd")),
        location=format_location(event),
        code=_text(event.get("codigo")),
        type=_text(event.get("tipo")),
    )


def normalize_object(raw: Mapping[str, Any]) -> TrackingRecord:
    """Normalize exactly one raw tracking object."""
    postal_type = raw.get("tipoPostal") or {}
    code = _text(raw.get("codObjeto"))
    category = _text(postal_type.get("categoria")) or DEFAULT_CATEGORY
    description = _text(postal_type.get("descricao")) or DEFAULT_DESCRIPTION
    raw_events = raw.get("eventos") or []

    if not raw_events:
        return TrackingRecord(
            code=code,
            category=category,
            description=description,
            last_status=NO_EVENTS_STATUS,
            delivered=False,
            expected_delivery_date=None,
            events=(),
            is_import=is_import_code(code),
        )

    events = tuple(normalize_event(ev) for ev in raw_events)
    return TrackingRecord(
        code=code,
        category=category,
        description=description,
        last_status=events[0].status,
        delivered=is_delivered(raw_events[0]),
        expected_delivery_date=normalize_date_only(
            raw.get("dtPrevista") or raw.get("prazoEntrega")
        ),
        events=events,
        is_import=is_import_code(code),
    )


def normalize(raw_objects: Optional[Sequence[Mapping[str, Any]]]) -> Optional[TrackingRecord]:
    """Normalize the first object of one upstream response.

    Returns None when there is no object at all ("not found"). Only
    ``raw_objects[0]`` is inspected; batch callers wrap each object in its
    own single-element list.
    """
    if not raw_objects:
        return None
    return normalize_object(raw_objects[0])


def upstream_objects(payload: Any) -> List[Dict[str, Any]]:
    """Turn one upstream response body into the raw-object list.

    The RapidAPI endpoint answers with a bare object; the SRO API wraps
    objects as {"objetos": [...]}.
    """
    if isinstance(payload, list):
        return [obj for obj in payload if obj]
    if not payload or not isinstance(payload, dict):
        return []
    if "objetos" in payload:
        return [obj for obj in payload.get("objetos") or [] if obj]
    return [payload]
