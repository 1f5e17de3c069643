"""
Pydantic models for normalized tracking data.

Records are built by the normalizer once per request and serialize with the
camelCase keys the mobile client expects (``lastStatus``, ``isImport``...).
"""

from datetime import datetime
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class NormalizedEvent(BaseModel):
    """A single tracking event, newest events first in a record."""

    date: str = Field(description="Naive local ISO-8601 timestamp, or empty")
    status: str = Field(description="Human-readable status label")
    detail: str = Field("", description="Additional details about the event")
    location: str = Field(description="City / state / country of the event")
    code: str = Field("", description="Carrier event code")
    type: str = Field("", description="Carrier event type code (e.g. BDE)")

    model_config = ConfigDict(frozen=True)


class TrackingRecord(BaseModel):
    """Canonical, UI-ready view of one parcel."""

    code: str = Field(description="The tracking code")
    category: str = Field(description="Postal category, 'Unknown' if missing")
    description: str = Field("", description="Postal service description")
    last_status: str = Field(description="Status label of the newest event")
    delivered: bool = Field(description="True when the newest event is a final delivery")
    expected_delivery_date: Optional[str] = Field(
        None, description="Expected delivery as YYYY-MM-DD"
    )
    events: Tuple[NormalizedEvent, ...] = Field(
        default_factory=tuple, description="Events, newest first"
    )
    is_import: bool = Field(description="True for international (non-BR) codes")

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BatchResult(BaseModel):
    """Response body of the batch endpoint; ``None`` marks a code not found."""

    resultados: List[Optional[TrackingRecord]] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class HistoryEntry(BaseModel):
    """Summary of a past query kept by the local history store."""

    code: str
    description: str = ""
    last_status: str = ""
    queried_at: datetime = Field(default_factory=datetime.now)
    is_import: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_serializer("queried_at")
    def _ser_queried_at(self, dt: datetime) -> str:
        return dt.isoformat(timespec="seconds")

    @classmethod
    def from_record(
        cls, record: TrackingRecord, *, queried_at: Optional[datetime] = None
    ) -> "HistoryEntry":
        return cls(
            code=record.code,
            description=record.description,
            last_status=record.last_status,
            queried_at=queried_at or datetime.now(),
            is_import=record.is_import,
        )
