"""Core data models shared by the prospect search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OperatingStatus(str, Enum):
    OPERATIONAL = "operational"
    CLOSED_TEMPORARILY = "temporarily_closed"
    CLOSED_PERMANENTLY = "permanently_closed"
    UNKNOWN = "unknown"

    @classmethod
    def from_places(cls, raw: Optional[str]) -> "OperatingStatus":
        value = (raw or "").strip().upper()
        if value == "OPERATIONAL":
            return cls.OPERATIONAL
        if value == "CLOSED_TEMPORARILY":
            return cls.CLOSED_TEMPORARILY
        if value == "CLOSED_PERMANENTLY":
            return cls.CLOSED_PERMANENTLY
        return cls.UNKNOWN


@dataclass(frozen=True)
class CandidateBusiness:
    """Normalized snapshot of a business returned by Google Places."""

    place_id: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    phone_e164: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    business_status: Optional[str] = None
    types: List[str] = field(default_factory=list)
    lat: Optional[float] = None
    lng: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def operating_status(self) -> OperatingStatus:
        return OperatingStatus.from_places(self.business_status)
