"""RawEvent → CanonicalEvent normalization.

Each canonical type has its own dataclass variant so renderers can match on
a closed set of shapes. Extraction never raises: absent or malformed fields
become ``None`` and an unparsable timestamp becomes ``INVALID_DATE``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from ..types import LinkedImage, RawEvent

UNKNOWN_DATE_LABEL = "Unknown date"

# Wire type → canonical type
_TYPE_ALIASES: dict[str, str] = {
    "maintenance": "service",
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class DateSentinel(Enum):
    INVALID = "invalid"

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return UNKNOWN_DATE_LABEL


INVALID_DATE = DateSentinel.INVALID


@dataclass(frozen=True)
class CanonicalEvent:
    id: str
    type: str
    timestamp: datetime | DateSentinel
    miles: int | None = None
    vendor: str | None = None
    total_amount: float | None = None
    raw_payload: dict = field(default_factory=dict)
    linked_image: LinkedImage | None = None
    confidence: float | None = None
    source_type: str = ""

    @property
    def has_valid_date(self) -> bool:
        return isinstance(self.timestamp, datetime)

    def lookup(self, *keys: str) -> Any:
        """First non-empty payload value among ``keys`` (see ``pick``)."""
        return pick(self.raw_payload, *keys)


@dataclass(frozen=True)
class FuelEvent(CanonicalEvent):
    gallons: float | None = None
    price_per_gallon: float | None = None
    mpg: float | None = None
    fuel_grade: str | None = None


@dataclass(frozen=True)
class ServiceEvent(CanonicalEvent):
    service_kind: str | None = None
    items: tuple[str, ...] = ()
    next_service_miles: int | None = None


@dataclass(frozen=True)
class DocumentEvent(CanonicalEvent):
    doc_type: str | None = None
    policy_number: str | None = None
    expiration: datetime | None = None


@dataclass(frozen=True)
class TireReading:
    position: str
    value: float


@dataclass(frozen=True)
class TireEvent(CanonicalEvent):
    measure: str = "tread"  # "tread" (32nds of an inch) or "pressure" (PSI)
    readings: tuple[TireReading, ...] = ()
    recommended: float | None = None


@dataclass(frozen=True)
class DamageEvent(CanonicalEvent):
    severity: str | None = None
    damage_type: str | None = None
    location: str | None = None
    repair_status: str | None = None
    estimated_cost: float | None = None


def normalize(raw: RawEvent) -> CanonicalEvent:
    """Project a RawEvent onto its canonical variant. Never raises."""
    payload = raw.payload if isinstance(raw.payload, dict) else {}
    source_type = str(raw.type or "").strip().lower() or "unknown"
    canonical_type = _TYPE_ALIASES.get(source_type, source_type)

    miles = to_int(raw.miles)
    if miles is None:
        miles = to_int(pick(payload, "miles", "reading", "odometer"))

    common: dict[str, Any] = dict(
        id=str(raw.id or ""),
        type=canonical_type,
        timestamp=parse_timestamp(raw.created_at),
        miles=miles,
        raw_payload=payload,
        linked_image=raw.image,
        confidence=_confidence(payload),
        source_type=source_type,
    )

    match canonical_type:
        case "fuel":
            return FuelEvent(
                **common,
                vendor=to_text(pick(payload, "station", "station_name", "vendor")),
                total_amount=to_float(pick(payload, "total_amount", "cost", "total_cost")),
                gallons=to_float(pick(payload, "gallons")),
                price_per_gallon=to_float(pick(payload, "price_per_gallon")),
                mpg=to_float(pick(payload, "mpg", "mpg_calculated")),
                fuel_grade=to_text(pick(payload, "fuel_grade", "fuel_type")),
            )
        case "service":
            return ServiceEvent(
                **common,
                vendor=to_text(pick(payload, "vendor", "shop_name", "vendor_name")),
                total_amount=to_float(pick(payload, "total_amount", "cost", "total_cost")),
                service_kind=to_text(pick(payload, "service_type", "kind")),
                items=_text_items(pick(payload, "items", "services_performed")),
                next_service_miles=to_int(
                    pick(payload, "next_service_miles", "next_service_due")
                ),
            )
        case "document":
            expiration = parse_timestamp(pick(payload, "expiration_date", "expires_at"))
            return DocumentEvent(
                **common,
                vendor=to_text(pick(payload, "provider", "insurance_company", "issuer")),
                total_amount=to_float(pick(payload, "total_amount", "premium", "cost")),
                doc_type=to_text(pick(payload, "document_type", "doc_type")),
                policy_number=to_text(pick(payload, "policy_number")),
                expiration=expiration or None,
            )
        case "tire_tread" | "tire_pressure":
            measure = "pressure" if canonical_type == "tire_pressure" else "tread"
            return TireEvent(
                **common,
                vendor=to_text(pick(payload, "vendor", "shop_name", "location")),
                total_amount=to_float(pick(payload, "total_amount", "cost")),
                measure=measure,
                readings=_tire_readings(payload, measure),
                recommended=to_float(
                    pick(payload, "recommended_pressure", "recommended_psi")
                ),
            )
        case "damage":
            return DamageEvent(
                **common,
                vendor=to_text(pick(payload, "vendor", "shop_name", "repair_shop")),
                total_amount=to_float(pick(payload, "total_amount", "cost")),
                severity=_lower(pick(payload, "severity")),
                damage_type=to_text(pick(payload, "damage_type")),
                location=to_text(pick(payload, "location", "damage_location")),
                repair_status=_lower(pick(payload, "repair_status", "status")),
                estimated_cost=to_float(pick(payload, "estimated_cost", "estimate")),
            )
        case _:
            return CanonicalEvent(
                **common,
                vendor=to_text(pick(payload, "vendor")),
                total_amount=to_float(pick(payload, "total_amount")),
            )


# ── Field helpers (shared with renderers) ──


def pick(payload: dict, *keys: str) -> Any:
    """Return the first value that is neither None nor "".

    Looks in the payload first, then in a nested ``extracted_data`` map.
    """
    sources = [payload]
    nested = payload.get("extracted_data")
    if isinstance(nested, dict):
        sources.append(nested)
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is not None and value != "":
                return value
    return None


def parse_timestamp(value: Any) -> datetime | DateSentinel:
    """Parse an ISO-8601 string, date or epoch seconds into an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return INVALID_DATE
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return INVALID_DATE
    if not isinstance(value, str) or not value.strip():
        return INVALID_DATE

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return INVALID_DATE
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        m = _NUMBER_RE.search(value.replace(",", "").replace("$", ""))
        if not m:
            return None
        result = float(m.group())
    else:
        return None
    return None if math.isnan(result) or math.isinf(result) else result


def to_int(value: Any) -> int | None:
    result = to_float(value)
    return None if result is None else int(round(result))


def to_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _lower(value: Any) -> str | None:
    text = to_text(value)
    return text.lower() if text else None


def _text_items(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(s.strip() for s in value.split(",") if s.strip())
    if not isinstance(value, list):
        return ()
    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name") or item.get("description")
        text = to_text(item)
        if text:
            items.append(text)
    return tuple(items)


def _confidence(payload: dict) -> float | None:
    value = pick(payload, "confidence", "ai_confidence", "confidence_score")
    if isinstance(value, dict):
        scores = [s for s in (to_float(v) for v in value.values()) if s is not None]
        score = sum(scores) / len(scores) if scores else None
    else:
        score = to_float(value)
    if score is None:
        return None
    if score > 1:
        score /= 100  # percentage
    return max(0.0, min(1.0, score))


# (position, short prefix)
_TIRE_POSITIONS: list[tuple[str, str]] = [
    ("front_left", "fl"),
    ("front_right", "fr"),
    ("rear_left", "rl"),
    ("rear_right", "rr"),
]


def _tire_readings(payload: dict, measure: str) -> tuple[TireReading, ...]:
    nested = pick(payload, "pressures" if measure == "pressure" else "depths")
    nested = nested if isinstance(nested, dict) else {}

    readings: list[TireReading] = []
    for position, short in _TIRE_POSITIONS:
        if measure == "pressure":
            value = pick(payload, position, f"{short}_pressure")
        else:
            value = pick(payload, f"{position}_tread", f"{short}_tread")
        if value is None:
            value = nested.get(position, nested.get(short))
        number = to_float(value)
        if number is not None:
            readings.append(TireReading(position, number))

    if not readings and measure == "tread":
        # Single-tire measurement
        depth = to_float(pick(payload, "depth_32nds", "tread_depth"))
        if depth is not None:
            position = to_text(pick(payload, "position")) or "tire"
            readings.append(TireReading(position.lower().replace(" ", "_"), depth))

    return tuple(readings)
