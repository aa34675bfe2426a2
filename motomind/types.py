"""Wire-level types as delivered by the vehicle persistence API."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProcessingStatus(str, Enum):
    """Server-side extraction status of one uploaded image."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)

    @classmethod
    def parse(cls, value: Any) -> ProcessingStatus | None:
        """Return the matching status, or None for missing/unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass
class LinkedImage:
    """A vehicle photo, optionally linked to a timeline event."""

    id: str
    url: str = ""
    thumbnail_url: str = ""
    filename: str = ""
    image_type: str = "general"
    is_primary: bool = False
    processing_status: ProcessingStatus | None = None
    ai_category: str = ""
    ai_description: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> LinkedImage:
        return cls(
            id=str(data.get("id") or ""),
            url=data.get("public_url") or data.get("url") or "",
            thumbnail_url=data.get("thumbnail_url") or "",
            filename=data.get("filename") or "",
            image_type=data.get("image_type") or "general",
            is_primary=bool(data.get("is_primary", False)),
            processing_status=ProcessingStatus.parse(data.get("processing_status")),
            ai_category=data.get("ai_category") or "",
            ai_description=data.get("ai_description") or "",
            created_at=data.get("created_at") or "",
        )


# Keys that describe the record itself; anything else at the top level of a
# wire event is extracted data and belongs in the payload.
_EVENT_KEYS = frozenset({
    "id", "type", "created_at", "date", "miles", "payload", "image", "image_id",
    "vehicle_id", "user_id", "updated_at", "deleted_at",
})


@dataclass
class RawEvent:
    """A persisted timeline event, shape varies per type."""

    id: str
    type: str
    created_at: Any = None
    miles: Any = None
    payload: dict = field(default_factory=dict)
    image: LinkedImage | None = None

    @classmethod
    def from_dict(cls, data: dict) -> RawEvent:
        """Build a RawEvent from an API record without mutating it.

        Top-level extracted fields (``vendor``, ``total_amount`` ...) are
        folded into the payload unless the payload already carries them.
        """
        payload = data.get("payload")
        merged: dict = dict(payload) if isinstance(payload, dict) else {}
        for key, value in data.items():
            if key not in _EVENT_KEYS:
                merged.setdefault(key, value)

        image_data = data.get("image")
        image = LinkedImage.from_dict(image_data) if isinstance(image_data, dict) else None
        if image is None and data.get("image_id"):
            image = LinkedImage(id=str(data["image_id"]))

        created_at = data.get("created_at")
        if created_at in (None, ""):
            created_at = data.get("date")

        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or ""),
            created_at=created_at,
            miles=data.get("miles"),
            payload=merged,
            image=image,
        )
