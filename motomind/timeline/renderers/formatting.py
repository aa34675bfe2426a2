"""Value formatting and shared card parts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..cards import AISummary, ExtractionWarning, SourceImage
from ..normalizer import CanonicalEvent, DateSentinel, to_float, to_text

LOW_CONFIDENCE = 0.6


def money(amount: float) -> str:
    return f"${amount:,.2f}"


def miles(value: int | float) -> str:
    return f"{value:,.0f} mi"


def number(value: float) -> str:
    """``13.0`` → ``"13"``, ``13.25`` → ``"13.25"``."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def humanize(text: str) -> str:
    """``"oil_change"`` → ``"Oil Change"``; already-formatted text is kept."""
    text = text.strip()
    if "_" not in text and not text.islower():
        return text
    return " ".join(word.capitalize() for word in text.replace("_", " ").split())


def short_date(value: datetime | DateSentinel | None) -> str:
    if isinstance(value, datetime):
        return value.strftime("%b %d, %Y").replace(" 0", " ")
    return str(value) if value is not None else ""


def scalar_text(value: Any) -> str | None:
    """Display text for a payload value; None for maps and empty values."""
    match value:
        case None | dict():
            return None
        case bool():
            return "Yes" if value else "No"
        case int():
            return str(value)
        case float():
            return number(value)
        case list():
            parts = [scalar_text(v) for v in value if not isinstance(v, (dict, list))]
            joined = ", ".join(p for p in parts if p)
            return joined or None
        case _:
            return to_text(value)


def ai_summary_of(event: CanonicalEvent) -> AISummary | None:
    raw = event.raw_payload.get("ai_summary")
    if isinstance(raw, dict):
        text = to_text(raw.get("text") or raw.get("summary"))
        confidence = to_float(raw.get("confidence"))
        if confidence is not None and confidence > 1:
            confidence /= 100
        if confidence is None:
            confidence = event.confidence
    else:
        text = to_text(raw)
        confidence = event.confidence
    return AISummary(text, confidence) if text else None


def warnings_of(event: CanonicalEvent) -> tuple[ExtractionWarning, ...]:
    warnings: list[ExtractionWarning] = []
    raw = event.raw_payload.get("warnings")
    for entry in raw if isinstance(raw, list) else []:
        if isinstance(entry, dict):
            message = to_text(entry.get("message"))
            if message:
                warnings.append(ExtractionWarning(
                    type=to_text(entry.get("type")) or "extraction",
                    message=message,
                    action=to_text(entry.get("action")),
                ))
        elif to_text(entry):
            warnings.append(ExtractionWarning("extraction", to_text(entry)))

    if event.confidence is not None and event.confidence < LOW_CONFIDENCE:
        warnings.append(ExtractionWarning(
            type="low_confidence",
            message=f"Extracted with low confidence ({event.confidence:.0%})",
            action="Review values",
        ))
    return tuple(warnings)


def source_image_of(event: CanonicalEvent) -> SourceImage | None:
    image = event.linked_image
    if image is None or not image.url:
        return None
    return SourceImage(
        url=image.url,
        thumbnail_url=image.thumbnail_url or image.url,
        alt=f"{humanize(event.type)} photo",
    )
