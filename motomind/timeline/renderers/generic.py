"""Fallback card for unrecognized event types, plus the simple note types."""

from __future__ import annotations

from ..cards import CardViewModel, DataItem, HeroMetric
from ..normalizer import CanonicalEvent, to_float
from . import EventRenderer, RenderContext
from .formatting import humanize, money, scalar_text

EXCLUDED_KEYS = frozenset({"title", "description", "location", "cost", "ai_summary"})
MAX_ITEMS = 10
COMPACT_ABOVE = 5
NOTE_PREVIEW_CHARS = 150


class GenericRenderer(EventRenderer):
    """Lists every scalar payload field; used for any type without its own renderer."""

    def get_title(self, event: CanonicalEvent) -> str:
        return humanize(event.type) if event.type and event.type != "unknown" else "Event"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        return scalar_text(event.lookup("description", "location"))

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items: list[DataItem] = []
        for key, value in event.raw_payload.items():
            if key in EXCLUDED_KEYS:
                continue
            text = scalar_text(value)
            if text is None:
                continue
            items.append(DataItem(humanize(key), text))
            if len(items) == MAX_ITEMS:
                break

        cost = to_float(event.lookup("cost"))
        if cost is None:
            cost = event.total_amount
        hero = HeroMetric(money(cost)) if cost is not None else None
        return self.build_card(
            event, hero=hero, items=items, compact=len(items) > COMPACT_ABOVE
        )


class ParkingRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return "Parking"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        lot = scalar_text(event.lookup("lot_name")) or "Parking location"
        level = scalar_text(event.lookup("level"))
        return f"{lot} • Level {level}" if level else lot

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items: list[DataItem] = []
        spot = scalar_text(event.lookup("spot", "space"))
        if spot:
            items.append(DataItem("Spot", spot))
        duration = scalar_text(event.lookup("duration"))
        if duration:
            items.append(DataItem("Duration", duration))
        cost = to_float(event.lookup("cost"))
        if cost is None:
            cost = event.total_amount
        hero = HeroMetric(money(cost)) if cost is not None else None
        return self.build_card(event, hero=hero, items=items)


class ManualNoteRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return scalar_text(event.lookup("title")) or "Manual Note"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        notes = scalar_text(event.lookup("notes"))
        if not notes:
            return "Manual entry"
        if len(notes) > NOTE_PREVIEW_CHARS:
            return notes[:NOTE_PREVIEW_CHARS] + "..."
        return notes

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        return self.build_card(event)
