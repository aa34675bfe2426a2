"""Tire tread-depth and tire-pressure cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import TireEvent, TireReading
from . import EventRenderer, RenderContext
from .formatting import humanize, number

MIN_TREAD_32NDS = 4.0
MIN_PRESSURE_PSI = 30.0


def is_low(reading: TireReading, measure: str) -> bool:
    limit = MIN_PRESSURE_PSI if measure == "pressure" else MIN_TREAD_32NDS
    return reading.value < limit


def _value(reading: TireReading, measure: str) -> str:
    if measure == "pressure":
        return f"{number(reading.value)} PSI"
    return f'{number(reading.value)}/32"'


class TireRenderer(EventRenderer):
    event_class = TireEvent

    def get_title(self, event: TireEvent) -> str:
        return "Tire Pressure Check" if event.measure == "pressure" else "Tire Tread Check"

    def get_subtitle(self, event: TireEvent) -> str | None:
        if len(event.readings) == 1:
            where = humanize(event.readings[0].position)
        elif len(event.readings) == 4:
            where = "All tires"
        elif event.readings:
            where = f"{len(event.readings)} tires"
        else:
            where = "Tire inspection"
        return f"{event.vendor} • {where}" if event.vendor else where

    def get_card_data(
        self, event: TireEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items = [
            DataItem(
                humanize(r.position),
                _value(r, event.measure),
                highlight=is_low(r, event.measure),
            )
            for r in event.readings
        ]
        if event.measure == "pressure" and event.recommended is not None:
            items.append(DataItem("Recommended", f"{number(event.recommended)} PSI"))

        low = [r for r in event.readings if is_low(r, event.measure)]
        badges: list[Badge] = []
        accent = None
        if low:
            text = "Low tire pressure" if event.measure == "pressure" else "Replace tires soon"
            badges.append(Badge(text, "danger"))
            accent = "warning"
        elif event.readings:
            text = "All pressures normal" if event.measure == "pressure" else "Tread depth OK"
            badges.append(Badge(text, "success"))

        hero = None
        if event.measure == "tread" and event.readings:
            worst = min(event.readings, key=lambda r: r.value)
            hero = HeroMetric(_value(worst, "tread"), f"Lowest: {humanize(worst.position)}")

        return self.build_card(event, hero=hero, items=items, badges=badges, accent=accent)
