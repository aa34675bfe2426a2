"""Odometer and dashboard photo cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import CanonicalEvent, to_float, to_int
from . import EventRenderer, RenderContext
from .formatting import humanize, miles, number, scalar_text

VISIBLE_WARNINGS = 4
URGENT_WARNING_SEVERITIES = frozenset({"high", "critical"})


def warning_names(event: CanonicalEvent) -> list[str]:
    raw = event.lookup("warning_type", "warning_lights", "warnings_detected")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    names = []
    for entry in raw:
        if isinstance(entry, dict):
            entry = entry.get("label") or entry.get("code")
        text = scalar_text(entry)
        if text:
            names.append(humanize(text))
    return names


class OdometerRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return "Odometer Reading"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        change = to_int(event.lookup("change_since_last"))
        if change:
            sign = "+" if change > 0 else ""
            return f"{sign}{change:,} mi since last check"
        return "Manual entry"

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items: list[DataItem] = []
        change = to_int(event.lookup("change_since_last"))
        days = to_int(event.lookup("days_since_last"))
        if change is not None:
            items.append(DataItem("Since last", miles(change)))
        if change and days:
            items.append(DataItem("Daily average", f"{number(change / days)} mi/day"))

        hero = HeroMetric(miles(event.miles)) if event.miles is not None else None
        return self.build_card(event, hero=hero, items=items)


class DashboardWarningRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return "Dashboard Warning"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        names = warning_names(event)
        if not names:
            return "Warning detected"
        shown = ", ".join(names[:VISIBLE_WARNINGS])
        extra = len(names) - VISIBLE_WARNINGS
        return f"{shown}, +{extra} more" if extra > 0 else shown

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        names = warning_names(event)
        severity = (scalar_text(event.lookup("severity")) or "").lower()
        urgent = severity in URGENT_WARNING_SEVERITIES

        items: list[DataItem] = []
        if names:
            count = len(names)
            items.append(DataItem("Active", f"{count} warning{'s' if count != 1 else ''}"))
        if severity:
            items.append(DataItem("Severity", humanize(severity), highlight=urgent))
        action = scalar_text(event.lookup("recommended_action"))
        if action:
            items.append(DataItem("Recommended", action))
        if event.miles is not None:
            items.append(DataItem("Odometer", miles(event.miles)))

        return self.build_card(
            event,
            items=items,
            badges=[Badge("Action required", "danger")],
            accent="danger" if urgent else "warning",
        )


class DashboardSnapshotRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return "Dashboard Check"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        parts = ["System check"]
        fuel = to_float(event.lookup("fuel_level"))
        if fuel is not None:
            parts.append(f"Fuel {number(fuel)}%")
        if event.miles is not None:
            parts.append(miles(event.miles))
        return " • ".join(parts)

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items: list[DataItem] = []
        fuel = to_float(event.lookup("fuel_level"))
        if fuel is not None:
            items.append(DataItem("Fuel level", f"{number(fuel)}%"))
        if event.miles is not None:
            items.append(DataItem("Odometer", miles(event.miles)))
        fuel_range = to_int(event.lookup("range_miles", "fuel_range"))
        if fuel_range is not None:
            items.append(DataItem("Range", miles(fuel_range)))
        coolant = scalar_text(event.lookup("coolant_temp"))
        if coolant:
            items.append(DataItem("Coolant", coolant))

        names = warning_names(event)
        if names:
            count = len(names)
            badges = [Badge(f"{count} warning{'s' if count != 1 else ''}", "warning")]
        else:
            badges = [Badge("All systems normal", "success")]
        return self.build_card(event, items=items, badges=badges)
