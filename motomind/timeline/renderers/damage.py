"""Damage report cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import DamageEvent
from . import EventRenderer, RenderContext
from .formatting import humanize, money

URGENT_SEVERITIES = frozenset({"severe", "critical"})
COMPLETED_STATUSES = frozenset({"completed", "complete", "repaired", "fixed", "done"})


class DamageRenderer(EventRenderer):
    event_class = DamageEvent

    def get_title(self, event: DamageEvent) -> str:
        if event.damage_type:
            return f"{humanize(event.damage_type)} Damage"
        return "Damage Report"

    def get_subtitle(self, event: DamageEvent) -> str | None:
        return event.location or "Vehicle damage"

    def get_card_data(
        self, event: DamageEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        urgent = event.severity in URGENT_SEVERITIES
        items: list[DataItem] = []
        badges: list[Badge] = []

        if event.severity:
            items.append(DataItem("Severity", humanize(event.severity), highlight=urgent))
        if event.repair_status:
            items.append(DataItem("Repair", humanize(event.repair_status)))
        if event.vendor:
            items.append(DataItem("Shop", event.vendor))
        if event.total_amount is not None and event.estimated_cost is not None:
            items.append(DataItem("Estimate", money(event.estimated_cost)))

        if urgent:
            badges.append(Badge("Immediate attention", "danger"))
        if event.repair_status in COMPLETED_STATUSES:
            badges.append(Badge("Repair completed", "success"))

        cost = event.total_amount if event.total_amount is not None else event.estimated_cost
        hero = None
        if cost is not None:
            subtext = "Repair cost" if event.total_amount is not None else "Estimated"
            hero = HeroMetric(money(cost), subtext)

        return self.build_card(
            event,
            hero=hero,
            items=items,
            badges=badges,
            accent="danger" if urgent else None,
        )
