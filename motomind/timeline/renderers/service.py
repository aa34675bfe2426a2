"""Service / maintenance cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import ServiceEvent
from . import EventRenderer, RenderContext
from .formatting import humanize, miles, money

SERVICE_INTERVAL_MILES = 5000


def next_due_miles(event: ServiceEvent) -> int | None:
    """Stored next-due mileage, else the next interval multiple after the service."""
    if event.next_service_miles is not None:
        return event.next_service_miles
    if event.miles is None:
        return None
    return (event.miles // SERVICE_INTERVAL_MILES + 1) * SERVICE_INTERVAL_MILES


class ServiceRenderer(EventRenderer):
    event_class = ServiceEvent

    def get_title(self, event: ServiceEvent) -> str:
        return humanize(event.service_kind) if event.service_kind else "Service"

    def get_subtitle(self, event: ServiceEvent) -> str | None:
        vendor = event.vendor or "Service center"
        if event.miles is not None:
            return f"{vendor} • {miles(event.miles)}"
        return vendor

    def get_card_data(
        self, event: ServiceEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        context = context or RenderContext()
        items: list[DataItem] = []
        badges: list[Badge] = []
        accent = None

        if event.items:
            items.append(DataItem("Work", ", ".join(event.items)))
        if event.miles is not None:
            items.append(DataItem("Odometer", miles(event.miles)))

        due_at = next_due_miles(event)
        current = context.current_miles if context.current_miles is not None else event.miles
        if due_at is not None and current is not None:
            remaining = due_at - current
            if remaining < 0:
                items.append(DataItem(
                    "Next service due", f"Overdue by {miles(-remaining)}", highlight=True
                ))
                badges.append(Badge("Service overdue", "danger"))
                accent = "warning"
            else:
                items.append(DataItem("Next service due", f"Due in {miles(remaining)}"))

        hero = HeroMetric(money(event.total_amount)) if event.total_amount is not None else None
        return self.build_card(event, hero=hero, items=items, badges=badges, accent=accent)
