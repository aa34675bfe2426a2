"""Fuel fill-up cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import FuelEvent
from . import EventRenderer, RenderContext
from .formatting import humanize, miles, money, scalar_text

EXCEPTIONAL_MPG = 30.0
LOW_MPG = 20.0


class FuelRenderer(EventRenderer):
    event_class = FuelEvent

    def get_title(self, event: FuelEvent) -> str:
        return "Fuel Fill-Up"

    def get_subtitle(self, event: FuelEvent) -> str | None:
        station = event.vendor or "Gas station"
        if event.miles is not None:
            return f"{station} • {miles(event.miles)}"
        return station

    def get_card_data(
        self, event: FuelEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        items: list[DataItem] = []
        badges: list[Badge] = []

        if event.miles is not None:
            items.append(DataItem("Odometer", miles(event.miles)))
        if event.mpg is not None:
            items.append(DataItem(
                "Efficiency",
                f"{event.mpg:.1f} MPG",
                highlight=event.mpg >= EXCEPTIONAL_MPG,
            ))
            if event.mpg >= EXCEPTIONAL_MPG:
                badges.append(Badge("Exceptional efficiency", "success"))
            elif event.mpg < LOW_MPG:
                badges.append(Badge("Low efficiency", "warning"))
        if event.fuel_grade:
            items.append(DataItem("Grade", humanize(event.fuel_grade)))
        payment = scalar_text(event.lookup("payment_method"))
        if payment:
            items.append(DataItem("Payment", humanize(payment)))

        return self.build_card(event, hero=_hero(event), items=items, badges=badges)


def _hero(event: FuelEvent) -> HeroMetric | None:
    price = event.price_per_gallon
    if price is None and event.total_amount is not None and event.gallons:
        price = event.total_amount / event.gallons

    breakdown = None
    if event.gallons is not None:
        breakdown = f"{event.gallons:.1f} gal"
        if price is not None:
            breakdown += f" • ${price:.2f}/gal"

    if event.total_amount is not None:
        return HeroMetric(money(event.total_amount), breakdown)
    if breakdown:
        return HeroMetric(breakdown)
    return None
