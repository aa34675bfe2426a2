"""Event renderer base class, render context, registry and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import lru_cache
from typing import Sequence

from ...types import RawEvent
from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..layout import decide_layout
from ..normalizer import CanonicalEvent, normalize
from .formatting import ai_summary_of, source_image_of, warnings_of


@dataclass(frozen=True)
class RenderContext:
    """Vehicle state that time- and distance-relative rules compare against."""

    current_miles: int | None = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # Naive times are UTC, as for event timestamps
        if self.now.tzinfo is None:
            object.__setattr__(self, "now", self.now.replace(tzinfo=timezone.utc))


class EventRenderer(ABC):
    """Abstract base for one event type's card logic.

    Implementations are pure: no I/O, no mutation of the event.
    """

    # Canonical variant this renderer understands
    event_class: type[CanonicalEvent] = CanonicalEvent

    def accepts(self, event: CanonicalEvent) -> bool:
        return isinstance(event, self.event_class)

    @abstractmethod
    def get_title(self, event: CanonicalEvent) -> str:
        ...

    @abstractmethod
    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        ...

    @abstractmethod
    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        ...

    def build_card(
        self,
        event: CanonicalEvent,
        *,
        hero: HeroMetric | None = None,
        items: Sequence[DataItem] = (),
        badges: Sequence[Badge] = (),
        accent: str | None = None,
        compact: bool = False,
    ) -> CardViewModel:
        """Assemble a card, attaching the parts every event type shares."""
        items = tuple(items)
        decision = decide_layout(items, "list" if compact else "auto")
        return CardViewModel(
            title=self.get_title(event),
            subtitle=self.get_subtitle(event),
            hero=hero,
            data_items=items,
            badges=tuple(badges),
            ai_summary=ai_summary_of(event),
            warnings=warnings_of(event),
            accent=accent,
            compact=compact,
            layout=decision.mode,
            source_image=source_image_of(event),
        )


class RendererRegistry:
    """Canonical type → renderer table with a mandatory default."""

    def __init__(self, default: EventRenderer) -> None:
        self._default = default
        self._renderers: dict[str, EventRenderer] = {}

    def register(self, event_type: str, renderer: EventRenderer) -> None:
        self._renderers[event_type] = renderer

    def resolve(self, event_type: str) -> EventRenderer:
        """Renderer for ``event_type``; unknown types get the default."""
        return self._renderers.get(event_type, self._default)

    def renderer_for(self, event: CanonicalEvent) -> EventRenderer:
        renderer = self.resolve(event.type)
        return renderer if renderer.accepts(event) else self._default

    def render(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        return self.renderer_for(event).get_card_data(event, context)

    @property
    def default(self) -> EventRenderer:
        return self._default

    @property
    def types(self) -> list[str]:
        return sorted(self._renderers)

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._renderers


def create_registry() -> RendererRegistry:
    """Create a registry populated with every built-in renderer."""
    from .dashboard import (
        DashboardSnapshotRenderer,
        DashboardWarningRenderer,
        OdometerRenderer,
    )
    from .damage import DamageRenderer
    from .documents import DocumentRenderer, InspectionRenderer, RecallRenderer
    from .fuel import FuelRenderer
    from .generic import GenericRenderer, ManualNoteRenderer, ParkingRenderer
    from .service import ServiceRenderer
    from .tires import TireRenderer

    registry = RendererRegistry(default=GenericRenderer())
    registry.register("fuel", FuelRenderer())
    registry.register("service", ServiceRenderer())
    registry.register("tire_tread", TireRenderer())
    registry.register("tire_pressure", TireRenderer())
    registry.register("damage", DamageRenderer())
    registry.register("odometer", OdometerRenderer())
    registry.register("dashboard_warning", DashboardWarningRenderer())
    registry.register("dashboard_snapshot", DashboardSnapshotRenderer())
    registry.register("document", DocumentRenderer())
    registry.register("inspection", InspectionRenderer())
    registry.register("recall", RecallRenderer())
    registry.register("parking", ParkingRenderer())
    registry.register("manual", ManualNoteRenderer())
    return registry


@lru_cache(maxsize=1)
def default_registry() -> RendererRegistry:
    return create_registry()


def render_event(
    raw: RawEvent | dict,
    context: RenderContext | None = None,
    registry: RendererRegistry | None = None,
    layout: str = "auto",
) -> CardViewModel:
    """Normalize a raw event and render it through the registry.

    ``layout`` ("grid" / "list") overrides the automatic layout decision.
    """
    if isinstance(raw, dict):
        raw = RawEvent.from_dict(raw)
    registry = registry or default_registry()
    card = registry.render(normalize(raw), context)
    if layout != "auto":
        card = replace(card, layout=decide_layout(card.data_items, layout).mode)
    return card


def layout_mode(items: Sequence[DataItem], layout: str = "auto") -> str:
    """Layout mode ("grid" or "list") the engine would use for ``items``."""
    return decide_layout(items, layout).mode
