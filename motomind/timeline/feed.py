"""Feed controller for one vehicle's timeline.

The feed is the only writer of the raw event list and the image list. Both
are replaced wholesale on every successful refresh; everything else
(canonical events, cards, groups) is derived on demand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Iterator

from ..client import APIError, VehicleAPI
from ..types import LinkedImage, ProcessingStatus, RawEvent
from .cards import CardViewModel
from .layout import decide_layout
from .normalizer import UNKNOWN_DATE_LABEL, CanonicalEvent, normalize
from .poller import ProcessingPoller
from .renderers import RenderContext, RendererRegistry, default_registry
from .renderers.formatting import humanize

logger = logging.getLogger(__name__)

# Filter name → canonical types it shows (None = everything)
TIMELINE_FILTERS: dict[str, frozenset[str] | None] = {
    "all": None,
    "service": frozenset({"service"}),
    "fuel": frozenset({"fuel"}),
    "odometer": frozenset({"odometer"}),
    "warnings": frozenset({"dashboard_warning"}),
    "tires": frozenset({"tire_tread", "tire_pressure"}),
    "damage": frozenset({"damage"}),
    "documents": frozenset({"document"}),
}

UNKNOWN_MONTH = "unknown"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class IdSet:
    """A set of event ids owned by one feed, e.g. expanded or selected cards."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def add(self, item_id: str) -> None:
        self._ids.add(item_id)

    def discard(self, item_id: str) -> None:
        self._ids.discard(item_id)

    def toggle(self, item_id: str) -> bool:
        """Flip membership; returns True if the id is now in the set."""
        if item_id in self._ids:
            self._ids.remove(item_id)
            return False
        self._ids.add(item_id)
        return True

    def update(self, item_ids: Iterable[str]) -> None:
        self._ids.update(item_ids)

    def clear(self) -> None:
        self._ids.clear()

    def retain(self, item_ids: Iterable[str]) -> None:
        """Drop ids that are no longer present."""
        self._ids.intersection_update(item_ids)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(frozen=True)
class TimelineEntry:
    event: CanonicalEvent
    card: CardViewModel
    days_since_previous: int | None = None
    miles_since_previous: int | None = None
    image_status: ProcessingStatus | None = None
    just_completed: bool = False
    expanded: bool = False
    selected: bool = False


@dataclass(frozen=True)
class MonthGroup:
    key: str  # "YYYY-MM" or "unknown"
    label: str
    entries: tuple[TimelineEntry, ...]

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def total_spend(self) -> float:
        return sum(
            e.event.total_amount for e in self.entries if e.event.total_amount is not None
        )


def sort_newest_first(events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
    """Newest first; events with an invalid timestamp go last."""
    return sorted(
        events,
        key=lambda e: e.timestamp if isinstance(e.timestamp, datetime) else _OLDEST,
        reverse=True,
    )


def group_by_month(entries: Iterable[TimelineEntry]) -> list[MonthGroup]:
    groups: dict[str, tuple[str, list[TimelineEntry]]] = {}
    for entry in entries:
        ts = entry.event.timestamp
        if isinstance(ts, datetime):
            key, label = ts.strftime("%Y-%m"), ts.strftime("%B %Y")
        else:
            key, label = UNKNOWN_MONTH, UNKNOWN_DATE_LABEL
        groups.setdefault(key, (label, []))[1].append(entry)
    return [
        MonthGroup(key=key, label=label, entries=tuple(items))
        for key, (label, items) in groups.items()
    ]


class TimelineFeed:
    """Loads, filters and acts on the timeline of one vehicle."""

    def __init__(
        self,
        api: VehicleAPI,
        vehicle_id: str,
        *,
        registry: RendererRegistry | None = None,
        layout: str = "auto",
        poll_interval: float = 3.0,
        pulse_seconds: float = 2.0,
        scheduler=None,
    ) -> None:
        self._api = api
        self._vehicle_id = vehicle_id
        self._registry = registry or default_registry()
        self._layout = layout
        self._events: list[RawEvent] = []
        self._images: list[LinkedImage] = []
        self.expanded = IdSet()
        self.selected = IdSet()
        self.poller = ProcessingPoller(
            self._poll_images,
            interval=poll_interval,
            pulse_seconds=pulse_seconds,
            on_settled=self._on_images_settled,
            scheduler=scheduler,
        )

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def events(self) -> tuple[RawEvent, ...]:
        return tuple(self._events)

    @property
    def images(self) -> tuple[LinkedImage, ...]:
        return tuple(self._images)

    def image(self, image_id: str) -> LinkedImage | None:
        return next((img for img in self._images if img.id == image_id), None)

    # ── Loading ──

    async def refresh(self) -> None:
        await self.refresh_events()
        await self.refresh_images()

    async def refresh_events(self) -> None:
        events = await self._api.list_events(self._vehicle_id)
        self._events = list(events)
        ids = {e.id for e in self._events}
        self.expanded.retain(ids)
        self.selected.retain(ids)
        logger.info("Loaded %d events for vehicle %s", len(self._events), self._vehicle_id)

    async def refresh_images(self) -> None:
        images = await self._api.list_images(self._vehicle_id)
        self._set_images(images)
        logger.info("Loaded %d images for vehicle %s", len(self._images), self._vehicle_id)

    def _set_images(self, images: Iterable[LinkedImage]) -> None:
        self._images = list(images)
        self.poller.track(self._images)
        self.poller.sync()

    async def _poll_images(self) -> list[LinkedImage]:
        self._images = list(await self._api.list_images(self._vehicle_id))
        return self._images

    async def _on_images_settled(self, image_ids: list[str]) -> None:
        logger.debug("Images settled: %s", ", ".join(image_ids))
        await self.refresh_events()

    # ── Projections ──

    def current_miles(self) -> int | None:
        readings = [e.miles for e in self.canonical_events() if e.miles is not None]
        return max(readings) if readings else None

    def canonical_events(self) -> list[CanonicalEvent]:
        return sort_newest_first(normalize(raw) for raw in self._events)

    def filter_counts(self) -> dict[str, int]:
        events = self.canonical_events()
        return {
            name: sum(1 for e in events if types is None or e.type in types)
            for name, types in TIMELINE_FILTERS.items()
        }

    def entries(
        self,
        filter_name: str = "all",
        search: str = "",
        context: RenderContext | None = None,
    ) -> list[TimelineEntry]:
        """Cards for the current events, newest first.

        Raises:
            ValueError: If ``filter_name`` is not a known filter.
        """
        if filter_name not in TIMELINE_FILTERS:
            raise ValueError(
                f"Unknown filter: {filter_name!r} "
                f"(expected one of {', '.join(TIMELINE_FILTERS)})"
            )
        types = TIMELINE_FILTERS[filter_name]
        context = context or RenderContext(current_miles=self.current_miles())
        needle = search.strip().lower()

        shown: list[tuple[CanonicalEvent, CardViewModel]] = []
        for event in self.canonical_events():
            if types is not None and event.type not in types:
                continue
            card = self._render(event, context)
            if needle and not _matches(event, card, needle):
                continue
            shown.append((event, card))

        entries: list[TimelineEntry] = []
        for index, (event, card) in enumerate(shown):
            previous = shown[index + 1][0] if index + 1 < len(shown) else None
            image_id = event.linked_image.id if event.linked_image else None
            entries.append(TimelineEntry(
                event=event,
                card=card,
                days_since_previous=_days_between(previous, event),
                miles_since_previous=_miles_between(previous, event),
                image_status=self.poller.status(image_id) if image_id else None,
                just_completed=bool(image_id) and self.poller.is_just_completed(image_id),
                expanded=event.id in self.expanded,
                selected=event.id in self.selected,
            ))
        return entries

    def month_groups(
        self, filter_name: str = "all", search: str = ""
    ) -> list[MonthGroup]:
        return group_by_month(self.entries(filter_name, search))

    def _render(self, event: CanonicalEvent, context: RenderContext) -> CardViewModel:
        card = self._registry.render(event, context)
        if self._layout != "auto":
            card = replace(card, layout=decide_layout(card.data_items, self._layout).mode)
        return card

    # ── Actions ──

    async def delete_event(self, event_id: str) -> None:
        await self._api.delete_event(self._vehicle_id, event_id)
        self.expanded.discard(event_id)
        self.selected.discard(event_id)
        await self.refresh_events()

    async def delete_selected(self) -> int:
        """Delete every selected event. Returns how many were deleted.

        Raises:
            APIError: If any deletion failed (after refreshing the list).
        """
        failures: list[tuple[str, APIError]] = []
        ids = list(self.selected)
        for event_id in ids:
            try:
                await self._api.delete_event(self._vehicle_id, event_id)
            except APIError as e:
                failures.append((event_id, e))
            else:
                self.selected.discard(event_id)
        logger.info("Bulk deleted %d of %d events", len(ids) - len(failures), len(ids))
        await self.refresh_events()

        if failures:
            first_id, first_error = failures[0]
            raise APIError(
                f"Failed to delete {len(failures)} of {len(ids)} events "
                f"(first: {first_id}: {first_error})",
                status_code=first_error.status_code,
                path=first_error.path,
            ) from first_error
        return len(ids)

    async def set_primary(self, image_id: str, image_type: str | None = None) -> None:
        fields = {"image_type": image_type} if image_type else {}
        await self._api.update_image(self._vehicle_id, image_id, "set_primary", **fields)
        await self.refresh_images()

    async def remove_primary(self, image_id: str) -> None:
        await self._api.update_image(self._vehicle_id, image_id, "remove_primary")
        await self.refresh_images()

    async def reprocess(self, image_id: str) -> None:
        """Reset an image to pending and ask the server to extract it again.

        Raises:
            ValueError: If the image is unknown.
            InvalidTransition: If the image is still being processed.
            APIError: If the request failed; the previous status is restored.
        """
        image = self.image(image_id)
        if image is None:
            raise ValueError(f"Unknown image: {image_id}")

        previous = self.poller.status(image_id)
        self.poller.request_reprocess(image_id)
        self._replace_status(image_id, ProcessingStatus.PENDING)
        try:
            await self._api.process_photo(self._vehicle_id, image_id, image.url)
        except APIError:
            logger.warning("Reprocess request for image %s failed", image_id)
            self.poller.revert(image_id, previous)
            self._replace_status(image_id, previous)
            raise

        # A poll may have landed while the request was in flight
        if self.poller.status(image_id) is ProcessingStatus.PENDING:
            self.poller.acknowledge(image_id)
            self._replace_status(image_id, ProcessingStatus.PROCESSING)

    def _replace_status(self, image_id: str, status: ProcessingStatus | None) -> None:
        self._images = [
            replace(img, processing_status=status) if img.id == image_id else img
            for img in self._images
        ]

    def close(self) -> None:
        self.poller.close()


def _matches(event: CanonicalEvent, card: CardViewModel, needle: str) -> bool:
    haystack = [card.title, card.subtitle, event.vendor, event.type, humanize(event.type)]
    return any(needle in text.lower() for text in haystack if text)


def _days_between(older: CanonicalEvent | None, newer: CanonicalEvent) -> int | None:
    if older is None:
        return None
    if not isinstance(older.timestamp, datetime) or not isinstance(newer.timestamp, datetime):
        return None
    return (newer.timestamp - older.timestamp).days


def _miles_between(older: CanonicalEvent | None, newer: CanonicalEvent) -> int | None:
    if older is None or older.miles is None or newer.miles is None:
        return None
    return newer.miles - older.miles
