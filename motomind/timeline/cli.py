"""CLI entry point for the timeline module."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from ..client import APIError, VehicleAPI
from ..types import ProcessingStatus, RawEvent
from .config import LAYOUT_MODES, TimelineConfig, load_config
from .feed import TIMELINE_FILTERS, TimelineFeed, group_by_month
from .poller import ANY_IMAGE
from .renderers import render_event
from .renderers.formatting import money

_STATUS_ICONS = {
    ProcessingStatus.PENDING: "⏳",
    ProcessingStatus.PROCESSING: "🔄",
    ProcessingStatus.COMPLETED: "✅",
    ProcessingStatus.FAILED: "❌",
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="motomind-timeline",
        description="Vehicle timeline: render events and follow photo processing",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the config file (TOML)",
    )
    parser.add_argument(
        "--vehicle", type=str, default=None, help="Vehicle id (overrides config)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # feed
    feed_parser = sub.add_parser("feed", help="Show the vehicle timeline")
    feed_parser.add_argument(
        "--filter", choices=list(TIMELINE_FILTERS), default=None, help="Event filter"
    )
    feed_parser.add_argument("--search", type=str, default="", help="Free-text search")
    feed_parser.add_argument("--group", action="store_true", help="Group by month")
    feed_parser.add_argument("--json", action="store_true", help="Output JSON")

    # render
    render_parser = sub.add_parser("render", help="Render events from a JSON file")
    render_parser.add_argument("file", type=str, help="JSON list of raw events")
    render_parser.add_argument(
        "--layout", choices=LAYOUT_MODES, default=None, help="Force a layout"
    )
    render_parser.add_argument("--json", action="store_true", help="Output JSON")

    # images
    sub.add_parser("images", help="List images and their processing status")

    # watch
    watch_parser = sub.add_parser("watch", help="Follow processing until all images settle")
    watch_parser.add_argument(
        "--timeout", type=float, default=300.0, help="Give up after N seconds"
    )

    # reprocess
    reprocess_parser = sub.add_parser("reprocess", help="Run extraction on an image again")
    reprocess_parser.add_argument("image_id", type=str)

    # delete
    delete_parser = sub.add_parser("delete", help="Delete a timeline event")
    delete_parser.add_argument("event_id", type=str)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        match args.command:
            case "render":
                _cmd_render(config, args)
            case "feed":
                asyncio.run(_cmd_feed(config, args))
            case "images":
                asyncio.run(_cmd_images(config, args))
            case "watch":
                asyncio.run(_cmd_watch(config, args))
            case "reprocess":
                asyncio.run(_cmd_reprocess(config, args))
            case "delete":
                asyncio.run(_cmd_delete(config, args))
    except APIError as e:
        print(f"API error: {e}", file=sys.stderr)
        sys.exit(1)


def _vehicle_id(config: TimelineConfig, args) -> str:
    vehicle_id = args.vehicle or config.feed.vehicle_id
    if not vehicle_id:
        print(
            "No vehicle id. Use --vehicle, [feed] vehicle_id or MOTOMIND_VEHICLE_ID.",
            file=sys.stderr,
        )
        sys.exit(1)
    return vehicle_id


def _open_feed(config: TimelineConfig, api: VehicleAPI, vehicle_id: str) -> TimelineFeed:
    return TimelineFeed(
        api,
        vehicle_id,
        layout=config.layout.mode,
        poll_interval=config.poller.interval_seconds,
        pulse_seconds=config.poller.pulse_seconds,
    )


def _client(config: TimelineConfig) -> VehicleAPI:
    return VehicleAPI(
        base_url=config.api.base_url,
        token=config.api.token,
        timeout=config.api.timeout,
    )


def _cmd_render(config: TimelineConfig, args) -> None:
    path = Path(args.file)
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        sys.exit(1)
    if isinstance(records, dict):
        records = records.get("events", [records])

    layout = args.layout or config.layout.mode
    cards = [
        render_event(RawEvent.from_dict(r), layout=layout)
        for r in records
        if isinstance(r, dict)
    ]

    if args.json:
        print(json.dumps([c.to_dict() for c in cards], ensure_ascii=False, indent=2))
        return
    for card in cards:
        print(card.display())
        print(f"{'─' * 50}")


async def _cmd_feed(config: TimelineConfig, args) -> None:
    filter_name = args.filter or config.feed.default_filter
    if filter_name not in TIMELINE_FILTERS:
        print(f"Unknown filter: {filter_name}", file=sys.stderr)
        sys.exit(1)
    async with _client(config) as api:
        feed = _open_feed(config, api, _vehicle_id(config, args))
        try:
            await feed.refresh_events()
            entries = feed.entries(filter_name, args.search)
            counts = feed.filter_counts()
        finally:
            feed.close()

    if args.json:
        data = [
            {
                "id": e.event.id,
                "type": e.event.type,
                "timestamp": _timestamp_text(e.event.timestamp),
                "days_since_previous": e.days_since_previous,
                "miles_since_previous": e.miles_since_previous,
                "card": e.card.to_dict(),
            }
            for e in entries
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    summary = "  ".join(f"{name}: {count}" for name, count in counts.items() if count)
    print(f"{len(entries)} events ({summary})")
    if not entries:
        print("No events match.")
        return

    if args.group:
        for group in group_by_month(entries):
            print()
            print(f"━━ {group.label} · {group.count} events · {money(group.total_spend)}")
            for entry in group.entries:
                print()
                print(entry.card.display())
    else:
        for entry in entries:
            print()
            print(entry.card.display())


async def _cmd_images(config: TimelineConfig, args) -> None:
    async with _client(config) as api:
        feed = _open_feed(config, api, _vehicle_id(config, args))
        try:
            await feed.refresh_images()
            images = feed.images
        finally:
            feed.close()

    if not images:
        print("No images.")
        return
    print(f"{len(images)} images")
    for img in images:
        icon = _STATUS_ICONS.get(img.processing_status, "·")
        status = img.processing_status.value if img.processing_status else "untracked"
        primary = " (primary)" if img.is_primary else ""
        print(f"  {icon} {img.id}  {status:<10} {img.image_type}{primary}  {img.filename}")


async def _cmd_watch(config: TimelineConfig, args) -> None:
    async with _client(config) as api:
        feed = _open_feed(config, api, _vehicle_id(config, args))
        try:
            await feed.refresh()
            if not feed.poller.has_active:
                print("No images processing.")
                return

            def on_change(image_id, old, new):
                icon = _STATUS_ICONS.get(new, "·")
                before = old.value if old else "untracked"
                after = new.value if new else "untracked"
                print(f"  {icon} {image_id}: {before} → {after}")

            feed.poller.subscribe(ANY_IMAGE, on_change)
            print(f"Watching {len(feed.poller.active)} image(s)...")
            await _wait_until_idle(feed, args.timeout)
        finally:
            feed.close()


async def _wait_until_idle(feed: TimelineFeed, timeout: float) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while feed.poller.has_active:
        if loop.time() >= deadline:
            print(f"Timed out; {len(feed.poller.active)} image(s) still processing.")
            return
        await asyncio.sleep(0.5)
    print("All images settled.")


async def _cmd_reprocess(config: TimelineConfig, args) -> None:
    async with _client(config) as api:
        feed = _open_feed(config, api, _vehicle_id(config, args))
        try:
            await feed.refresh_images()
            try:
                await feed.reprocess(args.image_id)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                sys.exit(1)
            status = feed.poller.status(args.image_id)
            print(f"Reprocessing {args.image_id} ({status.value if status else 'queued'})")
        finally:
            feed.close()


async def _cmd_delete(config: TimelineConfig, args) -> None:
    async with _client(config) as api:
        feed = _open_feed(config, api, _vehicle_id(config, args))
        try:
            await feed.delete_event(args.event_id)
        finally:
            feed.close()
    print(f"Deleted event {args.event_id}")


def _timestamp_text(value) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)
