"""TOML configuration loader for the timeline module."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

from ..client import DEFAULT_BASE_URL

LAYOUT_MODES = ("auto", "grid", "list")


@dataclass
class APIConfig:
    base_url: str = DEFAULT_BASE_URL
    token: str = ""
    timeout: float = 30.0


@dataclass
class FeedConfig:
    vehicle_id: str = ""
    default_filter: str = "all"


@dataclass
class PollerConfig:
    interval_seconds: float = 3.0
    pulse_seconds: float = 2.0


@dataclass
class LayoutConfig:
    mode: str = "auto"


@dataclass
class TimelineConfig:
    api: APIConfig = field(default_factory=APIConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)


def load_config(path: str | Path | None = None) -> TimelineConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The API URL, token and vehicle id can come from environment variables.

    Raises:
        ValueError: On an unknown layout mode or a non-positive interval.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    api = raw.get("api", {})
    fd = raw.get("feed", {})
    pol = raw.get("poller", {})
    lay = raw.get("layout", {})

    # Resolve connection settings: config file → environment variable
    base_url = api.get("base_url", "") or os.environ.get(
        "MOTOMIND_API_URL", DEFAULT_BASE_URL
    )
    token = api.get("token", "") or os.environ.get("MOTOMIND_API_TOKEN", "")
    vehicle_id = fd.get("vehicle_id", "") or os.environ.get(
        "MOTOMIND_VEHICLE_ID", ""
    )

    config = TimelineConfig(
        api=APIConfig(
            base_url=base_url,
            token=token,
            timeout=float(api.get("timeout", 30.0)),
        ),
        feed=FeedConfig(
            vehicle_id=str(vehicle_id),
            default_filter=fd.get("default_filter", "all"),
        ),
        poller=PollerConfig(
            interval_seconds=float(pol.get("interval_seconds", 3.0)),
            pulse_seconds=float(pol.get("pulse_seconds", 2.0)),
        ),
        layout=LayoutConfig(mode=lay.get("mode", "auto")),
    )
    _validate(config)
    return config


def _validate(config: TimelineConfig) -> None:
    if config.layout.mode not in LAYOUT_MODES:
        raise ValueError(
            f"Invalid layout mode: {config.layout.mode!r} "
            f"(expected one of {', '.join(LAYOUT_MODES)})"
        )
    if config.poller.interval_seconds <= 0:
        raise ValueError("poller.interval_seconds must be positive")
    if config.poller.pulse_seconds <= 0:
        raise ValueError("poller.pulse_seconds must be positive")
    if config.api.timeout <= 0:
        raise ValueError("api.timeout must be positive")
