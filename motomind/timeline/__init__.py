"""Timeline rendering engine: normalize, render, lay out and poll."""

from .cards import CardViewModel, DataItem
from .feed import TimelineFeed
from .layout import decide_layout
from .normalizer import INVALID_DATE, CanonicalEvent, normalize
from .poller import InvalidTransition, ProcessingPoller
from .renderers import RenderContext, create_registry, layout_mode, render_event

__all__ = [
    "CardViewModel",
    "DataItem",
    "TimelineFeed",
    "decide_layout",
    "INVALID_DATE",
    "CanonicalEvent",
    "normalize",
    "InvalidTransition",
    "ProcessingPoller",
    "RenderContext",
    "create_registry",
    "layout_mode",
    "render_event",
]
