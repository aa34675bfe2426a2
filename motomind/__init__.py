"""Vehicle history toolkit: API client, wire types and the timeline engine."""

from .client import APIError, VehicleAPI
from .types import LinkedImage, ProcessingStatus, RawEvent

__all__ = [
    "APIError",
    "VehicleAPI",
    "LinkedImage",
    "ProcessingStatus",
    "RawEvent",
]
