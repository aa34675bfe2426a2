"""Async client for the vehicle persistence API.

Blocking ``requests`` calls run in worker threads via ``asyncio.to_thread``
so the timeline engine stays on a single event loop. A refresh and a poll
can overlap, so calls are serialized: one ``requests.Session`` is shared
and it is not safe to use from several threads at once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from .types import LinkedImage, RawEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000/api"


class APIError(RuntimeError):
    """Raised when a request fails at the transport or HTTP level."""

    def __init__(
        self, message: str, status_code: int | None = None, path: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.path = path


class VehicleAPI:
    """Thin wrapper around the per-vehicle REST endpoints.

    No retries: a failed call raises APIError and the caller decides.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        self._lock = asyncio.Lock()
        self._session.headers.update({"Accept": "application/json"})
        if token:
            self._session.headers.update({"Authorization": f"Bearer {token}"})

    async def __aenter__(self) -> VehicleAPI:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    # ── Events ──

    async def list_events(self, vehicle_id: str) -> list[RawEvent]:
        """Fetch the full event list for a vehicle."""
        body = await self._request("GET", f"/vehicles/{vehicle_id}/events")
        records = _unwrap_list(body, "events", "timeline")
        events = [RawEvent.from_dict(r) for r in records if isinstance(r, dict)]
        logger.debug("Fetched %d events for vehicle %s", len(events), vehicle_id)
        return events

    async def delete_event(self, vehicle_id: str, event_id: str) -> None:
        await self._request("DELETE", f"/vehicles/{vehicle_id}/timeline/{event_id}")
        logger.info("Deleted event %s", event_id)

    # ── Images ──

    async def list_images(self, vehicle_id: str) -> list[LinkedImage]:
        """Fetch all images (with processing status) for a vehicle."""
        body = await self._request("GET", f"/vehicles/{vehicle_id}/images")
        records = _unwrap_list(body, "images")
        images = [LinkedImage.from_dict(r) for r in records if isinstance(r, dict)]
        logger.debug("Fetched %d images for vehicle %s", len(images), vehicle_id)
        return images

    async def process_photo(
        self, vehicle_id: str, image_id: str, image_url: str
    ) -> dict:
        """Ask the server to (re)run extraction on an image."""
        body = await self._request(
            "POST",
            f"/vehicles/{vehicle_id}/photos/process",
            json={"imageId": image_id, "imageUrl": image_url},
        )
        logger.info("Requested processing for image %s", image_id)
        return body if isinstance(body, dict) else {}

    async def update_image(
        self, vehicle_id: str, image_id: str, action: str, **fields: Any
    ) -> dict:
        """PATCH an image, e.g. ``action="set_primary", image_type="exterior"``."""
        payload = {"imageId": image_id, "action": action, **fields}
        body = await self._request(
            "PATCH", f"/vehicles/{vehicle_id}/images", json=payload
        )
        logger.info("Image %s: %s", image_id, action)
        return body if isinstance(body, dict) else {}

    # ── Transport ──

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        async with self._lock:
            return await asyncio.to_thread(self._request_sync, method, path, json)

    def _request_sync(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(
                method, url, json=json, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise APIError(f"{method} {path} failed: {e}", path=path) from e

        if resp.status_code >= 400:
            raise APIError(
                f"{method} {path} returned {resp.status_code}: {_error_message(resp)}",
                status_code=resp.status_code,
                path=path,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise APIError(
                f"{method} {path} returned invalid JSON",
                status_code=resp.status_code,
                path=path,
            ) from e


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason or ""
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)


def _unwrap_list(body: Any, *keys: str) -> list:
    """Find the record list in ``[...]``, ``{key: [...]}`` or ``{data: {key: [...]}}``."""
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []
    for key in keys:
        if isinstance(body.get(key), list):
            return body[key]
    data = body.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return _unwrap_list(data, *keys)
    return []
