"""Tests for the VehicleAPI client."""

import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from motomind.client import APIError, VehicleAPI
from motomind.types import ProcessingStatus, RawEvent


def _response(status_code=200, body=None, content=b"x"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = content
    resp.json.return_value = body
    resp.text = ""
    resp.reason = "Error"
    return resp


def _api(response=None, side_effect=None):
    api = VehicleAPI(base_url="https://api.example/api/", token="secret")
    api._session = MagicMock()
    if side_effect is not None:
        api._session.request.side_effect = side_effect
    else:
        api._session.request.return_value = response
    return api


class TestVehicleAPI:
    def test_auth_header(self):
        api = VehicleAPI(token="secret")
        assert api._session.headers["Authorization"] == "Bearer secret"
        api.close()

    def test_no_token_no_header(self):
        api = VehicleAPI()
        assert "Authorization" not in api._session.headers
        api.close()

    @pytest.mark.asyncio
    async def test_list_events_plain_list(self):
        api = _api(_response(body=[
            {"id": "e1", "type": "fuel", "created_at": "2025-01-01", "total_amount": 40},
            "garbage",
        ]))
        events = await api.list_events("v1")
        assert len(events) == 1
        assert isinstance(events[0], RawEvent)
        assert events[0].payload == {"total_amount": 40}

        method, url = api._session.request.call_args.args
        assert method == "GET"
        assert url == "https://api.example/api/vehicles/v1/events"

    @pytest.mark.asyncio
    async def test_list_events_wrapped_timeline(self):
        api = _api(_response(body={"data": {"timeline": [{"id": "e1", "type": "odometer"}]}}))
        events = await api.list_events("v1")
        assert [e.id for e in events] == ["e1"]

    @pytest.mark.asyncio
    async def test_list_images(self):
        api = _api(_response(body={"images": [
            {"id": "i1", "public_url": "https://cdn/i1.jpg", "processing_status": "processing"},
            {"id": "i2", "processing_status": "weird"},
        ], "total": 2}))
        images = await api.list_images("v1")
        assert images[0].url == "https://cdn/i1.jpg"
        assert images[0].processing_status is ProcessingStatus.PROCESSING
        assert images[1].processing_status is None

    @pytest.mark.asyncio
    async def test_process_photo_payload(self):
        api = _api(_response(body={"success": True}))
        result = await api.process_photo("v1", "i1", "https://cdn/i1.jpg")
        assert result == {"success": True}
        call = api._session.request.call_args
        assert call.args[0] == "POST"
        assert call.args[1].endswith("/vehicles/v1/photos/process")
        assert call.kwargs["json"] == {"imageId": "i1", "imageUrl": "https://cdn/i1.jpg"}

    @pytest.mark.asyncio
    async def test_update_image_payload(self):
        api = _api(_response(body={}))
        await api.update_image("v1", "i1", "set_primary", image_type="exterior")
        call = api._session.request.call_args
        assert call.args[0] == "PATCH"
        assert call.kwargs["json"] == {
            "imageId": "i1", "action": "set_primary", "image_type": "exterior",
        }

    @pytest.mark.asyncio
    async def test_delete_event_no_content(self):
        api = _api(_response(status_code=204, content=b""))
        assert await api.delete_event("v1", "e1") is None
        method, url = api._session.request.call_args.args
        assert method == "DELETE"
        assert url.endswith("/vehicles/v1/timeline/e1")

    @pytest.mark.asyncio
    async def test_http_error(self):
        api = _api(_response(status_code=404, body={"error": "Vehicle not found"}))
        with pytest.raises(APIError, match="Vehicle not found") as exc_info:
            await api.list_events("v1")
        assert exc_info.value.status_code == 404
        assert exc_info.value.path == "/vehicles/v1/events"

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self):
        api = _api(side_effect=requests.ConnectionError("refused"))
        with pytest.raises(APIError, match="refused") as exc_info:
            await api.list_images("v1")
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        resp = _response()
        resp.json.side_effect = ValueError("bad json")
        api = _api(resp)
        with pytest.raises(APIError, match="invalid JSON"):
            await api.list_events("v1")

    @pytest.mark.asyncio
    async def test_overlapping_calls_are_serialized(self):
        """The shared session is never used by two threads at once."""
        guard = threading.Lock()
        active = 0
        peak = 0

        def slow_request(*args, **kwargs):
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.05)
            with guard:
                active -= 1
            return _response(body=[])

        api = _api(side_effect=slow_request)
        await asyncio.gather(
            api.list_events("v1"), api.list_images("v1"), api.list_events("v2")
        )
        assert api._session.request.call_count == 3
        assert peak == 1
