"""Tests for the command-line entry point."""

import json
from unittest.mock import AsyncMock

import pytest

from motomind.client import APIError
from motomind.timeline import cli


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("MOTOMIND_API_URL", "MOTOMIND_API_TOKEN", "MOTOMIND_VEHICLE_ID"):
        monkeypatch.delenv(name, raising=False)


class FakeAPI:
    def __init__(self):
        self.list_events = AsyncMock(return_value=[])
        self.list_images = AsyncMock(return_value=[])
        self.delete_event = AsyncMock(return_value=None)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


def _events_file(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps([
        {"id": "e1", "type": "fuel", "created_at": "2025-05-20T10:00:00Z",
         "miles": 77306, "total_amount": 42.5, "mpg": 32.5, "station": "Shell"},
        {"id": "e2", "type": "car_wash", "created_at": "2025-05-21", "wash_type": "deluxe"},
    ]))
    return path


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 1
    assert "motomind-timeline" in capsys.readouterr().out


def test_render_text(tmp_path, capsys):
    cli.main(["render", str(_events_file(tmp_path))])
    out = capsys.readouterr().out
    assert "Fuel Fill-Up" in out
    assert "Car Wash" in out


def test_render_json_with_layout(tmp_path, capsys):
    cli.main(["render", str(_events_file(tmp_path)), "--json", "--layout", "list"])
    cards = json.loads(capsys.readouterr().out)
    assert [c["title"] for c in cards] == ["Fuel Fill-Up", "Car Wash"]
    assert all(c["layout"] == "list" for c in cards)


def test_render_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["render", str(tmp_path / "missing.json")])
    assert exc_info.value.code == 1
    assert "Cannot read" in capsys.readouterr().err


def test_invalid_config(tmp_path, capsys):
    config = tmp_path / "timeline.toml"
    config.write_text('[layout]\nmode = "masonry"\n')
    with pytest.raises(SystemExit):
        cli.main(["-c", str(config), "render", str(_events_file(tmp_path))])
    assert "Invalid configuration" in capsys.readouterr().err


def test_delete_requires_vehicle(capsys):
    with pytest.raises(SystemExit):
        cli.main(["delete", "e1"])
    assert "No vehicle id" in capsys.readouterr().err


def test_delete(monkeypatch, capsys):
    api = FakeAPI()
    monkeypatch.setattr(cli, "_client", lambda config: api)
    cli.main(["--vehicle", "veh-1", "delete", "e1"])
    api.delete_event.assert_awaited_once_with("veh-1", "e1")
    assert "Deleted event e1" in capsys.readouterr().out


def test_api_error_exits(monkeypatch, capsys):
    api = FakeAPI()
    api.delete_event.side_effect = APIError("Event not found", status_code=404)
    monkeypatch.setattr(cli, "_client", lambda config: api)
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--vehicle", "veh-1", "delete", "e1"])
    assert exc_info.value.code == 1
    assert "API error: Event not found" in capsys.readouterr().err
