from __future__ import annotations

import httpx
import orjson
import pytest

from conftest import make_event
from facility_calendar import cli

pytestmark = pytest.mark.unit


@pytest.fixture
def patched_context(monkeypatch, context):
    monkeypatch.setattr(cli, "ServiceContext", lambda: context)
    return context


def test_parser_requires_a_command():
    parser = cli.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args([])

    args = parser.parse_args(["api", "--port", "9001"])
    assert (args.command, args.host, args.port) == ("api", "127.0.0.1", 9001)
    assert parser.parse_args(["day", "--date", "2024-06-05"]).date == "2024-06-05"


async def test_day_command_prints_layouts(patched_context, server, capsys):
    server.activities = [
        make_event("a", "2024-06-05", "10:00", "11:00").to_record(),
        make_event("b", "2024-06-05", "10:30", "11:30").to_record(),
    ]

    assert await cli.print_day_layout("2024-06-05") == 0

    report = orjson.loads(capsys.readouterr().out)
    assert report["date"] == "2024-06-05"
    assert report["timeZone"] == "America/New_York"
    assert [(item["event"]["id"], item["lane"], item["isConflict"]) for item in report["layouts"]] == [
        ("a", 0, True),
        ("b", 1, True),
    ]
    (request,) = server.range_calls()
    assert request.url.params["view"] == "day"


async def test_day_command_fails_when_server_errors(patched_context, server, capsys):
    server.respond("GET", "/calendar/range", httpx.Response(503, json={"error": "Maintenance"}))

    assert await cli.print_day_layout("2024-06-05") == 1
    assert capsys.readouterr().out == ""
