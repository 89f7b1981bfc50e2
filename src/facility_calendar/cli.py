from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import orjson

from .api.serializers import serialize_layout
from .bootstrap import configure_logging
from .core.ranges import range_for_view
from .core.timezone import today_key
from .domain import ViewMode
from .services import CalendarService, ServiceContext
from .services.http import run_local_server

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Facility calendar command line interface.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    api_parser = subparsers.add_parser("api", help="Start the FastAPI server exposing the scheduling functions.")
    api_parser.add_argument("--host", default="127.0.0.1")
    api_parser.add_argument("--port", type=int, default=8000)

    day_parser = subparsers.add_parser("day", help="Fetch one day from the calendar server and print its layout.")
    day_parser.add_argument("--date", default=None, help="Day to show as YYYY-MM-DD (defaults to today).")

    return parser


async def print_day_layout(date: Optional[str]) -> int:
    context = ServiceContext()
    service = CalendarService(context)
    key = date or today_key(service.zone)
    try:
        events = await service.load_range(range_for_view(ViewMode.DAY, key, service.zone))
    finally:
        await context.aclose()
    if events is None:
        logger.error("Could not load %s: %s", key, service.state.error or "request failed")
        return 1

    report = {
        "date": key,
        "timeZone": service.zone,
        "layouts": [serialize_layout(layout) for layout in service.day_layout(key)],
    }
    sys.stdout.write(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    logging.getLogger(__name__).info("Facility calendar CLI starting")
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "api":
        run_local_server(host=args.host, port=args.port)
        return 0
    if args.command == "day":
        return asyncio.run(print_day_layout(args.date))
    parser.print_help()  # pragma: no cover - argparse enforces choices
    return 2


if __name__ == "__main__":
    sys.exit(main())
