# planner/main.py
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import argparse
from datetime import date
from typing import List, Optional

from core.settings import APP_NAME
from datetime_utils import parse_day
from helpers.datetime_utils import duration, format_duration
from services.context import PlannerContext
from services.google_auth import GoogleAuth
from services.google_calendar import GoogleCalendarFeed
from services.planner import Planner
from services.timeline import Occurrence
from storage.config import load_config
from storage.db import get_session, init_db
from storage.repository import SqlPlannerRepository


def _format_line(occ: Occurrence) -> str:
    mark = "x" if occ.completed else " "
    if occ.is_all_day:
        when = "all day    "
    else:
        when = f"{occ.start_time}-{occ.end_time}"
    length = "" if occ.is_all_day else f" ({format_duration(duration(occ.start_time, occ.end_time))})"
    return f"[{mark}] {when}  {occ.kind:<8} {occ.title}{length}"


def _print_day(day: date, occurrences: List[Occurrence]) -> None:
    print(day.strftime("%Y-%m-%d %a"))
    if not occurrences:
        print("  (empty)")
    for occ in occurrences:
        print(f"  {_format_line(occ)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Print the merged weekly planner agenda.")
    parser.add_argument("view", choices=("day", "week"), nargs="?", default="day")
    parser.add_argument("--date", help="YYYY-MM-DD, defaults to today")
    parser.add_argument("--user", help="user id, defaults to the one in config.json")
    parser.add_argument("--google", action="store_true", help="overlay Google Calendar events")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    day = parse_day(args.date) if args.date else date.today()
    if day is None:
        print(f"Invalid date: {args.date}", file=sys.stderr)
        return 2

    init_db()
    feed = None
    if args.google:
        auth = GoogleAuth()
        auth.ensure_credentials()
        feed = GoogleCalendarFeed(auth)

    planner = Planner(SqlPlannerRepository(get_session), feed=feed, config=config)
    ctx = PlannerContext(user_id=args.user or config.user_id, today=date.today())
    if not ctx.is_authenticated:
        print("No user configured; pass --user or set user_id in config.json", file=sys.stderr)

    if args.view == "day":
        view = planner.load_day(ctx, day)
        _print_day(view.day, view.occurrences)
        error = view.calendar_error
    else:
        week = planner.load_week(ctx, day)
        for current, occurrences in week.days.items():
            _print_day(current, occurrences)
        error = week.calendar_error
    if error:
        print(f"Google Calendar: {error}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
