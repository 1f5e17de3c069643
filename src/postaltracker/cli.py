import argparse
import asyncio
import json
from typing import List, Optional

import httpx
from dotenv import load_dotenv

from .client import CarrierClient
from .config import Settings, setup_logging
from .errors import (
    MissingCredentialsError,
    TrackingValidationError,
    classify_upstream_error,
    upstream_message,
)
from .history import HistoryStore
from .models import BatchResult, HistoryEntry, TrackingRecord
from .service import track_batch, track_sync
from .utils import format_date, format_datetime, relative_time


def _settings(args: argparse.Namespace) -> Settings:
    load_dotenv()
    settings = Settings.from_env()
    setup_logging("DEBUG" if args.verbose else settings.log_level)
    return settings


def _report_error(exc: Exception) -> int:
    if isinstance(exc, TrackingValidationError):
        msg = exc.message
        if exc.detail:
            msg += f" {exc.detail}"
        if exc.codes:
            msg += " " + ", ".join(str(c) for c in exc.codes)
        print(f"Error: {msg}")
        return 2
    if isinstance(exc, MissingCredentialsError):
        print(f"Error: {exc}")
        return 3
    if isinstance(exc, httpx.HTTPError):
        kind = classify_upstream_error(exc)
        print(f"Error: tracking service failure ({kind.value}): {upstream_message(exc)}")
    return 1


def cmd_track(args: argparse.Namespace) -> int:
    settings = _settings(args)
    carrier = CarrierClient(settings)
    if args.strict:
        record = track_sync(args.code, carrier=carrier)
    else:
        try:
            record = track_sync(args.code, carrier=carrier)
        except (TrackingValidationError, MissingCredentialsError, httpx.HTTPError) as exc:
            return _report_error(exc)

    if record is None:
        print("Object not found. Check the tracking code and try again.")
        return 1

    if not args.no_history:
        HistoryStore(settings.history_file).add_record(record)

    if args.json:
        print(json.dumps(record.to_json_dict(), indent=2, ensure_ascii=False))
    else:
        print_human(record)
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    settings = _settings(args)
    carrier = CarrierClient(settings)
    try:
        records = asyncio.run(track_batch(args.codes, carrier=carrier))
    except (TrackingValidationError, MissingCredentialsError, httpx.HTTPError) as exc:
        return _report_error(exc)

    if not args.no_history:
        store = HistoryStore(settings.history_file)
        for record in reversed(records):
            if record is not None:
                store.add_record(record)

    if args.json:
        print(json.dumps(BatchResult(resultados=records).to_json_dict(), indent=2, ensure_ascii=False))
        return 0
    for code, record in zip(args.codes, records):
        if record is None:
            print(f"\n{code.upper()}: not found")
        else:
            print()
            print_human(record)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    settings = _settings(args)
    store = HistoryStore(settings.history_file)
    if args.clear:
        store.clear()
        print("History cleared")
        return 0
    if args.remove:
        store.remove(args.remove.strip().upper())
        print(f"Removed {args.remove.strip().upper()}")
        return 0

    entries = store.list()
    if args.json:
        print(json.dumps([e.model_dump(mode="json", by_alias=True) for e in entries], indent=2, ensure_ascii=False))
        return 0
    if not entries:
        print("No queries yet")
        return 0
    for entry in entries:
        print_history_entry(entry)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import run

    settings = _settings(args)
    run(settings, host=args.host, port=args.port)
    return 0


def print_human(record: TrackingRecord) -> None:
    print(f"Code: {record.code}{' (import)' if record.is_import else ''}")
    service_line = record.category
    if record.description:
        service_line += f" - {record.description}"
    print(f"Service: {service_line}")
    print(f"Status: {record.last_status}")
    print(f"Delivered: {'yes' if record.delivered else 'no'}")
    if record.expected_delivery_date:
        print(f"Expected delivery: {format_date(record.expected_delivery_date)}")

    if not record.events:
        print("No tracking events")
        return

    print("\nTracking Events:")
    for event in record.events:
        print(f"- {format_datetime(event.date)}: {event.status}")
        print(f"  Location: {event.location}")
        if event.detail:
            print(f"  Details: {event.detail}")


def print_history_entry(entry: HistoryEntry) -> None:
    queried = entry.queried_at.isoformat(timespec="seconds")
    flag = " [import]" if entry.is_import else ""
    print(f"{entry.code}{flag}  {entry.last_status}  ({relative_time(queried)})")
    if entry.description:
        print(f"  {entry.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="postaltracker", description="Brazilian postal parcel tracking."
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    p_track = subparsers.add_parser("track", help="Track a parcel")
    p_track.add_argument("code", help="Tracking code, e.g. AA123456789BR")
    p_track.add_argument("--json", action="store_true", help="Output the normalized record as JSON")
    p_track.add_argument("--no-history", action="store_true", help="Do not record the query in history")
    p_track.add_argument(
        "--strict",
        action="store_true",
        help="Propagate errors (traceback) instead of printing a short message",
    )
    p_track.set_defaults(func=cmd_track)

    p_batch = subparsers.add_parser("batch", help="Track up to 10 parcels at once")
    p_batch.add_argument("codes", nargs="+", help="Tracking codes")
    p_batch.add_argument("--json", action="store_true", help="Output {resultados: [...]} JSON")
    p_batch.add_argument("--no-history", action="store_true", help="Do not record the queries in history")
    p_batch.set_defaults(func=cmd_batch)

    p_hist = subparsers.add_parser("history", help="Show recent queries")
    group = p_hist.add_mutually_exclusive_group()
    group.add_argument("--remove", metavar="CODE", help="Remove one code from history")
    group.add_argument("--clear", action="store_true", help="Forget every query")
    p_hist.add_argument("--json", action="store_true", help="Output history as JSON")
    p_hist.set_defaults(func=cmd_history)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP proxy")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=None, help="Defaults to $PORT or 3000")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
