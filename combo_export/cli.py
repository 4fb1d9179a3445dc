from __future__ import annotations

import argparse
import signal
import sys
from typing import Any, Dict, List, Optional

from .errors import ExportError, friendly_message
from .models import ExecutionResult
from .profiles import PROFILES, get_profile
from .services import ExportServices
from .settings import AppSettings


def _filter_arg(value: str):
    name, sep, raw = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUES, got {value!r}")
    return name.strip(), raw


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="combo-export",
        description="Export one spreadsheet per combination of filter values.",
        formatter_class=lambda prog: argparse.HelpFormatter(prog, max_help_position=60),
    )
    parser.add_argument("-c", "--config", metavar="<json>", dest="config",
                        help="Settings file (JSON). Defaults apply when omitted.")
    parser.add_argument("--operation", choices=sorted(PROFILES), default="export",
                        help="Operation profile. (default=export)")
    parser.add_argument("--from", metavar="YYYYMM", dest="from_month", required=True,
                        help="First month of the period.")
    parser.add_argument("--to", metavar="YYYYMM", dest="to_month", required=True,
                        help="Last month of the period.")
    parser.add_argument("-f", "--filter", metavar="NAME=VALUES", dest="filters", action="append",
                        type=_filter_arg, default=[],
                        help="Comma-separated values for one dimension; repeatable. Blank means all.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print every combination outcome.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    settings = AppSettings.load_json(args.config) if args.config else AppSettings.from_dict({})
    filters: Dict[str, str] = dict(args.filters)

    def on_progress(event: str, payload: Any) -> None:
        if event == "start":
            print(f"{payload['total']} combinations, period {payload['period']}")
        elif event == "result" and args.verbose and isinstance(payload, ExecutionResult):
            print(f"  #{payload.sequence}: {payload.outcome.value} {payload.message}")

    try:
        with ExportServices(settings, profile=get_profile(args.operation)) as services:
            services.attach_logging()
            request = services.build_request(args.from_month, args.to_month, filters)
            token = services.cancellation.start_operation(services.profile.name)
            previous = signal.signal(signal.SIGINT, lambda *_: services.cancellation.cancel_operation())
            try:
                summary = services.runner.run(request, token=token, on_progress=on_progress)
            finally:
                signal.signal(signal.SIGINT, previous)
                services.cancellation.complete_operation()
    except ExportError as e:
        print(friendly_message(e), file=sys.stderr)
        return 2

    print(summary.text)
    if summary.cancelled:
        return 130
    return 0 if summary.counters.errored == 0 else 1
