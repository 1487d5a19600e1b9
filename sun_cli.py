"""Command-line entry point printing sunrise, sunset and twilight times in UTC."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from datetime import date
from typing import Callable, List, Optional, Sequence, TextIO

from pydantic import ValidationError

from solar import EphemerisAcquisitionError, EphemerisError, build_solver
from sun_models import GeoDate, ReportMode, SolverSettings
from sun_report import SunReport, Verbosity

LOGGER = logging.getLogger("sun")

USAGE = (
    "Usage: {prog} [-ahirsv] [+/-latitude] [+/-longitude]\n"
    "\n"
    "Options:\n"
    "  -a  Show all relevant times\n"
    "  -h  This help text\n"
    "  -i  Interactive mode\n"
    "  -r  Sunrise mode\n"
    "  -s  Sunset mode\n"
    "  -v  Verbose mode\n"
)

LOCATION_PROMPT = "Latitude (+ is north) and longitude (+ is east) : "
DATE_PROMPT = "Input date ( yyyy mm dd ) (ctrl-C exits): "

_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


class UsageError(Exception):
    """Raised when the command line cannot be turned into a report request."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=_program_name(), add_help=False)
    parser.add_argument(
        "-a", dest="modes", action="append_const", const=ReportMode.ALL,
        help="Show all relevant times",
    )
    parser.add_argument("-h", dest="help", action="store_true", help="This help text")
    parser.add_argument("-i", dest="interactive", action="store_true", help="Interactive mode")
    parser.add_argument(
        "-r", dest="modes", action="append_const", const=ReportMode.SUNRISE,
        help="Sunrise mode",
    )
    parser.add_argument(
        "-s", dest="modes", action="append_const", const=ReportMode.SUNSET,
        help="Sunset mode",
    )
    parser.add_argument("-v", dest="verbose", action="count", default=0, help="Verbose mode")
    parser.add_argument("coordinates", nargs="*", help="latitude and longitude in degrees")
    return parser


def parse_arguments(argv: Sequence[str]) -> argparse.Namespace:
    """Parse *argv*; the last of ``-a``/``-r``/``-s`` selects the mode."""

    options = _build_parser().parse_intermixed_args(list(argv))
    options.mode = options.modes[-1] if options.modes else None
    return options


def _program_name() -> str:
    return os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "sun"


def usage(code: int) -> int:
    print(USAGE.format(prog=_program_name()))
    return code


def parse_float(text: str) -> float:
    """Parse the leading number of *text* like C ``atof``; 0.0 when there is none."""

    match = _FLOAT_PREFIX.match(text)
    return float(match.group(1)) if match else 0.0


def _scan(line: str, patterns: Sequence[re.Pattern], convert: Callable) -> List:
    # sscanf-like: scan left to right, stop at the first field that does not convert.
    values = [convert(0)] * len(patterns)
    pos = 0
    for idx, pattern in enumerate(patterns):
        match = pattern.match(line, pos)
        if match is None:
            break
        values[idx] = convert(match.group(1))
        pos = match.end()
    return values


def from_arguments(positionals: Sequence[str], today: date) -> GeoDate:
    """Latitude and longitude from the first two positionals, date from *today*."""

    if len(positionals) < 2:
        raise UsageError("latitude and longitude are required")
    return GeoDate(
        latitude=parse_float(positionals[0]),
        longitude=parse_float(positionals[1]),
        year=today.year,
        month=today.month,
        day=today.day,
    )


def from_interactive_prompt(stdin: TextIO, stdout: TextIO) -> GeoDate:
    """Ask for position and date on two lines; malformed fields become 0."""

    stdout.write(LOCATION_PROMPT)
    stdout.flush()
    latitude, longitude = _scan(stdin.readline(), [_FLOAT_PREFIX] * 2, float)

    stdout.write(DATE_PROMPT)
    stdout.flush()
    year, month, day = _scan(stdin.readline(), [_INT_PREFIX] * 3, int)

    return GeoDate(latitude=latitude, longitude=longitude, year=year, month=month, day=day)


def resolve(
    options: argparse.Namespace,
    stdin: Optional[TextIO] = None,
    today: Optional[date] = None,
) -> GeoDate:
    """Positional coordinates take precedence over the interactive dialogue."""

    if len(options.coordinates) >= 2:
        return from_arguments(options.coordinates, today or date.today())
    if options.interactive:
        return from_interactive_prompt(stdin or sys.stdin, sys.stdout)
    raise UsageError("no position given")


def run(
    argv: Sequence[str],
    solver_factory: Callable,
    stdin: Optional[TextIO] = None,
    today: Optional[date] = None,
) -> int:
    """Parse *argv*, resolve the position and print the selected report."""

    try:
        options = parse_arguments(argv)
    except UsageError as exc:
        LOGGER.debug(json.dumps({"event": "usage_error", "error": str(exc)}))
        return usage(1)
    if options.help:
        return usage(0)

    verbosity = Verbosity()
    verbosity.raise_level(options.verbose)
    if options.interactive:
        verbosity.raise_level()
    mode = options.mode
    if mode is ReportMode.ALL:
        verbosity.raise_level()
    elif mode is None:
        verbosity.raise_level()
        mode = ReportMode.RISE_AND_SET

    try:
        geo = resolve(options, stdin=stdin, today=today)
    except UsageError as exc:
        LOGGER.debug(json.dumps({"event": "usage_error", "error": str(exc)}))
        return usage(1)
    except KeyboardInterrupt:
        print()
        return 130

    try:
        report = SunReport(solver_factory(), verbosity)
        return report.run(mode, geo)
    except (EphemerisAcquisitionError, EphemerisError, ValueError) as exc:
        LOGGER.error(
            json.dumps({"event": "solver_failed", "mode": mode.value, "error": str(exc)})
        )
        print(f"{_program_name()}: {exc}", file=sys.stderr)
        return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = SolverSettings.from_env()
    except ValidationError as exc:
        logging.basicConfig(stream=sys.stderr, format="%(message)s")
        LOGGER.error(json.dumps({"event": "settings_invalid", "error": str(exc)}))
        return 1
    logging.basicConfig(stream=sys.stderr, level=settings.log_level, format="%(message)s")

    if argv is None:
        argv = sys.argv[1:]
    return run(argv, lambda: build_solver(settings))


if __name__ == "__main__":
    sys.exit(main())
