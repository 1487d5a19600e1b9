"""Text reports built from rise/set solver results."""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

from sun_models import GeoDate, ReportMode, SolverResult, Status, Twilight

__all__ = ["SunReport", "Verbosity", "classify", "convert", "format_hours"]

# NORMAL, ALWAYS_ABOVE, ALWAYS_BELOW templates per phenomenon.
_TEMPLATES: Dict[Twilight, Tuple[str, str, str]] = {
    Twilight.official: (
        "Sun rises {begin}, sets {end} UTC",
        "Sun above horizon",
        "Sun below horizon",
    ),
    Twilight.civil: (
        "Civil twilight starts {begin}, ends {end} UTC",
        "Never darker than civil twilight",
        "Never as bright as civil twilight",
    ),
    Twilight.nautical: (
        "Nautical twilight starts {begin}, ends {end} UTC",
        "Never darker than nautical twilight",
        "Never as bright as nautical twilight",
    ),
    Twilight.astronomical: (
        "Astronomical twilight starts {begin}, ends {end} UTC",
        "Never darker than astronomical twilight",
        "Never as bright as astronomical twilight",
    ),
}

_TWILIGHTS = (Twilight.civil, Twilight.nautical, Twilight.astronomical)


def convert(hours: float) -> Tuple[int, int]:
    """Split fractional hours into whole hours (floored) and truncated minutes."""

    whole = math.floor(hours)
    return whole, int(60 * (hours - whole))


def format_hours(hours: float) -> str:
    """Render fractional hours as ``HH:MM``; no wraparound is applied."""

    hour, minute = convert(hours)
    return f"{hour:02d}:{minute:02d}"


def classify(phenomenon: Twilight, result: SolverResult) -> List[str]:
    """Describe one solver outcome for *phenomenon* as report lines."""

    normal, above, below = _TEMPLATES[Twilight(phenomenon)]
    if result.status is Status.NORMAL:
        return [normal.format(begin=format_hours(result.begin), end=format_hours(result.end))]
    if result.status is Status.ALWAYS_ABOVE:
        return [above]
    if result.status is Status.ALWAYS_BELOW:
        return [below]
    raise ValueError(f"Unknown solver status: {result.status!r}")


class Verbosity:
    """Print gate for informational output.

    The level starts at 1 and can only be raised; lines are printed while it
    is positive.
    """

    def __init__(self, level: int = 1, stream=None):
        self._level = level
        self.stream = stream

    @property
    def level(self) -> int:
        return self._level

    @property
    def enabled(self) -> bool:
        return self._level > 0

    def raise_level(self, steps: int = 1) -> None:
        if steps < 0:
            raise ValueError("verbosity can only be raised")
        self._level += steps

    def __call__(self, *args, **kwargs):
        if not self.enabled:
            return
        print(*args, file=self.stream, **kwargs)


class SunReport:
    """Runs the solver queries needed by a report mode and renders the lines.

    *solver* provides ``solve_rise_set``, ``solve_twilight`` and
    ``day_length`` with the signatures of :class:`solar.SunTimesSolver`.
    """

    def __init__(self, solver, verbosity: Verbosity) -> None:
        self.solver = solver
        self.verbosity = verbosity

    def run(self, mode: ReportMode, geo: GeoDate) -> int:
        for line in self.lines(mode, geo):
            self.verbosity(line)
        return 0

    def lines(self, mode: ReportMode, geo: GeoDate) -> List[str]:
        mode = ReportMode(mode)
        if mode is ReportMode.ALL:
            return self._all(geo)
        if mode is ReportMode.SUNRISE:
            return self._rise_set(geo, "Sun rises {rise} UTC")
        if mode is ReportMode.SUNSET:
            return self._rise_set(geo, "Sun sets {set} UTC")
        if mode is ReportMode.RISE_AND_SET:
            return self._rise_set(geo, "Sun rises {rise}, sets {set} UTC")
        raise ValueError(f"Unknown report mode: {mode!r}")

    def _rise_set(self, geo: GeoDate, template: str) -> List[str]:
        result = self.solver.solve_rise_set(
            geo.year, geo.month, geo.day, geo.longitude, geo.latitude
        )
        if result.status is not Status.NORMAL:
            return classify(Twilight.official, result)
        return [template.format(rise=format_hours(result.begin), set=format_hours(result.end))]

    def _all(self, geo: GeoDate) -> List[str]:
        args = (geo.year, geo.month, geo.day, geo.longitude, geo.latitude)
        daylen = self.solver.day_length(Twilight.official, *args)
        civlen, nautlen, astrlen = (self.solver.day_length(kind, *args) for kind in _TWILIGHTS)

        sun = self.solver.solve_rise_set(*args)
        twilights = [(kind, self.solver.solve_twilight(kind, *args)) for kind in _TWILIGHTS]

        lines = [
            f"Day length:                 {daylen:5.2f} hours",
            f"With civil twilight         {civlen:5.2f} hours",
            f"With nautical twilight      {nautlen:5.2f} hours",
            f"With astronomical twilight  {astrlen:5.2f} hours",
            f"Length of twilight: civil   {(civlen - daylen) / 2.0:5.2f} hours",
            f"                  nautical  {(nautlen - daylen) / 2.0:5.2f} hours",
            f"              astronomical  {(astrlen - daylen) / 2.0:5.2f} hours",
            f"Sun at south {format_hours((sun.begin + sun.end) / 2.0)} UTC",
        ]
        lines.extend(classify(Twilight.official, sun))
        for kind, result in twilights:
            lines.extend(classify(kind, result))
        return lines
