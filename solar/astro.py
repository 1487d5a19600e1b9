"""Sunrise, sunset and twilight solver working in fractional UTC hours."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple, Union

import erfa
import numpy as np
import spiceypy as spice

from sun_models import SolverBackend, SolverResult, SolverSettings, Status, Twilight

from .ephemeris import resolve_ephemeris_source

__all__ = [
    "TWILIGHT_ANGLES",
    "EphemerisError",
    "ErfaSunPosition",
    "SpiceSunPosition",
    "SunTimesSolver",
    "build_solver",
    "load_ephemeris",
]

LOGGER = logging.getLogger(__name__)

TWILIGHT_ANGLES: Dict[Twilight, float] = {
    Twilight.official: -0.833,
    Twilight.civil: -6.0,
    Twilight.nautical: -12.0,
    Twilight.astronomical: -18.0,
}

AU_KM = 149597870.700
EARTH_EQUATORIAL_RADIUS_KM = 6378.137  # WGS84 equatorial radius in kilometers.
EARTH_FLATTENING = 1.0 / 298.257223563  # WGS84 flattening.

_LOADED_FILES: Optional[List[str]] = None
_LOAD_LOCK = Lock()


class EphemerisError(RuntimeError):
    """Raised when ephemeris loading or computation fails."""


@dataclass(frozen=True)
class _TimeScales:
    """Container for time-scale representations of a UTC instant."""

    ut1: Tuple[float, float]
    tt: Tuple[float, float]
    et: float


@dataclass(frozen=True)
class _DayProfile:
    """Sampled solar altitude over the 24 hours around local noon."""

    midnight: datetime
    hours: np.ndarray
    altitudes: np.ndarray
    site_vector: np.ndarray
    site_up: np.ndarray


def load_ephemeris(bsp_path: Union[str, Path]) -> List[str]:
    """Load SPK kernels with :mod:`spiceypy`.

    Parameters
    ----------
    bsp_path:
        A ``.bsp`` file, or a directory containing one or more of them.

    Returns
    -------
    list[str]
        Sorted list of loaded kernel file names.

    Raises
    ------
    EphemerisError
        If the path is missing or holds no ``.bsp`` files.
    """

    global _LOADED_FILES

    if _LOADED_FILES is not None:
        return _LOADED_FILES

    path = Path(bsp_path).expanduser()
    if path.is_file():
        bsp_files = [path]
    elif path.is_dir():
        bsp_files = sorted(
            file for file in path.iterdir() if file.is_file() and file.suffix.lower() == ".bsp"
        )
    else:
        raise EphemerisError(f"Ephemeris path not found: {path}")
    if not bsp_files:
        raise EphemerisError(f"No .bsp ephemeris files found in directory: {path}")

    with _LOAD_LOCK:
        if _LOADED_FILES is not None:
            return _LOADED_FILES

        loaded: List[str] = []
        try:
            for bsp_file in bsp_files:
                spice.furnsh(str(bsp_file))
                loaded.append(bsp_file.name)
        except Exception as exc:
            spice.kclear()
            raise EphemerisError(f"Failed to load ephemeris file '{bsp_file}': {exc}") from exc

        _LOADED_FILES = loaded
        LOGGER.info(json.dumps({"event": "ephemeris_loaded", "files": loaded}))
        return loaded


def _datetime_to_timescales(dt: datetime) -> _TimeScales:
    """Convert a timezone-aware UTC datetime into multiple time scales."""

    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    dt_utc = dt.astimezone(UTC)
    utc1, utc2 = erfa.dtf2d(
        "UTC",
        dt_utc.year,
        dt_utc.month,
        dt_utc.day,
        dt_utc.hour,
        dt_utc.minute,
        dt_utc.second + dt_utc.microsecond / 1_000_000,
    )
    tai1, tai2 = erfa.utctai(utc1, utc2)
    tt1, tt2 = erfa.taitt(tai1, tai2)
    ut11, ut12 = erfa.utcut1(utc1, utc2, 0.0)
    et = (tt1 - erfa.DJ00) * erfa.DAYSEC + tt2 * erfa.DAYSEC
    return _TimeScales(ut1=(ut11, ut12), tt=(tt1, tt2), et=et)


class ErfaSunPosition:
    """Geocentric solar vector from the ERFA analytic Earth ephemeris.

    Needs no kernel files; accuracy is a few arcseconds, far below the
    one-minute resolution of the report.
    """

    name = SolverBackend.erfa.value

    def vector_km(self, times: _TimeScales) -> np.ndarray:
        pvh, _ = erfa.epv00(*times.tt)
        return -np.array(pvh["p"], dtype=float) * AU_KM


class SpiceSunPosition:
    """Apparent geocentric solar vector from loaded JPL DE kernels."""

    name = SolverBackend.spice.value

    def vector_km(self, times: _TimeScales) -> np.ndarray:
        if _LOADED_FILES is None:
            raise EphemerisError("Ephemeris kernels have not been loaded")
        sun_vector, _ = spice.spkpos("SUN", times.et, "J2000", "LT+S", "EARTH")
        return np.array(sun_vector, dtype=float)


def _site_vector(lat_rad: float, lon_rad: float) -> np.ndarray:
    """Return the geocentric position vector for a sea-level observer in ITRF (km)."""

    return np.array(
        spice.georec(lon_rad, lat_rad, 0.0, EARTH_EQUATORIAL_RADIUS_KM, EARTH_FLATTENING),
        dtype=float,
    )


def _twilight_altitude_degrees(twilight: Twilight) -> float:
    try:
        return TWILIGHT_ANGLES[Twilight(twilight)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported twilight selector: {twilight}") from exc


def _days_since_2000(year: int, month: int, day: int) -> int:
    # Day number with 2000-01-01 == 1; accepts out-of-range month/day.
    return (
        367 * year
        - (7 * (year + (month + 9) // 12)) // 4
        + (275 * month) // 9
        + day
        - 730530
    )


def _utc_midnight(year: int, month: int, day: int) -> datetime:
    """Return 00:00 UTC of the given date, rolling over impossible dates."""

    try:
        return datetime.combine(date(year, month, day), datetime.min.time(), tzinfo=UTC)
    except ValueError:
        pass
    epoch = datetime(1999, 12, 31, tzinfo=UTC)
    try:
        return epoch + timedelta(days=_days_since_2000(year, month, day))
    except OverflowError as exc:
        raise ValueError(f"Date out of range: {year}-{month}-{day}") from exc


class SunTimesSolver:
    """Rise/set and twilight solver over a sampled solar altitude curve.

    Each query samples the altitude of the sun every ``step_minutes`` across
    the 24 hours centred on approximate local noon, then refines threshold
    crossings by bisection. Samples are cached per date and location, so the
    several queries of one report share a single pass.
    """

    def __init__(self, position, step_minutes: float = 5.0) -> None:
        self.position = position
        self.step = timedelta(minutes=step_minutes)
        self._profiles: Dict[Tuple[int, int, int, float, float], _DayProfile] = {}

    def solve_rise_set(
        self, year: int, month: int, day: int, longitude: float, latitude: float
    ) -> SolverResult:
        """Sunrise and sunset (upper limb, standard refraction)."""

        return self._solve(Twilight.official, year, month, day, longitude, latitude)

    def solve_twilight(
        self,
        kind: Twilight,
        year: int,
        month: int,
        day: int,
        longitude: float,
        latitude: float,
    ) -> SolverResult:
        """Start and end of civil, nautical or astronomical twilight."""

        if Twilight(kind) is Twilight.official:
            raise ValueError("Use solve_rise_set() for sunrise and sunset")
        return self._solve(kind, year, month, day, longitude, latitude)

    def day_length(
        self,
        kind: Twilight,
        year: int,
        month: int,
        day: int,
        longitude: float,
        latitude: float,
    ) -> float:
        """Hours the sun spends above the threshold of *kind*."""

        result = self._solve(kind, year, month, day, longitude, latitude)
        if result.status is Status.NORMAL:
            return result.end - result.begin
        if result.status is Status.ALWAYS_ABOVE:
            return 24.0
        return 0.0

    def _solve(
        self,
        kind: Twilight,
        year: int,
        month: int,
        day: int,
        longitude: float,
        latitude: float,
    ) -> SolverResult:
        threshold = _twilight_altitude_degrees(kind)
        profile = self._profile(year, month, day, longitude, latitude)
        values = profile.altitudes - threshold
        transit = self._transit_hours(profile)

        if values.max() < 0:
            return SolverResult(Status.ALWAYS_BELOW, transit, transit)
        if values.min() > 0:
            return SolverResult(Status.ALWAYS_ABOVE, transit - 12.0, transit + 12.0)

        rise: Optional[float] = None
        set_: Optional[float] = None
        for idx in range(1, len(values)):
            prev_val, curr_val = values[idx - 1], values[idx]
            if rise is None and prev_val < 0 <= curr_val:
                rise = self._refine_crossing(profile, idx, threshold)
            if set_ is None and prev_val >= 0 > curr_val:
                set_ = self._refine_crossing(profile, idx, threshold)

        if rise is None and set_ is None:
            if values.max() <= 0:
                return SolverResult(Status.ALWAYS_BELOW, transit, transit)
            return SolverResult(Status.ALWAYS_ABOVE, transit - 12.0, transit + 12.0)
        # Near the start or end of polar day only one crossing falls inside
        # the window; the other is mirrored about the transit.
        if rise is None:
            rise = 2.0 * transit - set_
        if set_ is None:
            set_ = 2.0 * transit - rise
        return SolverResult(Status.NORMAL, rise, set_)

    def _profile(
        self, year: int, month: int, day: int, longitude: float, latitude: float
    ) -> _DayProfile:
        key = (year, month, day, longitude, latitude)
        cached = self._profiles.get(key)
        if cached is not None:
            return cached

        midnight = _utc_midnight(year, month, day)
        site_vector = _site_vector(math.radians(latitude), math.radians(longitude))
        site_up = site_vector / np.linalg.norm(site_vector)

        noon = 12.0 - longitude / 15.0
        window_start = midnight + timedelta(hours=noon - 12.0)
        window_end = window_start + timedelta(days=1)

        hours: List[float] = []
        altitudes: List[float] = []
        current = window_start
        while current <= window_end:
            altitudes.append(self._altitude_degrees(current, site_vector, site_up))
            hours.append(_hours_since(midnight, current))
            current += self.step

        profile = _DayProfile(
            midnight=midnight,
            hours=np.array(hours, dtype=float),
            altitudes=np.array(altitudes, dtype=float),
            site_vector=site_vector,
            site_up=site_up,
        )
        self._profiles[key] = profile
        LOGGER.debug(
            json.dumps(
                {
                    "event": "sun_profile",
                    "source": self.position.name,
                    "date": midnight.date().isoformat(),
                    "lat": latitude,
                    "lon": longitude,
                    "samples": len(hours),
                    "max_altitude": round(float(profile.altitudes.max()), 3),
                    "min_altitude": round(float(profile.altitudes.min()), 3),
                }
            )
        )
        return profile

    def _altitude_degrees(
        self, dt: datetime, site_vector: np.ndarray, site_up: np.ndarray
    ) -> float:
        """Altitude of the sun in degrees above the geometric horizon."""

        times = _datetime_to_timescales(dt)
        sun_vector = self.position.vector_km(times)
        rotation = np.array(erfa.c2t06a(*times.tt, *times.ut1, 0.0, 0.0), dtype=float)
        topocentric = rotation @ sun_vector - site_vector
        norm = np.linalg.norm(topocentric)
        if norm == 0:
            raise EphemerisError("Degenerate topocentric vector encountered")
        return math.degrees(
            math.asin(float(np.clip(np.dot(topocentric / norm, site_up), -1.0, 1.0)))
        )

    def _transit_hours(self, profile: _DayProfile) -> float:
        """Time of maximum altitude, interpolated between samples."""

        idx = int(np.argmax(profile.altitudes))
        offset = 0.0
        if 0 < idx < len(profile.altitudes) - 1:
            y0, y1, y2 = profile.altitudes[idx - 1 : idx + 2]
            curvature = y0 - 2.0 * y1 + y2
            if curvature != 0:
                offset = 0.5 * (y0 - y2) / curvature
        return float(profile.hours[idx]) + offset * self.step.total_seconds() / 3600.0

    def _refine_crossing(
        self,
        profile: _DayProfile,
        idx: int,
        threshold: float,
        max_iterations: int = 24,
    ) -> float:
        """Refine the crossing between samples ``idx - 1`` and ``idx`` via binary search."""

        low_dt = profile.midnight + timedelta(hours=float(profile.hours[idx - 1]))
        high_dt = profile.midnight + timedelta(hours=float(profile.hours[idx]))
        low_val = profile.altitudes[idx - 1] - threshold
        if low_val == 0:
            return _hours_since(profile.midnight, low_dt)
        if profile.altitudes[idx] - threshold == 0:
            return _hours_since(profile.midnight, high_dt)

        for _ in range(max_iterations):
            mid_dt = low_dt + (high_dt - low_dt) / 2
            mid_val = (
                self._altitude_degrees(mid_dt, profile.site_vector, profile.site_up)
                - threshold
            )
            if abs(mid_val) < 1e-4 or (high_dt - low_dt) <= timedelta(seconds=1):
                return _hours_since(profile.midnight, mid_dt)
            if low_val * mid_val <= 0:
                high_dt = mid_dt
            else:
                low_dt, low_val = mid_dt, mid_val
        return _hours_since(profile.midnight, low_dt + (high_dt - low_dt) / 2)


def _hours_since(midnight: datetime, dt: datetime) -> float:
    return (dt - midnight).total_seconds() / 3600.0


def build_solver(settings: SolverSettings) -> SunTimesSolver:
    """Create a solver for the configured solar position backend."""

    if settings.backend is SolverBackend.spice:
        load_ephemeris(resolve_ephemeris_source(settings))
        position = SpiceSunPosition()
    else:
        position = ErfaSunPosition()
    return SunTimesSolver(position, step_minutes=settings.step_minutes)
