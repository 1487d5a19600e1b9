"""Solar altitude solver behind the sunrise/sunset report."""

from .astro import TWILIGHT_ANGLES, EphemerisError, SunTimesSolver, build_solver, load_ephemeris
from .ephemeris import EphemerisAcquisitionError

__all__ = [
    "EphemerisAcquisitionError",
    "EphemerisError",
    "SunTimesSolver",
    "TWILIGHT_ANGLES",
    "build_solver",
    "load_ephemeris",
]
