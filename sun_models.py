"""Data models shared by the solver, report and command-line layers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Twilight(str, Enum):
    """Enumeration of supported twilight definitions.

    ``official`` is the sun itself (upper limb on the refracted horizon).
    """

    official = "official"
    civil = "civil"
    nautical = "nautical"
    astronomical = "astronomical"


class Status(int, Enum):
    """Outcome of a rise/set query for one altitude threshold."""

    NORMAL = 0
    ALWAYS_ABOVE = 1
    ALWAYS_BELOW = -1


class ReportMode(str, Enum):
    """Report layouts selectable from the command line."""

    SUNRISE = "sunrise"
    SUNSET = "sunset"
    RISE_AND_SET = "rise_and_set"
    ALL = "all"


@dataclass(frozen=True)
class GeoDate:
    """Observer position and calendar date for a single run."""

    latitude: float
    longitude: float
    year: int
    month: int
    day: int


@dataclass(frozen=True)
class SolverResult:
    """Begin/end of the period above a threshold, in UTC hours of the day.

    ``begin`` and ``end`` describe crossings only when ``status`` is
    :attr:`Status.NORMAL`; otherwise they are placed around the solar transit.
    """

    status: Status
    begin: float
    end: float


class SolverBackend(str, Enum):
    """Source of the geocentric solar position."""

    erfa = "erfa"
    spice = "spice"


_ENVIRONMENT_FIELDS = {
    "SUN_BACKEND": "backend",
    "DE_BSP": "ephemeris_path",
    "DE_BSP_CACHE_DIR": "cache_dir",
    "DE_BSP_URL": "ephemeris_url",
    "SUN_STEP_MINUTES": "step_minutes",
    "SUN_LOG_LEVEL": "log_level",
}


class SolverSettings(BaseModel):
    """Validated runtime configuration, usually read from the environment."""

    model_config = ConfigDict(frozen=True)

    backend: SolverBackend = Field(
        SolverBackend.erfa, description="Solar position source"
    )
    ephemeris_path: Optional[Path] = Field(
        None, description="Explicit .bsp file or directory for the spice backend"
    )
    cache_dir: Path = Field(
        Path.home() / ".riseset" / "kernels",
        description="Directory where a downloaded kernel is cached",
    )
    ephemeris_url: Optional[str] = Field(
        None, description="Override for the kernel download URL"
    )
    step_minutes: float = Field(
        5.0, gt=0.0, le=60.0, description="Sampling step of the altitude curve"
    )
    log_level: str = Field("WARNING", description="Logging level name")

    @field_validator("ephemeris_path", "cache_dir")
    def expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return value
        return value.expanduser()

    @field_validator("log_level")
    def validate_log_level(cls, value: str) -> str:
        name = value.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"Unknown log level: {value}")
        return name

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SolverSettings":
        """Build settings from ``SUN_*`` / ``DE_BSP*`` environment variables."""

        if environ is None:
            environ = os.environ
        values = {
            field: environ[variable]
            for variable, field in _ENVIRONMENT_FIELDS.items()
            if environ.get(variable)
        }
        return cls(**values)
