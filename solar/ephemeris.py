"""Locating and downloading JPL DE kernels for the spice backend."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx

from sun_models import SolverSettings

LOGGER = logging.getLogger(__name__)

DEFAULT_EPHEMERIS_URL = (
    "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/de442.bsp"
)
DEFAULT_EPHEMERIS_FILENAME = "de442.bsp"


class EphemerisAcquisitionError(RuntimeError):
    """Raised when no usable ephemeris kernel can be found or fetched."""


def _download_file(url: str, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info(
        json.dumps(
            {"event": "ephemeris_downloading", "url": url, "destination": str(destination)}
        )
    )
    try:
        with httpx.stream("GET", url, timeout=httpx.Timeout(120.0, connect=30.0)) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length", "0")) or None
            received = 0
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes(chunk_size=1 << 20):
                    handle.write(chunk)
                    received += len(chunk)
    except (httpx.HTTPError, OSError) as exc:
        if destination.exists():
            destination.unlink()
        raise EphemerisAcquisitionError(f"Failed to download ephemeris from {url}: {exc}") from exc

    LOGGER.info(
        json.dumps(
            {
                "event": "ephemeris_downloaded",
                "url": url,
                "destination": str(destination),
                "bytes": received,
                "total": total,
            }
        )
    )


def _ensure_ephemeris(path: Path, url: str) -> Path:
    """Return *path* once it is a .bsp file or a directory holding one.

    A missing ``.bsp`` path, or a directory without kernels, triggers a
    download from *url*.
    """

    if path.is_file():
        if path.suffix.lower() != ".bsp":
            raise EphemerisAcquisitionError(f"Ephemeris file must have .bsp extension: {path}")
        return path

    if path.exists() and not path.is_dir():
        raise EphemerisAcquisitionError(f"Ephemeris path is not a file or directory: {path}")

    if path.suffix.lower() == ".bsp":
        _download_file(url, path)
        return path

    path.mkdir(parents=True, exist_ok=True)
    if not any(path.glob("*.bsp")):
        _download_file(url, path / DEFAULT_EPHEMERIS_FILENAME)
    return path


def resolve_ephemeris_source(settings: SolverSettings) -> Path:
    """Return a path to a usable ephemeris kernel, downloading it if necessary."""

    url = settings.ephemeris_url or DEFAULT_EPHEMERIS_URL
    if settings.ephemeris_path is not None:
        return _ensure_ephemeris(settings.ephemeris_path, url)
    return _ensure_ephemeris(settings.cache_dir / DEFAULT_EPHEMERIS_FILENAME, url)
