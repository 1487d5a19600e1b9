from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from sun_models import SolverResult, Status, Twilight


class FakeSolver:
    """Solver stand-in returning fixed results and recording its calls."""

    def __init__(
        self,
        rise_set: Optional[SolverResult] = None,
        twilights: Optional[Dict[Twilight, SolverResult]] = None,
        lengths: Optional[Dict[Twilight, float]] = None,
    ) -> None:
        self.rise_set = rise_set or SolverResult(Status.NORMAL, 6.5, 18.25)
        self.twilights = twilights or {
            Twilight.civil: SolverResult(Status.NORMAL, 5.5, 18.5),
            Twilight.nautical: SolverResult(Status.ALWAYS_ABOVE, -6.0, 18.0),
            Twilight.astronomical: SolverResult(Status.ALWAYS_BELOW, 12.0, 12.0),
        }
        self.lengths = lengths or {
            Twilight.official: 12.0,
            Twilight.civil: 13.0,
            Twilight.nautical: 14.5,
            Twilight.astronomical: 16.0,
        }
        self.calls: List[tuple] = []

    def solve_rise_set(self, year, month, day, longitude, latitude):
        self.calls.append(("rise_set", year, month, day, longitude, latitude))
        return self.rise_set

    def solve_twilight(self, kind, year, month, day, longitude, latitude):
        self.calls.append(("twilight", Twilight(kind), year, month, day, longitude, latitude))
        return self.twilights[Twilight(kind)]

    def day_length(self, kind, year, month, day, longitude, latitude):
        self.calls.append(("day_length", Twilight(kind), year, month, day, longitude, latitude))
        return self.lengths[Twilight(kind)]


@pytest.fixture
def fake_solver() -> FakeSolver:
    return FakeSolver()
