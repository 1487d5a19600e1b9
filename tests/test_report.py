from __future__ import annotations

import re

import pytest

from conftest import FakeSolver
from sun_models import GeoDate, ReportMode, SolverResult, Status, Twilight
from sun_report import SunReport, Verbosity, classify, convert, format_hours

STOCKHOLM = GeoDate(latitude=59.33, longitude=18.06, year=2024, month=6, day=21)


@pytest.mark.parametrize(
    "hours, expected",
    [
        (6.5, "06:30"),
        (6.25, "06:15"),
        (0.0, "00:00"),
        (23.999, "23:59"),
        (25.5, "25:30"),
        (-1.0, "-1:00"),
        (-0.5, "-1:30"),
    ],
)
def test_format_hours(hours: float, expected: str) -> None:
    assert format_hours(hours) == expected


def test_format_hours_shape_over_the_day() -> None:
    for step in range(0, 24 * 60 * 4):
        hours = step / 240.0
        hour, minute = convert(hours)
        assert 0 <= minute < 60
        assert hour == int(hours)
        assert re.fullmatch(r"\d\d:\d\d", format_hours(hours))


def test_convert_truncates_minutes() -> None:
    assert convert(10.999) == (10, 59)
    assert convert(-2.25) == (-3, 45)


@pytest.mark.parametrize("phenomenon", list(Twilight))
@pytest.mark.parametrize("status", list(Status))
def test_classify_is_exhaustive(phenomenon: Twilight, status: Status) -> None:
    if status is Status.NORMAL:
        result = SolverResult(status, 4.0, 20.0)
    else:
        # Only NORMAL may read begin/end; NaN would break formatting.
        result = SolverResult(status, float("nan"), float("nan"))
    lines = classify(phenomenon, result)
    assert len(lines) == 1
    assert lines[0]


def test_classify_texts() -> None:
    assert classify(Twilight.official, SolverResult(Status.NORMAL, 4.0, 20.5)) == [
        "Sun rises 04:00, sets 20:30 UTC"
    ]
    assert classify(Twilight.official, SolverResult(Status.ALWAYS_ABOVE, 0, 0)) == [
        "Sun above horizon"
    ]
    assert classify(Twilight.official, SolverResult(Status.ALWAYS_BELOW, 0, 0)) == [
        "Sun below horizon"
    ]
    assert classify(Twilight.civil, SolverResult(Status.NORMAL, 3.25, 21.75)) == [
        "Civil twilight starts 03:15, ends 21:45 UTC"
    ]
    assert classify(Twilight.nautical, SolverResult(Status.ALWAYS_ABOVE, 0, 0)) == [
        "Never darker than nautical twilight"
    ]
    assert classify("astronomical", SolverResult(Status.ALWAYS_BELOW, 0, 0)) == [
        "Never as bright as astronomical twilight"
    ]


def test_classify_rejects_unknown_status() -> None:
    with pytest.raises(ValueError):
        classify(Twilight.civil, SolverResult(2, 1.0, 2.0))


@pytest.mark.parametrize(
    "mode, expected",
    [
        (ReportMode.SUNRISE, ["Sun rises 06:30 UTC"]),
        (ReportMode.SUNSET, ["Sun sets 18:15 UTC"]),
        (ReportMode.RISE_AND_SET, ["Sun rises 06:30, sets 18:15 UTC"]),
    ],
)
def test_simple_modes(mode: ReportMode, expected: list, fake_solver: FakeSolver) -> None:
    report = SunReport(fake_solver, Verbosity())
    assert report.lines(mode, STOCKHOLM) == expected
    assert fake_solver.calls == [("rise_set", 2024, 6, 21, 18.06, 59.33)]


@pytest.mark.parametrize("mode", [ReportMode.SUNRISE, ReportMode.SUNSET, ReportMode.RISE_AND_SET])
@pytest.mark.parametrize(
    "status, line",
    [(Status.ALWAYS_ABOVE, "Sun above horizon"), (Status.ALWAYS_BELOW, "Sun below horizon")],
)
def test_simple_modes_classify_polar_sun(mode: ReportMode, status: Status, line: str) -> None:
    solver = FakeSolver(rise_set=SolverResult(status, 0.5, 23.5))
    assert SunReport(solver, Verbosity()).lines(mode, STOCKHOLM) == [line]


def test_all_mode_layout() -> None:
    solver = FakeSolver(rise_set=SolverResult(Status.NORMAL, 6.0, 18.0))
    lines = SunReport(solver, Verbosity()).lines(ReportMode.ALL, STOCKHOLM)
    assert lines == [
        "Day length:                 12.00 hours",
        "With civil twilight         13.00 hours",
        "With nautical twilight      14.50 hours",
        "With astronomical twilight  16.00 hours",
        "Length of twilight: civil    0.50 hours",
        "                  nautical   1.25 hours",
        "              astronomical   2.00 hours",
        "Sun at south 12:00 UTC",
        "Sun rises 06:00, sets 18:00 UTC",
        "Civil twilight starts 05:30, ends 18:30 UTC",
        "Never darker than nautical twilight",
        "Never as bright as astronomical twilight",
    ]


def test_all_mode_polar_day_noon() -> None:
    solver = FakeSolver(rise_set=SolverResult(Status.ALWAYS_ABOVE, -1.0, 23.0))
    lines = SunReport(solver, Verbosity()).lines(ReportMode.ALL, STOCKHOLM)
    assert "Sun at south 11:00 UTC" in lines
    assert "Sun above horizon" in lines


def test_all_mode_is_repeatable(fake_solver: FakeSolver, capsys: pytest.CaptureFixture) -> None:
    report = SunReport(fake_solver, Verbosity())
    assert report.run(ReportMode.ALL, STOCKHOLM) == 0
    first = capsys.readouterr().out
    assert report.run(ReportMode.ALL, STOCKHOLM) == 0
    second = capsys.readouterr().out
    assert first == second
    assert len(first.splitlines()) == 12


def test_verbosity_zero_suppresses_output(
    fake_solver: FakeSolver, capsys: pytest.CaptureFixture
) -> None:
    report = SunReport(fake_solver, Verbosity(0))
    for mode in ReportMode:
        assert report.run(mode, STOCKHOLM) == 0
    assert capsys.readouterr().out == ""


def test_verbosity_only_increases() -> None:
    verbosity = Verbosity()
    assert verbosity.level == 1
    assert verbosity.enabled
    verbosity.raise_level()
    verbosity.raise_level(2)
    assert verbosity.level == 4
    with pytest.raises(ValueError):
        verbosity.raise_level(-1)
    assert verbosity.level == 4
    assert not Verbosity(0).enabled
