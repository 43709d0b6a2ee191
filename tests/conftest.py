"""Shared run-history builders for the test suite."""

from datetime import date, datetime, timedelta
from typing import List, Optional

import pytest

from runload.models import Run, Weather
from runload.profile import UserPhysiologyProfile


AS_OF = date(2024, 6, 30)


def make_run(
    day: date,
    distance_km: float = 10.0,
    pace_s_per_km: float = 330.0,
    average_hr: Optional[float] = 145.0,
    max_hr: Optional[float] = 170.0,
    trimp: Optional[float] = None,
    weather: Optional[Weather] = None,
    elevation_gain_m: Optional[float] = None,
    run_id: Optional[str] = None,
    hour: int = 7,
) -> Run:
    distance_m = distance_km * 1000.0
    return Run(
        id=run_id or f'run-{day.isoformat()}-{hour}',
        start_date=datetime(day.year, day.month, day.day, hour, 0),
        distance_m=distance_m,
        moving_time_s=distance_km * pace_s_per_km,
        average_hr=average_hr,
        max_hr=max_hr,
        elevation_gain_m=elevation_gain_m,
        weather=weather,
        trimp_score=trimp,
    )


def daily_runs(
    days: int,
    as_of: date = AS_OF,
    trimp: float = 50.0,
    distance_km: float = 8.0,
    **kwargs
) -> List[Run]:
    """One run per day for `days` days ending `as_of`, oldest first."""
    return [
        make_run(as_of - timedelta(days=days - 1 - i), distance_km=distance_km, trimp=trimp, **kwargs)
        for i in range(days)
    ]


def loaded_runs(
    chronic_trimp: float,
    acute_trimp: float,
    as_of: date = AS_OF,
    days: int = 28
) -> List[Run]:
    """Daily runs: the last 7 days at `acute_trimp`, the rest at `chronic_trimp`."""
    runs = []
    for i in range(days):
        day = as_of - timedelta(days=days - 1 - i)
        value = acute_trimp if i >= days - 7 else chronic_trimp
        runs.append(make_run(day, trimp=value))
    return runs


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def profile() -> UserPhysiologyProfile:
    return UserPhysiologyProfile(resting_hr=50, max_hr=190, age=35)


@pytest.fixture
def steady_history() -> List[Run]:
    """Eight weeks of near-daily easy running with heart rate and weather."""
    runs = []
    for i in range(56):
        day = AS_OF - timedelta(days=55 - i)
        if day.weekday() == 0:
            continue
        distance = 16.0 if day.weekday() == 6 else 8.0
        runs.append(make_run(
            day,
            distance_km=distance,
            pace_s_per_km=330.0 + (i % 3) * 5.0,
            average_hr=142.0 + (i % 4),
            weather=Weather(temperature_c=16.0, humidity_pct=55.0, wind_speed_kmh=8.0),
        ))
    return runs


@pytest.fixture
def sparse_history() -> List[Run]:
    """Only a handful of runs."""
    return [make_run(AS_OF - timedelta(days=d)) for d in (0, 3, 6)]
