"""
Daily and weekly load aggregation.

Runs are grouped on their local calendar date and reduced to one scalar per
day for a chosen metric. Days whose total is not positive are dropped rather
than zero-filled, so "days of data" always means days with recorded load.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence

import pandas as pd

from .models import DailyLoad, Run, Serializable
from .trimp import Physiology, as_resolved, run_trimp_value


class Metric(Enum):
    """Load metric used for aggregation."""
    DISTANCE = "distance"
    TRIMP = "trimp"

    def extract(self, run: Run, physiology: Optional[Physiology] = None) -> float:
        """
        The value a run contributes under this metric.

        Distance is metres (non-positive counts as 0). TRIMP is the run's
        precomputed score, else its heart-rate TRIMP when physiology is known,
        else 0.
        """
        if self is Metric.DISTANCE:
            return max(0.0, float(run.distance_m))
        return run_trimp_value(run, physiology)


def _daily_frame(
    runs: Sequence[Run],
    metric: Metric,
    physiology: Optional[Physiology]
) -> pd.Series:
    resolved = as_resolved(physiology, runs) if metric is Metric.TRIMP else None
    if not runs:
        return pd.Series(dtype=float)

    df = pd.DataFrame({
        'date': [r.local_date for r in runs],
        'value': [metric.extract(r, resolved) for r in runs],
    })
    df = df[df['value'] > 0]
    if df.empty:
        return pd.Series(dtype=float)

    daily = df.groupby('date')['value'].sum()
    return daily[daily > 0].sort_index()


def aggregate_daily_load(
    runs: Sequence[Run],
    metric: Metric = Metric.TRIMP,
    physiology: Optional[Physiology] = None
) -> List[DailyLoad]:
    """
    Sum a metric per calendar day.

    Args:
        runs: Runs in any order
        metric: Metric to sum
        physiology: Profile used to score runs without a stored TRIMP

    Returns:
        DailyLoad entries, most recent date first
    """
    daily = _daily_frame(runs, metric, physiology)
    return [
        DailyLoad(date=d, value=float(v))
        for d, v in zip(reversed(daily.index.tolist()), reversed(daily.values.tolist()))
    ]


def daily_load_series(
    runs: Sequence[Run],
    metric: Metric = Metric.TRIMP,
    physiology: Optional[Physiology] = None
) -> List[DailyLoad]:
    """Same as aggregate_daily_load but oldest date first."""
    return list(reversed(aggregate_daily_load(runs, metric, physiology)))


@dataclass(frozen=True)
class WeeklyTRIMP(Serializable):
    """Training load for one Sunday-start calendar week."""
    week_start: date
    total_trimp: float
    avg_daily: float
    run_days: int


def weekly_trimp(daily_loads: Sequence[DailyLoad]) -> List[WeeklyTRIMP]:
    """
    Roll daily TRIMP up into Sunday-start weeks.

    Returns:
        Weeks in chronological order
    """
    if not daily_loads:
        return []

    df = pd.DataFrame({
        'date': pd.to_datetime([d.date for d in daily_loads]),
        'value': [d.value for d in daily_loads],
    })
    # dayofweek: Monday=0 .. Sunday=6
    offset = (df['date'].dt.dayofweek + 1) % 7
    df['week_start'] = (df['date'] - pd.to_timedelta(offset, unit='D')).dt.date

    weeks = []
    for week_start, group in df.groupby('week_start'):
        total = float(group['value'].sum())
        weeks.append(WeeklyTRIMP(
            week_start=week_start,
            total_trimp=round(total, 1),
            avg_daily=round(total / 7, 1),
            run_days=int(group['date'].nunique()),
        ))
    return weeks


@dataclass(frozen=True)
class WeekWindow(Serializable):
    """Totals for one trailing 7-day window (index 0 = most recent)."""
    index: int
    start: date
    end: date
    distance_km: float
    trimp: float
    run_count: int


def weekly_windows(
    runs: Sequence[Run],
    as_of: date,
    weeks: int,
    physiology: Optional[Physiology] = None
) -> List[WeekWindow]:
    """
    Distance and TRIMP totals for consecutive 7-day windows ending at `as_of`.

    Window i covers (as_of - 7(i+1), as_of - 7i], so window 0 includes
    `as_of` itself.

    Returns:
        Windows ordered most recent first
    """
    resolved = as_resolved(physiology, runs)
    windows = []
    for i in range(weeks):
        end = as_of - timedelta(days=7 * i)
        start = end - timedelta(days=6)
        in_window = [r for r in runs if start <= r.local_date <= end]
        windows.append(WeekWindow(
            index=i,
            start=start,
            end=end,
            distance_km=sum(r.distance_km for r in in_window),
            trimp=sum(run_trimp_value(r, resolved) for r in in_window),
            run_count=len(in_window),
        ))
    return windows
