"""
Fitness / fatigue model: CTL, ATL and TSB.

CTL (chronic training load) and ATL (acute training load) are exponentially
weighted averages of daily TRIMP with spans of 42 and 7 days; TSB (training
stress balance) is CTL - ATL. Every call folds over the full history passed
in, so results are reproducible from run data alone.

Based on:
- Banister et al. (1975): impulse-response fitness/fatigue model
- Coggan: Performance Manager (CTL/ATL/TSB) conventions
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Dict, Any

import numpy as np
from loguru import logger

from . import config
from .aggregation import Metric, daily_load_series
from .config import FitnessParams
from .errors import ensure_valid
from .models import DailyLoad, Run, Serializable
from .trimp import Physiology


class TSBStatus(Enum):
    """Form classification from training stress balance."""
    FRESH = "fresh"
    NEUTRAL = "neutral"
    FATIGUED = "fatigued"
    VERY_FATIGUED = "very-fatigued"


_TSB_RECOMMENDATIONS = {
    TSBStatus.FRESH: (
        'You are very fresh and ready for high-intensity training or racing. '
        'Consider scheduling key workouts or competitions.'
    ),
    TSBStatus.NEUTRAL: (
        'Good balance between fitness and fatigue. You can handle moderate to '
        'high training loads.'
    ),
    TSBStatus.FATIGUED: (
        'You are carrying some fatigue. Focus on easier training and ensure '
        'adequate recovery between sessions.'
    ),
    TSBStatus.VERY_FATIGUED: (
        'High fatigue levels detected. Prioritize recovery with easy runs, rest '
        'days, and good sleep. Avoid high-intensity training.'
    ),
}


@dataclass(frozen=True)
class FitnessMetrics(Serializable):
    """Current CTL/ATL/TSB."""
    ctl: float
    atl: float
    tsb: float
    ramp_rate: float
    confidence: float
    status: TSBStatus = TSBStatus.NEUTRAL
    days_of_data: int = 0
    recommendation: str = ''

    @property
    def sufficient_data(self) -> bool:
        return self.confidence > 0


def calculate_ewma(values: np.ndarray, span: int) -> np.ndarray:
    """
    Calculate Exponentially Weighted Moving Average.

    Uses the formula: EWMA_t = value_t × λ + (1 - λ) × EWMA_{t-1}
    where λ = 2 / (span + 1), seeded with the first value.

    Args:
        values: Array of daily values (e.g., TRIMP)
        span: Decay span (7 for acute, 42 for chronic)

    Returns:
        Array of EWMA values
    """
    values = np.asarray(values, dtype=float)
    n = len(values)

    if n == 0:
        return np.array([])

    alpha = 2.0 / (span + 1.0)

    ewma = np.zeros(n)
    ewma[0] = values[0]
    for i in range(1, n):
        ewma[i] = alpha * values[i] + (1 - alpha) * ewma[i - 1]

    return ewma


def classify_tsb(tsb: float, ctl: float, atl: float) -> TSBStatus:
    """
    Classify form.

    No load at all (CTL = ATL = 0) is neutral. Otherwise:
    > 25 fresh, >= -5 neutral, > -30 fatigued, else very fatigued.
    """
    if ctl == 0 and atl == 0:
        return TSBStatus.NEUTRAL
    if tsb > config.TSB_FRESH:
        return TSBStatus.FRESH
    if tsb >= config.TSB_NEUTRAL_FLOOR:
        return TSBStatus.NEUTRAL
    if tsb > config.TSB_FATIGUED_FLOOR:
        return TSBStatus.FATIGUED
    return TSBStatus.VERY_FATIGUED


def fitness_from_daily_loads(
    daily: Sequence[DailyLoad],
    params: Optional[FitnessParams] = None
) -> FitnessMetrics:
    """
    CTL/ATL/TSB from chronological daily TRIMP.

    Args:
        daily: Daily loads, oldest first
        params: Spans and data requirements

    Returns:
        FitnessMetrics; zeros with confidence 0 below params.min_days
    """
    params = params or FitnessParams()
    ensure_valid(params)

    days = len(daily)
    if days < params.min_days or days == 0:
        logger.debug("Fitness model needs {} days of TRIMP, have {}", params.min_days, days)
        return FitnessMetrics(
            ctl=0.0, atl=0.0, tsb=0.0, ramp_rate=0.0, confidence=0.0,
            status=TSBStatus.NEUTRAL,
            days_of_data=days,
            recommendation=(
                'No training load detected. Start with easy runs to build your '
                'fitness base.'
            ),
        )

    values = np.array([d.value for d in daily], dtype=float)
    ctl_series = calculate_ewma(values, params.ctl_span)
    atl_series = calculate_ewma(values, params.atl_span)

    ctl = float(ctl_series[-1])
    atl = float(atl_series[-1])
    tsb = ctl - atl

    if days > params.ramp_window:
        ramp_rate = ctl - float(ctl_series[-1 - params.ramp_window])
    else:
        ramp_rate = 0.0

    ctl_r, atl_r, tsb_r = round(ctl, 1), round(atl, 1), round(tsb, 1)
    status = classify_tsb(tsb_r, ctl_r, atl_r)

    return FitnessMetrics(
        ctl=ctl_r,
        atl=atl_r,
        tsb=tsb_r,
        ramp_rate=round(ramp_rate, 1),
        confidence=min(1.0, days / params.full_confidence_days),
        status=status,
        days_of_data=days,
        recommendation=_TSB_RECOMMENDATIONS[status],
    )


def calculate_fitness_metrics(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    params: Optional[FitnessParams] = None
) -> FitnessMetrics:
    """
    CTL/ATL/TSB from raw runs.

    Args:
        runs: Full run history, any order
        physiology: Profile used to score runs without a stored TRIMP
        params: Optional model parameters

    Returns:
        FitnessMetrics
    """
    daily = daily_load_series(runs, Metric.TRIMP, physiology)
    return fitness_from_daily_loads(daily, params)


def fitness_trend(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    days: int = 30,
    params: Optional[FitnessParams] = None
) -> List[Dict[str, Any]]:
    """
    CTL/ATL/TSB at each of the last `days` daily entries.

    Each point uses the history up to and including that day. Empty when
    fewer than seven days of load exist.
    """
    params = params or FitnessParams()
    daily = daily_load_series(runs, Metric.TRIMP, physiology)
    if len(daily) < config.FITNESS_TREND_MIN_DAYS:
        return []

    values = np.array([d.value for d in daily], dtype=float)
    ctl_series = calculate_ewma(values, params.ctl_span)
    atl_series = calculate_ewma(values, params.atl_span)

    start = max(0, len(daily) - days)
    return [
        {
            'date': daily[i].date.isoformat(),
            'ctl': round(float(ctl_series[i]), 1),
            'atl': round(float(atl_series[i]), 1),
            'tsb': round(float(ctl_series[i] - atl_series[i]), 1),
        }
        for i in range(start, len(daily))
    ]


@dataclass
class TrainingWindows(Serializable):
    """When the athlete should next be ready for quality work."""
    recovery_needed_days: int
    next_optimal_window: Optional[Dict[str, Any]] = None
    peak_readiness: Optional[Dict[str, Any]] = None
    notes: List[str] = field(default_factory=list)


def predict_training_windows(metrics: FitnessMetrics, as_of: date) -> TrainingWindows:
    """
    Project recovery time from current TSB.

    TSB < -30 needs 7 days, < -10 needs 3, < 5 needs 1. Peak readiness
    follows the next optimal window by two days; a TSB above 25 means the
    athlete is at peak now.
    """
    recovery = 0
    for bound, needed in config.RECOVERY_DAYS_BY_TSB:
        if metrics.tsb < bound:
            recovery = needed
            break

    windows = TrainingWindows(recovery_needed_days=recovery)
    if recovery > 0:
        optimal = as_of + timedelta(days=recovery)
        windows.next_optimal_window = {
            'date': optimal.isoformat(),
            'confidence': min(0.8, metrics.confidence),
        }
        windows.peak_readiness = {
            'date': (optimal + timedelta(days=2)).isoformat(),
            'confidence': min(0.7, metrics.confidence),
        }
        windows.notes.append(f'Allow {recovery} day(s) of easier training first')
    elif metrics.tsb > config.TSB_FRESH:
        windows.peak_readiness = {'date': as_of.isoformat(), 'confidence': 0.9}
        windows.notes.append('Form is high: good time for a key session or race')

    return windows
