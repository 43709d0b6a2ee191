"""
VO2max estimation from single runs and run history.

Two per-run estimators:

    heart rate   15.3 × (HRmax / HRrest), scaled by the share of heart-rate
                 reserve the run used: × (0.7 + 0.3 × effort)
    pace         a pace-band table (30-70 ml/kg/min) with a distance bonus

Runs that do not look like a steady effort are discounted (× 0.9 heart
rate, × 0.85 pace). The history-level value is a recency-weighted mean of
the reliable estimates among the ten most recent qualifying runs.

Race times for a VO2max use Daniels' VDOT equations:

    VO2(v)   = -4.60 + 0.182258·v + 0.000104·v²          v in m/min
    %max(t)  = 0.8 + 0.1894393·e^(-0.012778·t) + 0.2989558·e^(-0.1932605·t)
    VDOT     = VO2(d / t) / %max(t)                       t in minutes

Based on:
- Uth et al. (2004): VO2max from the HRmax/HRrest ratio
- Daniels & Gilbert (1979): oxygen power
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Dict, Any

import numpy as np
import pandas as pd
from loguru import logger
from scipy import optimize, stats

from . import config
from .models import Run, Serializable, sort_chronological, sort_recent_first
from .profile import ResolvedPhysiology, resolve_physiology
from .trimp import Physiology, as_resolved


class VO2MaxMethod(Enum):
    HEART_RATE = "heart-rate"
    PACE = "pace"


class FitnessCategory(Enum):
    """General (age- and sex-independent) VO2max category."""
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    VERY_GOOD = "very-good"
    EXCELLENT = "excellent"
    SUPERIOR = "superior"


@dataclass
class SteadyStateCheck(Serializable):
    is_steady_state: bool
    confidence: float
    variability: float
    reasons: List[str] = field(default_factory=list)


@dataclass
class VO2MaxEstimate(Serializable):
    vo2max: float
    confidence: float
    method: VO2MaxMethod
    fitness_category: FitnessCategory
    steady_state: bool
    flags: List[str] = field(default_factory=list)

    @property
    def reliable(self) -> bool:
        return self.confidence > config.VO2MAX_MIN_CONFIDENCE


@dataclass
class VO2MaxTrend(Serializable):
    trend: str
    change_per_month: float
    confidence: float
    data_points: List[Dict[str, Any]] = field(default_factory=list)


def categorize_vo2max(vo2max: float) -> FitnessCategory:
    for bound, label in config.VO2MAX_CATEGORY_BANDS:
        if vo2max >= bound:
            return FitnessCategory(label)
    return FitnessCategory.POOR


def steady_state_check(run: Run) -> SteadyStateCheck:
    """
    Whether a run looks like one continuous steady effort.

    Starts at 0.5 and moves with duration (under 10 min -0.3, 20 min or
    more +0.2), the max-minus-average heart-rate gap against 15 % of the
    average (under half of it +0.2, over double -0.3) and climbing (over
    50 m/km -0.2, under 20 m/km +0.1). Steady above 0.6.
    """
    confidence = 0.5
    variability = 0.5
    reasons = []

    if run.duration_min < 10:
        confidence -= 0.3
        reasons.append('Run too short for reliable steady-state detection')
    elif run.duration_min >= 20:
        confidence += 0.2

    if run.average_hr and run.max_hr:
        spread = run.max_hr - run.average_hr
        expected = run.average_hr * 0.15
        if spread < expected * 0.5:
            variability = 0.2
            confidence += 0.2
            reasons.append('Low heart rate variability indicates steady effort')
        elif spread > expected * 2:
            variability = 0.8
            confidence -= 0.3
            reasons.append('High heart rate variability suggests varied effort')
        else:
            reasons.append('Moderate heart rate variability')

    per_km = run.elevation_per_km if run.elevation_gain_m else None
    if per_km is not None:
        if per_km > 50:
            confidence -= 0.2
            reasons.append('Significant elevation changes reduce steady-state reliability')
        elif per_km < 20:
            confidence += 0.1
            reasons.append('Minimal elevation changes support steady-state effort')

    confidence = max(0.0, min(1.0, confidence))
    return SteadyStateCheck(
        is_steady_state=confidence > config.STEADY_STATE_MIN_CONFIDENCE,
        confidence=round(confidence, 2),
        variability=variability,
        reasons=reasons,
    )


def _base_confidence(run: Run, method: VO2MaxMethod, measured_profile: bool) -> float:
    if method is VO2MaxMethod.HEART_RATE:
        confidence = 0.8 + (0.1 if measured_profile else 0.0)
    else:
        confidence = 0.6

    if run.distance_km >= 5:
        confidence += 0.1
    elif run.distance_km < 2:
        confidence -= 0.2
    if run.duration_min > 20:
        confidence += 0.05
    return max(0.1, min(0.95, confidence))


def _quality_flags(vo2max: float, run: Run, hr_reserve: Optional[float], effort: Optional[float]):
    """Warnings about the estimate and the confidence they cost."""
    flags = []
    penalty = 0.0

    if vo2max > 80:
        flags.append('VO2max estimate is extremely high (>80 ml/kg/min)')
        penalty += 0.3
    elif vo2max < 25:
        flags.append('VO2max estimate is very low (<25 ml/kg/min)')
        penalty += 0.2

    if hr_reserve is not None and not 100 <= hr_reserve <= 200:
        flags.append('Heart rate reserve seems unusual - check max/resting HR values')
        penalty += 0.2
    if effort is not None:
        if effort > 0.9:
            flags.append('Heart rate suggests maximum effort - may overestimate VO2max')
            penalty += 0.1
        elif effort < 0.3:
            flags.append('Heart rate suggests very easy effort - may underestimate VO2max')

    if run.duration_min < 10:
        flags.append('Run duration too short for reliable VO2max estimation')
        penalty += 0.3

    weather = run.weather
    if weather is not None and weather.temperature_c is not None:
        if weather.temperature_c > 25 or weather.temperature_c < 5:
            flags.append('Extreme temperature may affect VO2max estimation accuracy')

    per_km = run.elevation_per_km if run.elevation_gain_m else None
    if per_km is not None and per_km > 50:
        flags.append('Significant elevation gain may affect VO2max estimation')
        penalty += 0.1

    return flags, penalty


def estimate_vo2max_from_pace(run: Run) -> Optional[VO2MaxEstimate]:
    """Pace-band estimate; None under 1 km or without a valid pace."""
    if not run.has_valid_distance or run.distance_m < 1000:
        return None

    pace = run.pace_s_per_km
    vo2max = config.VO2MAX_PACE_FLOOR
    for bound, value in config.VO2MAX_PACE_BANDS:
        if pace < bound:
            vo2max = value
            break

    km = run.distance_km
    for bound, bonus in config.VO2MAX_DISTANCE_BONUS:
        if km > bound:
            vo2max += bonus
            break
    else:
        if km < 2:
            vo2max -= 2

    steady = steady_state_check(run)
    if not steady.is_steady_state:
        vo2max *= 0.85

    flags, penalty = _quality_flags(vo2max, run, None, None)
    confidence = _base_confidence(run, VO2MaxMethod.PACE, False) * steady.confidence - penalty

    return VO2MaxEstimate(
        vo2max=round(vo2max, 1),
        confidence=round(max(0.1, min(0.95, confidence)), 2),
        method=VO2MaxMethod.PACE,
        fitness_category=categorize_vo2max(vo2max),
        steady_state=steady.is_steady_state,
        flags=flags,
    )


def estimate_vo2max_from_heart_rate(
    run: Run,
    resting_hr: float,
    max_hr: float,
    measured_profile: bool = False
) -> Optional[VO2MaxEstimate]:
    """
    Heart-rate ratio estimate.

    Returns None without an average heart rate; falls back to the pace
    estimate when the average lies outside [resting, max].
    """
    if not run.has_heart_rate:
        return None
    if not resting_hr < run.average_hr <= max_hr:
        return estimate_vo2max_from_pace(run)

    reserve = max_hr - resting_hr
    effort = (run.average_hr - resting_hr) / reserve
    vo2max = config.UTH_COEFFICIENT * max_hr / resting_hr * (0.7 + 0.3 * effort)

    steady = steady_state_check(run)
    if not steady.is_steady_state:
        vo2max *= 0.9

    flags, penalty = _quality_flags(vo2max, run, reserve, effort)
    confidence = (
        _base_confidence(run, VO2MaxMethod.HEART_RATE, measured_profile) * steady.confidence
        - penalty
    )

    return VO2MaxEstimate(
        vo2max=round(vo2max, 1),
        confidence=round(max(0.1, min(0.95, confidence)), 2),
        method=VO2MaxMethod.HEART_RATE,
        fitness_category=categorize_vo2max(vo2max),
        steady_state=steady.is_steady_state,
        flags=flags,
    )


def _resolve(physiology: Optional[Physiology], runs: Sequence[Run]) -> ResolvedPhysiology:
    return as_resolved(physiology, runs) or resolve_physiology(None, runs)


def estimate_vo2max(
    run: Run,
    physiology: Optional[Physiology] = None,
    recent_runs: Sequence[Run] = ()
) -> Optional[VO2MaxEstimate]:
    """
    Best available estimate for one run: heart rate when the run has it,
    else pace.

    Without a profile, heart-rate limits are estimated from `recent_runs`
    (see `profile.resolve_physiology`).
    """
    if run.has_heart_rate:
        resolved = _resolve(physiology, recent_runs)
        return estimate_vo2max_from_heart_rate(
            run, resolved.resting_hr, resolved.max_hr, resolved.fully_measured
        )
    return estimate_vo2max_from_pace(run)


def current_vo2max(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None
) -> Optional[float]:
    """
    Recency-weighted VO2max (0.9^i, newest first) from reliable estimates.

    Considers the ten most recent runs of at least 3 km with heart rate;
    None with fewer than three such runs or no reliable estimate.
    """
    qualifying = [
        r for r in sort_recent_first(runs)
        if r.has_heart_rate and r.has_valid_distance
        and r.distance_m >= config.VO2MAX_MIN_DISTANCE_M
    ][:config.VO2MAX_RECENT_RUNS]
    if len(qualifying) < config.VO2MAX_MIN_RUNS:
        return None

    resolved = _resolve(physiology, runs)
    estimates = [estimate_vo2max(r, resolved) for r in qualifying]
    values = np.array([e.vo2max for e in estimates if e is not None and e.reliable])
    if values.size == 0:
        logger.debug("No reliable VO2max estimate among {} runs", len(qualifying))
        return None

    weights = config.VO2MAX_RECENCY_DECAY ** np.arange(values.size)
    return round(float((values * weights).sum() / weights.sum()), 1)


def analyze_vo2max_trend(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    as_of: Optional[date] = None,
    days: int = 90
) -> VO2MaxTrend:
    """
    Trend of the 30-day rolling mean of reliable per-run estimates.

    The rolling mean is sampled at each run date within the last `days`
    days ending `as_of` (default: latest run); its regression slope per
    day × 30 is the monthly change, beyond ±0.3 a trend.
    """
    valid = sort_chronological([r for r in runs if r.has_valid_distance])
    if len(valid) < config.VO2MAX_MIN_RUNS:
        return VO2MaxTrend(trend='stable', change_per_month=0.0, confidence=0.0)

    as_of = as_of or valid[-1].local_date
    valid = [r for r in valid if r.local_date <= as_of]

    resolved = _resolve(physiology, valid)
    points = []
    for run in valid:
        estimate = estimate_vo2max(run, resolved)
        if estimate is not None and estimate.reliable:
            points.append((pd.Timestamp(run.local_date), estimate.vo2max, estimate.confidence))
    if len(points) < 2:
        return VO2MaxTrend(trend='stable', change_per_month=0.0, confidence=0.0)

    df = pd.DataFrame(points, columns=['date', 'vo2max', 'confidence']).set_index('date')
    df['rolling'] = df['vo2max'].rolling(f'{config.VO2MAX_ROLLING_DAYS}D').mean()

    start = pd.Timestamp(as_of - timedelta(days=days))
    window = df[df.index >= start]
    data_points = [
        {'date': ts.date(), 'vo2max': round(float(v), 1)}
        for ts, v in window['rolling'].items()
    ]
    if len(window) < 2:
        return VO2MaxTrend(trend='stable', change_per_month=0.0, confidence=0.0,
                           data_points=data_points)

    offsets = np.array([(ts - window.index[0]).days for ts in window.index], dtype=float)
    if np.ptp(offsets) == 0:
        slope = 0.0
    else:
        slope = float(stats.linregress(offsets, window['rolling'].to_numpy()).slope)
    monthly = slope * 30

    if monthly > config.VO2MAX_TREND_DELTA:
        trend = 'improving'
    elif monthly < -config.VO2MAX_TREND_DELTA:
        trend = 'declining'
    else:
        trend = 'stable'

    fit_confidence = min(0.9, max(0.3, len(window) / 10 + abs(slope) / 10))
    confidence = min(fit_confidence, float(window['confidence'].mean()))

    return VO2MaxTrend(
        trend=trend,
        change_per_month=round(monthly, 1),
        confidence=round(confidence, 2),
        data_points=data_points,
    )


# ═══════════════════════════════════════════════════════════════════════════
# VDOT
# ═══════════════════════════════════════════════════════════════════════════

def _oxygen_cost(velocity_m_per_min: float) -> float:
    return -4.60 + 0.182258 * velocity_m_per_min + 0.000104 * velocity_m_per_min ** 2


def _sustainable_fraction(minutes: float) -> float:
    return 0.8 + 0.1894393 * np.exp(-0.012778 * minutes) + 0.2989558 * np.exp(-0.1932605 * minutes)


def vdot_from_performance(distance_m: float, time_s: float) -> float:
    """VDOT implied by finishing `distance_m` in `time_s`."""
    if distance_m <= 0 or time_s <= 0:
        raise ValueError(f"distance and time must be positive, got {distance_m}, {time_s}")
    minutes = time_s / 60.0
    return float(_oxygen_cost(distance_m / minutes) / _sustainable_fraction(minutes))


def daniels_race_time(distance_m: float, vo2max: float) -> float:
    """
    Race time (s) at which the VDOT equations give `vo2max`.

    `vo2max` is clamped to the physiological range 20-90 ml/kg/min.
    """
    if distance_m <= 0:
        raise ValueError(f"distance_m must be positive, got {distance_m}")
    low, high = config.VO2MAX_RANGE
    target = max(low, min(high, vo2max))

    fastest = distance_m / config.VDOT_MAX_SPEED_M_PER_MIN * 60.0
    slowest = distance_m / config.VDOT_MIN_SPEED_M_PER_MIN * 60.0
    return float(optimize.brentq(
        lambda t: vdot_from_performance(distance_m, t) - target, fastest, slowest
    ))
