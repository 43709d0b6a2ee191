"""
Aerobic decoupling of long runs.

Compares the efficiency factor (speed / heart rate) of a run's first and
second halves:

    decoupling % = (EF1 - EF2) / EF1 × 100

Without heart rate it falls back to pace fade, (pace2 - pace1) / pace1 × 100.
Only runs of 60 minutes or more are analysed. Under 5 % is excellent, under
10 % good, under 15 % fair.

Measured halves can be passed in. Otherwise they are estimated from the
whole-run averages: even pace, and a heart-rate rise of min(10, max - avg)
bpm split around the average. Results built that way carry `estimated=True`.

Weather drives part of the drift, so heat (+0.3 %/°C over 25 °C), humidity
(+0.05 %/% over 70 %) and wind (+0.1 %/km/h over 15 km/h) are taken off the
reported value and cool conditions (0.1 %/°C under 15 °C) added back,
floored at 0.

Based on:
- Friel: aerobic decoupling (Pa:HR)
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence, Dict, Tuple

import numpy as np
from loguru import logger

from . import config
from .models import Run, Serializable, Weather, sort_chronological


@dataclass(frozen=True)
class HalfSplit(Serializable):
    pace_s_per_km: float
    average_hr: Optional[float] = None


@dataclass
class DecouplingResult(Serializable):
    decoupling_pct: float           # after the weather adjustment
    raw_decoupling_pct: float
    aerobic_efficiency: str
    first_half: HalfSplit
    second_half: HalfSplit
    confidence: float
    has_heart_rate_data: bool
    environmentally_adjusted: bool
    estimated: bool
    duration_min: float
    recommendations: List[str] = field(default_factory=list)


@dataclass
class DecouplingTrend(Serializable):
    average_decoupling: float
    trend: str
    best_decoupling: float
    worst_decoupling: float
    consistency_score: float
    environmental_impact: Dict[str, float]
    runs_analyzed: int
    recommendations: List[str] = field(default_factory=list)


EFFICIENCY_DESCRIPTIONS = {
    'excellent': 'Outstanding aerobic efficiency and pacing',
    'good': 'Good aerobic efficiency with minor room for improvement',
    'fair': 'Moderate efficiency - pacing adjustments recommended',
    'poor': 'Significant decoupling - focus on aerobic base and pacing',
}


def aerobic_efficiency(decoupling_pct: float) -> str:
    for bound, label in config.DECOUPLING_BANDS:
        if decoupling_pct < bound:
            return label
    return 'poor'


def estimate_halves(run: Run) -> Tuple[HalfSplit, HalfSplit]:
    """Even-paced halves with the heart-rate drift the run's max allows."""
    pace = run.pace_s_per_km
    if not (run.has_heart_rate and run.max_hr):
        return HalfSplit(pace), HalfSplit(pace)

    drift = max(0.0, min(config.DECOUPLING_MAX_HR_DRIFT, run.max_hr - run.average_hr))
    return (
        HalfSplit(pace, run.average_hr - drift / 2),
        HalfSplit(pace, run.average_hr + drift / 2),
    )


def weather_decoupling_offset(weather: Optional[Weather]) -> float:
    """Percentage points of decoupling attributable to conditions."""
    if weather is None:
        return 0.0

    offset = 0.0
    temp = weather.temperature_c
    if temp is not None:
        if temp > config.DECOUPLING_HOT_C:
            offset += (temp - config.DECOUPLING_HOT_C) * config.DECOUPLING_HEAT_RATE
        elif temp < config.DECOUPLING_COOL_C:
            offset -= (config.DECOUPLING_COOL_C - temp) * config.DECOUPLING_COOL_RATE
    if weather.humidity_pct is not None and weather.humidity_pct > config.DECOUPLING_HUMID_PCT:
        offset += (weather.humidity_pct - config.DECOUPLING_HUMID_PCT) * config.DECOUPLING_HUMIDITY_RATE
    if weather.wind_speed_kmh is not None and weather.wind_speed_kmh > config.DECOUPLING_WINDY_KMH:
        offset += (weather.wind_speed_kmh - config.DECOUPLING_WINDY_KMH) * config.DECOUPLING_WIND_RATE
    return offset


def _decoupling_confidence(has_hr: bool, measured: bool, duration_min: float) -> float:
    confidence = 0.5
    if has_hr:
        confidence += 0.3
    if measured:
        confidence += 0.2
    if duration_min > 120:
        confidence += 0.2
    elif duration_min > 90:
        confidence += 0.1
    return round(max(0.1, min(1.0, confidence)), 2)


def _run_recommendations(decoupling: float, efficiency: str, has_hr: bool, adjusted: bool) -> List[str]:
    recs = {
        'excellent': [
            'Excellent pacing! Your aerobic efficiency is outstanding',
            'Continue this pacing strategy for long runs and races',
        ],
        'good': [
            'Good aerobic efficiency - well-executed long run',
            'Minor pacing adjustments could improve efficiency further',
        ],
        'fair': [
            'Moderate decoupling detected - consider more conservative pacing',
            'Focus on negative split training and heart rate discipline',
        ],
        'poor': [
            'Significant decoupling - run likely started too fast',
            'Practice conservative pacing and build aerobic base',
            'Consider heart rate-based training to improve efficiency',
        ],
    }[efficiency]

    if decoupling > 15:
        recs += [
            'Start 10-15 seconds per km slower on future long runs',
            'Focus on building aerobic capacity with easier efforts',
        ]
    elif decoupling > 10:
        recs.append('Try starting 5-10 seconds per km slower next time')
    elif decoupling < 2:
        recs.append('Consider slightly faster pacing - you may have more in reserve')

    if not has_hr:
        recs.append('Use heart rate monitoring for more accurate pacing guidance')
    if adjusted:
        recs.append('Environmental conditions were factored into this analysis')
    return recs


def calculate_pace_decoupling(
    run: Run,
    halves: Optional[Tuple[HalfSplit, HalfSplit]] = None
) -> Optional[DecouplingResult]:
    """
    Decoupling for one long run.

    Args:
        run: The run; under 60 minutes or without a valid pace gives None
        halves: Measured first and second half; estimated when None

    Returns:
        DecouplingResult, or None when the run does not qualify
    """
    if run.duration_min < config.DECOUPLING_MIN_DURATION_MIN or not run.has_valid_distance:
        return None

    measured = halves is not None
    first, second = halves if measured else estimate_halves(run)
    has_hr = bool(first.average_hr and second.average_hr)

    if has_hr:
        ef_first = 1.0 / (first.pace_s_per_km * first.average_hr)
        ef_second = 1.0 / (second.pace_s_per_km * second.average_hr)
        raw = (ef_first - ef_second) / ef_first * 100.0
    else:
        raw = (second.pace_s_per_km - first.pace_s_per_km) / first.pace_s_per_km * 100.0

    offset = weather_decoupling_offset(run.weather)
    adjusted = offset != 0.0
    decoupling = max(0.0, raw - offset) if adjusted else raw
    efficiency = aerobic_efficiency(decoupling)

    return DecouplingResult(
        decoupling_pct=round(decoupling, 1),
        raw_decoupling_pct=round(raw, 1),
        aerobic_efficiency=efficiency,
        first_half=first,
        second_half=second,
        confidence=_decoupling_confidence(has_hr, measured, run.duration_min),
        has_heart_rate_data=has_hr,
        environmentally_adjusted=adjusted,
        estimated=not measured,
        duration_min=round(run.duration_min),
        recommendations=_run_recommendations(decoupling, efficiency, has_hr, adjusted),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Trends
# ═══════════════════════════════════════════════════════════════════════════

def _trend_direction(values: Sequence[float]) -> str:
    """First third vs last third of the values; lower decoupling is better."""
    if len(values) < 4:
        return 'stable'
    third = len(values) // 3
    improvement = float(np.mean(values[:third]) - np.mean(values[-third:]))
    if improvement > config.DECOUPLING_TREND_DELTA:
        return 'improving'
    if improvement < -config.DECOUPLING_TREND_DELTA:
        return 'declining'
    return 'stable'


def _environmental_impact(runs: Sequence[Run], values: Sequence[float]) -> Dict[str, float]:
    buckets: Dict[str, List[float]] = {'hot': [], 'cool': [], 'optimal': []}
    for run, value in zip(runs, values):
        if run.weather is None or run.weather.temperature_c is None:
            continue
        temp = run.weather.temperature_c
        if temp > config.DECOUPLING_HOT_C:
            buckets['hot'].append(value)
        elif temp < config.DECOUPLING_COOL_C:
            buckets['cool'].append(value)
        else:
            buckets['optimal'].append(value)
    return {
        key: round(float(np.mean(vals)), 1) if vals else 0.0
        for key, vals in buckets.items()
    }


def _trend_recommendations(trend: str, average: float, consistency: float, impact: Dict[str, float]) -> List[str]:
    recs = {
        'improving': [
            'Excellent progress! Your aerobic efficiency is improving',
            'Continue current training approach and pacing strategies',
        ],
        'declining': [
            'Decoupling trending worse - review pacing and training load',
            'Consider more aerobic base building and conservative pacing',
        ],
        'stable': ['Stable decoupling patterns - consistent aerobic fitness'],
    }[trend]

    if average > 12:
        recs += [
            'Focus on aerobic base development and conservative pacing',
            'Practice negative split long runs to improve efficiency',
        ]
    elif average < 6:
        recs.append('Excellent aerobic efficiency - consider slightly faster pacing')

    if consistency < 60:
        recs.append('Work on pacing consistency - use heart rate or power for guidance')
    elif consistency > 85:
        recs.append('Very consistent pacing - excellent race preparation')

    if impact['hot'] > impact['optimal'] + 3:
        recs.append('Heat significantly impacts your efficiency - adjust pacing in hot weather')
    return recs


def analyze_decoupling_trends(
    runs: Sequence[Run],
    as_of: Optional[date] = None,
    days: int = config.DECOUPLING_TREND_DAYS,
    halves_by_run: Optional[Dict[str, Tuple[HalfSplit, HalfSplit]]] = None
) -> Optional[DecouplingTrend]:
    """
    Decoupling across the long runs of the last `days` days ending `as_of`.

    Args:
        runs: Run history in any order
        as_of: End of the window; the latest run date when None
        days: Window length
        halves_by_run: Measured halves keyed by run id, where available

    Returns:
        DecouplingTrend, or None with fewer than three qualifying runs
    """
    valid = [r for r in runs if r.has_valid_distance]
    if not valid:
        return None
    as_of = as_of or max(r.local_date for r in valid)
    start = as_of - timedelta(days=days)
    halves_by_run = halves_by_run or {}

    long_runs, values = [], []
    for run in sort_chronological([r for r in valid if start <= r.local_date <= as_of]):
        result = calculate_pace_decoupling(run, halves_by_run.get(run.id))
        if result is not None:
            long_runs.append(run)
            values.append(result.decoupling_pct)

    if len(values) < config.DECOUPLING_MIN_RUNS:
        logger.debug("Decoupling trend needs {} long runs, found {}",
                     config.DECOUPLING_MIN_RUNS, len(values))
        return None

    average = float(np.mean(values))
    consistency = max(0.0, 100.0 - float(np.std(values)) / 10.0 * 100.0)
    trend = _trend_direction(values)
    impact = _environmental_impact(long_runs, values)

    return DecouplingTrend(
        average_decoupling=round(average, 1),
        trend=trend,
        best_decoupling=round(min(values), 1),
        worst_decoupling=round(max(values), 1),
        consistency_score=float(round(consistency)),
        environmental_impact=impact,
        runs_analyzed=len(values),
        recommendations=_trend_recommendations(trend, average, consistency, impact),
    )
