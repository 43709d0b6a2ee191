"""
Race time prediction.

The point prediction blends two estimates from the last 90 days:

    distance-specific  the three fastest runs within ±20 % of the race
                       distance, each scaled with Riegel's formula
                       T2 = T1 × (D2 / D1)^1.06, weighted 0.8^rank
    tempo-based        average pace of recent 3-15 km runs above 150 bpm,
                       offset to the race distance

then adds load-status, fitness-trend and form (TSB) adjustments and an
optional race-day weather penalty from `environment.weather_time_delta`.

When neither estimate applies, the time comes from the runner's current
VO2max through the VDOT equations (`vo2max.daniels_race_time`), else from a
flat 0.33 s/m. A VO2max also raises the prediction confidence by 0.15.

Based on:
- Riegel (1981): athletic records and human endurance
- Daniels: tempo-to-race pace relationships, VDOT
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence, Dict

import numpy as np
from loguru import logger
from scipy import stats

from . import config
from .acwr import ACWRStatus, calculate_acwr
from .aggregation import Metric
from .environment import WeatherTimeDelta, weather_time_delta
from .errors import computation_boundary
from .fitness import FitnessMetrics
from .models import Run, Serializable, Weather, sort_recent_first
from .trimp import Physiology
from .vo2max import current_vo2max, daniels_race_time


@dataclass
class ConfidenceInterval(Serializable):
    optimistic: float
    realistic: float
    conservative: float


@dataclass
class RacePrediction(Serializable):
    distance_m: float
    distance_name: str
    predicted_time_s: float
    predicted_pace: float
    confidence_interval: ConfidenceInterval
    confidence: float
    based_on: Dict[str, bool] = field(default_factory=dict)
    weather_adjustment: Optional[WeatherTimeDelta] = None
    recommendations: List[str] = field(default_factory=list)
    sufficient_data: bool = True
    vo2max: Optional[float] = None


@dataclass
class FitnessProgression(Serializable):
    trend: str
    rate: float                 # s/km faster per week; negative = slowing
    confidence: float
    weeks_analyzed: int = 0


def distance_name(distance_m: float) -> str:
    if distance_m <= 5000:
        return '5K'
    if distance_m <= 10000:
        return '10K'
    if distance_m <= 21097.5:
        return 'Half Marathon'
    if distance_m <= 42195:
        return 'Marathon'
    return f'{round(distance_m / 1000)}K'


def format_race_time(seconds: float) -> str:
    """H:MM:SS, or M:SS under an hour."""
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f'{hours}:{minutes:02d}:{secs:02d}'
    return f'{minutes}:{secs:02d}'


def format_pace(seconds_per_km: float) -> str:
    total = int(round(seconds_per_km))
    return f'{total // 60}:{total % 60:02d}/km'


def _recent_runs(runs: Sequence[Run], as_of: Optional[date] = None) -> List[Run]:
    valid = [r for r in runs if r.has_valid_distance]
    if not valid:
        return []
    as_of = as_of or max(r.local_date for r in valid)
    start = as_of - timedelta(days=config.RACE_LOOKBACK_DAYS)
    return sort_recent_first([r for r in valid if start <= r.local_date <= as_of])


# ═══════════════════════════════════════════════════════════════════════════
# COMPONENT ESTIMATES
# ═══════════════════════════════════════════════════════════════════════════

def riegel_time(time_s: float, from_distance_m: float, to_distance_m: float) -> float:
    """Scale a performance to another distance: T2 = T1 × (D2 / D1)^1.06."""
    if from_distance_m <= 0:
        raise ValueError(f"from_distance_m must be positive, got {from_distance_m}")
    return time_s * (to_distance_m / from_distance_m) ** config.RIEGEL_EXPONENT


def distance_specific_prediction(runs: Sequence[Run], distance_m: float) -> Optional[float]:
    """Riegel-scaled time from the fastest runs near the race distance."""
    tolerance = distance_m * config.RACE_SIMILAR_DISTANCE_TOLERANCE
    similar = [r for r in runs if abs(r.distance_m - distance_m) <= tolerance]
    if not similar:
        return None

    fastest = sorted(similar, key=lambda r: r.pace_s_per_km)[:3]
    times = np.array([riegel_time(r.moving_time_s, r.distance_m, distance_m) for r in fastest])
    weights = config.RACE_RANK_DECAY ** np.arange(len(times))
    return float((times * weights).sum() / weights.sum())


def tempo_based_prediction(runs: Sequence[Run], distance_m: float) -> Optional[float]:
    """Race time from the five most recent tempo-effort runs."""
    low, high = config.RACE_TEMPO_RANGE_M
    tempo = [
        r for r in runs
        if low <= r.distance_m <= high
        and r.average_hr is not None and r.average_hr > config.RACE_TEMPO_MIN_HR
    ][:5]
    if len(tempo) < config.RACE_TEMPO_MIN_RUNS:
        return None

    pace = float(np.mean([r.pace_s_per_km for r in tempo]))
    km = distance_m / 1000.0
    offset = config.RACE_TEMPO_OFFSET_LONG
    for bound, value in config.RACE_TEMPO_OFFSETS:
        if km <= bound:
            offset = value
            break
    return km * (pace + offset)


def base_prediction(
    runs: Sequence[Run],
    distance_m: float,
    vo2max: Optional[float] = None
) -> float:
    """
    Weighted blend (0.6 distance-specific, 0.4 tempo).

    Without either estimate: the VDOT time for `vo2max` when given, else
    the 0.33 s/m fallback.
    """
    estimates = []
    specific = distance_specific_prediction(runs, distance_m)
    if specific is not None:
        estimates.append((specific, 0.6))
    tempo = tempo_based_prediction(runs, distance_m)
    if tempo is not None:
        estimates.append((tempo, 0.4))

    if not estimates:
        if vo2max is not None:
            return daniels_race_time(distance_m, vo2max)
        return distance_m * config.RACE_FALLBACK_S_PER_M

    total = sum(w for _, w in estimates)
    return sum(v * w for v, w in estimates) / total


def _stable_progression(*args, **kwargs) -> FitnessProgression:
    return FitnessProgression(trend='stable', rate=0.0, confidence=0.3)


@computation_boundary(_stable_progression)
def analyze_fitness_progression(
    runs: Sequence[Run],
    as_of: Optional[date] = None
) -> FitnessProgression:
    """
    Trend of weekly average pace.

    Uses up to min(8, n // 3) trailing 7-day windows ending at `as_of`
    (default: latest run). Weeks without runs are skipped; at least four
    weeks with data are needed. rate is the regression slope in s/km per
    week, sign flipped so faster is positive; beyond ±2 it is a trend.
    """
    recent = _recent_runs(runs, as_of)
    if len(recent) < 8:
        return _stable_progression()

    as_of = as_of or recent[0].local_date
    weeks_back = min(8, len(recent) // 3)

    weeks, paces = [], []
    for week in range(weeks_back):
        end = as_of - timedelta(days=7 * week)
        start = end - timedelta(days=6)
        in_week = [r.pace_s_per_km for r in recent if start <= r.local_date <= end]
        if in_week:
            # x grows forward in time
            weeks.append(-week)
            paces.append(float(np.mean(in_week)))

    if len(paces) < 4:
        return FitnessProgression(trend='stable', rate=0.0, confidence=0.4, weeks_analyzed=len(paces))

    fit = stats.linregress(weeks, paces)
    rate = -float(fit.slope)

    if rate > config.PROGRESSION_TREND_RATE:
        trend = 'improving'
    elif rate < -config.PROGRESSION_TREND_RATE:
        trend = 'declining'
    else:
        trend = 'stable'

    return FitnessProgression(
        trend=trend,
        rate=round(rate, 1),
        confidence=round(min(0.9, 0.5 + len(paces) * 0.05), 2),
        weeks_analyzed=len(paces),
    )


def load_status(runs: Sequence[Run]) -> str:
    """optimal / high / low / risky from distance ACWR; low below 14 runs."""
    if len(runs) < 14:
        return 'low'
    status = calculate_acwr(runs, Metric.DISTANCE).status
    return {
        ACWRStatus.HIGH_RISK: 'risky',
        ACWRStatus.CAUTION: 'high',
        ACWRStatus.DETRAINING: 'low',
        ACWRStatus.OPTIMAL: 'optimal',
    }[status]


def fitness_adjustment(
    base_time_s: float,
    status: str,
    progression: FitnessProgression,
    fitness_metrics: FitnessMetrics
) -> float:
    """
    Seconds to add for load status, fitness trend, fitness level and form.

    The fitness-level term compares CTL with a reference of 50: each 100 %
    above (below) it takes 3 % off (adds 3 % to) the base time, capped at
    ±3 %. A rising CTL (positive 7-day ramp) takes a further 0.1 % per
    point off, capped at ±8 points.
    """
    adjustment = config.LOAD_STATUS_SECONDS[status]

    if progression.trend == 'improving':
        adjustment -= min(20.0, abs(progression.rate) * 2)
    elif progression.trend == 'declining':
        adjustment += min(25.0, abs(progression.rate) * 2)

    adjustment += base_time_s * config.TSB_TIME_FACTORS[fitness_metrics.status.value]
    adjustment -= base_time_s * ctl_time_factor(fitness_metrics.ctl, fitness_metrics.ramp_rate)
    return adjustment


def ctl_time_factor(ctl: float, ramp_rate: float) -> float:
    """Fractional time saved (negative = added) for fitness level and its trend."""
    reference = config.RACE_CTL_REFERENCE
    level = (ctl - reference) / reference * config.RACE_CTL_TIME_FACTOR
    level = max(-config.RACE_CTL_MAX_FACTOR, min(config.RACE_CTL_MAX_FACTOR, level))

    cap = config.RACE_RAMP_CAP
    ramp = max(-cap, min(cap, ramp_rate)) * config.RACE_RAMP_TIME_FACTOR
    return level + ramp


def confidence_interval(
    predicted_s: float,
    status: str,
    runs: Sequence[Run]
) -> ConfidenceInterval:
    """
    Interval half-width as a share of the prediction.

    8 % base, plus a load-status term, +3 % under 10 runs or -1 % over 20,
    plus half the coefficient of variation of recent paces (capped at 5 %),
    all scaled by 0.7.
    """
    variance = config.RACE_BASE_VARIANCE + config.LOAD_STATUS_VARIANCE[status]
    if len(runs) < 10:
        variance += 0.03
    elif len(runs) > 20:
        variance -= 0.01

    if len(runs) >= 2:
        paces = np.array([r.pace_s_per_km for r in runs])
        variance += min(config.RACE_MAX_PACE_VARIANCE, float(paces.std() / paces.mean()) / 2)

    variance *= 0.7
    spread = predicted_s * variance
    return ConfidenceInterval(
        optimistic=float(round(predicted_s - spread)),
        realistic=float(round(predicted_s)),
        conservative=float(round(predicted_s + spread)),
    )


def prediction_confidence(
    runs: Sequence[Run],
    status: str,
    distance_m: float,
    fitness_metrics: FitnessMetrics,
    vo2max: Optional[float] = None
) -> float:
    confidence = 0.5
    if len(runs) >= 20:
        confidence += 0.2
    elif len(runs) >= 10:
        confidence += 0.1

    confidence += config.LOAD_STATUS_CONFIDENCE[status]

    if distance_m in (5000, 10000):
        confidence += 0.05
    elif distance_m >= 42195:
        confidence -= 0.05

    if not fitness_metrics.sufficient_data:
        confidence -= 0.1
    if vo2max is not None:
        confidence += config.RACE_VO2MAX_CONFIDENCE

    low, high = config.RACE_CONFIDENCE_RANGE
    return round(max(low, min(high, confidence)), 2)


def race_recommendations(
    status: str,
    progression: FitnessProgression,
    distance_m: float,
    weather: Optional[Weather] = None,
    elevation_gain_m: float = 0.0
) -> List[str]:
    recs = []
    if status == 'risky':
        recs += [
            'High injury risk detected - consider reducing training volume before race',
            'Focus on recovery and easy runs leading up to race',
        ]
    elif status == 'high':
        recs += [
            'Training load is elevated - prioritize recovery in final weeks',
            'Avoid high-intensity sessions close to race day',
        ]
    elif status == 'low':
        recs += [
            'Training volume is low - consider conservative race goals',
            'Focus on building base fitness for future races',
        ]
    else:
        recs.append('Training load is well balanced - maintain current approach')

    if progression.trend == 'improving':
        recs += [
            'Fitness is improving - you may exceed predicted times',
            'Consider slightly aggressive pacing strategy',
        ]
    elif progression.trend == 'declining':
        recs += [
            'Recent fitness decline detected - race conservatively',
            'Focus on maintaining current fitness rather than pushing limits',
        ]
    else:
        recs.append('Fitness is stable - stick to proven pacing strategies')

    if weather is not None:
        if weather.has_temperature and weather.temperature_c > 25:
            recs += [
                'Hot conditions expected - increase hydration and start conservatively',
                'Consider pre-cooling strategies and electrolyte management',
            ]
        elif weather.has_temperature and weather.temperature_c < 5:
            recs.append('Cold conditions expected - ensure proper warm-up and layering')
        if weather.has_humidity and weather.humidity_pct > 75:
            recs.append('High humidity expected - adjust pacing and cooling strategies')
    if elevation_gain_m > 100:
        recs += [
            'Significant elevation gain - practice hill running and pacing',
            'Start conservatively and save energy for climbs',
        ]

    if distance_m <= 5000:
        recs.append('5K distance - focus on maintaining high intensity throughout')
    elif distance_m <= 10000:
        recs.append('10K distance - balance aggressive start with strong finish')
    elif distance_m < 42195:
        recs.append('Half marathon - practice race pace and fueling strategy')
    else:
        recs += [
            'Marathon distance - prioritize pacing discipline and fueling',
            'Practice negative split strategy in training',
        ]
    return recs


# ═══════════════════════════════════════════════════════════════════════════
# PREDICTION
# ═══════════════════════════════════════════════════════════════════════════

def _minimal_prediction(distance_m: float) -> RacePrediction:
    predicted = distance_m / 1000.0 * config.RACE_DEFAULT_PACE
    spread = config.RACE_MINIMAL_INTERVAL
    return RacePrediction(
        distance_m=distance_m,
        distance_name=distance_name(distance_m),
        predicted_time_s=float(round(predicted)),
        predicted_pace=config.RACE_DEFAULT_PACE,
        confidence_interval=ConfidenceInterval(
            optimistic=float(round(predicted * (1 - spread))),
            realistic=float(round(predicted)),
            conservative=float(round(predicted * (1 + spread))),
        ),
        confidence=config.RACE_MINIMAL_CONFIDENCE,
        based_on={
            'recent_performance': False,
            'training_load': False,
            'environmental_factors': False,
            'fitness_progression': False,
            'vo2max': False,
        },
        recommendations=[
            'Limited training data available for accurate prediction',
            'Build more training history for better predictions',
            'Start conservatively and adjust based on how you feel',
        ],
        sufficient_data=False,
    )


def predict_race_time(
    runs: Sequence[Run],
    distance_m: float,
    fitness_metrics: Optional[FitnessMetrics],
    weather: Optional[Weather] = None,
    elevation_gain_m: float = 0.0,
    physiology: Optional[Physiology] = None
) -> RacePrediction:
    """
    Predict a finish time for `distance_m`.

    Args:
        runs: Run history in any order
        distance_m: Race distance in metres
        fitness_metrics: Current CTL/ATL/TSB; None gives the minimal prediction
        weather: Optional race-day conditions
        elevation_gain_m: Total course climb
        physiology: Heart-rate profile for the VO2max estimate; estimated
            from the runs when None

    Returns:
        RacePrediction; pace 330 s/km, ±10 %, confidence 0.3 and
        `sufficient_data=False` with fewer than 10 recent runs
    """
    if distance_m <= 0:
        raise ValueError(f"distance_m must be positive, got {distance_m}")

    recent = _recent_runs(runs)
    if len(recent) < config.RACE_MIN_RUNS or fitness_metrics is None:
        logger.debug(
            "Race prediction for {:.0f} m falls back to minimal ({} recent runs, metrics {})",
            distance_m, len(recent), 'present' if fitness_metrics else 'missing',
        )
        return _minimal_prediction(distance_m)

    progression = analyze_fitness_progression(recent)
    status = load_status(recent)

    vo2max = current_vo2max(recent, physiology)
    base = base_prediction(recent, distance_m, vo2max)
    adjusted = base + fitness_adjustment(base, status, progression, fitness_metrics)

    delta = None
    if weather is not None or elevation_gain_m:
        delta = weather_time_delta(
            distance_m,
            temperature_c=weather.temperature_c if weather else None,
            humidity_pct=weather.humidity_pct if weather else None,
            elevation_gain_m=elevation_gain_m,
        )
        adjusted += delta.total_seconds

    predicted = max(distance_m * config.RACE_MIN_S_PER_M, adjusted)

    return RacePrediction(
        distance_m=distance_m,
        distance_name=distance_name(distance_m),
        predicted_time_s=float(round(predicted)),
        predicted_pace=float(round(predicted / (distance_m / 1000.0))),
        confidence_interval=confidence_interval(predicted, status, recent),
        confidence=prediction_confidence(recent, status, distance_m, fitness_metrics, vo2max),
        based_on={
            'recent_performance': True,
            'training_load': True,
            'environmental_factors': delta is not None,
            'fitness_progression': progression.trend != 'stable',
            'vo2max': vo2max is not None,
        },
        weather_adjustment=delta,
        recommendations=race_recommendations(
            status, progression, distance_m, weather, elevation_gain_m
        ),
        vo2max=vo2max,
    )


def predict_standard_races(
    runs: Sequence[Run],
    fitness_metrics: Optional[FitnessMetrics],
    weather: Optional[Weather] = None,
    physiology: Optional[Physiology] = None
) -> List[RacePrediction]:
    """Predictions for 5K, 10K, half marathon and marathon."""
    return [
        predict_race_time(runs, distance, fitness_metrics, weather, physiology=physiology)
        for _, distance in config.STANDARD_RACES
    ]


# ═══════════════════════════════════════════════════════════════════════════
# READINESS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class FitnessReadiness(Serializable):
    fitness_level: str
    fitness_score: float
    fatigue_level: str
    training_load_status: str
    readiness_score: float
    peaking_advice: List[str] = field(default_factory=list)


_FATIGUE_BY_FORM = {
    'fresh': 'fresh',
    'neutral': 'moderate',
    'fatigued': 'high',
    'very-fatigued': 'overreached',
}

_FITNESS_ADVICE = {
    'peak': [
        'You are at peak fitness - maintain with quality over quantity',
        'Focus on race-specific workouts and recovery',
    ],
    'good': [
        'Good fitness level - fine-tune with targeted workouts',
        'Consider 2-3 week taper for important races',
    ],
    'moderate': [
        'Moderate fitness - continue building base with consistent training',
        'Focus on gradual volume increases',
    ],
    'building': [
        'Building phase - prioritize consistency over intensity',
        'Establish solid aerobic base before adding speed work',
    ],
}

_FATIGUE_ADVICE = {
    'overreached': [
        'High fatigue detected - immediate rest and recovery needed',
        'Consider postponing races until recovered',
    ],
    'high': [
        'Elevated fatigue - reduce training volume this week',
        'Prioritize sleep and recovery protocols',
    ],
    'moderate': ['Normal fatigue levels - maintain current recovery practices'],
    'fresh': ['Low fatigue - good time for quality workouts or racing'],
}


def fitness_readiness(runs: Sequence[Run], fitness_metrics: FitnessMetrics) -> FitnessReadiness:
    """
    Race readiness from weekly volume, fitness trend and current form.

    readiness = 0.7 × fitness score + form bonus (fresh 30, moderate 20,
    high 10, overreached 0).
    """
    recent = _recent_runs(runs)
    if len(recent) < config.RACE_MIN_RUNS:
        return FitnessReadiness(
            fitness_level='building',
            fitness_score=40.0,
            fatigue_level='moderate',
            training_load_status='low',
            readiness_score=35.0,
            peaking_advice=['Need more training data for accurate fitness assessment'],
        )

    as_of = recent[0].local_date
    week_km = sum(r.distance_km for r in recent if r.local_date > as_of - timedelta(days=7))
    progression = analyze_fitness_progression(recent)
    status = load_status(recent)

    if week_km > 50 and progression.trend == 'improving':
        level, score = 'peak', 85.0
    elif week_km > 30 and progression.trend != 'declining':
        level, score = 'good', 70.0
    elif week_km < 15 or progression.trend == 'declining':
        level, score = 'building', 45.0
    else:
        level, score = 'moderate', 50.0

    fatigue = _FATIGUE_BY_FORM[fitness_metrics.status.value]
    bonus = {'fresh': 30, 'moderate': 20, 'high': 10, 'overreached': 0}[fatigue]
    readiness = max(0.0, min(100.0, float(round(score * 0.7 + bonus))))

    return FitnessReadiness(
        fitness_level=level,
        fitness_score=score,
        fatigue_level=fatigue,
        training_load_status=status,
        readiness_score=readiness,
        peaking_advice=_FITNESS_ADVICE[level] + _FATIGUE_ADVICE[fatigue],
    )
