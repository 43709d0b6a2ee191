"""
Environmental pace adjustment and Physiological Strain Index (PSI).

Pace adjustment converts a run's pace into what the same effort is worth in
neutral conditions: heat, cold and humidity penalties are removed, and wind
cooling offsets part of the heat penalty.

PSI = heart-rate strain (0-5) + environmental strain (0-5)

Based on:
- Ely et al. (2007): marathon performance vs. temperature
- Moran et al. (1998): physiological strain index
- Rothfusz (1990): NWS heat index regression
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Dict, Any

import numpy as np
from loguru import logger

from . import config
from .models import Run, Serializable, Weather, sort_chronological
from .profile import ResolvedPhysiology, UserPhysiologyProfile, tanaka_max_hr
from .trimp import Physiology


# ═══════════════════════════════════════════════════════════════════════════
# Pace adjustment
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaceAdjustments(Serializable):
    """Seconds per km attributed to each condition (positive = slower)."""
    temperature: float = 0.0
    humidity: float = 0.0
    wind: float = 0.0
    total: float = 0.0


@dataclass
class AdjustedPace(Serializable):
    """A run's pace normalized for weather."""
    adjusted_pace: float
    original_pace: float
    adjustments: PaceAdjustments
    confidence: float
    explanation: List[str] = field(default_factory=list)


def temperature_adjustment(temperature_c: Optional[float]) -> float:
    """Heat (+2.5 s/km per °C over 20) or cold (+1.5 s/km per °C under 5)."""
    if temperature_c is None:
        return 0.0
    if temperature_c > config.HEAT_THRESHOLD_C:
        return (temperature_c - config.HEAT_THRESHOLD_C) * config.HEAT_PENALTY_PER_C
    if temperature_c < config.COLD_THRESHOLD_C:
        return (config.COLD_THRESHOLD_C - temperature_c) * config.COLD_PENALTY_PER_C
    return 0.0


def humidity_adjustment(humidity_pct: Optional[float]) -> float:
    """+1.5 s/km per 10 % humidity above 60 %."""
    if humidity_pct is None or humidity_pct <= config.HUMIDITY_THRESHOLD_PCT:
        return 0.0
    excess = humidity_pct - config.HUMIDITY_THRESHOLD_PCT
    return excess / 10.0 * config.HUMIDITY_PENALTY_PER_10PCT


def wind_adjustment(wind_speed_kmh: Optional[float], heat_penalty: float) -> float:
    """
    Cooling credit for wind above 15 km/h (negative).

    The credit only offsets heat and humidity penalties, never more.
    """
    if wind_speed_kmh is None or wind_speed_kmh <= config.WIND_THRESHOLD_KMH:
        return 0.0
    cooling = (wind_speed_kmh - config.WIND_THRESHOLD_KMH) * config.WIND_COOLING_PER_KMH
    return -min(cooling, max(0.0, heat_penalty))


def adjusted_pace(run: Run, weather: Optional[Weather] = None) -> AdjustedPace:
    """
    Weather-normalized pace for a run.

    Args:
        run: The run
        weather: Conditions to adjust for; defaults to the run's own weather

    Returns:
        AdjustedPace; adjusted pace never drops below 0.8 × original pace
    """
    weather = weather or run.weather
    original = run.pace_s_per_km

    if original is None:
        return AdjustedPace(
            adjusted_pace=0.0,
            original_pace=0.0,
            adjustments=PaceAdjustments(),
            confidence=0.0,
            explanation=['Run has no valid distance or moving time'],
        )

    if weather is None or (
        weather.temperature_c is None
        and weather.humidity_pct is None
        and weather.wind_speed_kmh is None
    ):
        return AdjustedPace(
            adjusted_pace=original,
            original_pace=original,
            adjustments=PaceAdjustments(),
            confidence=0.0,
            explanation=['No weather data available for environmental adjustments'],
        )

    temp_adj = temperature_adjustment(weather.temperature_c)
    hum_adj = humidity_adjustment(weather.humidity_pct)
    heat_part = hum_adj + (temp_adj if (weather.temperature_c or 0) > config.HEAT_THRESHOLD_C else 0.0)
    wind_adj = wind_adjustment(weather.wind_speed_kmh, heat_part)
    total = temp_adj + hum_adj + wind_adj

    floor = config.ADJUSTED_PACE_FLOOR_RATIO * original
    value = max(floor, original - total)

    if weather.has_temperature and weather.has_humidity:
        confidence = config.ADJUSTMENT_CONFIDENCE_FULL
    else:
        confidence = config.ADJUSTMENT_CONFIDENCE_PARTIAL

    explanation = []
    if temp_adj:
        explanation.append(f'Temperature {weather.temperature_c:g}°C: {temp_adj:+.1f}s/km')
    if hum_adj:
        explanation.append(f'Humidity {weather.humidity_pct:g}%: {hum_adj:+.1f}s/km')
    if wind_adj:
        explanation.append(f'Wind {weather.wind_speed_kmh:g} km/h cooling: {wind_adj:+.1f}s/km')
    if value == floor and original - total < floor:
        explanation.append('Adjustment capped at 20% of original pace')
    if not explanation:
        explanation.append('Conditions were close to ideal - no adjustment needed')

    return AdjustedPace(
        adjusted_pace=value,
        original_pace=original,
        adjustments=PaceAdjustments(
            temperature=round(temp_adj, 1),
            humidity=round(hum_adj, 1),
            wind=round(wind_adj, 1),
            total=round(total, 1),
        ),
        confidence=confidence,
        explanation=explanation,
    )


@dataclass(frozen=True)
class WeatherTimeDelta(Serializable):
    """Seconds a race is expected to slow by in given conditions."""
    temperature_per_km: float
    humidity_per_km: float
    elevation_per_km: float
    total_seconds: float


def weather_time_delta(
    distance_m: float,
    temperature_c: Optional[float] = None,
    humidity_pct: Optional[float] = None,
    elevation_gain_m: float = 0.0
) -> WeatherTimeDelta:
    """
    Race-day penalty to add to a predicted finish time.

    Heat over 20°C costs 2.5 s/km/°C, cold under 10°C 1.5 s/km/°C, humidity
    over 60 % 1.5 s/km per 10 %, and climbing over 10 m/km 12.5 s/km per
    10 m/km.
    """
    km = max(0.0, distance_m) / 1000.0

    temp = 0.0
    if temperature_c is not None:
        if temperature_c > config.HEAT_THRESHOLD_C:
            temp = (temperature_c - config.HEAT_THRESHOLD_C) * config.HEAT_PENALTY_PER_C
        elif temperature_c < config.RACE_COLD_THRESHOLD_C:
            temp = (config.RACE_COLD_THRESHOLD_C - temperature_c) * config.COLD_PENALTY_PER_C

    hum = humidity_adjustment(humidity_pct)

    elev = 0.0
    if km > 0 and elevation_gain_m:
        per_km = elevation_gain_m / km
        if per_km > config.CLIMB_THRESHOLD_M_PER_KM:
            elev = per_km / 10.0 * config.CLIMB_PENALTY_PER_10M

    return WeatherTimeDelta(
        temperature_per_km=round(temp, 1),
        humidity_per_km=round(hum, 1),
        elevation_per_km=round(elev, 1),
        total_seconds=(temp + hum + elev) * km,
    )


def compare_environmental_performance(runs: Sequence[Run]) -> Dict[str, Any]:
    """
    Pace by temperature band, plus best and worst conditions.

    Only runs with temperature data and a valid pace take part.
    """
    results = [
        (run, adjusted_pace(run))
        for run in runs
        if run.weather is not None and run.weather.has_temperature and run.has_valid_distance
    ]

    if not results:
        return {
            'best_conditions': None,
            'worst_conditions': None,
            'performance_by_condition': [],
            'notes': ['No weather data available'],
        }

    ordered = sorted(results, key=lambda item: item[1].adjusted_pace)

    def describe(item):
        run, result = item
        return {
            'temperature_c': run.weather.temperature_c,
            'humidity_pct': run.weather.humidity_pct,
            'wind_speed_kmh': run.weather.wind_speed_kmh,
            'adjusted_pace': round(result.adjusted_pace),
        }

    by_band = []
    for label, low, high in config.TEMPERATURE_BANDS:
        in_band = [
            (run, result) for run, result in results
            if low <= run.weather.temperature_c < high
        ]
        if not in_band:
            continue
        avg_original = float(np.mean([r.original_pace for _, r in in_band]))
        avg_adjusted = float(np.mean([r.adjusted_pace for _, r in in_band]))
        by_band.append({
            'condition_range': label,
            'avg_original_pace': round(avg_original),
            'avg_adjusted_pace': round(avg_adjusted),
            'run_count': len(in_band),
            'improvement': round(avg_original - avg_adjusted),
        })

    return {
        'best_conditions': describe(ordered[0]),
        'worst_conditions': describe(ordered[-1]),
        'performance_by_condition': by_band,
        'notes': [
            'Temperature: 15-20°C for optimal performance',
            'Humidity: below 60% to minimize heat stress',
            'Wind: below 15 km/h to avoid resistance',
        ],
    }


# ═══════════════════════════════════════════════════════════════════════════
# Physiological Strain Index
# ═══════════════════════════════════════════════════════════════════════════

class StrainLevel(Enum):
    """PSI band."""
    MINIMAL = "minimal"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


@dataclass(frozen=True)
class HeatStressComponents(Serializable):
    heart_rate_strain: float
    environmental_strain: float


@dataclass
class PSIResult(Serializable):
    """Strain score for one run."""
    psi_score: float
    strain_level: StrainLevel
    heat_stress_components: HeatStressComponents
    confidence: float
    has_heart_rate_data: bool = False
    has_weather_data: bool = False
    recommendations: List[str] = field(default_factory=list)


def _empty_psi(reason: str) -> PSIResult:
    return PSIResult(
        psi_score=0.0,
        strain_level=StrainLevel.MINIMAL,
        heat_stress_components=HeatStressComponents(0.0, 0.0),
        confidence=0.0,
        recommendations=[reason],
    )


def heat_index(temperature_c: float, humidity_pct: float) -> float:
    """
    Apparent temperature (°C) via the Rothfusz regression.

    Below 80°F the heat index is not defined and the air temperature is
    returned unchanged.
    """
    t = temperature_c * 9.0 / 5.0 + 32.0
    rh = humidity_pct

    if t < config.PSI_HEAT_INDEX_MIN_F:
        return temperature_c

    hi = (-42.379 + 2.04901523 * t + 10.14333127 * rh
          - 0.22475541 * t * rh - 0.00683783 * t * t
          - 0.05481717 * rh * rh + 0.00122874 * t * t * rh
          + 0.00085282 * t * rh * rh - 0.00000199 * t * t * rh * rh)

    return (hi - 32.0) * 5.0 / 9.0


def _banded(value: float, bands, above: float) -> float:
    for upper, strain in bands:
        if value <= upper:
            return strain
    return above


def _psi_max_hr(physiology: Physiology, resting_hr: float) -> float:
    if isinstance(physiology, ResolvedPhysiology):
        return physiology.max_hr
    if physiology.max_hr:
        return float(physiology.max_hr)
    if physiology.age:
        return tanaka_max_hr(physiology.age)
    return max(180.0, resting_hr + 110.0)


def _psi_resting_hr(physiology: Physiology) -> Optional[float]:
    if isinstance(physiology, ResolvedPhysiology):
        return physiology.resting_hr
    return physiology.resting_hr


def heart_rate_strain(run: Run, resting_hr: float, max_hr: float) -> float:
    """
    Cardiac strain (0-5) from % heart-rate reserve.

    Efforts over 60 minutes above 60 % reserve earn up to +1.
    """
    reserve = max_hr - resting_hr
    if reserve <= 0:
        return 0.0
    reserve_pct = (run.average_hr - resting_hr) / reserve * 100.0

    strain = _banded(reserve_pct, config.PSI_HR_BANDS, config.PSI_HR_BAND_MAX)

    duration = run.duration_min
    if duration > config.PSI_DURATION_BONUS_AFTER_MIN and reserve_pct > config.PSI_DURATION_BONUS_RESERVE_PCT:
        strain += min(1.0, (duration - config.PSI_DURATION_BONUS_AFTER_MIN) / config.PSI_DURATION_BONUS_SPAN_MIN)

    return min(config.PSI_COMPONENT_MAX, strain)


def environmental_strain(weather: Weather) -> float:
    """Thermal strain (0-5) from temperature, humidity, heat index and wind."""
    temp = weather.temperature_c
    humidity = weather.humidity_pct

    strain = _banded(temp, config.PSI_TEMPERATURE_BANDS, config.PSI_TEMPERATURE_BAND_MAX)

    if humidity is not None:
        if humidity > config.PSI_HUMIDITY_THRESHOLD:
            strain += min(
                config.PSI_HUMIDITY_MAX_BONUS,
                (humidity - config.PSI_HUMIDITY_THRESHOLD) / config.PSI_HUMIDITY_SPAN,
            )
        hi = heat_index(temp, humidity)
        if hi > temp + config.PSI_HEAT_INDEX_MARGIN_C:
            strain += min(1.0, (hi - temp - config.PSI_HEAT_INDEX_MARGIN_C) / config.PSI_HEAT_INDEX_SPAN)

    wind = weather.wind_speed_kmh
    if wind is not None and wind > config.PSI_WIND_THRESHOLD:
        cooling = min(config.PSI_WIND_MAX_COOLING, (wind - config.PSI_WIND_THRESHOLD) / config.PSI_WIND_SPAN)
        strain = max(0.0, strain - cooling)

    return min(config.PSI_COMPONENT_MAX, strain)


def classify_strain(psi_score: float) -> StrainLevel:
    """PSI band: <=1.5 minimal, <=3.5 low, <=5.5 moderate, <=7.5 high."""
    for upper, level in config.PSI_STRAIN_LEVELS:
        if psi_score <= upper:
            return StrainLevel(level)
    return StrainLevel.EXTREME


def _psi_confidence(
    run: Run,
    weather: Optional[Weather],
    has_hr: bool,
    has_weather: bool,
    measured_resting: bool
) -> float:
    confidence = 0.2

    if has_hr:
        confidence += 0.3
        if measured_resting:
            confidence += 0.2
        if run.max_hr:
            spread = run.max_hr - run.average_hr
            if 10 < spread < 80:
                confidence += 0.1
            else:
                confidence -= 0.2

    if has_weather:
        confidence += 0.3
        humidity = weather.humidity_pct if weather.humidity_pct is not None else 50.0
        if -20 <= weather.temperature_c <= 50 and 0 <= humidity <= 100:
            confidence += 0.1

    return max(0.1, min(1.0, confidence))


def _psi_recommendations(psi: float, weather: Optional[Weather]) -> List[str]:
    if psi > 7:
        recs = [
            'High physiological strain detected - consider extended recovery',
            'Take 24-48 hours of easy recovery or complete rest',
            'Monitor for signs of heat exhaustion or overexertion',
            'Increase hydration and electrolyte replacement',
        ]
    elif psi > 5:
        recs = [
            'Moderate strain - allow adequate recovery time',
            'Consider easy runs or cross-training for next 24 hours',
            'Focus on hydration and cooling strategies',
        ]
    elif psi > 3:
        recs = [
            'Low to moderate strain - normal recovery protocols',
            'Standard post-run hydration and nutrition',
        ]
    else:
        recs = ['Minimal strain - good conditions for training']

    if weather is not None and weather.temperature_c is not None:
        humidity = weather.humidity_pct or 0.0
        if weather.temperature_c > 25 or humidity > 70:
            recs.append('Consider earlier morning or later evening runs in hot weather')
        if weather.temperature_c > 30:
            recs.append('Reduce intensity in extreme heat conditions')
    return recs


def calculate_psi(
    run: Run,
    weather: Optional[Weather] = None,
    physiology: Optional[Physiology] = None
) -> PSIResult:
    """
    Physiological Strain Index for a run.

    Heart-rate strain needs the run's average heart rate and a physiology
    profile; environmental strain needs a temperature. Whichever is missing
    scores 0 and lowers confidence; with neither, the no-data result
    (score 0, minimal, confidence 0) is returned.

    Args:
        run: The run
        weather: Conditions; defaults to the run's own weather
        physiology: Raw or resolved profile

    Returns:
        PSIResult with psi_score == heart_rate_strain + environmental_strain
    """
    weather = weather or run.weather

    resting = _psi_resting_hr(physiology) if physiology is not None else None
    if physiology is not None and resting is None:
        level = physiology.fitness_level if isinstance(physiology, UserPhysiologyProfile) else None
        resting = config.RESTING_HR_BY_FITNESS.get(
            getattr(level, 'value', level), config.DEFAULT_RESTING_HR
        )
    has_hr = run.has_heart_rate and resting is not None
    has_weather = weather is not None and weather.temperature_c is not None

    if not has_hr and not has_weather:
        return _empty_psi('No heart rate or weather data available')

    hr_strain = 0.0
    measured_resting = False
    if has_hr:
        max_hr = _psi_max_hr(physiology, resting)
        hr_strain = heart_rate_strain(run, resting, max_hr)
        if isinstance(physiology, ResolvedPhysiology):
            measured_resting = physiology.has_measured_resting_hr
        else:
            measured_resting = bool(physiology.resting_hr)

    env_strain = environmental_strain(weather) if has_weather else 0.0

    hr_r = round(hr_strain, 1)
    env_r = round(env_strain, 1)
    psi = hr_r + env_r

    return PSIResult(
        psi_score=psi,
        strain_level=classify_strain(psi),
        heat_stress_components=HeatStressComponents(hr_r, env_r),
        confidence=_psi_confidence(run, weather, has_hr, has_weather, measured_resting),
        has_heart_rate_data=has_hr,
        has_weather_data=has_weather,
        recommendations=_psi_recommendations(psi, weather if has_weather else None),
    )


@dataclass
class PSITrendAnalysis(Serializable):
    """PSI over a recent window and heat adaptation status."""
    current_psi: float
    average_psi: float
    trend: str
    heat_acclimatization: Dict[str, Any]
    high_strain_days: int
    run_count: int
    recommendations: List[str] = field(default_factory=list)


def _acclimatization(hot: List[tuple]) -> Dict[str, Any]:
    if len(hot) < 3:
        return {'status': 'poor', 'progress_score': 0, 'days_to_improvement': 14}

    scores = [psi.psi_score for _, psi in hot]
    average = float(np.mean(scores))
    half = int(np.ceil(len(scores) / 2))
    improvement = float(np.mean(scores[:half]) - np.mean(scores[-half:]))

    if average <= 4 and improvement >= 0:
        return {'status': 'excellent', 'progress_score': 90, 'days_to_improvement': 0}
    if average <= 5.5 and improvement >= -0.5:
        return {'status': 'good', 'progress_score': 75, 'days_to_improvement': 3}
    if average <= 7 and improvement >= -1:
        return {'status': 'developing', 'progress_score': 50, 'days_to_improvement': 7}
    return {'status': 'poor', 'progress_score': 25, 'days_to_improvement': 14}


def analyze_psi_trends(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    as_of: Optional[date] = None,
    days: int = 30
) -> PSITrendAnalysis:
    """
    PSI across the last `days` days ending at `as_of`.

    `as_of` defaults to the most recent run date. The trend compares the
    first and second half of the window (±0.3 PSI); heat acclimatization
    looks at runs above 25°C.
    """
    if not runs:
        return PSITrendAnalysis(
            current_psi=0.0, average_psi=0.0, trend='stable',
            heat_acclimatization=_acclimatization([]),
            high_strain_days=0, run_count=0,
            recommendations=['Not enough recent runs for PSI trend analysis'],
        )

    ordered = sort_chronological(list(runs))
    as_of = as_of or ordered[-1].local_date
    cutoff = as_of - timedelta(days=days)
    recent = [r for r in ordered if cutoff <= r.local_date <= as_of]
    if not recent:
        return analyze_psi_trends([], physiology)

    scored = [(run, calculate_psi(run, physiology=physiology)) for run in recent]
    scores = [psi.psi_score for _, psi in scored]

    trend = 'stable'
    if len(scored) >= config.PSI_TREND_MIN_RUNS:
        mid = len(scores) // 2
        diff = float(np.mean(scores[mid:]) - np.mean(scores[:mid]))
        if diff < -config.PSI_TREND_DELTA:
            trend = 'improving'
        elif diff > config.PSI_TREND_DELTA:
            trend = 'worsening'

    hot = [
        (run, psi) for run, psi in scored
        if run.weather is not None
        and run.weather.temperature_c is not None
        and run.weather.temperature_c > config.PSI_HOT_RUN_C
    ]
    acclimatization = _acclimatization(hot)
    high_strain = sum(1 for s in scores if s > config.PSI_HIGH_STRAIN)

    recommendations = []
    if trend == 'worsening':
        recommendations.append('Strain is rising - review recovery and heat exposure')
    elif trend == 'improving':
        recommendations.append('Strain is falling - adaptation is progressing well')
    if acclimatization['status'] in ('poor', 'developing') and hot:
        recommendations.append('Build heat tolerance gradually with short, easy runs in warm conditions')
    if high_strain > days / 7:
        recommendations.append(f'{high_strain} high-strain runs recently - schedule extra recovery')
    if not recommendations:
        recommendations.append('Strain levels are well managed')

    logger.debug("PSI trend over {} runs: {}", len(scored), trend)

    return PSITrendAnalysis(
        current_psi=round(scores[-1], 1),
        average_psi=round(float(np.mean(scores)), 1),
        trend=trend,
        heat_acclimatization=acclimatization,
        high_strain_days=high_strain,
        run_count=len(scored),
        recommendations=recommendations,
    )
