"""
Training recommendation engine.

Turns the load, environment, performance and injury-risk picture into
prioritized, actionable recommendations. Each recommendation carries
machine-readable targets (distance / TRIMP ranges, intensity split, rest
days, pace adjustments) alongside its prose.

Families:
    training-load   from the ACWR band
    environmental   from upcoming weather
    progression     volume / intensity increases, gated on safety
    recovery        fatigue, heat stress, missing rest days
    safety          critical injury risk

Output is sorted by priority, critical first; ties keep generation order.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Dict, Tuple

from loguru import logger

from . import config
from .acwr import ACWRResult, ACWRStatus, calculate_acwr
from .aggregation import Metric
from .fitness import calculate_fitness_metrics
from .injury_risk import assess_injury_risk
from .models import ConfidenceLevel, Run, Serializable, Weather
from .profile import resolve_physiology
from .race_prediction import analyze_fitness_progression
from .trimp import Physiology, as_resolved, run_trimp_value


class RecommendationType(Enum):
    TRAINING_LOAD = "training-load"
    ENVIRONMENTAL = "environmental"
    RECOVERY = "recovery"
    PROGRESSION = "progression"
    SAFETY = "safety"


class Priority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return config.PRIORITY_ORDER[self.value]


# ═══════════════════════════════════════════════════════════════════════════
# CONTEXT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class RecentLoad(Serializable):
    """Last seven days of training."""
    weekly_distance_km: float
    weekly_trimp: float
    intensity_distribution: Dict[str, float] = field(
        default_factory=lambda: {f'zone{i}': 0.0 for i in range(1, 6)}
    )
    rest_days: int = 0

    @property
    def hard_percentage(self) -> float:
        return self.intensity_distribution.get('zone4', 0.0) + self.intensity_distribution.get('zone5', 0.0)


@dataclass
class PerformanceContext(Serializable):
    trend: str = 'stable'               # improving / stable / declining
    fatigue_level: str = 'low'          # low / moderate / high
    injury_risk: str = 'low'            # low / moderate / high / critical


@dataclass
class RecommendationContext(Serializable):
    acwr: ACWRResult
    recent_load: RecentLoad
    as_of: date
    performance: PerformanceContext = field(default_factory=PerformanceContext)
    experience_level: str = 'intermediate'
    available_hours: float = 5.0
    upcoming_weather: Optional[Weather] = None
    goals: List[str] = field(default_factory=list)


@dataclass
class TargetMetrics(Serializable):
    weekly_distance_km: Optional[Tuple[float, float]] = None
    weekly_trimp: Optional[Tuple[float, float]] = None
    intensity_distribution: Optional[Dict[str, int]] = None
    rest_days: Optional[int] = None


@dataclass
class EnvironmentalGuidance(Serializable):
    temperature_range_c: Optional[Tuple[float, float]] = None
    pace_adjustments: Optional[Dict[str, float]] = None
    hydration_strategy: Optional[str] = None
    timing_advice: Optional[str] = None


@dataclass
class Recommendation(Serializable):
    id: str
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    action_items: List[str]
    timeframe: str
    reasoning: List[str]
    confidence: ConfidenceLevel
    created: date
    valid_until: date
    target_metrics: Optional[TargetMetrics] = None
    environmental_guidance: Optional[EnvironmentalGuidance] = None


def _split(easy: int, moderate: int, hard: int) -> Dict[str, int]:
    return {'easy': easy, 'moderate': moderate, 'hard': hard}


def _recommendation(
    key: str,
    rec_type: RecommendationType,
    as_of: date,
    **fields
) -> Recommendation:
    days = config.VALIDITY_DAYS[rec_type.value]
    return Recommendation(
        id=f'{key}-{as_of:%Y%m%d}',
        type=rec_type,
        created=as_of,
        valid_until=as_of + timedelta(days=days),
        **fields
    )


# ═══════════════════════════════════════════════════════════════════════════
# FAMILIES
# ═══════════════════════════════════════════════════════════════════════════

def acwr_recommendations(
    acwr: ACWRResult,
    load: RecentLoad,
    experience_level: str,
    as_of: date
) -> List[Recommendation]:
    """One recommendation for the current ACWR band."""
    value = f'{acwr.acwr:.2f}'
    km = load.weekly_distance_km

    if acwr.status is ACWRStatus.HIGH_RISK:
        rec = _recommendation(
            'acwr-high-risk', RecommendationType.TRAINING_LOAD, as_of,
            priority=Priority.CRITICAL,
            title='Reduce Training Load - High Injury Risk',
            description=(
                f'Your ACWR of {value} indicates high injury risk. Immediate load '
                'reduction recommended.'
            ),
            action_items=[
                'Reduce weekly distance by 20-30% this week',
                'Eliminate high-intensity sessions for 3-5 days',
                'Focus on easy-paced recovery runs only',
                'Consider taking 1-2 complete rest days',
                'Monitor for signs of overreaching (elevated resting HR, poor sleep, mood changes)',
            ],
            timeframe='Immediate (next 3-7 days)',
            reasoning=[
                f'ACWR of {value} is above the safe threshold of 1.5',
                'High ACWR correlates with 2-4x increased injury risk',
                'Acute load is significantly higher than chronic adaptation',
            ],
            confidence=ConfidenceLevel.HIGH,
            target_metrics=TargetMetrics(
                weekly_distance_km=(round(km * 0.7), round(km * 0.8)),
                weekly_trimp=(round(load.weekly_trimp * 0.6), round(load.weekly_trimp * 0.7)),
                intensity_distribution=_split(90, 10, 0),
                rest_days=2,
            ),
        )
    elif acwr.status is ACWRStatus.CAUTION:
        rec = _recommendation(
            'acwr-caution', RecommendationType.TRAINING_LOAD, as_of,
            priority=Priority.HIGH,
            title='Monitor Training Load Carefully',
            description=f'Your ACWR of {value} suggests elevated risk. Proceed with caution.',
            action_items=[
                'Maintain current weekly distance but avoid increases',
                'Reduce intensity by 10-20% for the next week',
                'Add an extra easy day between hard sessions',
                'Pay close attention to recovery indicators',
                'Consider massage or other recovery modalities',
            ],
            timeframe='Next 1-2 weeks',
            reasoning=[
                f'ACWR of {value} is in the caution zone (1.3-1.5)',
                'Moderate elevation in injury risk',
                'Good time to consolidate fitness gains',
            ],
            confidence=ConfidenceLevel.HIGH,
            target_metrics=TargetMetrics(
                weekly_distance_km=(round(km * 0.9), round(km * 1.0)),
                intensity_distribution=_split(80, 15, 5),
                rest_days=1,
            ),
        )
    elif acwr.status is ACWRStatus.DETRAINING:
        increase = 0.10 if experience_level == 'beginner' else 0.15
        rec = _recommendation(
            'acwr-detraining', RecommendationType.PROGRESSION, as_of,
            priority=Priority.MEDIUM,
            title='Gradually Increase Training Load',
            description=f'Your ACWR of {value} suggests you can safely increase training.',
            action_items=[
                f'Increase weekly distance by {round(increase * 100)}% this week',
                'Add one additional training session if time permits',
                'Include some moderate intensity work',
                'Monitor response to increased load',
                'Build base fitness with consistent easy running',
            ],
            timeframe='Next 2-4 weeks',
            reasoning=[
                f'ACWR of {value} is below optimal range (0.8-1.3)',
                'Low injury risk allows for training progression',
                'Opportunity to build fitness and work capacity',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            target_metrics=TargetMetrics(
                weekly_distance_km=(round(km * (1 + increase)), round(km * (1 + increase + 0.1))),
                intensity_distribution=_split(75, 20, 5),
            ),
        )
    else:
        rec = _recommendation(
            'acwr-optimal', RecommendationType.TRAINING_LOAD, as_of,
            priority=Priority.LOW,
            title='Maintain Current Training Load',
            description=f'Your ACWR of {value} is in the optimal range. Continue current approach.',
            action_items=[
                'Maintain current weekly distance and intensity',
                'Continue with planned training progression',
                'Focus on consistency and quality',
                'Monitor for any signs of excessive fatigue',
                'Consider periodization for long-term development',
            ],
            timeframe='Ongoing',
            reasoning=[
                f'ACWR of {value} is in the optimal range (0.8-1.3)',
                'Balanced acute and chronic training loads',
                'Low injury risk with good fitness stimulus',
            ],
            confidence=ConfidenceLevel.HIGH,
            target_metrics=TargetMetrics(
                weekly_distance_km=(round(km * 0.95), round(km * 1.05)),
                intensity_distribution=_split(80, 15, 5),
            ),
        )
    return [rec]


def recent_hot_runs(runs: Sequence[Run], as_of: date) -> int:
    """Runs above the hot-run temperature in the heat-exposure window ending `as_of`."""
    start = as_of - timedelta(days=config.HEAT_EXPOSURE_DAYS - 1)
    return sum(
        1 for r in runs
        if start <= r.local_date <= as_of
        and r.weather is not None
        and r.weather.temperature_c is not None
        and r.weather.temperature_c > config.PSI_HOT_RUN_C
    )


def environmental_recommendations(
    weather: Optional[Weather],
    as_of: date,
    runs: Sequence[Run] = ()
) -> List[Recommendation]:
    """
    Heat, humidity, wind and cold guidance for upcoming conditions.

    Hot-weather advice warns about missing heat acclimatization when `runs`
    has fewer than three hot runs in the last 14 days.
    """
    if weather is None:
        return []

    recs = []
    temp = weather.temperature_c
    humidity = weather.humidity_pct
    wind = weather.wind_speed_kmh

    if temp is not None and temp > 25:
        adjustment = round((temp - 20) * 2)
        action_items = [
            f'Slow your pace by {adjustment} seconds per km',
            'Start hydrating 2-3 hours before running',
            'Run during cooler parts of the day (early morning or evening)',
            'Wear light-colored, breathable clothing',
            'Consider shorter runs or indoor alternatives for very hot days',
            'Take walk breaks if you feel overheated',
        ]
        reasoning = [
            f'Temperature of {temp:g}°C requires pace adjustment',
            'Heat stress increases cardiovascular strain',
            'Dehydration risk is elevated in hot conditions',
        ]
        hot_runs = recent_hot_runs(runs, as_of)
        if hot_runs < config.HEAT_EXPOSURE_MIN_RUNS:
            action_items.insert(1, 'Keep the first hot runs short and easy while you acclimatize')
            reasoning.append(
                f'Only {hot_runs} runs above {config.PSI_HOT_RUN_C:g}°C in the last '
                f'{config.HEAT_EXPOSURE_DAYS} days - not yet heat acclimatized'
            )
        recs.append(_recommendation(
            'hot-weather', RecommendationType.ENVIRONMENTAL, as_of,
            priority=Priority.HIGH if temp > 30 else Priority.MEDIUM,
            title=f'Hot Weather Running Strategy ({temp:g}°C)',
            description='Adjust your pace and hydration strategy for the hot conditions.',
            action_items=action_items,
            timeframe='Next 2-3 days',
            reasoning=reasoning,
            confidence=ConfidenceLevel.HIGH,
            environmental_guidance=EnvironmentalGuidance(
                temperature_range_c=(15.0, 22.0),
                pace_adjustments={'temperature': adjustment, 'humidity': 0, 'wind': 0},
                hydration_strategy='Pre-hydrate 2-3 hours before, carry fluids for runs >60 minutes',
                timing_advice='Run before 8 AM or after 6 PM',
            ),
        ))

    if humidity is not None and humidity > 70:
        adjustment = round((humidity - 60) / 10 * 2)
        recs.append(_recommendation(
            'high-humidity', RecommendationType.ENVIRONMENTAL, as_of,
            priority=Priority.MEDIUM,
            title=f'High Humidity Adjustments ({humidity:g}%)',
            description='Modify your approach for the humid conditions.',
            action_items=[
                f'Reduce pace by {adjustment} seconds per km',
                'Allow extra time for cooling down',
                'Focus on perceived effort rather than pace',
                'Increase fluid intake during and after running',
                'Consider electrolyte replacement for longer runs',
            ],
            timeframe='Next 2-3 days',
            reasoning=[
                f'Humidity of {humidity:g}% impairs sweat evaporation',
                'Reduced cooling efficiency increases heat stress',
                'Higher cardiovascular demand at same pace',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            environmental_guidance=EnvironmentalGuidance(
                pace_adjustments={'temperature': 0, 'humidity': adjustment, 'wind': 0},
                hydration_strategy='Increase fluid intake by 20-30%',
                timing_advice='Avoid midday when humidity is typically highest',
            ),
        ))

    if wind is not None and wind > 15:
        recs.append(_recommendation(
            'windy-conditions', RecommendationType.ENVIRONMENTAL, as_of,
            priority=Priority.MEDIUM,
            title=f'Windy Conditions Strategy ({wind:g} km/h)',
            description='Adapt your running strategy for strong winds.',
            action_items=[
                'Plan out-and-back routes to balance headwind/tailwind',
                "Start into the wind when you're fresh, return with tailwind",
                'Reduce pace by 5-10 seconds per km in strong headwinds',
                'Focus on maintaining effort rather than pace',
                'Consider shorter intervals if doing speed work',
                'Be extra cautious of debris and unstable footing',
            ],
            timeframe='Next 1-2 days',
            reasoning=[
                f'Wind speed of {wind:g} km/h significantly affects running effort',
                'Headwinds increase energy cost by 5-15%',
                'Route planning can minimize wind impact',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            environmental_guidance=EnvironmentalGuidance(
                pace_adjustments={'temperature': 0, 'humidity': 0, 'wind': 8},
                timing_advice='Check wind direction and plan route accordingly',
            ),
        ))

    if temp is not None and temp < 5:
        recs.append(_recommendation(
            'cold-weather', RecommendationType.ENVIRONMENTAL, as_of,
            priority=Priority.MEDIUM,
            title=f'Cold Weather Running ({temp:g}°C)',
            description='Stay safe and comfortable in cold conditions.',
            action_items=[
                'Dress in layers that you can remove as you warm up',
                'Protect extremities with gloves, hat, and warm socks',
                'Extend your warm-up to prepare muscles and joints',
                'Be cautious of icy or slippery surfaces',
                'Stay hydrated - cold air is often dry',
                'Cool down indoors to prevent rapid temperature drop',
            ],
            timeframe='Next 2-3 days',
            reasoning=[
                f'Temperature of {temp:g}°C requires cold weather precautions',
                'Cold muscles and joints are more injury-prone',
                'Hypothermia risk in extreme conditions',
            ],
            confidence=ConfidenceLevel.HIGH,
            environmental_guidance=EnvironmentalGuidance(
                temperature_range_c=(10.0, 20.0),
                timing_advice='Midday often provides warmest conditions',
            ),
        ))

    return recs


def progression_recommendations(
    load: RecentLoad,
    performance: PerformanceContext,
    experience_level: str,
    available_hours: float,
    as_of: date
) -> List[Recommendation]:
    """
    Volume and intensity increases.

    Nothing when performance is declining or injury risk is high. Volume
    grows by the experience-level weekly rate while weekly km stay under
    8 km per available hour; intensity is added when under 20 % of time is
    in zones 4-5 and fatigue is low.
    """
    if performance.trend == 'declining' or performance.injury_risk in ('high', 'critical'):
        return []

    weekly_rate, _ = config.PROGRESSION_RATES.get(
        experience_level, config.PROGRESSION_RATES['intermediate']
    )
    recs = []
    km = load.weekly_distance_km

    if km < available_hours * config.KM_PER_AVAILABLE_HOUR:
        increase = round(km * weekly_rate)
        pct = round(weekly_rate * 100)
        recs.append(_recommendation(
            'volume-progression', RecommendationType.PROGRESSION, as_of,
            priority=Priority.MEDIUM,
            title='Gradual Volume Increase',
            description='Your training load suggests room for safe volume progression.',
            action_items=[
                f'Increase weekly distance by {increase}km ({pct}% increase)',
                'Add the extra distance to your easiest runs first',
                'Monitor how you feel after 1 week before further increases',
                'Take a recovery week (reduce by 20%) every 4th week',
                'Prioritize consistency over big jumps in volume',
            ],
            timeframe='Next 2-4 weeks',
            reasoning=[
                f'Current weekly distance of {km:g}km allows for progression',
                f'{experience_level.capitalize()} runners can typically handle {pct}% weekly increases',
                'Performance trend supports training progression',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            target_metrics=TargetMetrics(
                weekly_distance_km=(km + increase, km + round(increase * 1.2)),
            ),
        ))

    hard = load.hard_percentage
    if hard < config.HARD_INTENSITY_CEILING_PCT and performance.fatigue_level == 'low':
        recs.append(_recommendation(
            'intensity-progression', RecommendationType.PROGRESSION, as_of,
            priority=Priority.MEDIUM,
            title='Add Structured Intensity',
            description=(
                'Your current intensity distribution suggests room for more '
                'structured hard training.'
            ),
            action_items=[
                'Add one tempo run or interval session per week',
                'Start with shorter intervals (4-6 x 3 minutes at threshold pace)',
                'Ensure 48-72 hours recovery between hard sessions',
                'Maintain easy effort on recovery days',
                'Build intensity gradually over 4-6 weeks',
            ],
            timeframe='Next 4-6 weeks',
            reasoning=[
                f'Current hard training is only {round(hard)}% of total',
                'Low fatigue level supports intensity addition',
                'Structured intensity improves performance more than volume alone',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            target_metrics=TargetMetrics(intensity_distribution=_split(75, 15, 10)),
        ))

    return recs


def recovery_recommendations(
    performance: PerformanceContext,
    load: RecentLoad,
    weather: Optional[Weather],
    as_of: date
) -> List[Recommendation]:
    """High fatigue, heat/humidity stress and missing rest days."""
    recs = []

    if performance.fatigue_level == 'high':
        recs.append(_recommendation(
            'high-fatigue-recovery', RecommendationType.RECOVERY, as_of,
            priority=Priority.HIGH,
            title='Active Recovery Protocol',
            description='Your fatigue level indicates need for focused recovery strategies.',
            action_items=[
                'Reduce training intensity by 30-50% for 3-5 days',
                'Focus on easy-paced runs of 30-45 minutes maximum',
                'Add extra sleep (aim for 8+ hours per night)',
                'Include active recovery activities (walking, gentle yoga, swimming)',
                'Consider massage or foam rolling sessions',
                'Monitor resting heart rate for recovery indicators',
                'Prioritize nutrition and hydration',
            ],
            timeframe='Next 3-7 days',
            reasoning=[
                'High fatigue level indicates accumulated training stress',
                'Active recovery promotes blood flow and adaptation',
                'Reduced intensity allows physiological recovery',
            ],
            confidence=ConfidenceLevel.HIGH,
            target_metrics=TargetMetrics(intensity_distribution=_split(95, 5, 0), rest_days=1),
        ))

    hot = weather is not None and (
        (weather.temperature_c is not None and weather.temperature_c > 28)
        or (weather.humidity_pct is not None and weather.humidity_pct > 80)
    )
    if hot:
        recs.append(_recommendation(
            'environmental-stress-recovery', RecommendationType.RECOVERY, as_of,
            priority=Priority.MEDIUM,
            title='Environmental Stress Recovery',
            description='Hot/humid conditions increase recovery needs.',
            action_items=[
                'Increase fluid intake by 20-30% on training days',
                'Include electrolyte replacement in longer sessions',
                'Cool down thoroughly after hot weather runs',
                'Consider ice baths or cold showers for heat dissipation',
                'Monitor for signs of heat exhaustion',
                'Allow extra recovery time between hard sessions',
            ],
            timeframe='During hot weather period',
            reasoning=[
                'Heat stress increases cardiovascular strain',
                'Dehydration impairs recovery processes',
                'Environmental stress compounds training stress',
            ],
            confidence=ConfidenceLevel.MEDIUM,
            environmental_guidance=EnvironmentalGuidance(
                hydration_strategy='Increase intake by 500-750ml per hour in hot conditions',
                timing_advice='Schedule recovery runs during cooler parts of day',
            ),
        ))

    if load.rest_days < 1:
        recs.append(_recommendation(
            'rest-days', RecommendationType.RECOVERY, as_of,
            priority=Priority.MEDIUM,
            title='Schedule Regular Rest Days',
            description="You haven't taken enough complete rest days recently.",
            action_items=[
                'Schedule at least 1 complete rest day per week',
                'Use rest days for complete physical inactivity or very light activities',
                'Focus on sleep, nutrition, and stress management on rest days',
                'Consider 2 rest days per week if training volume is high',
                'Listen to your body - take extra rest if feeling overly fatigued',
            ],
            timeframe='Ongoing weekly schedule',
            reasoning=[
                f'Only {load.rest_days} rest days in recent training',
                'Complete rest allows physiological adaptation',
                'Prevents accumulation of fatigue and overuse injuries',
            ],
            confidence=ConfidenceLevel.HIGH,
            target_metrics=TargetMetrics(rest_days=1),
        ))

    return recs


def safety_recommendations(performance: PerformanceContext, as_of: date) -> List[Recommendation]:
    """A stop-training recommendation when injury risk is critical."""
    if performance.injury_risk != 'critical':
        return []
    return [_recommendation(
        'critical-injury-risk', RecommendationType.SAFETY, as_of,
        priority=Priority.CRITICAL,
        title='Stop Hard Training - Critical Injury Risk',
        description=(
            'Multiple injury risk factors are elevated at once. Pause structured '
            'training until they resolve.'
        ),
        action_items=[
            'Stop all high-intensity training immediately',
            'Take 2-3 complete rest days',
            'Consult a sports medicine professional if pain or fatigue persists',
            'Resume with short easy runs only once symptoms have cleared',
        ],
        timeframe='Immediate (next 1-2 days)',
        reasoning=[
            'Injury risk assessment is in the critical band',
            'Continuing to train through critical risk markedly raises injury likelihood',
        ],
        confidence=ConfidenceLevel.HIGH,
        target_metrics=TargetMetrics(intensity_distribution=_split(100, 0, 0), rest_days=3),
    )]


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════

def sort_by_priority(recs: Sequence[Recommendation]) -> List[Recommendation]:
    """Stable sort, critical first."""
    return sorted(recs, key=lambda r: r.priority.rank, reverse=True)


def generate_recommendations(
    runs: Sequence[Run],
    context: RecommendationContext
) -> List[Recommendation]:
    """
    All recommendation families for the current context.

    No progression-type recommendation is returned when the ACWR is
    high-risk or injury risk is high or critical, including the
    load-increase advice of a detraining ACWR.

    Args:
        runs: Run history; recent hot-weather runs decide whether heat
            advice includes an acclimatization warning
        context: Load, weather and performance picture

    Returns:
        Recommendations sorted by priority, critical first
    """
    as_of = context.as_of
    perf = context.performance

    recs = acwr_recommendations(
        context.acwr, context.recent_load, context.experience_level, as_of
    )
    recs += environmental_recommendations(context.upcoming_weather, as_of, runs)

    gated = (
        context.acwr.status is ACWRStatus.HIGH_RISK
        or perf.injury_risk in ('high', 'critical')
    )
    if gated:
        logger.debug(
            "Progression suppressed (ACWR {}, injury risk {})",
            context.acwr.status.value, perf.injury_risk,
        )
        recs = [r for r in recs if r.type is not RecommendationType.PROGRESSION]
    else:
        recs += progression_recommendations(
            context.recent_load, perf, context.experience_level,
            context.available_hours, as_of,
        )

    recs += recovery_recommendations(perf, context.recent_load, context.upcoming_weather, as_of)
    recs += safety_recommendations(perf, as_of)

    return sort_by_priority(recs)


def filter_recommendations(
    recs: Sequence[Recommendation],
    max_count: Optional[int] = None,
    min_priority: Optional[Priority] = None,
    exclude_types: Sequence[RecommendationType] = (),
    timeframe: Optional[str] = None
) -> List[Recommendation]:
    """
    Narrow a recommendation list.

    Args:
        recs: Recommendations, usually from generate_recommendations
        max_count: Keep at most this many (after the other filters)
        min_priority: Drop anything below this priority
        exclude_types: Types to drop
        timeframe: 'immediate', 'short-term' or 'long-term', matched
            against the recommendation timeframe text

    Returns:
        Filtered list in the original order
    """
    out = list(recs)

    if min_priority is not None:
        out = [r for r in out if r.priority.rank >= min_priority.rank]

    if exclude_types:
        excluded = set(exclude_types)
        out = [r for r in out if r.type not in excluded]

    if timeframe is not None:
        if timeframe not in config.TIMEFRAME_KEYWORDS:
            raise ValueError(f"Unknown timeframe '{timeframe}'")
        keywords = config.TIMEFRAME_KEYWORDS[timeframe]
        out = [r for r in out if any(k in r.timeframe.lower() for k in keywords)]

    if max_count:
        out = out[:max_count]

    return out


# ═══════════════════════════════════════════════════════════════════════════
# CONTEXT BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

def _hr_zone(reserve_pct: float) -> str:
    for i, bound in enumerate(config.HR_ZONE_BOUNDS, start=1):
        if reserve_pct < bound:
            return f'zone{i}'
    return 'zone5'


def summarize_recent_load(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    as_of: Optional[date] = None
) -> RecentLoad:
    """
    Distance, TRIMP, time-in-zone split and rest days for the seven days
    ending `as_of` (default: latest run).

    Zones are by % heart-rate reserve of each run's average HR; runs without
    heart rate do not count towards the split. The split is in percent of
    heart-rate minutes. Without a profile, zones fall back to estimated
    physiology while TRIMP counts stored scores only, as in the load totals.
    """
    valid = [r for r in runs if r.has_valid_distance]
    if as_of is None:
        if not valid:
            return RecentLoad(weekly_distance_km=0.0, weekly_trimp=0.0, rest_days=7)
        as_of = max(r.local_date for r in valid)

    start = as_of - timedelta(days=6)
    week = [r for r in valid if start <= r.local_date <= as_of]

    scoring = as_resolved(physiology, runs)
    resolved = scoring or resolve_physiology(None, runs)
    minutes = {f'zone{i}': 0.0 for i in range(1, 6)}
    for run in week:
        if not run.has_heart_rate:
            continue
        reserve = (run.average_hr - resolved.resting_hr) / resolved.hr_reserve * 100
        minutes[_hr_zone(reserve)] += run.duration_min

    total = sum(minutes.values())
    split = {
        zone: round(m / total * 100, 1) if total > 0 else 0.0
        for zone, m in minutes.items()
    }

    return RecentLoad(
        weekly_distance_km=round(sum(r.distance_km for r in week), 1),
        weekly_trimp=round(sum(run_trimp_value(r, scoring) for r in week), 1),
        intensity_distribution=split,
        rest_days=7 - len({r.local_date for r in week}),
    )


_FATIGUE_BY_FORM = {
    'fresh': 'low',
    'neutral': 'low',
    'fatigued': 'moderate',
    'very-fatigued': 'high',
}


def build_recommendation_context(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    as_of: Optional[date] = None,
    experience_level: str = 'intermediate',
    available_hours: float = 5.0,
    upcoming_weather: Optional[Weather] = None
) -> RecommendationContext:
    """
    Assemble a RecommendationContext from run history alone.

    ACWR is TRIMP-based; performance trend comes from weekly pace
    progression, fatigue from TSB, injury risk from the full assessment.

    Raises:
        ValueError: No `as_of` was given and no run has a valid distance
    """
    valid = [r for r in runs if r.has_valid_distance]
    if as_of is None:
        if not valid:
            raise ValueError("as_of is required when there are no valid runs")
        as_of = max(r.local_date for r in valid)

    history = [r for r in runs if r.local_date <= as_of]
    fitness = calculate_fitness_metrics(history, physiology)
    risk = assess_injury_risk(history, physiology, as_of)

    return RecommendationContext(
        acwr=calculate_acwr(history, Metric.TRIMP, physiology),
        recent_load=summarize_recent_load(history, physiology, as_of),
        as_of=as_of,
        performance=PerformanceContext(
            trend=analyze_fitness_progression(history, as_of).trend,
            fatigue_level=_FATIGUE_BY_FORM[fitness.status.value],
            injury_risk=risk.risk_level.value,
        ),
        experience_level=experience_level,
        available_hours=available_hours,
        upcoming_weather=upcoming_weather,
    )
