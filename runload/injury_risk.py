"""
Injury risk and overreaching detection.

Five independent 0-100 risk factors are scored over the trailing 90 days:

    training-load spike   ACWR band + week-over-week distance spikes
    performance decline   regression of recent paces
    heart-rate anomalies  HR drift between run blocks, HR scatter at equal pace
    pace consistency      coefficient of variation per distance bucket
    recovery patterns     inter-run intervals, consecutive hard efforts

They are combined with a rank-decayed weighted average (weight 0.8^rank,
highest score first), so one severe factor dominates the overall score.
Overreaching status is tallied independently from the ACWR band and the
factor severities.

Based on:
- Gabbett (2016): training-injury prevention paradox, ACWR bands
- Meeusen et al. (2013): functional / non-functional overreaching continuum
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Dict, Any, Tuple

import numpy as np
from loguru import logger
from scipy import stats

from . import config
from .acwr import ACWRResult, ACWRStatus, calculate_acwr
from .aggregation import Metric, weekly_windows
from .errors import computation_boundary
from .models import Run, Serializable, sort_recent_first
from .trimp import Physiology


class RiskLevel(Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class WarningLevel(Enum):
    MONITOR_CLOSELY = "monitor-closely"
    CAUTION_ADVISED = "caution-advised"
    IMMEDIATE_REST = "immediate-rest-recommended"


class OverreachingStatus(Enum):
    """Ascending severity."""
    NORMAL = "normal"
    FUNCTIONAL = "functional"
    NON_FUNCTIONAL = "non-functional"
    OVERTRAINING = "overtraining"


_SEVERITY_RANK = {'low': 0, 'moderate': 1, 'high': 2, 'critical': 3}


def _at_least(severity: str, floor: str) -> str:
    """The more severe of two severity labels."""
    return severity if _SEVERITY_RANK[severity] >= _SEVERITY_RANK[floor] else floor


# ═══════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class RiskFactor(Serializable):
    """One scored risk factor."""
    score: float
    severity: str
    description: str


@dataclass
class LoadSpikeFactor(RiskFactor):
    acwr_value: float = 1.0


@dataclass
class PerformanceDeclineFactor(RiskFactor):
    trend_direction: str = 'stable'


@dataclass
class HeartRateAnomalyFactor(RiskFactor):
    hr_trend: Optional[str] = None


@dataclass
class PaceConsistencyFactor(RiskFactor):
    variability_index: float = 0.0


@dataclass
class RecoveryPatternFactor(RiskFactor):
    recovery_quality: str = 'fair'


@dataclass
class RiskFactors(Serializable):
    training_load_spike: LoadSpikeFactor
    performance_decline: PerformanceDeclineFactor
    heart_rate_anomalies: HeartRateAnomalyFactor
    pace_consistency: PaceConsistencyFactor
    recovery_patterns: RecoveryPatternFactor

    def items(self) -> List[Tuple[str, RiskFactor]]:
        """(name, factor) pairs in a fixed order."""
        return [
            ('training_load_spike', self.training_load_spike),
            ('performance_decline', self.performance_decline),
            ('heart_rate_anomalies', self.heart_rate_anomalies),
            ('pace_consistency', self.pace_consistency),
            ('recovery_patterns', self.recovery_patterns),
        ]

    def scores(self) -> List[float]:
        return [f.score for _, f in self.items()]


@dataclass
class OverreachingIndicator(Serializable):
    indicator: str
    severity: str
    trend: str
    description: str


@dataclass
class OverreachingAssessment(Serializable):
    status: OverreachingStatus
    confidence: float
    indicators: List[OverreachingIndicator] = field(default_factory=list)
    days_in_current_state: int = 0


@dataclass
class RiskRecommendations(Serializable):
    immediate: List[str] = field(default_factory=list)
    short_term: List[str] = field(default_factory=list)
    long_term: List[str] = field(default_factory=list)
    monitoring: List[str] = field(default_factory=list)


@dataclass
class RecoveryPhase(Serializable):
    phase: str
    duration: str
    activities: List[str]
    progress_markers: List[str]


@dataclass
class RecoveryGuidance(Serializable):
    estimated_recovery_days: int
    safe_return_criteria: List[str]
    progressive_return_plan: List[RecoveryPhase]


@dataclass
class InjuryRiskAssessment(Serializable):
    """Full assessment. `sufficient_data` is False for the minimal result."""
    overall_risk_score: float
    risk_level: RiskLevel
    warning_level: WarningLevel
    risk_factors: RiskFactors
    overreaching: OverreachingAssessment
    recommendations: RiskRecommendations
    recovery_guidance: RecoveryGuidance
    analysis_date: Optional[date]
    data_quality: str
    confidence: float
    runs_analyzed: int
    sufficient_data: bool = True


@dataclass
class TrainingLoadPattern(Serializable):
    """Eight weeks of load, oldest week first."""
    weekly_distances: List[float]
    weekly_trimp: List[float]
    acwr: Optional[ACWRResult]
    load_spikes: List[Dict[str, Any]]
    chronic_load_trend: str


# ═══════════════════════════════════════════════════════════════════════════
# TRAINING LOAD PATTERN
# ═══════════════════════════════════════════════════════════════════════════

def _spike_severity(increase_pct: float) -> str:
    for bound, label in config.LOAD_SPIKE_BANDS:
        if increase_pct > bound:
            return label
    return 'minor'


def analyze_training_load_pattern(
    runs: Sequence[Run],
    as_of: date,
    physiology: Optional[Physiology] = None
) -> TrainingLoadPattern:
    """
    Weekly distance/TRIMP, week-over-week spikes and chronic trend.

    A spike is a week whose distance rose more than 10 % over the week
    before; spike `week` indexes the chronological list.
    """
    windows = weekly_windows(runs, as_of, config.RISK_WEEKS_ANALYZED, physiology)
    windows = list(reversed(windows))
    distances = [w.distance_km for w in windows]
    trimp = [w.trimp for w in windows]

    spikes = []
    for i in range(1, len(distances)):
        previous, current = distances[i - 1], distances[i]
        if previous <= 0:
            continue
        increase = (current - previous) / previous * 100
        if increase > config.LOAD_SPIKE_MIN_PCT:
            spikes.append({
                'week': i,
                'increase': round(increase),
                'severity': _spike_severity(increase),
            })

    first_half = float(np.mean(distances[:4]))
    second_half = float(np.mean(distances[-4:]))
    trend = 'stable'
    if first_half > 0:
        change = (second_half - first_half) / first_half * 100
        if change > 10:
            trend = 'increasing'
        elif change < -10:
            trend = 'decreasing'
    elif second_half > 0:
        trend = 'increasing'

    acwr = calculate_acwr(runs, Metric.DISTANCE)
    return TrainingLoadPattern(
        weekly_distances=distances,
        weekly_trimp=trimp,
        acwr=acwr if acwr.sufficient_data else None,
        load_spikes=spikes,
        chronic_load_trend=trend,
    )


# ═══════════════════════════════════════════════════════════════════════════
# RISK FACTORS
# ═══════════════════════════════════════════════════════════════════════════

def _neutral_load_spike(*args, **kwargs) -> LoadSpikeFactor:
    return LoadSpikeFactor(
        config.RISK_FACTOR_FLOOR, 'low', 'Insufficient data for training load analysis'
    )


@computation_boundary(_neutral_load_spike)
def assess_training_load_spike(pattern: TrainingLoadPattern) -> LoadSpikeFactor:
    """ACWR band plus the largest spike in the three most recent weeks."""
    score = 0.0
    severity = 'low'
    description = 'Training load progression appears appropriate'
    acwr_value = 1.0

    if pattern.acwr is not None:
        acwr_value = pattern.acwr.acwr
        status = pattern.acwr.status
        if status is ACWRStatus.HIGH_RISK:
            score += 40
            severity = 'critical'
            description = f'Critical ACWR of {acwr_value:.2f} indicates very high injury risk'
        elif status is ACWRStatus.CAUTION:
            score += 25
            severity = 'high'
            description = f'Elevated ACWR of {acwr_value:.2f} suggests increased injury risk'
        elif status is ACWRStatus.DETRAINING:
            score += 10
            severity = 'moderate'
            description = (
                f'Low ACWR of {acwr_value:.2f} indicates detraining - gradual load '
                'increase needed'
            )

    recent_from = len(pattern.weekly_distances) - 3
    recent = [s for s in pattern.load_spikes if s['week'] >= recent_from]
    if recent:
        worst = max(recent, key=lambda s: s['increase'])
        label = worst['severity']
        if label in config.SPIKE_POINTS:
            score += config.SPIKE_POINTS[label]
            floor = {'extreme': 'critical', 'major': 'high', 'moderate': 'moderate'}[label]
            severity = _at_least(severity, floor)
            description += f". {label.capitalize()} load spike of {worst['increase']}% detected"

    if pattern.chronic_load_trend == 'increasing':
        score += 10
        description += '. Chronic load is increasing - monitor for overreaching'

    return LoadSpikeFactor(min(100.0, score), severity, description, acwr_value)


def _neutral_performance(*args, **kwargs) -> PerformanceDeclineFactor:
    return PerformanceDeclineFactor(
        config.RISK_FACTOR_FLOOR, 'low', 'Insufficient data for performance trend analysis'
    )


@computation_boundary(_neutral_performance)
def assess_performance_decline(runs: Sequence[Run]) -> PerformanceDeclineFactor:
    """
    Pace trend over the ten most recent runs.

    The regression runs oldest to newest, so a positive total change means
    the runner is getting slower.

    Args:
        runs: Valid runs, most recent first
    """
    if len(runs) < 8:
        return _neutral_performance()

    recent = list(reversed(runs[:10]))
    paces = np.array([r.pace_s_per_km for r in recent])
    fit = stats.linregress(np.arange(len(paces)), paces)
    change = float(fit.slope) * (len(paces) - 1)

    score = 0.0
    severity = 'low'
    direction = 'stable'
    description = 'Performance trends appear stable'

    if change > 10:
        direction = 'declining'
        if change > 30:
            score, severity, label = 30, 'high', 'Significant'
        elif change > 20:
            score, severity, label = 20, 'moderate', 'Moderate'
        else:
            score, severity, label = 10, 'low', 'Minor'
        description = f'{label} performance decline detected ({round(change)}s/km slower)'
    elif change < -5:
        direction = 'improving'
        description = f'Performance improving ({abs(round(change))}s/km faster)'

    if paces.std() > 30:
        score += 15
        severity = _at_least(severity, 'moderate')
        description += '. High pace variability suggests inconsistent performance'

    return PerformanceDeclineFactor(min(100.0, score), severity, description, direction)


def _neutral_heart_rate(*args, **kwargs) -> HeartRateAnomalyFactor:
    return HeartRateAnomalyFactor(
        config.RISK_FACTOR_FLOOR, 'low', 'Insufficient heart rate data for analysis'
    )


@computation_boundary(_neutral_heart_rate)
def assess_heart_rate_anomalies(runs: Sequence[Run]) -> HeartRateAnomalyFactor:
    """
    Average-HR shift between the last 8 and previous 8 HR runs, and HR
    scatter among runs at similar pace (30 s/km buckets).

    Args:
        runs: Valid runs, most recent first
    """
    hr_runs = [r for r in runs if r.has_heart_rate]
    if len(hr_runs) < 5:
        return _neutral_heart_rate()

    score = 0.0
    severity = 'low'
    description = 'Heart rate patterns appear normal'
    trend = None

    if len(hr_runs) >= 16:
        recent = np.mean([r.average_hr for r in hr_runs[:8]])
        older = np.mean([r.average_hr for r in hr_runs[8:16]])
        change = float(recent - older)
        if change > 10:
            trend = 'elevated'
            score += 20
            severity = 'moderate'
            description = f'Elevated heart rate trend detected (+{round(change)} bpm average)'
        elif change < -10:
            trend = 'declining'
            score += 15
            severity = 'moderate'
            description = f'Declining heart rate trend detected ({round(change)} bpm average)'
        else:
            trend = 'normal'

    groups: Dict[int, List[float]] = {}
    for run in hr_runs:
        key = int(round(run.pace_s_per_km / 30.0)) * 30
        groups.setdefault(key, []).append(run.average_hr)

    scattered = sum(1 for hrs in groups.values() if len(hrs) >= 3 and np.std(hrs) > 15)
    if scattered:
        score += 10
        severity = _at_least(severity, 'moderate')
        description += '. High heart rate variability at similar paces detected'

    return HeartRateAnomalyFactor(min(100.0, score), severity, description, trend)


def _neutral_pace(*args, **kwargs) -> PaceConsistencyFactor:
    return PaceConsistencyFactor(
        config.RISK_FACTOR_FLOOR, 'low', 'Insufficient data for pace consistency analysis'
    )


@computation_boundary(_neutral_pace)
def assess_pace_consistency(runs: Sequence[Run]) -> PaceConsistencyFactor:
    """
    Pace CV within whole-km distance buckets (3 km+, 3+ runs) and the
    pace spread of the five most recent runs.

    Args:
        runs: Valid runs, most recent first
    """
    if len(runs) < 8:
        return _neutral_pace()

    score = 0.0
    severity = 'low'
    description = 'Pace consistency appears normal'

    groups: Dict[int, List[float]] = {}
    for run in runs:
        groups.setdefault(int(round(run.distance_km)), []).append(run.pace_s_per_km)

    cvs = []
    for km, paces in sorted(groups.items()):
        if len(paces) < 3 or km < 3:
            continue
        cv = float(np.std(paces) / np.mean(paces) * 100)
        cvs.append(cv)
        if cv > 15:
            score += 15
            severity = 'moderate'
            description = f'High pace variability detected for {km}km runs ({cv:.1f}% CV)'
        elif cv > 10:
            score += 8
            severity = _at_least(severity, 'moderate')
            description = f'Moderate pace variability detected for {km}km runs ({cv:.1f}% CV)'

    recent = np.array([r.pace_s_per_km for r in runs[:5]])
    if recent.std() > 45:
        score += 20
        severity = 'high'
        description += '. Very high pace variability in recent runs suggests fatigue'

    index = round(float(np.mean(cvs)), 1) if cvs else 0.0
    return PaceConsistencyFactor(min(100.0, score), severity, description, index)


def _neutral_recovery(*args, **kwargs) -> RecoveryPatternFactor:
    return RecoveryPatternFactor(
        config.RISK_FACTOR_FLOOR, 'low', 'Insufficient data for recovery pattern analysis'
    )


def _is_hard_effort(run: Run) -> bool:
    return (
        (run.average_hr is not None and run.average_hr > config.HARD_RUN_HR)
        or run.pace_s_per_km < config.HARD_RUN_PACE
        or run.distance_km > config.HARD_RUN_KM
    )


@computation_boundary(_neutral_recovery)
def assess_recovery_patterns(runs: Sequence[Run], as_of: date) -> RecoveryPatternFactor:
    """
    Short gaps between the last ten runs, streaks of hard efforts among the
    last fourteen, and more than six runs in the week ending `as_of`.

    Args:
        runs: Valid runs, most recent first
        as_of: Last day of the analysis window
    """
    if len(runs) < 6:
        return _neutral_recovery()

    score = 0.0
    severity = 'low'
    quality = 'good'
    description = 'Recovery patterns appear adequate'

    last = runs[:10]
    gaps_h = [
        (last[i - 1].start_date - last[i].start_date).total_seconds() / 3600.0
        for i in range(1, len(last))
    ]
    very_short = sum(1 for g in gaps_h if g < 12)
    short = sum(1 for g in gaps_h if g < 24)

    if very_short:
        score += 25
        severity, quality = 'high', 'poor'
        description = f'{very_short} runs with <12 hours recovery detected'
    elif short > 2:
        score += 15
        severity, quality = 'moderate', 'fair'
        description = f'{short} runs with <24 hours recovery detected'

    streak = longest = 0
    for run in runs[:14]:
        streak = streak + 1 if _is_hard_effort(run) else 0
        longest = max(longest, streak)

    if longest > 3:
        score += 20
        severity, quality = 'high', 'poor'
        description += f'. {longest} consecutive hard efforts without adequate recovery'
    elif longest > 2:
        score += 10
        severity = _at_least(severity, 'moderate')
        if quality == 'good':
            quality = 'fair'
        description += f'. {longest} consecutive hard efforts detected'

    week_start = as_of - timedelta(days=6)
    last_week = sum(1 for r in runs if week_start <= r.local_date <= as_of)
    if last_week > 6:
        score += 10
        severity = _at_least(severity, 'moderate')
        description += '. Very high training frequency (>6 runs/week)'

    if score >= 30:
        quality = 'poor'
    elif score >= 15:
        quality = 'fair'
    elif score < 5:
        quality = 'excellent'

    return RecoveryPatternFactor(min(100.0, score), severity, description, quality)


# ═══════════════════════════════════════════════════════════════════════════
# SYNTHESIS
# ═══════════════════════════════════════════════════════════════════════════

def overall_risk_score(scores: Sequence[float]) -> float:
    """
    Rank-decayed weighted mean: Σ s_k·0.8^k / Σ 0.8^k, scores descending.
    """
    ordered = np.sort(np.asarray(scores, dtype=float))[::-1]
    if ordered.size == 0:
        return 0.0
    weights = config.RISK_RANK_DECAY ** np.arange(ordered.size)
    return float((ordered * weights).sum() / weights.sum())


def classify_risk_level(score: float) -> RiskLevel:
    for bound, label in config.RISK_LEVEL_BANDS:
        if score >= bound:
            return RiskLevel(label)
    return RiskLevel.LOW


def classify_warning_level(score: float, status: OverreachingStatus) -> WarningLevel:
    if score >= 70 or status is OverreachingStatus.OVERTRAINING:
        return WarningLevel.IMMEDIATE_REST
    if score >= 40 or status is OverreachingStatus.NON_FUNCTIONAL:
        return WarningLevel.CAUTION_ADVISED
    return WarningLevel.MONITOR_CLOSELY


def detect_overreaching(
    pattern: TrainingLoadPattern,
    factors: RiskFactors
) -> OverreachingAssessment:
    """
    Tally severity points into an overreaching status.

    ACWR high-risk +3 / caution +2; the first high or critical factor over
    20 +3 (critical) or +2; any factor over 25 +2; any over 15 +1.
    >= 8 overtraining, >= 6 non-functional, >= 3 functional.
    """
    indicators = []
    points = 0

    if pattern.acwr is not None:
        value = pattern.acwr.acwr
        if pattern.acwr.status is ACWRStatus.HIGH_RISK:
            indicators.append(OverreachingIndicator(
                'Acute-to-Chronic Workload Ratio', 'high', 'worsening',
                f'ACWR of {value:.2f} indicates high injury risk',
            ))
            points += 3
        elif pattern.acwr.status is ACWRStatus.CAUTION:
            indicators.append(OverreachingIndicator(
                'Training Load Spike', 'medium', 'stable',
                f'ACWR of {value:.2f} suggests elevated training stress',
            ))
            points += 2

    flat = [f for _, f in factors.items()]
    severe = next((f for f in flat if f.severity in ('high', 'critical')), None)
    if severe is not None and severe.score > 20:
        critical = severe.severity == 'critical'
        indicators.append(OverreachingIndicator(
            'Performance Decline', 'high' if critical else 'medium', 'worsening',
            'Declining performance despite maintained training load',
        ))
        points += 3 if critical else 2

    if any(f.score > 25 for f in flat):
        indicators.append(OverreachingIndicator(
            'Inadequate Recovery', 'medium', 'stable',
            'Insufficient recovery time between training sessions',
        ))
        points += 2

    if any(f.score > 15 for f in flat):
        indicators.append(OverreachingIndicator(
            'Heart Rate Anomalies', 'medium', 'stable',
            'Unusual heart rate patterns detected',
        ))
        points += 1

    status = OverreachingStatus.NORMAL
    confidence = 0.7
    for bound, label in config.OVERREACHING_BANDS:
        if points >= bound:
            status = OverreachingStatus(label)
            confidence = {'overtraining': 0.8, 'non-functional': 0.75}.get(label, 0.7)
            break

    return OverreachingAssessment(
        status=status,
        confidence=confidence,
        indicators=indicators,
        days_in_current_state=min(config.MAX_DAYS_IN_STATE, max(1, points * 2)),
    )


_IMMEDIATE = {
    RiskLevel.CRITICAL: [
        'Stop all high-intensity training immediately',
        'Consider complete rest for 3-7 days',
        'Consult with sports medicine professional',
        'Monitor for signs of illness or persistent fatigue',
    ],
    RiskLevel.HIGH: [
        'Reduce training intensity by 50% this week',
        'Cancel any planned hard workouts',
        'Focus on easy runs and recovery activities',
        'Ensure adequate sleep (8+ hours nightly)',
    ],
    RiskLevel.MODERATE: [
        'Reduce training volume by 20-30% this week',
        'Add extra rest day if not already planned',
        'Focus on recovery and easy aerobic runs',
    ],
    RiskLevel.LOW: [
        'Continue current training with close monitoring',
        'Maintain good recovery practices',
    ],
}


def risk_recommendations(
    level: RiskLevel,
    overreaching: OverreachingAssessment,
    factors: RiskFactors
) -> RiskRecommendations:
    """Tiered actions keyed off risk level and the triggering factors."""
    recs = RiskRecommendations(immediate=list(_IMMEDIATE[level]))

    if level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
        recs.short_term += [
            'Gradually return to training with 50% previous volume',
            'Avoid high-intensity sessions for 2 weeks',
            'Focus on aerobic base building',
            'Implement stress management techniques',
        ]
    elif level is RiskLevel.MODERATE:
        recs.short_term += [
            'Gradually increase training load by max 10% per week',
            'Limit high-intensity sessions to 1-2 per week',
            'Prioritize recovery between hard sessions',
        ]
    else:
        recs.short_term += [
            'Continue progressive training with careful load management',
            'Maintain current intensity distribution',
        ]

    recs.long_term += [
        'Implement periodized training plan',
        'Schedule regular recovery weeks (every 3-4 weeks)',
        'Monitor training load using ACWR principles',
        'Develop better recovery protocols',
    ]

    if factors.training_load_spike.severity in ('high', 'critical'):
        recs.short_term.append('Follow 10% rule for weekly mileage increases')
        recs.long_term.append('Use ACWR monitoring to prevent future load spikes')

    if factors.recovery_patterns.severity == 'high':
        recs.immediate.append('Ensure minimum 24 hours between hard efforts')
        recs.short_term.append('Implement active recovery sessions')
        recs.long_term.append('Develop structured recovery protocols')

    if factors.performance_decline.severity == 'high':
        recs.immediate.append('Reduce training intensity until performance stabilizes')
        recs.short_term.append('Focus on technique and form work')
        recs.monitoring.append('Track performance metrics weekly')

    recs.monitoring += [
        'Monitor resting heart rate daily',
        'Track subjective wellness scores',
        'Watch for persistent fatigue or mood changes',
        'Monitor sleep quality and duration',
    ]
    if overreaching.status is not OverreachingStatus.NORMAL:
        recs.monitoring += [
            'Track recovery heart rate after standard efforts',
            'Monitor motivation and enjoyment levels',
            'Watch for increased susceptibility to illness',
        ]
    return recs


def recovery_guidance(level: RiskLevel, overreaching: OverreachingAssessment) -> RecoveryGuidance:
    """Estimated recovery time and a phased return-to-training plan."""
    status = overreaching.status
    if level is RiskLevel.CRITICAL:
        days = 21 if status is OverreachingStatus.OVERTRAINING else 14
    elif level is RiskLevel.HIGH:
        days = 14 if status is OverreachingStatus.NON_FUNCTIONAL else 10
    elif level is RiskLevel.MODERATE:
        days = 7
    else:
        days = 3

    criteria = [
        'Resting heart rate returns to normal baseline',
        'Subjective wellness scores improve to normal levels',
        'Motivation and enjoyment for training returns',
        'No persistent fatigue or mood disturbances',
        'Sleep quality returns to normal patterns',
    ]

    if level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
        criteria += [
            'Medical clearance if symptoms persist',
            'Ability to complete easy runs without excessive fatigue',
        ]
        plan = [
            RecoveryPhase(
                'Complete Rest', '3-7 days',
                ['Complete rest from running', 'Light walking only', 'Focus on sleep and nutrition'],
                ['Improved energy levels', 'Normal resting HR', 'Motivation returns'],
            ),
            RecoveryPhase(
                'Active Recovery', '1 week',
                ['Easy walking 20-30 minutes', 'Light stretching/yoga', 'Swimming if available'],
                ['No fatigue from light activity', 'Stable mood', 'Good sleep quality'],
            ),
            RecoveryPhase(
                'Return to Easy Running', '1-2 weeks',
                ['Easy runs 20-30 minutes', 'Run every other day', 'Heart rate <70% max'],
                ['Comfortable easy pace', 'Quick recovery', 'Enjoyment returns'],
            ),
            RecoveryPhase(
                'Gradual Build', '2-4 weeks',
                ['Increase volume by 10% weekly', 'Add one tempo run per week', 'Monitor ACWR closely'],
                ['Consistent paces', 'Good recovery', 'No overreaching signs'],
            ),
        ]
    elif level is RiskLevel.MODERATE:
        plan = [
            RecoveryPhase(
                'Reduced Load', '1 week',
                ['Reduce volume by 30%', 'Easy runs only', 'Extra rest day'],
                ['Improved energy', 'Stable performance', 'Good recovery'],
            ),
            RecoveryPhase(
                'Gradual Return', '2 weeks',
                ['Gradually return to normal volume', 'Add intensity carefully', 'Monitor closely'],
                ['Consistent performance', 'Good adaptation', 'No fatigue accumulation'],
            ),
        ]
    else:
        plan = [
            RecoveryPhase(
                'Continued Monitoring', '1-2 weeks',
                ['Continue current training', 'Enhanced recovery focus', 'Close monitoring'],
                ['Stable metrics', 'Good adaptation', 'Maintained performance'],
            ),
        ]

    return RecoveryGuidance(days, criteria, plan)


def assess_data_quality(runs: Sequence[Run]) -> str:
    """
    high: 30+ runs with 21+ carrying HR; medium: 20+ runs with 10+ HR.

    Counts rather than shares, so adding runs never lowers the grade.
    """
    hr_runs = sum(1 for r in runs if r.has_heart_rate)
    if len(runs) >= 30 and hr_runs >= 21:
        return 'high'
    if len(runs) >= 20 and hr_runs >= 10:
        return 'medium'
    return 'low'


def assessment_confidence(runs: Sequence[Run], quality: str, as_of: date) -> float:
    """
    0.5 base, +0.2/+0.1 for 30/20 runs, +0.2/+0.1 for high/medium quality,
    +0.1/+0.05 for 12/6 runs in the 30 days before `as_of`.
    Clamped to [0.2, 0.95].
    """
    confidence = 0.5

    if len(runs) >= 30:
        confidence += 0.2
    elif len(runs) >= 20:
        confidence += 0.1

    confidence += {'high': 0.2, 'medium': 0.1}.get(quality, 0.0)

    month_start = as_of - timedelta(days=30)
    last_month = sum(1 for r in runs if r.local_date > month_start)
    if last_month >= 12:
        confidence += 0.1
    elif last_month >= 6:
        confidence += 0.05

    low, high = config.RISK_CONFIDENCE_RANGE
    return round(max(low, min(high, confidence)), 2)


def _minimal_assessment(runs: Sequence[Run], as_of: Optional[date]) -> InjuryRiskAssessment:
    return InjuryRiskAssessment(
        overall_risk_score=config.RISK_MINIMAL_SCORE,
        risk_level=RiskLevel.LOW,
        warning_level=WarningLevel.MONITOR_CLOSELY,
        risk_factors=RiskFactors(
            training_load_spike=_neutral_load_spike(),
            performance_decline=_neutral_performance(),
            heart_rate_anomalies=_neutral_heart_rate(),
            pace_consistency=_neutral_pace(),
            recovery_patterns=_neutral_recovery(),
        ),
        overreaching=OverreachingAssessment(
            status=OverreachingStatus.NORMAL,
            confidence=config.RISK_MINIMAL_CONFIDENCE,
        ),
        recommendations=RiskRecommendations(
            immediate=['Continue building training history for better analysis'],
            short_term=['Focus on consistent training and data collection'],
            long_term=['Establish baseline metrics for future monitoring'],
            monitoring=['Track all runs with heart rate data when possible'],
        ),
        recovery_guidance=RecoveryGuidance(
            estimated_recovery_days=0,
            safe_return_criteria=['Maintain consistent training'],
            progressive_return_plan=[RecoveryPhase(
                'Data Collection', 'Ongoing',
                ['Continue regular training', 'Record all workout data'],
                ['Consistent data collection', 'Baseline establishment'],
            )],
        ),
        analysis_date=as_of,
        data_quality='low',
        confidence=config.RISK_MINIMAL_CONFIDENCE,
        runs_analyzed=len(runs),
        sufficient_data=False,
    )


def assess_injury_risk(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None,
    as_of: Optional[date] = None
) -> InjuryRiskAssessment:
    """
    Multi-factor injury risk over the 90 days ending `as_of`.

    Args:
        runs: Run history in any order
        physiology: Profile used for weekly TRIMP of runs without a stored score
        as_of: Analysis date; defaults to the most recent run's date

    Returns:
        InjuryRiskAssessment; the flagged minimal assessment (score 20, low,
        confidence 0.3) when fewer than 10 valid runs fall in the window.
        With no valid runs and no `as_of` its analysis_date is None.
    """
    valid = [r for r in runs if r.has_valid_distance]
    if as_of is None:
        if not valid:
            return _minimal_assessment([], None)
        as_of = max(r.local_date for r in valid)

    window_start = as_of - timedelta(days=config.RISK_LOOKBACK_DAYS)
    recent = sort_recent_first([
        r for r in valid if window_start <= r.local_date <= as_of
    ])

    if len(recent) < config.RISK_MIN_RUNS:
        logger.debug(
            "Injury risk needs {} runs in {} days, have {}",
            config.RISK_MIN_RUNS, config.RISK_LOOKBACK_DAYS, len(recent),
        )
        return _minimal_assessment(recent, as_of)

    pattern = analyze_training_load_pattern(recent, as_of, physiology)
    factors = RiskFactors(
        training_load_spike=assess_training_load_spike(pattern),
        performance_decline=assess_performance_decline(recent),
        heart_rate_anomalies=assess_heart_rate_anomalies(recent),
        pace_consistency=assess_pace_consistency(recent),
        recovery_patterns=assess_recovery_patterns(recent, as_of),
    )

    overreaching = detect_overreaching(pattern, factors)
    score = overall_risk_score(factors.scores())
    level = classify_risk_level(score)
    quality = assess_data_quality(recent)

    return InjuryRiskAssessment(
        overall_risk_score=float(round(score)),
        risk_level=level,
        warning_level=classify_warning_level(score, overreaching.status),
        risk_factors=factors,
        overreaching=overreaching,
        recommendations=risk_recommendations(level, overreaching, factors),
        recovery_guidance=recovery_guidance(level, overreaching),
        analysis_date=as_of,
        data_quality=quality,
        confidence=assessment_confidence(recent, quality, as_of),
        runs_analyzed=len(recent),
    )


# ═══════════════════════════════════════════════════════════════════════════
# FOLLOW-UP
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class RiskFactorTrend(Serializable):
    improving: List[str]
    worsening: List[str]
    stable: List[str]
    resolved: List[str]
    overall_trend: str
    ready_for_progression: bool


def monitor_risk_factors(
    current: InjuryRiskAssessment,
    previous: InjuryRiskAssessment
) -> RiskFactorTrend:
    """
    Compare two assessments factor by factor.

    A factor moving more than 5 points is improving (down) or worsening
    (up); a factor that was above low severity and is now low is resolved.
    The overall trend uses a 15-point move of the overall score.
    """
    delta = config.RISK_FACTOR_TREND_DELTA
    improving, worsening, stable, resolved = [], [], [], []

    before = dict(previous.risk_factors.items())
    for name, factor in current.risk_factors.items():
        old = before[name]
        change = factor.score - old.score
        if change < -delta:
            improving.append(name)
        elif change > delta:
            worsening.append(name)
        else:
            stable.append(name)
        if old.severity != 'low' and factor.severity == 'low':
            resolved.append(name)

    score_change = current.overall_risk_score - previous.overall_risk_score
    if score_change < -15:
        trend = 'improving'
    elif score_change > 15:
        trend = 'worsening'
    else:
        trend = 'stable'

    ready = (
        current.risk_level is RiskLevel.LOW
        and current.overreaching.status is OverreachingStatus.NORMAL
        and len(improving) >= len(worsening)
    )

    return RiskFactorTrend(improving, worsening, stable, resolved, trend, ready)


def injury_prevention_plan(
    assessment: InjuryRiskAssessment,
    days_to_race: Optional[int] = None
) -> Dict[str, List[str]]:
    """
    Prevention strategies, training modifications, recovery protocols and a
    monitoring plan keyed by the assessment's elevated factors.

    Args:
        assessment: Output of assess_injury_risk
        days_to_race: Days until a target race, adds race readiness advice

    Returns:
        Dictionary of advice lists
    """
    factors = assessment.risk_factors
    elevated = ('high', 'critical')

    plan: Dict[str, List[str]] = {
        'prevention_strategies': [
            'Follow the 10% rule for weekly mileage increases',
            'Include regular strength training 2-3x per week',
            'Maintain proper running form and cadence',
            'Replace running shoes every 500-800 km',
            'Include variety in training surfaces and routes',
        ],
        'training_modifications': [],
        'recovery_protocols': [],
        'monitoring_plan': [
            'Track daily resting heart rate',
            'Monitor subjective wellness scores (1-10 scale)',
            'Record sleep quality and duration',
            'Note any aches, pains, or unusual fatigue',
            'Calculate weekly ACWR',
        ],
    }

    if factors.training_load_spike.severity in elevated:
        plan['training_modifications'] += [
            'Implement strict ACWR monitoring (keep between 0.8-1.3)',
            'Plan recovery weeks every 3-4 weeks',
            'Limit weekly increases to 5% when ACWR > 1.2',
        ]
    if factors.recovery_patterns.severity in elevated:
        plan['recovery_protocols'] += [
            'Ensure minimum 48 hours between hard efforts',
            'Implement active recovery sessions (easy walks, swimming)',
            'Prioritize sleep: 8+ hours nightly',
            'Include regular massage or self-massage',
        ]
    if factors.pace_consistency.severity in elevated:
        plan['training_modifications'] += [
            'Focus on consistent effort rather than pace',
            'Use heart rate zones for training intensity',
            'Practice pacing in training runs',
        ]

    if days_to_race is not None and days_to_race > 0:
        if assessment.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            advice = [
                'Current injury risk is too high for optimal race preparation',
                'Consider postponing race or adjusting goals',
                'Focus on recovery before resuming race-specific training',
            ]
        elif days_to_race < 14:
            advice = [
                'Begin taper phase - reduce volume by 40-60%',
                'Maintain intensity but reduce duration',
                'Prioritize recovery and race preparation',
            ]
        elif days_to_race < 28:
            advice = [
                'Enter final build phase with caution',
                'Monitor recovery closely during peak training',
                'Plan taper to begin in 2 weeks',
            ]
        else:
            advice = []
        if advice:
            plan['race_readiness_advice'] = advice

    return plan
