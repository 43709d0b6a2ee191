"""
Pacing analytics over run history.

Four analyses: negative-split probability, fatigue-resistance profile,
pacing-issue detection, and a personalized race pacing strategy.

Run records carry only whole-run averages, not kilometre splits, so every
split-dependent quantity here comes from a fixed estimator: a table mapping
distance and pace bands to an expected split difference or slowdown (the
midpoint of the plausible range for that band). Results built on it carry
`estimated=True`.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Sequence, Dict, Any

import numpy as np
from loguru import logger

from . import config
from .errors import computation_boundary
from .models import ConfidenceLevel, Run, Serializable, sort_chronological


# ═══════════════════════════════════════════════════════════════════════════
# Estimators
# ═══════════════════════════════════════════════════════════════════════════

def estimate_split_difference(run: Run) -> float:
    """
    Expected second-half minus first-half pace (s/km); negative = negative split.

    Long runs drift positive, high heart rate and fast pace push further
    positive, easy heart rate and slow pace pull negative.
    """
    km = run.distance_km
    pace = run.pace_s_per_km

    if km > 15:
        diff = 10.0
    elif km > 10:
        diff = 3.0
    else:
        diff = 0.0

    if run.average_hr is not None:
        if run.average_hr > 170:
            diff += 3.0
        elif run.average_hr < 140:
            diff -= 2.0

    if pace < config.FAST_PACE_S_PER_KM:
        diff += 5.0
    elif pace > config.SLOW_PACE_S_PER_KM:
        diff -= 2.0

    return round(diff, 1)


def estimate_final_quarter_slowdown(run: Run) -> float:
    """Expected final-quarter slowdown (s/km) from distance and pace."""
    km = run.distance_km
    if km > 20:
        slowdown = 25.0
    elif km > 15:
        slowdown = 15.5
    elif km > 10:
        slowdown = 8.0
    else:
        slowdown = 4.0

    pace = run.pace_s_per_km
    if pace < config.FAST_PACE_S_PER_KM:
        slowdown += 8.0
    elif pace > config.SLOW_PACE_S_PER_KM:
        slowdown -= 3.0
    return slowdown


def estimate_fatigue_onset(run: Run) -> float:
    """Percent of the distance at which slowing is expected to begin."""
    return 70.0 if run.distance_km > 15 else 80.0


def estimate_bucket_slowdown(run: Run) -> float:
    """Distance-only slowdown used for the per-bucket profiles."""
    km = run.distance_km
    if km > 20:
        return 22.5
    if km > 15:
        return 13.0
    if km > 10:
        return 7.0
    return 2.5


def _qualifying(runs: Sequence[Run], low_km: float, high_km: float) -> List[Run]:
    return [
        r for r in runs
        if r.has_valid_distance and low_km <= r.distance_km <= high_km
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Negative split probability
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class NegativeSplitAnalysis(Serializable):
    probability: float
    confidence_level: ConfidenceLevel
    historical_pattern: str
    average_split_difference: float
    best_negative_split: float
    worst_positive_split: float
    runs_analyzed: int
    sufficient_data: bool = True
    estimated: bool = True
    recommendations: List[str] = field(default_factory=list)


def _split_recommendations(pattern: str, avg_difference: float) -> List[str]:
    if pattern == 'consistent-positive':
        recs = [
            'Focus on more conservative early pacing to enable negative splits',
            'Practice negative split training runs to build confidence',
        ]
    elif pattern == 'consistent-negative':
        recs = [
            'Your negative splitting ability is a strength - use it in races',
            'Consider slightly more aggressive race pacing given your finishing strength',
        ]
    else:
        recs = [
            'Work on pacing consistency to improve split predictability',
            'Practice both even pacing and negative split strategies',
        ]
    if abs(avg_difference) > 10:
        recs.append('Focus on more even pacing to reduce large split variations')
    return recs


def negative_split_probability(runs: Sequence[Run]) -> NegativeSplitAnalysis:
    """
    Share of 5-25 km runs expected to finish with a faster second half.

    Fewer than five qualifying runs gives a neutral probability of 0.5 with
    low confidence and `sufficient_data=False`.
    """
    low, high = config.NEGATIVE_SPLIT_RANGE_KM
    qualifying = _qualifying(runs, low, high)

    if len(qualifying) < config.NEGATIVE_SPLIT_MIN_RUNS:
        return NegativeSplitAnalysis(
            probability=0.5,
            confidence_level=ConfidenceLevel.LOW,
            historical_pattern='mixed',
            average_split_difference=0.0,
            best_negative_split=0.0,
            worst_positive_split=0.0,
            runs_analyzed=len(qualifying),
            sufficient_data=False,
            recommendations=['Need more run data to provide accurate split analysis'],
        )

    diffs = np.array([estimate_split_difference(r) for r in qualifying])
    probability = float(np.mean(diffs < 0))

    if probability >= 0.7:
        pattern = 'consistent-negative'
    elif probability <= 0.3:
        pattern = 'consistent-positive'
    else:
        pattern = 'mixed'

    if len(diffs) >= 15:
        level = ConfidenceLevel.HIGH
    elif len(diffs) >= 8:
        level = ConfidenceLevel.MEDIUM
    else:
        level = ConfidenceLevel.LOW

    average = float(np.mean(diffs))
    return NegativeSplitAnalysis(
        probability=round(probability, 2),
        confidence_level=level,
        historical_pattern=pattern,
        average_split_difference=round(average, 1),
        best_negative_split=round(float(diffs.min()), 1),
        worst_positive_split=round(float(diffs.max()), 1),
        runs_analyzed=len(diffs),
        recommendations=_split_recommendations(pattern, average),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Fatigue resistance
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class PaceMaintenance(Serializable):
    final_quarter_slowdown: float = 0.0
    consistency_score: float = 50.0
    fatigue_onset_point: float = 75.0


@dataclass
class HeartRateDrift(Serializable):
    average_drift: float = 0.0
    drift_rate: float = 0.0
    cardiac_efficiency: float = 50.0
    has_heart_rate_data: bool = False


@dataclass
class DistanceProfile(Serializable):
    distance_range: str
    fatigue_resistance: float
    typical_slowdown: float
    sample_size: int


@dataclass
class FatigueResistanceProfile(Serializable):
    overall_score: float
    resistance_level: str
    pace_maintenance: PaceMaintenance
    heart_rate_drift: HeartRateDrift
    distance_profiles: List[DistanceProfile]
    improvement_trend: str
    recent_improvement: float
    confidence: float
    runs_analyzed: int
    sufficient_data: bool = True
    estimated: bool = True


def _fatigue_confidence(n: int) -> float:
    return round(min(0.95, n / 25.0), 2)


@computation_boundary(lambda runs: PaceMaintenance())
def _pace_maintenance(runs: Sequence[Run]) -> PaceMaintenance:
    slowdowns = np.array([estimate_final_quarter_slowdown(r) for r in runs])
    consistency = np.maximum(0.0, 100.0 - slowdowns * 2)
    onset = np.array([estimate_fatigue_onset(r) for r in runs])
    return PaceMaintenance(
        final_quarter_slowdown=round(float(slowdowns.mean()), 1),
        consistency_score=float(round(consistency.mean())),
        fatigue_onset_point=float(round(onset.mean())),
    )


@computation_boundary(lambda runs: HeartRateDrift())
def _heart_rate_drift(runs: Sequence[Run]) -> HeartRateDrift:
    """Drift and efficiency; `has_heart_rate_data` is False below three HR runs."""
    hr_runs = [r for r in runs if r.average_hr and r.max_hr]
    if len(hr_runs) < config.FATIGUE_MIN_HR_RUNS:
        return HeartRateDrift()

    drifts, rates, efficiencies = [], [], []
    for run in hr_runs:
        drift = min(run.max_hr - run.average_hr, 27.5)
        drifts.append(drift)
        rates.append(drift / run.distance_km)
        if run.max_hr > config.DEFAULT_RESTING_HR:
            # Resting HR of 60 assumed when no profile is involved
            used = (run.average_hr - config.DEFAULT_RESTING_HR) / (run.max_hr - config.DEFAULT_RESTING_HR)
        else:
            used = 1.0
        efficiencies.append(max(0.0, 100.0 - used * 100.0))

    return HeartRateDrift(
        average_drift=round(float(np.mean(drifts)), 1),
        drift_rate=round(float(np.mean(rates)), 1),
        cardiac_efficiency=float(round(np.mean(efficiencies))),
        has_heart_rate_data=True,
    )


@computation_boundary(lambda runs: [])
def _distance_profiles(runs: Sequence[Run]) -> List[DistanceProfile]:
    profiles = []
    for label, low, high in config.FATIGUE_DISTANCE_BUCKETS:
        bucket = [r for r in runs if low <= r.distance_km < high]
        if not bucket:
            continue
        slowdown = float(np.mean([estimate_bucket_slowdown(r) for r in bucket]))
        profiles.append(DistanceProfile(
            distance_range=label,
            fatigue_resistance=float(round(max(0.0, 100.0 - slowdown * 2))),
            typical_slowdown=round(slowdown, 1),
            sample_size=len(bucket),
        ))
    return profiles


def _performance_score(run: Run) -> float:
    score = 50.0
    pace = run.pace_s_per_km
    if pace < config.FAST_PACE_S_PER_KM:
        score += 20
    elif pace > config.SLOW_PACE_S_PER_KM:
        score -= 10
    if run.distance_km > 15:
        score += 10
    return score


def _improvement_trend(runs: Sequence[Run]):
    ordered = sort_chronological(list(runs))
    recent = ordered[-10:]
    older = ordered[-20:-10]
    if len(recent) < 5 or len(older) < 5:
        return 'stable', 0.0

    change = (np.mean([_performance_score(r) for r in recent])
              - np.mean([_performance_score(r) for r in older]))
    if change > 5:
        trend = 'improving'
    elif change < -5:
        trend = 'declining'
    else:
        trend = 'stable'
    return trend, round(float(change), 1)


def fatigue_resistance_profile(runs: Sequence[Run]) -> FatigueResistanceProfile:
    """
    Composite 0-100 fatigue resistance from 5-30 km runs.

    score = 0.4 × pace maintenance + 0.3 × cardiac efficiency
          + 0.3 × mean per-distance resistance

    Below eight qualifying runs a neutral profile (score 50, average) is
    returned. Confidence grows with the number of qualifying runs.
    """
    low, high = config.FATIGUE_RANGE_KM
    qualifying = _qualifying(runs, low, high)
    n = len(qualifying)

    if n < config.FATIGUE_MIN_RUNS:
        return FatigueResistanceProfile(
            overall_score=50.0,
            resistance_level='average',
            pace_maintenance=PaceMaintenance(),
            heart_rate_drift=HeartRateDrift(),
            distance_profiles=[],
            improvement_trend='stable',
            recent_improvement=0.0,
            confidence=_fatigue_confidence(n),
            runs_analyzed=n,
            sufficient_data=False,
        )

    pace = _pace_maintenance(qualifying)
    drift = _heart_rate_drift(qualifying)
    profiles = _distance_profiles(qualifying)

    distance_score = (
        float(np.mean([p.fatigue_resistance for p in profiles])) if profiles else 50.0
    )
    confidence = _fatigue_confidence(n)
    if drift.has_heart_rate_data:
        score = 0.4 * pace.consistency_score + 0.3 * drift.cardiac_efficiency + 0.3 * distance_score
    else:
        # Re-weight the two remaining components to 4:3
        score = (0.4 * pace.consistency_score + 0.3 * distance_score) / 0.7
        confidence = round(confidence * config.FATIGUE_NO_HR_CONFIDENCE_FACTOR, 2)
        logger.debug("Fatigue resistance scored without heart rate ({} runs)", n)

    if score >= 80:
        level = 'excellent'
    elif score >= 65:
        level = 'good'
    elif score < 45:
        level = 'needs-improvement'
    else:
        level = 'average'

    trend, change = _improvement_trend(qualifying)

    return FatigueResistanceProfile(
        overall_score=float(round(score)),
        resistance_level=level,
        pace_maintenance=pace,
        heart_rate_drift=drift,
        distance_profiles=profiles,
        improvement_trend=trend,
        recent_improvement=change,
        confidence=confidence,
        runs_analyzed=n,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Pacing issues
# ═══════════════════════════════════════════════════════════════════════════

EARLY_PACE = 'excessive-early-pace'
POOR_FINISH = 'poor-finishing-strength'
INCONSISTENT = 'inconsistent-pacing'
WARMUP = 'inadequate-warmup'


@dataclass
class PacingIssue(Serializable):
    type: str
    severity: str
    frequency: float
    description: str
    impact: str
    solutions: List[str] = field(default_factory=list)

    @property
    def weight(self) -> int:
        return config.ISSUE_SEVERITY_WEIGHTS[self.severity]


@dataclass
class PacingIssueReport(Serializable):
    issues: List[PacingIssue]
    overall_pacing_grade: str
    primary_weakness: str
    primary_strength: str
    improvement_priority: List[str]
    sufficient_data: bool = True
    estimated: bool = True

    def has_issue(self, issue_type: str) -> bool:
        return any(i.type == issue_type for i in self.issues)


def _severity(frequency: float, significant: float, moderate: float) -> str:
    if frequency > significant:
        return 'significant'
    if frequency > moderate:
        return 'moderate'
    return 'minor'


def _early_pace_issue(runs: Sequence[Run]) -> Optional[PacingIssue]:
    long_runs = [r for r in runs if r.distance_km >= 8]
    if len(long_runs) < 3:
        return None

    hits = sum(
        1 for r in long_runs
        if (r.distance_km > 15 and r.pace_s_per_km < 270)
        or (r.distance_km > 10 and r.pace_s_per_km < 240)
    )
    frequency = hits / len(long_runs)
    if frequency < 0.3:
        return None

    return PacingIssue(
        type=EARLY_PACE,
        severity=_severity(frequency, 0.6, 0.4),
        frequency=round(frequency, 2),
        description=(
            f'You tend to start {round(frequency * 100)}% of your longer runs '
            'too fast, leading to fatigue later.'
        ),
        impact='Premature fatigue prevents optimal performance in the latter stages of runs.',
        solutions=[
            'Practice conservative pacing in the first 25% of long runs',
            'Use a GPS watch with pace alerts to maintain target pace',
            'Focus on effort-based pacing early in runs',
        ],
    )


def _poor_finish_issue(runs: Sequence[Run]) -> Optional[PacingIssue]:
    medium = [r for r in runs if 5 <= r.distance_km <= 20]
    if len(medium) < 5:
        return None

    hits = sum(
        1 for r in medium
        if (r.distance_km > 12 and r.pace_s_per_km > 300)
        or (r.distance_km > 8 and r.pace_s_per_km > 270)
    )
    frequency = hits / len(medium)
    if frequency < 0.25:
        return None

    return PacingIssue(
        type=POOR_FINISH,
        severity=_severity(frequency, 0.5, 0.35),
        frequency=round(frequency, 2),
        description=(
            f'You show signs of poor finishing strength in {round(frequency * 100)}% '
            'of your runs.'
        ),
        impact='Weak finishing limits your ability to achieve personal bests and race goals.',
        solutions=[
            'Include tempo runs and fartlek training to build finishing strength',
            'Practice negative split training runs',
            'Add strength training focused on core and leg endurance',
        ],
    )


def _inconsistent_issue(runs: Sequence[Run]) -> Optional[PacingIssue]:
    if len(runs) < 8:
        return None

    paces = np.array([r.pace_s_per_km for r in runs])
    threshold = paces.mean() * 0.15
    variability = paces.std()
    if variability < threshold:
        return None

    frequency = min(1.0, float(variability / threshold))
    return PacingIssue(
        type=INCONSISTENT,
        severity=_severity(frequency, 0.8, 0.6),
        frequency=round(frequency, 2),
        description='Your pacing shows high variability between runs of similar distances.',
        impact='Inconsistent pacing makes it difficult to gauge fitness improvements and race readiness.',
        solutions=[
            'Use a GPS watch or app with pace guidance during runs',
            'Practice running at specific target paces during training',
            'Keep a training log to track pace patterns',
        ],
    )


def _warmup_issue(runs: Sequence[Run]) -> Optional[PacingIssue]:
    workouts = [r for r in runs if r.pace_s_per_km < 300 and r.distance_km >= 3]
    if len(workouts) < 3:
        return None

    return PacingIssue(
        type=WARMUP,
        severity='moderate',
        frequency=0.5,
        description='Some of your faster runs may benefit from a more structured warmup.',
        impact='Inadequate warmup can limit performance and increase injury risk.',
        solutions=[
            'Include 10-15 minutes of easy jogging before harder efforts',
            'Add dynamic stretching and activation exercises to your warmup',
            'Gradually increase pace during warmup rather than starting at target pace',
        ],
    )


def pacing_grade(issues: Sequence[PacingIssue]) -> str:
    """Letter grade from summed severity weight: 0 A, <=2 B, <=4 C, <=6 D, else F."""
    total = sum(i.weight for i in issues)
    for upper, grade in config.PACING_GRADES:
        if total <= upper:
            return grade
    return 'F'


_PRIORITY_TEXT = {
    EARLY_PACE: 'Practice conservative early pacing',
    POOR_FINISH: 'Build finishing strength with tempo runs',
    INCONSISTENT: 'Develop better pace awareness',
    WARMUP: 'Implement structured warmup routine',
}


def detect_pacing_issues(runs: Sequence[Run]) -> PacingIssueReport:
    """
    Scan runs of 3 km or more for four pacing issue types and grade them.

    Fewer than five qualifying runs yields grade B with no issues and
    `sufficient_data=False`.
    """
    qualifying = [
        r for r in runs
        if r.has_valid_distance and r.distance_km >= config.PACING_ISSUE_MIN_KM
    ]

    if len(qualifying) < config.PACING_ISSUE_MIN_RUNS:
        return PacingIssueReport(
            issues=[],
            overall_pacing_grade='B',
            primary_weakness='Insufficient data for analysis',
            primary_strength='No significant issues detected',
            improvement_priority=['Continue building training history for better analysis'],
            sufficient_data=False,
        )

    detectors = (_early_pace_issue, _poor_finish_issue, _inconsistent_issue, _warmup_issue)
    issues = [issue for issue in (d(qualifying) for d in detectors) if issue is not None]

    significant = [i for i in issues if i.severity == 'significant']
    if significant:
        weakness = significant[0].description
    elif issues:
        weakness = issues[0].description
    else:
        weakness = 'No significant pacing weaknesses identified'

    types = {i.type for i in issues}
    n = len(qualifying)
    if EARLY_PACE not in types and n > 5:
        strength = 'Good pacing discipline in early stages of runs'
    elif POOR_FINISH not in types and n > 5:
        strength = 'Strong finishing ability and fatigue resistance'
    elif INCONSISTENT not in types and n > 8:
        strength = 'Consistent pacing patterns across training runs'
    else:
        strength = 'Consistent pacing across different distances'

    ranked = sorted(issues, key=lambda i: i.weight * i.frequency, reverse=True)
    priorities = [_PRIORITY_TEXT[i.type] for i in ranked[:3]]
    if not priorities:
        priorities = ['Continue maintaining good pacing discipline']

    return PacingIssueReport(
        issues=issues,
        overall_pacing_grade=pacing_grade(issues),
        primary_weakness=weakness,
        primary_strength=strength,
        improvement_priority=priorities,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Race strategy
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class PacingSegment(Serializable):
    name: str
    pace: float
    effort: str
    strategy: str


@dataclass
class RaceStrategy(Serializable):
    distance_m: float
    target_pace: float
    pacing_plan: List[PacingSegment]
    fatigue_management: Dict[str, Any]
    personalized_advice: List[str]
    risk_mitigation: List[str]
    confidence_factors: List[str]
    estimated: bool = True

    def segment(self, name: str) -> PacingSegment:
        for seg in self.pacing_plan:
            if seg.name == name:
                return seg
        raise KeyError(name)


def estimate_target_pace(runs: Sequence[Run], target_distance_m: float) -> float:
    """
    Race pace from the five runs closest to the target distance.

    Candidates are runs between half and twice the target distance. Long
    races are paced 5-10 s/km more conservatively, 5K races 5 s/km faster.
    Floors at 3:00/km; 5:00/km when there is nothing to go on.
    """
    candidates = [
        r for r in runs
        if r.has_valid_distance
        and target_distance_m * 0.5 <= r.distance_m <= target_distance_m * 2
    ]
    if not candidates:
        return 300.0

    nearest = sorted(candidates, key=lambda r: abs(r.distance_m - target_distance_m))[:5]
    average = float(np.mean([r.pace_s_per_km for r in nearest]))

    if target_distance_m >= 21097:
        average += 10
    elif target_distance_m >= 10000:
        average += 5
    elif target_distance_m <= 5000:
        average -= 5

    return max(180.0, average)


def _pacing_plan(
    target: float,
    fatigue: FatigueResistanceProfile,
    issues: PacingIssueReport
) -> List[PacingSegment]:
    early_issue = issues.has_issue(EARLY_PACE)
    finish_issue = issues.has_issue(POOR_FINISH)
    strong_finish = not finish_issue and fatigue.overall_score > 70

    if strong_finish:
        final_strategy = 'Use your strong finishing ability to push the pace'
    elif finish_issue:
        final_strategy = 'Focus on maintaining pace rather than speeding up'
    else:
        final_strategy = 'Gradually increase effort while maintaining form'

    return [
        PacingSegment(
            'first_mile', target + (10 if early_issue else 5), 'Controlled',
            'Start conservatively to avoid your tendency to go out too fast'
            if early_issue else 'Settle into rhythm, slightly slower than target pace',
        ),
        PacingSegment(
            'early', target + 3, 'Comfortable',
            'Gradually work toward target pace, focus on relaxation and efficiency',
        ),
        PacingSegment(
            'middle', target, 'Controlled effort',
            'Maintain target pace, stay mentally engaged and monitor effort level',
        ),
        PacingSegment(
            'final', target - 3 if strong_finish else target + 2,
            'Strong push' if strong_finish else 'Maintain', final_strategy,
        ),
        PacingSegment(
            'last_mile', target - 5 if strong_finish else target, 'Maximum sustainable',
            'Give everything you have while maintaining good running form',
        ),
    ]


def _race_advice(
    fatigue: FatigueResistanceProfile,
    issues: PacingIssueReport,
    distance_m: float
) -> List[str]:
    advice = []
    if fatigue.overall_score > 75:
        advice.append('Your fatigue resistance allows for aggressive pacing in the final third')
    elif fatigue.overall_score < 50:
        advice.append('Focus on even pacing throughout rather than trying to negative split')

    for issue in issues.issues:
        if issue.type == EARLY_PACE:
            advice.append('Set your watch to alert you if you go faster than target pace in the first 25%')
        elif issue.type == POOR_FINISH:
            advice.append('Consider a slightly more conservative overall pace to save energy for the finish')
        elif issue.type == INCONSISTENT:
            advice.append('Use your GPS watch pace display frequently to maintain consistent effort')

    if distance_m >= 21097:
        advice.append("Fuel early and often - don't wait until you feel hungry or thirsty")
    elif distance_m <= 5000:
        advice.append('This distance allows for more aggressive pacing - trust your speed')

    return advice or ['Trust your training and execute your race plan']


def _risk_mitigation(fatigue: FatigueResistanceProfile, issues: PacingIssueReport) -> List[str]:
    strategies = []
    if issues.has_issue(EARLY_PACE):
        strategies.append('If you find yourself ahead of pace early, consciously slow down')
    if issues.has_issue(POOR_FINISH):
        strategies.append('Have a backup plan if you hit the wall - focus on maintaining form')
    if fatigue.overall_score < 60:
        strategies.append('Plan for walk breaks at aid stations if needed')
        strategies.append('Have a more conservative backup time goal')
    strategies.append("Stay hydrated but don't overdrink")
    strategies.append('If conditions are hot, adjust pace expectations downward')
    return strategies


def _confidence_factors(
    runs: Sequence[Run],
    target_distance_m: float,
    fatigue: FatigueResistanceProfile
) -> List[str]:
    factors = []
    valid = [r for r in runs if r.has_valid_distance]
    if valid:
        latest = max(r.local_date for r in valid)
        cutoff = latest - timedelta(days=60)
        long_runs = [
            r for r in valid
            if r.distance_m >= target_distance_m * 0.7 and r.local_date > cutoff
        ]
        if len(long_runs) >= 3:
            factors.append('Strong recent training with multiple long runs')
    if fatigue.overall_score > 70:
        factors.append('Excellent fatigue resistance based on training data')
    if len(valid) > 20:
        factors.append('Consistent training history provides good fitness base')
    similar = [r for r in valid if abs(r.distance_m - target_distance_m) < target_distance_m * 0.2]
    if len(similar) >= 2:
        factors.append('Experience with similar distances in training')
    return factors or ['Your training provides a solid foundation for this race']


def generate_race_strategy(
    runs: Sequence[Run],
    target_distance_m: float,
    target_time_s: Optional[float] = None
) -> RaceStrategy:
    """
    Five-segment race pacing plan personalized by fatigue and pacing history.

    Args:
        runs: Run history
        target_distance_m: Race distance in metres
        target_time_s: Goal time; when absent the pace is estimated from
            runs near the race distance

    Returns:
        RaceStrategy with segments first_mile, early, middle, final, last_mile
    """
    if target_distance_m <= 0:
        raise ValueError(f"target_distance_m must be positive, got {target_distance_m}")

    if target_time_s:
        target = target_time_s / (target_distance_m / 1000.0)
    else:
        target = estimate_target_pace(runs, target_distance_m)

    fatigue = fatigue_resistance_profile(runs)
    issues = detect_pacing_issues(runs)
    logger.debug(
        "Race strategy for {:.0f} m: target {:.0f} s/km, fatigue score {}",
        target_distance_m, target, fatigue.overall_score,
    )

    return RaceStrategy(
        distance_m=target_distance_m,
        target_pace=float(round(target)),
        pacing_plan=_pacing_plan(round(target), fatigue, issues),
        fatigue_management={
            'anticipated_fatigue_point': fatigue.pace_maintenance.fatigue_onset_point,
            'counter_strategies': [
                'Focus on maintaining running form when fatigue sets in',
                'Break the race into smaller segments to make it mentally manageable',
                'Consider walk breaks if needed to maintain overall pace'
                if fatigue.overall_score < 60
                else 'Trust your training and push through temporary discomfort',
            ],
            'mental_cues': [
                'Stay relaxed and efficient',
                'Focus on the next mile marker',
                'Maintain steady breathing rhythm',
            ],
        },
        personalized_advice=_race_advice(fatigue, issues, target_distance_m),
        risk_mitigation=_risk_mitigation(fatigue, issues),
        confidence_factors=_confidence_factors(runs, target_distance_m, fatigue),
    )
