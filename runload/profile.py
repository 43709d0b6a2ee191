"""
User physiology profile and estimation of missing values.

The profile is a plain value passed into each engine call; loading and saving
it is the caller's business. Missing maximum or resting heart rate is filled
in with a documented estimate, and the estimate is always flagged so callers
never mistake it for a measurement.

Based on:
- Tanaka, Monahan & Seals (2001): HRmax = 208 - 0.7 × age
- Typical resting heart rate ranges by training status
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, List, Sequence, Tuple

from loguru import logger

from . import config
from .errors import InvalidProfileError
from .models import Run, Serializable


class FitnessLevel(Enum):
    """Self-reported training status."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ELITE = "elite"


class EstimationMethod(Enum):
    """Where the maximum heart rate came from."""
    USER_INPUT = "user-input"
    AGE_BASED = "age-based"
    OBSERVED_MAX = "observed-max"
    DEFAULT = "default"


@dataclass(frozen=True)
class UserPhysiologyProfile(Serializable):
    """
    Optional physiological data supplied by the user.

    Every field may be missing; see `resolve_physiology` for how gaps are
    filled.
    """
    resting_hr: Optional[float] = None
    max_hr: Optional[float] = None
    body_weight_kg: Optional[float] = None
    age: Optional[int] = None
    fitness_level: Optional[FitnessLevel] = None
    gender: Optional[str] = None

    @property
    def hr_reserve(self) -> Optional[float]:
        if self.resting_hr is None or self.max_hr is None:
            return None
        return self.max_hr - self.resting_hr


@dataclass(frozen=True)
class ResolvedPhysiology(Serializable):
    """Profile with every heart-rate value filled in, plus provenance."""
    resting_hr: float
    max_hr: float
    max_hr_estimated: bool
    resting_hr_estimated: bool
    method: EstimationMethod
    confidence: str
    disclaimers: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    has_measured_resting_hr: bool = False

    @property
    def hr_reserve(self) -> float:
        return self.max_hr - self.resting_hr

    @property
    def fully_measured(self) -> bool:
        return not (self.max_hr_estimated or self.resting_hr_estimated)


@dataclass
class ProfileValidation(Serializable):
    """Outcome of plausibility checks on a profile."""
    is_valid: bool
    quality: str
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def tanaka_max_hr(age: float) -> float:
    """Age-predicted maximum heart rate (Tanaka)."""
    return float(round(config.TANAKA_INTERCEPT - config.TANAKA_SLOPE * age))


def resting_hr_for_fitness(level: Optional[FitnessLevel]) -> float:
    """Typical resting heart rate for a training status."""
    if level is None:
        return config.DEFAULT_RESTING_HR
    key = level.value if isinstance(level, FitnessLevel) else str(level)
    return config.RESTING_HR_BY_FITNESS.get(key, config.DEFAULT_RESTING_HR)


def resolve_physiology(
    profile: Optional[UserPhysiologyProfile] = None,
    recent_runs: Sequence[Run] = ()
) -> ResolvedPhysiology:
    """
    Fill in missing heart-rate values with flagged estimates.

    Max HR: user value, else Tanaka from age, else the highest heart rate
    seen in at least five recent runs (+5 bpm, capped at 220), else 185.
    Resting HR: user value, else by fitness level, else 60.

    Args:
        profile: User-supplied profile, or None
        recent_runs: Runs used for the observed-max fallback

    Returns:
        ResolvedPhysiology with estimation flags and disclaimers
    """
    profile = profile or UserPhysiologyProfile()
    disclaimers: List[str] = []
    recommendations: List[str] = []
    confidence = 'high'

    if profile.max_hr:
        max_hr = float(profile.max_hr)
        method = EstimationMethod.USER_INPUT
    elif profile.age:
        max_hr = tanaka_max_hr(profile.age)
        method = EstimationMethod.AGE_BASED
        confidence = 'medium'
        disclaimers.append('Max heart rate estimated using age-based formula (Tanaka et al.)')
        recommendations.append(
            'Consider a fitness test or monitor your highest heart rate during intense training'
        )
    else:
        observed = [r.max_hr for r in recent_runs if r.max_hr and r.max_hr > 0]
        if len(observed) >= config.OBSERVED_MAX_HR_MIN_RUNS:
            max_hr = min(max(observed) + config.OBSERVED_MAX_HR_BUFFER,
                         config.OBSERVED_MAX_HR_CAP)
            method = EstimationMethod.OBSERVED_MAX
            confidence = 'medium'
            disclaimers.append('Max heart rate estimated from your highest recorded heart rate')
            recommendations.append(
                'This estimate may be conservative - consider a proper fitness test'
            )
        else:
            max_hr = config.DEFAULT_MAX_HR
            method = EstimationMethod.DEFAULT
            confidence = 'low'
            disclaimers.append('Max heart rate set to conservative default')
            recommendations.append(
                'Please provide your age or complete more runs with heart rate data'
            )

    if profile.resting_hr:
        resting_hr = float(profile.resting_hr)
    else:
        resting_hr = resting_hr_for_fitness(profile.fitness_level)
        if profile.fitness_level is not None:
            disclaimers.append('Resting heart rate estimated based on fitness level')
            recommendations.append(
                'Measure your resting heart rate first thing in the morning for accuracy'
            )
        else:
            disclaimers.append('Resting heart rate set to population average')
            recommendations.append('Please measure and input your actual resting heart rate')
        if confidence == 'high':
            confidence = 'medium'

    if resting_hr >= max_hr:
        raise InvalidProfileError(
            f"resting_hr ({resting_hr}) must be below max_hr ({max_hr})"
        )

    if disclaimers:
        logger.debug("Physiology estimated: {}", "; ".join(disclaimers))

    return ResolvedPhysiology(
        resting_hr=resting_hr,
        max_hr=max_hr,
        max_hr_estimated=method is not EstimationMethod.USER_INPUT,
        resting_hr_estimated=not profile.resting_hr,
        method=method,
        confidence=confidence,
        disclaimers=tuple(disclaimers),
        recommendations=tuple(recommendations),
        has_measured_resting_hr=bool(profile.resting_hr),
    )


def _check_range(
    value: Optional[float],
    bounds: Tuple[float, float, float, float],
    label: str,
    warnings: List[str],
    errors: List[str],
) -> None:
    if value is None:
        return
    warn_low, warn_high, reject_low, reject_high = bounds
    if value < reject_low or value > reject_high:
        errors.append(f'{label} of {value:g} is outside the possible range')
    elif value < warn_low or value > warn_high:
        warnings.append(
            f'{label} seems unusual (normal range: {warn_low:g}-{warn_high:g})'
        )


def validate_profile(profile: UserPhysiologyProfile) -> ProfileValidation:
    """
    Check a profile for plausibility.

    Values outside the normal range produce warnings; impossible values and
    resting >= max heart rate produce errors.
    """
    warnings: List[str] = []
    errors: List[str] = []

    _check_range(profile.resting_hr, config.RESTING_HR_RANGE, 'Resting heart rate', warnings, errors)
    _check_range(profile.max_hr, config.MAX_HR_RANGE, 'Maximum heart rate', warnings, errors)
    _check_range(profile.body_weight_kg, config.BODY_WEIGHT_RANGE, 'Body weight', warnings, errors)

    if profile.resting_hr is not None and profile.max_hr is not None:
        if profile.resting_hr >= profile.max_hr:
            errors.append('Resting heart rate should be lower than maximum heart rate')
        elif profile.max_hr - profile.resting_hr < config.MIN_HR_RESERVE:
            warnings.append('Heart rate reserve seems low - please verify your values')

    if profile.age is not None and not (10 <= profile.age <= 100):
        warnings.append('Age seems unusual (expected 10-100)')

    if errors:
        quality = 'low'
    elif warnings:
        quality = 'medium'
    else:
        quality = 'high'

    return ProfileValidation(
        is_valid=not errors,
        quality=quality,
        warnings=warnings,
        errors=errors,
    )


# Profile fields whose change invalidates previously computed metrics
_HR_FIELDS = ('resting_hr', 'max_hr', 'age')
_WEIGHT_FIELDS = ('body_weight_kg',)


def changed_fields(
    old: UserPhysiologyProfile,
    new: UserPhysiologyProfile
) -> List[str]:
    """Names of fields whose values differ between two profiles."""
    return [
        name for name in old.__dataclass_fields__
        if getattr(old, name) != getattr(new, name)
    ]


def affected_metrics(fields_changed: Sequence[str]) -> List[str]:
    """
    Metrics that must be recomputed after a profile change.

    Heart-rate inputs feed TRIMP and everything downstream of it; body weight
    only feeds environmental context.
    """
    affected: List[str] = []
    if any(f in _HR_FIELDS for f in fields_changed):
        affected.extend([
            'TRIMP',
            'ACWR (TRIMP)',
            'Fitness metrics (CTL/ATL/TSB)',
            'Physiological strain index',
            'Injury risk',
        ])
    if any(f in _WEIGHT_FIELDS for f in fields_changed):
        affected.append('Environmental adjustments')
    return affected


def days_since_update(last_updated: date, as_of: date) -> int:
    """Whole days between a profile update and the reference date."""
    return max(0, (as_of - last_updated).days)


def check_data_freshness(
    profile: UserPhysiologyProfile,
    last_updated: date,
    as_of: date
) -> Tuple[bool, List[str]]:
    """
    Decide whether a stored profile should be reviewed.

    Returns:
        Tuple of (is_stale, recommended_actions)
    """
    days = days_since_update(last_updated, as_of)
    actions: List[str] = []

    if not profile.max_hr and days > 365:
        actions.append('Consider updating your age or conducting a fitness test')
    if days > 90:
        actions.append('Consider updating your body weight if it has changed')
    if days > 180:
        actions.append('Review your fitness level - has your training changed significantly?')
    if not profile.resting_hr and days > 90:
        actions.append('Measure your current resting heart rate - it may have improved')

    return days > 90, actions
