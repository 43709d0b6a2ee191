"""
Training Impulse (TRIMP) per run.

TRIMP = duration_min × ΔHR × 0.64·e^(1.92·ΔHR)

where ΔHR is the fraction of heart-rate reserve used, clamped to [0, 1].
A single gender-neutral weighting is used for every athlete.

Based on:
- Banister (1991): TRIMP formula
- Morton, Fitz-Clarke & Banister (1990): exponential intensity weighting
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union, Dict, Any

import numpy as np
from loguru import logger

from . import config
from .models import Run, Serializable
from .profile import ResolvedPhysiology, UserPhysiologyProfile, resolve_physiology

Physiology = Union[UserPhysiologyProfile, ResolvedPhysiology]


@dataclass(frozen=True)
class TRIMPResult(Serializable):
    """TRIMP for one run with provenance."""
    value: float
    confidence: float
    method: str
    delta_hr: float = 0.0

    @property
    def available(self) -> bool:
        return self.confidence > 0


NO_TRIMP = TRIMPResult(value=0.0, confidence=0.0, method='unavailable')


def calculate_delta_hr(hr_avg: float, hr_rest: float, hr_max: float) -> float:
    """
    Calculate heart rate reserve fraction (Delta HR).

    Args:
        hr_avg: Average heart rate during session (bpm)
        hr_rest: Resting heart rate (bpm)
        hr_max: Maximum heart rate (bpm)

    Returns:
        Delta HR as fraction [0, 1]
    """
    if hr_max <= hr_rest:
        raise ValueError(f"hr_max ({hr_max}) must be greater than hr_rest ({hr_rest})")

    delta_hr = (hr_avg - hr_rest) / (hr_max - hr_rest)
    return float(np.clip(delta_hr, 0.0, 1.0))


def calculate_y_factor(delta_hr: float) -> float:
    """Exponential intensity weighting Y = 0.64·e^(1.92·ΔHR)."""
    return config.TRIMP_Y_COEFFICIENT * math.exp(config.TRIMP_Y_EXPONENT * delta_hr)


def calculate_trimp(
    duration_min: float,
    hr_avg: float,
    hr_rest: float,
    hr_max: float
) -> float:
    """
    Calculate TRIMP for a session from raw numbers.

    Args:
        duration_min: Session duration in minutes
        hr_avg: Average heart rate during session (bpm)
        hr_rest: Resting heart rate (bpm)
        hr_max: Maximum heart rate (bpm)

    Returns:
        TRIMP value (arbitrary units); 0 for non-positive durations
    """
    if duration_min <= 0:
        return 0.0

    delta_hr = calculate_delta_hr(hr_avg, hr_rest, hr_max)
    return duration_min * delta_hr * calculate_y_factor(delta_hr)


def as_resolved(
    physiology: Optional[Physiology],
    recent_runs: Sequence[Run] = ()
) -> Optional[ResolvedPhysiology]:
    """Resolve a raw profile; pass resolved values and None through."""
    if physiology is None or isinstance(physiology, ResolvedPhysiology):
        return physiology
    return resolve_physiology(physiology, recent_runs)


def calculate_run_trimp(run: Run, physiology: Optional[Physiology]) -> TRIMPResult:
    """
    TRIMP for a single run.

    Absent heart rate or absent physiology gives value 0 and confidence 0;
    no pace-based substitute is produced here.

    Args:
        run: The run
        physiology: User profile (raw or resolved), or None

    Returns:
        TRIMPResult
    """
    if physiology is None or not run.has_heart_rate or run.moving_time_s <= 0:
        return NO_TRIMP

    resolved = as_resolved(physiology)
    delta_hr = calculate_delta_hr(run.average_hr, resolved.resting_hr, resolved.max_hr)
    value = run.duration_min * delta_hr * calculate_y_factor(delta_hr)

    if resolved.fully_measured:
        confidence = config.TRIMP_CONFIDENCE_MEASURED
        method = 'heart-rate'
    else:
        confidence = config.TRIMP_CONFIDENCE_ESTIMATED
        method = 'heart-rate (estimated physiology)'

    return TRIMPResult(
        value=round(value, 1),
        confidence=confidence,
        method=method,
        delta_hr=round(delta_hr, 3),
    )


def run_trimp_value(run: Run, physiology: Optional[Physiology] = None) -> float:
    """
    The TRIMP a run contributes to load totals.

    A precomputed `trimp_score` wins; otherwise the heart-rate TRIMP is
    computed when physiology is available; otherwise 0.
    """
    if run.trimp_score is not None:
        return max(0.0, float(run.trimp_score))
    return calculate_run_trimp(run, physiology).value


def batch_calculate_trimp(
    runs: Sequence[Run],
    physiology: Optional[Physiology]
) -> List[Dict[str, Any]]:
    """TRIMP for many runs, resolving the profile once."""
    resolved = as_resolved(physiology, runs)
    results = []
    for run in runs:
        result = calculate_run_trimp(run, resolved)
        results.append({
            'run_id': run.id,
            'trimp': result.value,
            'confidence': result.confidence,
            'method': result.method,
        })
    missing = sum(1 for r in results if r['confidence'] == 0)
    if missing:
        logger.debug("{} of {} runs have no heart-rate TRIMP", missing, len(results))
    return results


def attach_trimp(runs: Sequence[Run], physiology: Optional[Physiology]) -> List[Run]:
    """
    Copies of `runs` carrying heart-rate TRIMP scores.

    Runs that already have a score, or that cannot be scored, are returned
    unchanged.
    """
    resolved = as_resolved(physiology, runs)
    out = []
    for run in runs:
        if run.trimp_score is None:
            result = calculate_run_trimp(run, resolved)
            if result.available:
                run = run.with_trimp(result.value)
        out.append(run)
    return out


def interpret_trimp(trimp: float) -> Dict[str, str]:
    """
    Classify a session TRIMP.

    Returns:
        Dictionary with 'level' and 'description'
    """
    for upper, level, description in config.TRIMP_LEVELS:
        if trimp < upper:
            return {'level': level, 'description': description}
    return {'level': 'very-hard', 'description': 'Very hard or race effort'}
