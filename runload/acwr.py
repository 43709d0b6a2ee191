"""
Acute:Chronic Workload Ratio from daily load.

ACWR = mean(7 most recent daily loads) / mean(28 most recent daily loads)

Daily loads are the per-day totals from `aggregate_daily_load`, so the windows
count days with recorded load, not calendar days.

Based on:
- Hulin et al. (2014): rolling-average ACWR
- Gabbett (2016): ACWR injury risk thresholds
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from . import config
from .aggregation import Metric, aggregate_daily_load
from .config import ACWRThresholds
from .errors import ensure_valid
from .models import DailyLoad, Run, Serializable
from .trimp import Physiology


class ACWRStatus(Enum):
    """ACWR band."""
    DETRAINING = "detraining"
    OPTIMAL = "optimal"
    CAUTION = "caution"
    HIGH_RISK = "high-risk"


# Higher = more cautious; used to pick the overall status of two metrics
STATUS_PRIORITY = {
    ACWRStatus.DETRAINING: 0,
    ACWRStatus.OPTIMAL: 1,
    ACWRStatus.CAUTION: 2,
    ACWRStatus.HIGH_RISK: 3,
}

_RECOMMENDATIONS = {
    ACWRStatus.DETRAINING: (
        'Training load is low. Consider gradually increasing training volume '
        'to maintain fitness.'
    ),
    ACWRStatus.OPTIMAL: (
        'Training load is in the optimal zone for fitness gains with low injury '
        'risk. Maintain current approach.'
    ),
    ACWRStatus.CAUTION: (
        'Training load is elevated. Monitor for signs of fatigue and consider '
        'reducing intensity or volume.'
    ),
    ACWRStatus.HIGH_RISK: (
        'Training load is very high. Reduce training volume immediately and '
        'focus on recovery to prevent injury.'
    ),
}


@dataclass(frozen=True)
class ACWRResult(Serializable):
    """ACWR with its band and confidence."""
    acwr: float
    status: ACWRStatus
    acute_load: float
    chronic_load: float
    confidence: float
    days_of_data: int = 0
    metric: Metric = Metric.TRIMP
    recommendation: str = ''

    @property
    def sufficient_data(self) -> bool:
        return self.confidence > 0


def insufficient_acwr(metric: Metric, days: int = 0) -> ACWRResult:
    """The deterministic sentinel for fewer than 28 days of load."""
    return ACWRResult(
        acwr=0.0,
        status=ACWRStatus.DETRAINING,
        acute_load=0.0,
        chronic_load=0.0,
        confidence=0.0,
        days_of_data=days,
        metric=metric,
        recommendation=(
            f'Need at least {config.ACWR_MIN_DAYS} days of training data '
            'for ACWR calculation'
        ),
    )


def classify_acwr(
    acwr: float,
    thresholds: Optional[ACWRThresholds] = None
) -> Tuple[ACWRStatus, str]:
    """
    Classify an ACWR value.

    Bands: < 0.8 detraining, [0.8, 1.3] optimal, (1.3, 1.5] caution,
    > 1.5 high-risk.

    Returns:
        Tuple of (status, recommendation)
    """
    t = thresholds or ACWRThresholds()
    if acwr < t.optimal_low:
        status = ACWRStatus.DETRAINING
    elif acwr <= t.optimal_high:
        status = ACWRStatus.OPTIMAL
    elif acwr <= t.caution_high:
        status = ACWRStatus.CAUTION
    else:
        status = ACWRStatus.HIGH_RISK
    return status, _RECOMMENDATIONS[status]


def _window_loads(values: np.ndarray, offset: int = 0) -> Tuple[float, float]:
    acute = values[offset:offset + config.ACUTE_WINDOW_DAYS].sum() / config.ACUTE_WINDOW_DAYS
    chronic = values[offset:offset + config.CHRONIC_WINDOW_DAYS].sum() / config.CHRONIC_WINDOW_DAYS
    return float(acute), float(chronic)


def acwr_from_daily_loads(
    daily_loads: Sequence[DailyLoad],
    metric: Metric = Metric.TRIMP,
    thresholds: Optional[ACWRThresholds] = None
) -> ACWRResult:
    """
    ACWR from pre-aggregated daily loads (most recent first).

    Fewer than 28 entries returns the insufficient-data sentinel.
    """
    if thresholds is not None:
        ensure_valid(thresholds)

    days = len(daily_loads)
    if days < config.ACWR_MIN_DAYS:
        logger.debug("ACWR needs {} days of load, have {}", config.ACWR_MIN_DAYS, days)
        return insufficient_acwr(metric, days)

    values = np.array([d.value for d in daily_loads], dtype=float)
    acute, chronic = _window_loads(values)
    acwr = acute / chronic if chronic > 0 else 0.0

    # Classify the reported (rounded) ratio so boundary values behave exactly
    rounded = round(acwr, 2)
    status, recommendation = classify_acwr(rounded, thresholds)

    return ACWRResult(
        acwr=rounded,
        status=status,
        acute_load=round(acute, 1),
        chronic_load=round(chronic, 1),
        confidence=min(1.0, days / config.ACWR_FULL_CONFIDENCE_DAYS),
        days_of_data=days,
        metric=metric,
        recommendation=recommendation,
    )


def calculate_acwr(
    runs: Sequence[Run],
    metric: Metric = Metric.TRIMP,
    physiology: Optional[Physiology] = None,
    thresholds: Optional[ACWRThresholds] = None
) -> ACWRResult:
    """
    Calculate ACWR from raw runs.

    Args:
        runs: Runs in any order
        metric: Metric.DISTANCE or Metric.TRIMP
        physiology: Profile used to score runs without a stored TRIMP
        thresholds: Optional band overrides

    Returns:
        ACWRResult; the insufficient-data sentinel below 28 days of load
    """
    daily = aggregate_daily_load(runs, metric, physiology)
    return acwr_from_daily_loads(daily, metric, thresholds)


@dataclass
class ACWRTrend(Serializable):
    """Direction of ACWR over recent days."""
    trend: str
    values: List[Tuple[str, float]] = field(default_factory=list)
    recommendation: str = ''


def analyze_acwr_trend(
    runs: Sequence[Run],
    metric: Metric = Metric.TRIMP,
    days: int = 14,
    physiology: Optional[Physiology] = None
) -> ACWRTrend:
    """
    ACWR at each recent daily offset and its direction.

    The ACWR is recomputed at offsets 0..min(days, n - 28) into the daily
    series (newest first). The first and last thirds of that sequence are
    compared; a relative change beyond ±10 % is a trend.
    """
    daily = aggregate_daily_load(runs, metric, physiology)
    if len(daily) < config.ACWR_MIN_DAYS:
        return ACWRTrend(
            trend='stable',
            recommendation='Need at least 28 days of data for trend analysis',
        )

    values = np.array([d.value for d in daily], dtype=float)
    window = min(days, len(daily) - config.ACWR_MIN_DAYS)
    points = []
    for i in range(window + 1):
        acute, chronic = _window_loads(values, i)
        ratio = acute / chronic if chronic > 0 else 0.0
        points.append((daily[i].date.isoformat(), round(ratio, 2)))

    if len(points) < 3:
        return ACWRTrend(
            trend='stable',
            values=points,
            recommendation='Need more data points for trend analysis',
        )

    third = len(points) // 3
    # points are newest first, so the "first third" is the most recent
    recent_avg = float(np.mean([p[1] for p in points[:third]]))
    older_avg = float(np.mean([p[1] for p in points[-third:]]))
    change = (recent_avg - older_avg) / older_avg if older_avg > 0 else 0.0

    if change > config.ACWR_TREND_CHANGE:
        trend = 'increasing'
        recommendation = (
            'ACWR is trending upward. Monitor closely and consider moderating '
            'training increases.'
        )
    elif change < -config.ACWR_TREND_CHANGE:
        trend = 'decreasing'
        recommendation = (
            'ACWR is trending downward. You may be able to gradually increase '
            'training load.'
        )
    else:
        trend = 'stable'
        recommendation = 'ACWR is stable. Continue current training approach.'

    return ACWRTrend(trend=trend, values=points, recommendation=recommendation)


@dataclass
class ComprehensiveACWR(Serializable):
    """Distance and TRIMP ACWR side by side."""
    distance: ACWRResult
    trimp: ACWRResult
    overall_status: ACWRStatus
    recommendation: str


def calculate_comprehensive_acwr(
    runs: Sequence[Run],
    physiology: Optional[Physiology] = None
) -> ComprehensiveACWR:
    """
    Distance and TRIMP ACWR with the more cautious status as overall.
    """
    distance = calculate_acwr(runs, Metric.DISTANCE)
    trimp = calculate_acwr(runs, Metric.TRIMP, physiology)

    if STATUS_PRIORITY[distance.status] > STATUS_PRIORITY[trimp.status]:
        overall = distance.status
    else:
        overall = trimp.status

    if distance.status == trimp.status:
        recommendation = distance.recommendation
    else:
        recommendation = (
            f'Mixed signals: distance ACWR suggests {distance.status.value} '
            f'({distance.acwr}), while intensity ACWR suggests '
            f'{trimp.status.value} ({trimp.acwr}). Focus on the more '
            'conservative approach.'
        )

    return ComprehensiveACWR(
        distance=distance,
        trimp=trimp,
        overall_status=overall,
        recommendation=recommendation,
    )
