"""
Training-load and risk analytics for runners.

This package provides:
- Load quantification (TRIMP, daily/weekly aggregation, ACWR)
- Fitness / fatigue / form (CTL, ATL, TSB)
- Environmental pace adjustment and physiological strain (PSI)
- Pacing pattern analysis and race strategy
- Aerobic decoupling of long runs
- VO2max estimation and VDOT race times
- Multi-factor injury risk assessment
- Race time prediction
- Prioritized training recommendations

All functions take run history explicitly and are pure; nothing is stored.
Logging goes through loguru and is disabled for this package by default;
call `logger.enable("runload")` to see it.
"""

from loguru import logger

# Inputs
from .models import (
    Run,
    Weather,
    DailyLoad,
    ConfidenceLevel,
    runs_from_dicts,
)

from .errors import (
    RunLoadError,
    InvalidProfileError,
    ConfigurationError,
)

# Physiology
from .profile import (
    FitnessLevel,
    UserPhysiologyProfile,
    ResolvedPhysiology,
    resolve_physiology,
    validate_profile,
    check_data_freshness,
)

# Load quantification
from .trimp import (
    TRIMPResult,
    calculate_trimp,
    calculate_run_trimp,
    batch_calculate_trimp,
)

from .aggregation import (
    Metric,
    aggregate_daily_load,
    weekly_trimp,
)

from .acwr import (
    ACWRStatus,
    ACWRResult,
    calculate_acwr,
    analyze_acwr_trend,
    calculate_comprehensive_acwr,
)

from .fitness import (
    TSBStatus,
    FitnessMetrics,
    calculate_fitness_metrics,
    fitness_trend,
    predict_training_windows,
)

# Environment
from .environment import (
    adjusted_pace,
    weather_time_delta,
    calculate_psi,
    analyze_psi_trends,
)

# Pacing
from .pacing import (
    negative_split_probability,
    fatigue_resistance_profile,
    detect_pacing_issues,
    generate_race_strategy,
)

from .decoupling import (
    HalfSplit,
    calculate_pace_decoupling,
    analyze_decoupling_trends,
)

# Aerobic capacity
from .vo2max import (
    VO2MaxEstimate,
    estimate_vo2max,
    current_vo2max,
    analyze_vo2max_trend,
    daniels_race_time,
)

# Injury risk
from .injury_risk import (
    RiskLevel,
    WarningLevel,
    InjuryRiskAssessment,
    assess_injury_risk,
    monitor_risk_factors,
    injury_prevention_plan,
)

# Race prediction
from .race_prediction import (
    RacePrediction,
    predict_race_time,
    predict_standard_races,
    analyze_fitness_progression,
    fitness_readiness,
)

# Recommendations
from .recommendations import (
    Priority,
    RecommendationType,
    Recommendation,
    RecommendationContext,
    build_recommendation_context,
    generate_recommendations,
    filter_recommendations,
)

logger.disable("runload")

__version__ = "0.1.0"

__all__ = [
    # Inputs
    'Run',
    'Weather',
    'DailyLoad',
    'ConfidenceLevel',
    'runs_from_dicts',
    # Errors
    'RunLoadError',
    'InvalidProfileError',
    'ConfigurationError',
    # Physiology
    'FitnessLevel',
    'UserPhysiologyProfile',
    'ResolvedPhysiology',
    'resolve_physiology',
    'validate_profile',
    'check_data_freshness',
    # Load
    'TRIMPResult',
    'calculate_trimp',
    'calculate_run_trimp',
    'batch_calculate_trimp',
    'Metric',
    'aggregate_daily_load',
    'weekly_trimp',
    'ACWRStatus',
    'ACWRResult',
    'calculate_acwr',
    'analyze_acwr_trend',
    'calculate_comprehensive_acwr',
    # Fitness
    'TSBStatus',
    'FitnessMetrics',
    'calculate_fitness_metrics',
    'fitness_trend',
    'predict_training_windows',
    # Environment
    'adjusted_pace',
    'weather_time_delta',
    'calculate_psi',
    'analyze_psi_trends',
    # Pacing
    'negative_split_probability',
    'fatigue_resistance_profile',
    'detect_pacing_issues',
    'generate_race_strategy',
    'HalfSplit',
    'calculate_pace_decoupling',
    'analyze_decoupling_trends',
    # Aerobic capacity
    'VO2MaxEstimate',
    'estimate_vo2max',
    'current_vo2max',
    'analyze_vo2max_trend',
    'daniels_race_time',
    # Injury risk
    'RiskLevel',
    'WarningLevel',
    'InjuryRiskAssessment',
    'assess_injury_risk',
    'monitor_risk_factors',
    'injury_prevention_plan',
    # Race prediction
    'RacePrediction',
    'predict_race_time',
    'predict_standard_races',
    'analyze_fitness_progression',
    'fitness_readiness',
    # Recommendations
    'Priority',
    'RecommendationType',
    'Recommendation',
    'RecommendationContext',
    'build_recommendation_context',
    'generate_recommendations',
    'filter_recommendations',
]
