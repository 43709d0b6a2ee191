"""
Named thresholds and tunable parameters for the analytics engine.

Every cutoff used by the scoring functions lives here so a threshold change
is a one-line, testable edit. Band constants are module-level; the few
parameter groups callers commonly tune are dataclasses with the usual
to_dict/from_dict/validate trio.

Based on:
- Gabbett (2016): ACWR bands
- Banister (1991): TRIMP weighting, fitness/fatigue time constants
- Tanaka et al. (2001): age-predicted maximum heart rate
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# ACWR
# ═══════════════════════════════════════════════════════════════════════════

ACUTE_WINDOW_DAYS = 7
CHRONIC_WINDOW_DAYS = 28
ACWR_MIN_DAYS = 28                  # Below this: insufficient-data sentinel
ACWR_FULL_CONFIDENCE_DAYS = 42
ACWR_TREND_CHANGE = 0.10            # Relative change for increasing/decreasing


@dataclass
class ACWRThresholds:
    """
    ACWR band boundaries.

    detraining < optimal_low <= optimal <= optimal_high < caution <= caution_high < high-risk
    """

    optimal_low: float = 0.8
    optimal_high: float = 1.3
    caution_high: float = 1.5

    def to_dict(self) -> Dict[str, Any]:
        """Convert thresholds to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ACWRThresholds':
        """Create thresholds from dictionary."""
        return cls(**d)

    def validate(self) -> Tuple[bool, str]:
        """Validate threshold ordering."""
        if not (0 < self.optimal_low < self.optimal_high < self.caution_high):
            return False, "ACWR thresholds must be positive and ascending"
        return True, "Valid"


# ═══════════════════════════════════════════════════════════════════════════
# FITNESS MODEL (CTL / ATL / TSB)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class FitnessParams:
    """Time constants and data requirements for the fitness/fatigue model."""

    ctl_span: int = 42
    atl_span: int = 7
    min_days: int = 1                   # Zero metrics below this many days
    full_confidence_days: int = 42
    ramp_window: int = 7                # Daily entries used for ramp rate

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'FitnessParams':
        """Create parameters from dictionary."""
        return cls(**d)

    def validate(self) -> Tuple[bool, str]:
        """Validate parameter constraints."""
        issues = []

        if not (0 < self.atl_span < self.ctl_span):
            issues.append("Spans must satisfy 0 < atl_span < ctl_span")
        if self.min_days < 1:
            issues.append("min_days must be at least 1")
        if self.full_confidence_days < 1:
            issues.append("full_confidence_days must be at least 1")
        if self.ramp_window < 1:
            issues.append("ramp_window must be at least 1")

        if issues:
            return False, "; ".join(issues)
        return True, "Valid"


TSB_FRESH = 25.0
TSB_NEUTRAL_FLOOR = -5.0
TSB_FATIGUED_FLOOR = -30.0
FITNESS_TREND_MIN_DAYS = 7

# TSB below each bound -> days of recovery before the next quality window
RECOVERY_DAYS_BY_TSB = (
    (-30.0, 7),
    (-10.0, 3),
    (5.0, 1),
)


# ═══════════════════════════════════════════════════════════════════════════
# TRIMP
# ═══════════════════════════════════════════════════════════════════════════

TRIMP_Y_COEFFICIENT = 0.64
TRIMP_Y_EXPONENT = 1.92
TRIMP_CONFIDENCE_MEASURED = 0.9
TRIMP_CONFIDENCE_ESTIMATED = 0.7

# Upper bounds of each interpretation level
TRIMP_LEVELS = (
    (30.0, 'very-easy', 'Very easy recovery run'),
    (60.0, 'easy', 'Easy aerobic run'),
    (100.0, 'moderate', 'Moderate training effort'),
    (150.0, 'hard', 'Hard training session'),
)


# ═══════════════════════════════════════════════════════════════════════════
# PHYSIOLOGY DEFAULTS
# ═══════════════════════════════════════════════════════════════════════════

TANAKA_INTERCEPT = 208.0
TANAKA_SLOPE = 0.7
DEFAULT_MAX_HR = 185.0
DEFAULT_RESTING_HR = 60.0
OBSERVED_MAX_HR_MIN_RUNS = 5
OBSERVED_MAX_HR_BUFFER = 5.0
OBSERVED_MAX_HR_CAP = 220.0

RESTING_HR_BY_FITNESS = {
    'elite': 45.0,
    'advanced': 50.0,
    'intermediate': 60.0,
    'beginner': 70.0,
}

# Plausibility ranges: (warn_low, warn_high, reject_low, reject_high)
RESTING_HR_RANGE = (40.0, 90.0, 30.0, 120.0)
MAX_HR_RANGE = (150.0, 210.0, 120.0, 250.0)
BODY_WEIGHT_RANGE = (40.0, 150.0, 30.0, 200.0)
MIN_HR_RESERVE = 50.0


# ═══════════════════════════════════════════════════════════════════════════
# ENVIRONMENTAL PACE ADJUSTMENT (seconds per km)
# ═══════════════════════════════════════════════════════════════════════════

HEAT_THRESHOLD_C = 20.0
HEAT_PENALTY_PER_C = 2.5
COLD_THRESHOLD_C = 5.0
COLD_PENALTY_PER_C = 1.5
HUMIDITY_THRESHOLD_PCT = 60.0
HUMIDITY_PENALTY_PER_10PCT = 1.5
WIND_THRESHOLD_KMH = 15.0
WIND_COOLING_PER_KMH = 0.4
ADJUSTED_PACE_FLOOR_RATIO = 0.8
ADJUSTMENT_CONFIDENCE_FULL = 0.8
ADJUSTMENT_CONFIDENCE_PARTIAL = 0.5

# Race-day deltas
RACE_COLD_THRESHOLD_C = 10.0
CLIMB_THRESHOLD_M_PER_KM = 10.0
CLIMB_PENALTY_PER_10M = 12.5

# (label, low inclusive, high exclusive)
TEMPERATURE_BANDS = (
    ('Cold (<10°C)', float('-inf'), 10.0),
    ('Cool (10-15°C)', 10.0, 15.0),
    ('Optimal (15-20°C)', 15.0, 20.0),
    ('Warm (20-25°C)', 20.0, 25.0),
    ('Hot (>25°C)', 25.0, float('inf')),
)


# ═══════════════════════════════════════════════════════════════════════════
# PHYSIOLOGICAL STRAIN INDEX
# ═══════════════════════════════════════════════════════════════════════════

PSI_COMPONENT_MAX = 5.0

# Upper bound of % HR reserve -> strain
PSI_HR_BANDS = (
    (30.0, 0.5),
    (50.0, 1.5),
    (70.0, 2.5),
    (85.0, 3.5),
    (95.0, 4.5),
)
PSI_HR_BAND_MAX = 5.0
PSI_DURATION_BONUS_AFTER_MIN = 60.0
PSI_DURATION_BONUS_RESERVE_PCT = 60.0
PSI_DURATION_BONUS_SPAN_MIN = 120.0

# Upper bound of temperature (°C) -> strain
PSI_TEMPERATURE_BANDS = (
    (10.0, 0.5),
    (20.0, 0.0),
    (25.0, 1.0),
    (30.0, 2.0),
    (35.0, 3.5),
)
PSI_TEMPERATURE_BAND_MAX = 5.0
PSI_HUMIDITY_THRESHOLD = 60.0
PSI_HUMIDITY_SPAN = 40.0
PSI_HUMIDITY_MAX_BONUS = 1.5
PSI_HEAT_INDEX_MIN_F = 80.0
PSI_HEAT_INDEX_MARGIN_C = 2.0
PSI_HEAT_INDEX_SPAN = 5.0
PSI_WIND_THRESHOLD = 10.0
PSI_WIND_SPAN = 20.0
PSI_WIND_MAX_COOLING = 0.5

# Upper bound of PSI score -> strain level
PSI_STRAIN_LEVELS = (
    (1.5, 'minimal'),
    (3.5, 'low'),
    (5.5, 'moderate'),
    (7.5, 'high'),
)
PSI_HIGH_STRAIN = 7.0
PSI_HOT_RUN_C = 25.0
PSI_TREND_MIN_RUNS = 6
PSI_TREND_DELTA = 0.3


# ═══════════════════════════════════════════════════════════════════════════
# PACING
# ═══════════════════════════════════════════════════════════════════════════

NEGATIVE_SPLIT_RANGE_KM = (5.0, 25.0)
NEGATIVE_SPLIT_MIN_RUNS = 5
FATIGUE_RANGE_KM = (5.0, 30.0)
FATIGUE_MIN_RUNS = 8
FATIGUE_MIN_HR_RUNS = 3
FATIGUE_NO_HR_CONFIDENCE_FACTOR = 0.8
PACING_ISSUE_MIN_KM = 3.0
PACING_ISSUE_MIN_RUNS = 5

FAST_PACE_S_PER_KM = 240.0
SLOW_PACE_S_PER_KM = 360.0

# Distance buckets (label, low inclusive, high exclusive) in km
FATIGUE_DISTANCE_BUCKETS = (
    ('5-8km', 5.0, 8.0),
    ('8-12km', 8.0, 12.0),
    ('12-18km', 12.0, 18.0),
    ('18-25km', 18.0, 25.0),
    ('25km+', 25.0, float('inf')),
)

ISSUE_SEVERITY_WEIGHTS = {'significant': 3, 'moderate': 2, 'minor': 1}

# Summed severity weight upper bounds -> grade
PACING_GRADES = ((0, 'A'), (2, 'B'), (4, 'C'), (6, 'D'))

MILE_M = 1609.34


# ═══════════════════════════════════════════════════════════════════════════
# INJURY RISK
# ═══════════════════════════════════════════════════════════════════════════

RISK_LOOKBACK_DAYS = 90
RISK_MIN_RUNS = 10
RISK_MINIMAL_SCORE = 20.0
RISK_MINIMAL_CONFIDENCE = 0.3
RISK_FACTOR_FLOOR = 5.0
RISK_RANK_DECAY = 0.8
RISK_WEEKS_ANALYZED = 8

RISK_LEVEL_BANDS = ((70.0, 'critical'), (50.0, 'high'), (25.0, 'moderate'))
OVERREACHING_BANDS = ((8, 'overtraining'), (6, 'non-functional'), (3, 'functional'))
MAX_DAYS_IN_STATE = 14

# Week-over-week load increase -> spike magnitude
LOAD_SPIKE_BANDS = ((50.0, 'extreme'), (30.0, 'major'), (20.0, 'moderate'))
LOAD_SPIKE_MIN_PCT = 10.0
SPIKE_POINTS = {'extreme': 35.0, 'major': 25.0, 'moderate': 15.0}

HARD_RUN_HR = 160.0
HARD_RUN_PACE = 270.0
HARD_RUN_KM = 15.0

RISK_CONFIDENCE_RANGE = (0.2, 0.95)
RISK_FACTOR_TREND_DELTA = 5.0


# ═══════════════════════════════════════════════════════════════════════════
# VO2MAX
# ═══════════════════════════════════════════════════════════════════════════

UTH_COEFFICIENT = 15.3
STEADY_STATE_MIN_CONFIDENCE = 0.6
VO2MAX_MIN_CONFIDENCE = 0.6         # Estimates above this are reliable
VO2MAX_RANGE = (20.0, 90.0)

# Pace upper bound (s/km) -> VO2max
VO2MAX_PACE_BANDS = (
    (180.0, 70.0),
    (210.0, 65.0),
    (240.0, 60.0),
    (270.0, 55.0),
    (300.0, 50.0),
    (330.0, 45.0),
    (360.0, 40.0),
    (420.0, 35.0),
)
VO2MAX_PACE_FLOOR = 30.0
# Distance lower bound (km) -> bonus; runs under 2 km lose 2
VO2MAX_DISTANCE_BONUS = ((15.0, 3.0), (10.0, 2.0), (5.0, 1.0))

# Lower bound -> category
VO2MAX_CATEGORY_BANDS = (
    (60.0, 'superior'),
    (52.0, 'excellent'),
    (47.0, 'very-good'),
    (42.0, 'good'),
    (37.0, 'fair'),
)

VO2MAX_MIN_DISTANCE_M = 3000.0
VO2MAX_RECENT_RUNS = 10
VO2MAX_MIN_RUNS = 3
VO2MAX_RECENCY_DECAY = 0.9
VO2MAX_ROLLING_DAYS = 30
VO2MAX_TREND_DELTA = 0.3            # ml/kg/min per month

# Speed bracket (m/min) for solving the VDOT equations
VDOT_MIN_SPEED_M_PER_MIN = 50.0
VDOT_MAX_SPEED_M_PER_MIN = 600.0


# ═══════════════════════════════════════════════════════════════════════════
# PACE DECOUPLING
# ═══════════════════════════════════════════════════════════════════════════

DECOUPLING_MIN_DURATION_MIN = 60.0
DECOUPLING_MAX_HR_DRIFT = 10.0      # bpm between halves
DECOUPLING_BANDS = ((5.0, 'excellent'), (10.0, 'good'), (15.0, 'fair'))
DECOUPLING_TREND_DAYS = 90
DECOUPLING_MIN_RUNS = 3
DECOUPLING_TREND_DELTA = 2.0        # % points, first vs last third

# Temperature / humidity / wind thresholds and % decoupling per unit above
DECOUPLING_HOT_C = 25.0
DECOUPLING_COOL_C = 15.0
DECOUPLING_HEAT_RATE = 0.3
DECOUPLING_COOL_RATE = 0.1
DECOUPLING_HUMID_PCT = 70.0
DECOUPLING_HUMIDITY_RATE = 0.05
DECOUPLING_WINDY_KMH = 15.0
DECOUPLING_WIND_RATE = 0.1


# ═══════════════════════════════════════════════════════════════════════════
# RACE PREDICTION
# ═══════════════════════════════════════════════════════════════════════════

RACE_MIN_RUNS = 10
RACE_DEFAULT_PACE = 330.0
RACE_MINIMAL_CONFIDENCE = 0.3
RACE_MINIMAL_INTERVAL = 0.10
RACE_SIMILAR_DISTANCE_TOLERANCE = 0.20
RIEGEL_EXPONENT = 1.06
RACE_FALLBACK_S_PER_M = 0.33
RACE_MIN_S_PER_M = 0.18
RACE_BASE_VARIANCE = 0.08

STANDARD_RACES = (
    ('5K', 5000.0),
    ('10K', 10000.0),
    ('Half Marathon', 21097.5),
    ('Marathon', 42195.0),
)

RACE_LOOKBACK_DAYS = 90
RACE_TEMPO_RANGE_M = (3000.0, 15000.0)
RACE_TEMPO_MIN_HR = 150.0
RACE_TEMPO_MIN_RUNS = 2

# Tempo pace -> race pace offset (s/km) by race distance upper bound (km)
RACE_TEMPO_OFFSETS = (
    (5.0, -10.0),
    (10.0, -5.0),
    (21.1, 5.0),
)
RACE_TEMPO_OFFSET_LONG = 15.0

# Seconds added to the prediction for the current load status
LOAD_STATUS_SECONDS = {'risky': 30.0, 'high': 10.0, 'low': 15.0, 'optimal': 0.0}
LOAD_STATUS_VARIANCE = {'risky': 0.05, 'high': 0.02, 'low': 0.03, 'optimal': 0.0}
LOAD_STATUS_CONFIDENCE = {'risky': -0.15, 'high': 0.0, 'low': -0.10, 'optimal': 0.10}

# Fractional time change from form (TSB status)
TSB_TIME_FACTORS = {
    'fresh': -0.01,
    'neutral': 0.0,
    'fatigued': 0.01,
    'very-fatigued': 0.02,
}

# Fitness level (CTL) and its 7-day ramp against the predicted time
RACE_CTL_REFERENCE = 50.0
RACE_CTL_TIME_FACTOR = 0.03         # per 100 % CTL above the reference
RACE_CTL_MAX_FACTOR = 0.03
RACE_RAMP_TIME_FACTOR = 0.001       # per CTL point gained over 7 days
RACE_RAMP_CAP = 8.0

PROGRESSION_TREND_RATE = 2.0        # s/km per week
RACE_MAX_PACE_VARIANCE = 0.05
RACE_RANK_DECAY = 0.8
RACE_CONFIDENCE_RANGE = (0.2, 0.95)
RACE_VO2MAX_CONFIDENCE = 0.15


# ═══════════════════════════════════════════════════════════════════════════
# RECOMMENDATIONS
# ═══════════════════════════════════════════════════════════════════════════

PRIORITY_ORDER = {'critical': 4, 'high': 3, 'medium': 2, 'low': 1}

# Safe weekly / monthly volume progression by experience
PROGRESSION_RATES = {
    'beginner': (0.10, 0.25),
    'intermediate': (0.15, 0.35),
    'advanced': (0.20, 0.45),
    'elite': (0.25, 0.50),
}
KM_PER_AVAILABLE_HOUR = 8.0
HEAT_EXPOSURE_DAYS = 14
HEAT_EXPOSURE_MIN_RUNS = 3
HARD_INTENSITY_CEILING_PCT = 20.0

# Upper bound of % heart-rate reserve for zones 1-4; above is zone 5
HR_ZONE_BOUNDS = (60.0, 70.0, 80.0, 90.0)

# Days each recommendation family stays valid
VALIDITY_DAYS = {
    'training-load': 7,
    'environmental': 3,
    'progression': 14,
    'recovery': 7,
    'safety': 7,
}

TIMEFRAME_KEYWORDS = {
    'immediate': ('immediate', 'next 1-2 days', 'next 2-3 days', 'next 3-7 days'),
    'short-term': ('next 1-2 weeks', 'next 2-4 weeks'),
    'long-term': ('next 4-6 weeks', 'ongoing', 'long-term'),
}
