"""
Input records and shared value types.

Runs are immutable; anything derived from a run (TRIMP score, adjusted pace)
is attached to a copy via `dataclasses.replace`, never written back.
"""

from dataclasses import dataclass, asdict, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Dict, Any, List


def _plain(value: Any) -> Any:
    """Recursively convert enums, dates and tuples into JSON-safe primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class Serializable:
    """Mixin giving dataclass results a JSON-safe to_dict()."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary of plain values."""
        return _plain(asdict(self))


class ConfidenceLevel(Enum):
    """Coarse confidence label used by the pattern analyzers."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Weather(Serializable):
    """Conditions during (or forecast for) a run."""
    temperature_c: Optional[float] = None
    humidity_pct: Optional[float] = None
    wind_speed_kmh: Optional[float] = None
    condition_label: Optional[str] = None

    @property
    def has_temperature(self) -> bool:
        return self.temperature_c is not None

    @property
    def has_humidity(self) -> bool:
        return self.humidity_pct is not None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Weather':
        """Build from either snake_case or activity-export keys."""
        return cls(
            temperature_c=_first(d, 'temperature_c', 'temperature'),
            humidity_pct=_first(d, 'humidity_pct', 'humidity'),
            wind_speed_kmh=_first(d, 'wind_speed_kmh', 'wind_speed'),
            condition_label=_first(d, 'condition_label', 'weather', 'conditions'),
        )


@dataclass(frozen=True)
class Run(Serializable):
    """
    A single recorded run.

    `start_date` is the local start time; its calendar date is what the load
    aggregations group on. Non-positive distance or moving time is kept as-is
    and simply contributes nothing to pace-based calculations.
    """
    id: str
    start_date: datetime
    distance_m: float
    moving_time_s: float
    elapsed_time_s: Optional[float] = None
    average_hr: Optional[float] = None
    max_hr: Optional[float] = None
    elevation_gain_m: Optional[float] = None
    weather: Optional[Weather] = None
    trimp_score: Optional[float] = None

    @property
    def local_date(self) -> date:
        return self.start_date.date()

    @property
    def distance_km(self) -> float:
        return max(0.0, self.distance_m) / 1000.0

    @property
    def duration_min(self) -> float:
        return max(0.0, self.moving_time_s) / 60.0

    @property
    def has_valid_distance(self) -> bool:
        return self.distance_m > 0 and self.moving_time_s > 0

    @property
    def pace_s_per_km(self) -> Optional[float]:
        """Average moving pace in seconds per km, None for invalid records."""
        if not self.has_valid_distance:
            return None
        return self.moving_time_s / (self.distance_m / 1000.0)

    @property
    def has_heart_rate(self) -> bool:
        return self.average_hr is not None and self.average_hr > 0

    @property
    def elevation_per_km(self) -> Optional[float]:
        if self.elevation_gain_m is None or self.distance_m <= 0:
            return None
        return self.elevation_gain_m / (self.distance_m / 1000.0)

    def with_trimp(self, trimp: float) -> 'Run':
        """Return a copy carrying a TRIMP score."""
        return replace(self, trimp_score=trimp)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Run':
        """
        Build a run from a plain record.

        Accepts the snake_case field names of this class as well as the
        activity-export names (start_date_local, distance, moving_time,
        average_heartrate, max_heartrate, total_elevation_gain, weather_data,
        trimpScore).
        """
        start = _first(d, 'start_date_local', 'start_date')
        if start is None:
            raise ValueError("Run record has no start date")
        if not isinstance(start, datetime):
            start = parse_datetime(str(start))

        weather = _first(d, 'weather', 'weather_data')
        if isinstance(weather, dict):
            weather = Weather.from_dict(weather)

        advanced = d.get('advanced_metrics') or {}
        trimp = _first(d, 'trimp_score', 'trimpScore')
        if trimp is None:
            trimp = advanced.get('trimp') or advanced.get('estimatedTRIMP')

        return cls(
            id=str(d.get('id', '')),
            start_date=start,
            distance_m=float(_first(d, 'distance_m', 'distance') or 0.0),
            moving_time_s=float(_first(d, 'moving_time_s', 'moving_time') or 0.0),
            elapsed_time_s=_first(d, 'elapsed_time_s', 'elapsed_time'),
            average_hr=_first(d, 'average_hr', 'average_heartrate'),
            max_hr=_first(d, 'max_hr', 'max_heartrate'),
            elevation_gain_m=_first(d, 'elevation_gain_m', 'total_elevation_gain'),
            weather=weather,
            trimp_score=trimp,
        )


@dataclass(frozen=True)
class DailyLoad(Serializable):
    """One calendar day's summed load for a single metric."""
    date: date
    value: float


def parse_datetime(text: str) -> datetime:
    """Parse an ISO-8601 timestamp, tolerating a trailing 'Z'."""
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def runs_from_dicts(records: List[Dict[str, Any]]) -> List[Run]:
    """Convert plain records into Run objects."""
    return [Run.from_dict(r) for r in records]


def sort_chronological(runs: List[Run]) -> List[Run]:
    """Oldest first."""
    return sorted(runs, key=lambda r: r.start_date)


def sort_recent_first(runs: List[Run]) -> List[Run]:
    """Newest first."""
    return sorted(runs, key=lambda r: r.start_date, reverse=True)


def _first(d: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in d and d[key] is not None:
            return d[key]
    return None


