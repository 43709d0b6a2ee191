"""
Tests for input records, serialization and the error boundary.

Run with: python -m pytest tests/test_models.py -v
"""

from datetime import datetime, timezone

import pytest

from runload.config import ACWRThresholds
from runload.errors import (
    ConfigurationError,
    InvalidProfileError,
    RunLoadError,
    computation_boundary,
    ensure_valid,
)
from runload.models import Run, Weather, runs_from_dicts, sort_chronological, sort_recent_first

from conftest import AS_OF, make_run


# =============================================================================
# Records
# =============================================================================

class TestRunFromDict:
    """Run construction from plain records."""

    def test_activity_export_keys(self):
        run = Run.from_dict({
            'id': 42,
            'start_date_local': '2024-06-30T07:15:00',
            'distance': 10000,
            'moving_time': 3000,
            'average_heartrate': 150,
            'max_heartrate': 172,
            'total_elevation_gain': 85,
            'weather_data': {'temperature': 21, 'humidity': 65, 'wind_speed': 12},
            'trimpScore': 88.5,
        })

        assert run.id == '42'
        assert run.local_date == AS_OF
        assert run.pace_s_per_km == 300.0
        assert run.average_hr == 150
        assert run.elevation_per_km == pytest.approx(8.5)
        assert run.weather == Weather(temperature_c=21, humidity_pct=65, wind_speed_kmh=12)
        assert run.trimp_score == 88.5

    def test_snake_case_keys(self):
        run = Run.from_dict({
            'id': 'a',
            'start_date': datetime(2024, 6, 30, 7),
            'distance_m': 5000.0,
            'moving_time_s': 1500.0,
        })
        assert run.distance_km == 5.0
        assert run.weather is None
        assert run.trimp_score is None

    def test_trimp_from_advanced_metrics(self):
        run = Run.from_dict({
            'start_date': '2024-06-30T07:00:00',
            'distance': 5000,
            'moving_time': 1500,
            'advanced_metrics': {'estimatedTRIMP': 40.0},
        })
        assert run.trimp_score == 40.0

    def test_utc_suffix(self):
        run = Run.from_dict({'start_date': '2024-06-30T07:00:00Z', 'distance': 1, 'moving_time': 1})
        assert run.start_date.tzinfo == timezone.utc

    def test_missing_start_date_raises(self):
        with pytest.raises(ValueError):
            Run.from_dict({'distance': 5000, 'moving_time': 1500})

    def test_many(self):
        runs = runs_from_dicts([
            {'id': 1, 'start_date': '2024-06-29T07:00:00', 'distance': 5000, 'moving_time': 1500},
            {'id': 2, 'start_date': '2024-06-30T07:00:00', 'distance': 8000, 'moving_time': 2400},
        ])
        assert [r.id for r in sort_recent_first(runs)] == ['2', '1']
        assert [r.id for r in sort_chronological(runs)] == ['1', '2']


class TestRunProperties:
    """Derived values and immutability."""

    def test_invalid_distance_has_no_pace(self):
        run = make_run(AS_OF, distance_km=0.0)
        assert run.pace_s_per_km is None
        assert not run.has_valid_distance
        assert run.elevation_per_km is None

    def test_with_trimp_copies(self):
        run = make_run(AS_OF)
        scored = run.with_trimp(70.0)
        assert scored.trimp_score == 70.0
        assert run.trimp_score is None

    def test_to_dict_is_plain(self):
        run = make_run(AS_OF, weather=Weather(temperature_c=20.0))
        data = run.to_dict()
        assert data['start_date'] == '2024-06-30T07:00:00'
        assert data['weather']['temperature_c'] == 20.0


# =============================================================================
# Errors
# =============================================================================

class TestComputationBoundary:
    """Neutral fallback on unexpected failures."""

    def test_passes_through_results(self):
        @computation_boundary(lambda x: 'neutral')
        def score(x):
            return x * 2

        assert score(3) == 6

    def test_unexpected_error_gives_fallback(self):
        @computation_boundary(lambda x: ('neutral', x))
        def score(x):
            raise ZeroDivisionError

        assert score(5) == ('neutral', 5)

    def test_engine_errors_propagate(self):
        @computation_boundary(lambda: 'neutral')
        def score():
            raise InvalidProfileError('bad profile')

        with pytest.raises(RunLoadError):
            score()


class TestEnsureValid:

    def test_valid(self):
        ensure_valid(ACWRThresholds())

    def test_invalid(self):
        with pytest.raises(ConfigurationError) as excinfo:
            ensure_valid(ACWRThresholds(optimal_low=1.4))
        assert isinstance(excinfo.value, ValueError)

    def test_round_trip(self):
        thresholds = ACWRThresholds(caution_high=1.6)
        assert ACWRThresholds.from_dict(thresholds.to_dict()) == thresholds
