"""
Tests for aerobic decoupling of long runs.

Run with: python -m pytest tests/test_decoupling.py -v
"""

from datetime import timedelta

import pytest

from runload.decoupling import (
    HalfSplit,
    aerobic_efficiency,
    analyze_decoupling_trends,
    calculate_pace_decoupling,
    estimate_halves,
    weather_decoupling_offset,
)
from runload.models import Weather

from conftest import AS_OF, make_run


def long_run(days_ago=0, **kwargs):
    """12 km at 5:30/km, 66 minutes."""
    return make_run(AS_OF - timedelta(days=days_ago), distance_km=12.0, **kwargs)


# =============================================================================
# Single run
# =============================================================================

class TestPaceDecoupling:
    """One long run."""

    def test_estimated_heart_rate_drift(self):
        result = calculate_pace_decoupling(long_run())

        # halves at 140 and 150 bpm, even pace: 1 - 140/150
        assert result.decoupling_pct == 6.7
        assert result.aerobic_efficiency == 'good'
        assert result.first_half.average_hr == 140.0
        assert result.second_half.average_hr == 150.0
        assert result.estimated
        assert result.confidence == 0.8
        assert not result.environmentally_adjusted

    def test_runs_under_an_hour_are_skipped(self):
        assert calculate_pace_decoupling(make_run(AS_OF, distance_km=10.0)) is None

    def test_without_heart_rate_uses_pace_fade(self):
        result = calculate_pace_decoupling(long_run(average_hr=None, max_hr=None))

        assert result.decoupling_pct == 0.0
        assert result.aerobic_efficiency == 'excellent'
        assert not result.has_heart_rate_data
        assert result.confidence == 0.5
        assert 'Use heart rate monitoring for more accurate pacing guidance' in result.recommendations

    def test_measured_halves(self):
        halves = (HalfSplit(320.0, 140.0), HalfSplit(350.0, 155.0))
        result = calculate_pace_decoupling(long_run(), halves)

        assert result.decoupling_pct == 17.4
        assert result.aerobic_efficiency == 'poor'
        assert not result.estimated
        assert result.confidence == 1.0
        assert 'Start 10-15 seconds per km slower on future long runs' in result.recommendations

    def test_heat_is_taken_off(self):
        result = calculate_pace_decoupling(long_run(weather=Weather(temperature_c=30.0, humidity_pct=50.0)))

        assert result.raw_decoupling_pct == 6.7
        assert result.decoupling_pct == 5.2
        assert result.environmentally_adjusted
        assert 'Environmental conditions were factored into this analysis' in result.recommendations

    def test_cool_weather_is_added_back(self):
        result = calculate_pace_decoupling(long_run(weather=Weather(temperature_c=5.0)))
        assert result.decoupling_pct == 7.7

    def test_adjusted_value_never_negative(self):
        halves = (HalfSplit(330.0, 140.0), HalfSplit(330.0, 141.0))
        result = calculate_pace_decoupling(long_run(weather=Weather(temperature_c=35.0)), halves)
        assert result.decoupling_pct == 0.0

    def test_longer_runs_are_more_certain(self):
        result = calculate_pace_decoupling(make_run(AS_OF, distance_km=24.0))
        assert result.confidence == 1.0

    def test_halves_without_max_heart_rate(self):
        first, second = estimate_halves(long_run(max_hr=None))
        assert first.average_hr is None
        assert first.pace_s_per_km == second.pace_s_per_km == 330.0

    def test_weather_offset(self):
        assert weather_decoupling_offset(None) == 0.0
        offset = weather_decoupling_offset(Weather(temperature_c=30.0, humidity_pct=80.0, wind_speed_kmh=20.0))
        assert offset == pytest.approx(2.5)

    @pytest.mark.parametrize('value,label', [
        (4.9, 'excellent'),
        (5.0, 'good'),
        (14.9, 'fair'),
        (15.0, 'poor'),
    ])
    def test_efficiency_bands(self, value, label):
        assert aerobic_efficiency(value) == label


# =============================================================================
# Trends
# =============================================================================

class TestDecouplingTrends:
    """Decoupling over a block of long runs."""

    def test_worsening_long_runs(self):
        runs, halves = [], {}
        for i in range(6):
            run = long_run(7 * (5 - i), run_id=f'long-{i}')
            runs.append(run)
            halves[run.id] = (HalfSplit(330.0, 140.0), HalfSplit(330.0, 140.0 + 3 * i))

        trend = analyze_decoupling_trends(runs, halves_by_run=halves)

        assert trend.runs_analyzed == 6
        assert trend.trend == 'declining'
        assert trend.best_decoupling == 0.0
        assert trend.worst_decoupling == 9.7
        assert trend.average_decoupling == 5.0
        assert trend.consistency_score == 67.0
        assert 'Decoupling trending worse - review pacing and training load' in trend.recommendations

    def test_weather_buckets(self):
        runs = []
        for i in range(6):
            temp = 30.0 if i % 2 == 0 else 20.0
            runs.append(long_run(7 * i, weather=Weather(temperature_c=temp)))

        trend = analyze_decoupling_trends(runs)

        assert trend.environmental_impact == {'hot': 5.2, 'cool': 0.0, 'optimal': 6.7}
        assert trend.trend == 'stable'

    def test_needs_three_long_runs(self):
        runs = [long_run(0), long_run(7), make_run(AS_OF - timedelta(days=3))]
        assert analyze_decoupling_trends(runs) is None

    def test_old_runs_fall_outside_window(self):
        runs = [long_run(d) for d in (0, 7, 100, 107, 114)]
        assert analyze_decoupling_trends(runs) is None
        assert analyze_decoupling_trends(runs, days=120).runs_analyzed == 5

    def test_window_ends_at_as_of(self):
        runs = [long_run(7 * i) for i in range(5)]
        trend = analyze_decoupling_trends(runs, as_of=AS_OF - timedelta(days=8))
        assert trend.runs_analyzed == 3

    def test_no_runs(self):
        assert analyze_decoupling_trends([]) is None
