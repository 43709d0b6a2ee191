"""
Tests for environmental pace adjustment and the Physiological Strain Index.

Run with: python -m pytest tests/test_environment.py -v
"""

from datetime import timedelta

import pytest

from runload.environment import (
    StrainLevel,
    adjusted_pace,
    analyze_psi_trends,
    calculate_psi,
    classify_strain,
    compare_environmental_performance,
    heat_index,
    weather_time_delta,
)
from runload.models import Weather
from runload.profile import resolve_physiology

from conftest import AS_OF, make_run


# =============================================================================
# Pace adjustment
# =============================================================================

class TestAdjustedPace:
    """Weather-normalized pace."""

    def test_heat_and_humidity(self):
        run = make_run(AS_OF, pace_s_per_km=330.0)
        result = adjusted_pace(run, Weather(temperature_c=30.0, humidity_pct=80.0))

        assert result.adjustments.temperature == 25.0
        assert result.adjustments.humidity == 3.0
        assert result.adjusted_pace == pytest.approx(302.0)
        assert result.confidence == 0.8

    def test_cold_penalty(self):
        run = make_run(AS_OF, pace_s_per_km=330.0)
        result = adjusted_pace(run, Weather(temperature_c=-5.0, humidity_pct=50.0))
        assert result.adjustments.temperature == 15.0
        assert result.adjusted_pace == pytest.approx(315.0)

    def test_floor_at_eighty_percent(self):
        run = make_run(AS_OF, pace_s_per_km=200.0)
        result = adjusted_pace(run, Weather(temperature_c=60.0, humidity_pct=100.0))

        assert result.adjusted_pace == pytest.approx(160.0)
        assert any('capped' in line for line in result.explanation)

    def test_wind_only_offsets_heat(self):
        run = make_run(AS_OF, pace_s_per_km=330.0)
        cool = adjusted_pace(run, Weather(temperature_c=15.0, wind_speed_kmh=40.0))
        assert cool.adjustments.wind == 0.0
        assert cool.adjusted_pace == pytest.approx(330.0)
        assert cool.confidence == 0.5

        warm = adjusted_pace(run, Weather(temperature_c=26.0, wind_speed_kmh=25.0))
        assert warm.adjustments.wind == -4.0
        assert warm.adjustments.total == 11.0

    def test_no_weather(self):
        run = make_run(AS_OF, pace_s_per_km=330.0)
        result = adjusted_pace(run)
        assert result.adjusted_pace == pytest.approx(330.0)
        assert result.confidence == 0.0

    def test_uses_run_weather_by_default(self):
        run = make_run(AS_OF, weather=Weather(temperature_c=30.0, humidity_pct=50.0))
        assert adjusted_pace(run).adjustments.temperature == 25.0

    def test_invalid_run(self):
        run = make_run(AS_OF, distance_km=0.0)
        assert adjusted_pace(run, Weather(temperature_c=30.0)).confidence == 0.0


class TestRaceDayDelta:
    """Seconds added to a race for conditions and climbing."""

    def test_heat_and_humidity(self):
        delta = weather_time_delta(10000.0, temperature_c=25.0, humidity_pct=70.0)
        assert delta.temperature_per_km == 12.5
        assert delta.humidity_per_km == 1.5
        assert delta.total_seconds == pytest.approx(140.0)

    def test_cold_threshold_is_ten_degrees(self):
        assert weather_time_delta(5000.0, temperature_c=8.0).total_seconds == pytest.approx(15.0)

    def test_climbing(self):
        delta = weather_time_delta(10000.0, elevation_gain_m=200.0)
        assert delta.elevation_per_km == 25.0
        assert delta.total_seconds == pytest.approx(250.0)

    def test_neutral_conditions(self):
        assert weather_time_delta(10000.0, temperature_c=15.0, humidity_pct=50.0).total_seconds == 0.0


class TestEnvironmentalComparison:
    """Pace by temperature band."""

    def test_bands_and_extremes(self):
        runs = [
            make_run(AS_OF, pace_s_per_km=320.0, weather=Weather(temperature_c=12.0, humidity_pct=50.0)),
            make_run(AS_OF - timedelta(days=1), pace_s_per_km=350.0,
                     weather=Weather(temperature_c=28.0, humidity_pct=50.0)),
        ]
        comparison = compare_environmental_performance(runs)

        labels = [b['condition_range'] for b in comparison['performance_by_condition']]
        assert labels == ['Cool (10-15°C)', 'Hot (>25°C)']
        assert comparison['best_conditions']['temperature_c'] == 12.0

    def test_no_weather(self):
        comparison = compare_environmental_performance([make_run(AS_OF)])
        assert comparison['best_conditions'] is None
        assert comparison['performance_by_condition'] == []


# =============================================================================
# PSI
# =============================================================================

class TestPSI:
    """Physiological Strain Index."""

    def test_no_data(self):
        result = calculate_psi(make_run(AS_OF, average_hr=None))
        assert result.psi_score == 0.0
        assert result.strain_level is StrainLevel.MINIMAL
        assert result.confidence == 0.0

    def test_heart_rate_only(self, profile):
        # 95 / 140 of reserve = 68 %, 55 minutes
        result = calculate_psi(make_run(AS_OF, average_hr=145.0), physiology=profile)

        assert result.heat_stress_components.heart_rate_strain == 2.5
        assert result.heat_stress_components.environmental_strain == 0.0
        assert result.psi_score == 2.5
        assert result.strain_level is StrainLevel.LOW
        assert result.has_heart_rate_data
        assert not result.has_weather_data

    def test_weather_only(self):
        run = make_run(AS_OF, average_hr=None)
        result = calculate_psi(run, Weather(temperature_c=32.0, humidity_pct=40.0))

        assert result.heat_stress_components.heart_rate_strain == 0.0
        assert result.heat_stress_components.environmental_strain >= 3.5
        assert not result.has_heart_rate_data

    def test_heart_rate_needs_a_profile(self):
        run = make_run(AS_OF, average_hr=170.0)
        result = calculate_psi(run, Weather(temperature_c=28.0, humidity_pct=60.0))

        assert not result.has_heart_rate_data
        assert result.heat_stress_components.heart_rate_strain == 0.0
        assert result.psi_score == result.heat_stress_components.environmental_strain

    def test_sum_holds_across_many_inputs(self, profile):
        for hr in (120.0, 137.0, 151.0, 163.0, 178.0):
            for temp in (9.0, 19.0, 24.5, 29.0, 33.0):
                run = make_run(AS_OF, distance_km=13.0, average_hr=hr)
                result = calculate_psi(run, Weather(temperature_c=temp, humidity_pct=65.0), profile)
                components = result.heat_stress_components
                assert result.psi_score == components.heart_rate_strain + components.environmental_strain

    def test_score_is_sum_of_components(self, profile):
        run = make_run(AS_OF, distance_km=21.0, average_hr=170.0)
        result = calculate_psi(run, Weather(temperature_c=31.0, humidity_pct=75.0), profile)
        components = result.heat_stress_components

        assert result.psi_score == components.heart_rate_strain + components.environmental_strain
        assert 0 <= components.heart_rate_strain <= 5
        assert 0 <= components.environmental_strain <= 5

    def test_long_hard_run_gets_duration_bonus(self, profile):
        short = calculate_psi(make_run(AS_OF, distance_km=8.0, average_hr=150.0), physiology=profile)
        long = calculate_psi(make_run(AS_OF, distance_km=25.0, average_hr=150.0), physiology=profile)
        assert long.heat_stress_components.heart_rate_strain > short.heat_stress_components.heart_rate_strain

    def test_resolved_physiology_accepted(self, profile):
        run = make_run(AS_OF, average_hr=145.0)
        assert calculate_psi(run, physiology=resolve_physiology(profile)).psi_score == 2.5

    def test_wind_cools(self):
        run = make_run(AS_OF, average_hr=None)
        still = calculate_psi(run, Weather(temperature_c=28.0, humidity_pct=50.0))
        windy = calculate_psi(run, Weather(temperature_c=28.0, humidity_pct=50.0, wind_speed_kmh=30.0))
        assert windy.psi_score < still.psi_score

    @pytest.mark.parametrize('score,level', [
        (1.5, StrainLevel.MINIMAL),
        (1.6, StrainLevel.LOW),
        (5.5, StrainLevel.MODERATE),
        (7.5, StrainLevel.HIGH),
        (8.0, StrainLevel.EXTREME),
    ])
    def test_strain_levels(self, score, level):
        assert classify_strain(score) is level

    def test_heat_index_below_threshold_is_air_temperature(self):
        assert heat_index(20.0, 90.0) == 20.0
        assert heat_index(32.0, 70.0) > 32.0


class TestPSITrends:
    """PSI over a recent window."""

    def test_steady_training_is_stable(self, steady_history, profile):
        analysis = analyze_psi_trends(steady_history, profile)
        assert analysis.trend == 'stable'
        assert analysis.high_strain_days == 0
        assert analysis.run_count > 0

    def test_no_runs(self):
        analysis = analyze_psi_trends([])
        assert analysis.run_count == 0
        assert analysis.current_psi == 0.0
