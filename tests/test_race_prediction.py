"""
Tests for race time prediction and readiness.

Run with: python -m pytest tests/test_race_prediction.py -v
"""

from datetime import timedelta

import pytest

from runload.fitness import FitnessMetrics, TSBStatus
from runload.models import Weather
from runload.race_prediction import (
    analyze_fitness_progression,
    base_prediction,
    ctl_time_factor,
    distance_name,
    distance_specific_prediction,
    fitness_readiness,
    format_pace,
    format_race_time,
    load_status,
    predict_race_time,
    predict_standard_races,
    riegel_time,
    tempo_based_prediction,
)

from conftest import AS_OF, make_run


def neutral_form(status=TSBStatus.NEUTRAL, confidence=1.0):
    return FitnessMetrics(
        ctl=50.0, atl=50.0, tsb=0.0, ramp_rate=0.0, confidence=confidence, status=status
    )


def trending(pace_for_day):
    """Daily 10 km runs for eight weeks; pace_for_day(d) with d days before AS_OF."""
    return [
        make_run(AS_OF - timedelta(days=d), pace_s_per_km=pace_for_day(d))
        for d in range(56)
    ]


# =============================================================================
# Formatting and components
# =============================================================================

class TestFormatting:
    """Names and time strings."""

    @pytest.mark.parametrize('distance,name', [
        (5000, '5K'),
        (10000, '10K'),
        (21097.5, 'Half Marathon'),
        (42195, 'Marathon'),
        (50000, '50K'),
    ])
    def test_distance_names(self, distance, name):
        assert distance_name(distance) == name

    def test_race_time(self):
        assert format_race_time(1500) == '25:00'
        assert format_race_time(3725) == '1:02:05'

    def test_pace(self):
        assert format_pace(330) == '5:30/km'


class TestComponents:
    """Distance-specific, tempo and fallback estimates."""

    def test_riegel(self):
        assert riegel_time(1200, 5000, 10000) == pytest.approx(1200 * 2 ** 1.06)
        with pytest.raises(ValueError):
            riegel_time(1200, 0, 10000)

    def test_distance_specific_uses_fastest_runs(self):
        runs = [
            make_run(AS_OF, distance_km=10.0, pace_s_per_km=300.0),
            make_run(AS_OF - timedelta(days=1), distance_km=10.0, pace_s_per_km=360.0),
        ]
        # weights 1 and 0.8, fastest first
        expected = (3000.0 + 0.8 * 3600.0) / 1.8
        assert distance_specific_prediction(runs, 10000.0) == pytest.approx(expected)

    def test_distance_specific_needs_similar_runs(self):
        assert distance_specific_prediction([make_run(AS_OF, distance_km=5.0)], 21097.5) is None

    def test_tempo_needs_hard_runs(self):
        easy = [make_run(AS_OF - timedelta(days=i), average_hr=140.0) for i in range(5)]
        assert tempo_based_prediction(easy, 10000.0) is None

        hard = [
            make_run(AS_OF - timedelta(days=i), pace_s_per_km=280.0, average_hr=160.0)
            for i in range(3)
        ]
        assert tempo_based_prediction(hard, 10000.0) == pytest.approx(10 * (280.0 - 5.0))
        assert tempo_based_prediction(hard, 42195.0) == pytest.approx(42.195 * (280.0 + 15.0))

    def test_fallback(self):
        assert base_prediction([], 10000.0) == pytest.approx(3300.0)

    def test_fallback_uses_vo2max(self):
        # VDOT 50 runs 10K in about 41:21
        assert base_prediction([], 10000.0, vo2max=50.0) == pytest.approx(2481.0, abs=15.0)

    def test_fitness_level_factor(self):
        assert ctl_time_factor(50.0, 0.0) == 0.0
        assert ctl_time_factor(75.0, 0.0) == pytest.approx(0.015)
        assert ctl_time_factor(500.0, 0.0) == pytest.approx(0.03)
        assert ctl_time_factor(0.0, 0.0) == pytest.approx(-0.03)
        # ramp capped at 8 CTL points
        assert ctl_time_factor(50.0, 20.0) == pytest.approx(0.008)
        assert ctl_time_factor(50.0, -4.0) == pytest.approx(-0.004)

    def test_load_status_needs_fourteen_runs(self, sparse_history):
        assert load_status(sparse_history) == 'low'


# =============================================================================
# Fitness progression
# =============================================================================

class TestFitnessProgression:
    """Weekly pace trend."""

    def test_getting_faster(self):
        progression = analyze_fitness_progression(trending(lambda d: 300.0 + d))
        assert progression.trend == 'improving'
        assert progression.rate == pytest.approx(7.0, abs=0.1)
        assert progression.weeks_analyzed == 8

    def test_getting_slower(self):
        progression = analyze_fitness_progression(trending(lambda d: 360.0 - d))
        assert progression.trend == 'declining'
        assert progression.rate < 0

    def test_short_history(self, sparse_history):
        progression = analyze_fitness_progression(sparse_history)
        assert progression.trend == 'stable'
        assert progression.confidence == 0.3


# =============================================================================
# Prediction
# =============================================================================

class TestPredictRaceTime:
    """Full predictions."""

    def test_minimal_prediction(self, sparse_history):
        prediction = predict_race_time(sparse_history, 5000.0, neutral_form())

        assert not prediction.sufficient_data
        assert prediction.predicted_time_s == 1650.0
        assert prediction.predicted_pace == 330.0
        assert prediction.confidence == 0.3
        assert prediction.confidence_interval.optimistic == 1485.0
        assert prediction.confidence_interval.conservative == 1815.0

    def test_missing_fitness_metrics(self, steady_history):
        assert not predict_race_time(steady_history, 10000.0, None).sufficient_data

    def test_non_positive_distance_raises(self, steady_history):
        with pytest.raises(ValueError):
            predict_race_time(steady_history, 0.0, neutral_form())

    def test_steady_history_ten_k(self, steady_history):
        prediction = predict_race_time(steady_history, 10000.0, neutral_form())

        # Three fastest 8 km runs (2640 s) scaled by Riegel; no adjustments
        assert prediction.sufficient_data
        assert prediction.predicted_time_s == pytest.approx(riegel_time(2640.0, 8000.0, 10000.0), abs=1.0)
        # 0.85 plus the VO2max bonus, capped
        assert prediction.confidence == 0.95
        assert prediction.based_on['vo2max']
        assert prediction.vo2max == pytest.approx(41.0, abs=0.5)
        assert prediction.based_on['recent_performance']
        assert not prediction.based_on['environmental_factors']

        interval = prediction.confidence_interval
        assert interval.optimistic < interval.realistic < interval.conservative
        assert interval.realistic == prediction.predicted_time_s

    def test_fatigue_slows_prediction(self, steady_history):
        fresh = predict_race_time(steady_history, 10000.0, neutral_form(TSBStatus.FRESH))
        tired = predict_race_time(steady_history, 10000.0, neutral_form(TSBStatus.VERY_FATIGUED))
        assert tired.predicted_time_s > fresh.predicted_time_s

    def test_higher_fitness_predicts_faster(self, steady_history):
        def form(ctl):
            return FitnessMetrics(
                ctl=ctl, atl=ctl, tsb=0.0, ramp_rate=0.0, confidence=1.0, status=TSBStatus.NEUTRAL
            )

        untrained = predict_race_time(steady_history, 10000.0, form(10.0))
        trained = predict_race_time(steady_history, 10000.0, form(120.0))
        assert trained.predicted_time_s < untrained.predicted_time_s
        # -2.4 % against +3 % of the same base time
        base = riegel_time(2640.0, 8000.0, 10000.0)
        assert untrained.predicted_time_s - trained.predicted_time_s == pytest.approx(0.054 * base, abs=2.0)

    def test_rising_fitness_predicts_faster(self, steady_history):
        flat = predict_race_time(steady_history, 10000.0, neutral_form())
        rising = FitnessMetrics(
            ctl=50.0, atl=50.0, tsb=0.0, ramp_rate=5.0, confidence=1.0, status=TSBStatus.NEUTRAL
        )
        assert predict_race_time(steady_history, 10000.0, rising).predicted_time_s < flat.predicted_time_s

    def test_marathon_without_long_runs_uses_vo2max(self, steady_history):
        prediction = predict_race_time(steady_history, 42195.0, neutral_form())
        assert prediction.vo2max is not None
        assert prediction.predicted_time_s < 42195.0 * 0.33

    def test_no_vo2max_without_heart_rate(self):
        runs = [make_run(AS_OF - timedelta(days=d), average_hr=None, max_hr=None) for d in range(20)]
        prediction = predict_race_time(runs, 10000.0, neutral_form())
        assert prediction.vo2max is None
        assert not prediction.based_on['vo2max']

    def test_weather_adds_time(self, steady_history):
        calm = predict_race_time(steady_history, 10000.0, neutral_form())
        hot = predict_race_time(
            steady_history, 10000.0, neutral_form(), Weather(temperature_c=30.0, humidity_pct=50.0)
        )
        assert hot.weather_adjustment.total_seconds == pytest.approx(250.0)
        assert hot.predicted_time_s - calm.predicted_time_s == pytest.approx(250.0, abs=1.0)
        assert hot.based_on['environmental_factors']
        assert any('Hot conditions' in r for r in hot.recommendations)

    def test_elevation_alone_counts_as_environment(self, steady_history):
        hilly = predict_race_time(steady_history, 10000.0, neutral_form(), elevation_gain_m=200.0)
        assert hilly.weather_adjustment.elevation_per_km == 25.0

    def test_standard_races(self, steady_history):
        predictions = predict_standard_races(steady_history, neutral_form())
        names = [p.distance_name for p in predictions]
        times = [p.predicted_time_s for p in predictions]

        assert names == ['5K', '10K', 'Half Marathon', 'Marathon']
        assert times == sorted(times)

    def test_repeatable(self, steady_history):
        first = predict_race_time(steady_history, 21097.5, neutral_form())
        second = predict_race_time(steady_history, 21097.5, neutral_form())
        assert first.to_dict() == second.to_dict()


class TestReadiness:
    """Race readiness score."""

    def test_short_history(self, sparse_history):
        readiness = fitness_readiness(sparse_history, neutral_form())
        assert readiness.fitness_level == 'building'
        assert readiness.readiness_score == 35.0

    def test_steady_runner_is_in_good_shape(self, steady_history):
        readiness = fitness_readiness(steady_history, neutral_form())

        assert readiness.fitness_level == 'good'
        assert readiness.fitness_score == 70.0
        assert readiness.fatigue_level == 'moderate'
        assert readiness.readiness_score == 69.0
        assert readiness.training_load_status == 'optimal'

    def test_fatigue_lowers_readiness(self, steady_history):
        fresh = fitness_readiness(steady_history, neutral_form(TSBStatus.FRESH))
        tired = fitness_readiness(steady_history, neutral_form(TSBStatus.VERY_FATIGUED))
        assert tired.fatigue_level == 'overreached'
        assert tired.readiness_score < fresh.readiness_score
