"""
Tests for the training recommendation engine.

Run with: python -m pytest tests/test_recommendations.py -v
"""

from datetime import timedelta

import pytest

from runload.acwr import ACWRResult, ACWRStatus
from runload.models import Weather
from runload.recommendations import (
    PerformanceContext,
    Priority,
    RecentLoad,
    RecommendationContext,
    RecommendationType,
    acwr_recommendations,
    build_recommendation_context,
    environmental_recommendations,
    filter_recommendations,
    generate_recommendations,
    progression_recommendations,
    recent_hot_runs,
    recovery_recommendations,
    safety_recommendations,
    summarize_recent_load,
)

from conftest import AS_OF, make_run


def acwr(value, status):
    return ACWRResult(acwr=value, status=status, acute_load=0.0, chronic_load=0.0, confidence=1.0)


def load(km=50.0, trimp=400.0, hard_pct=10.0, rest_days=1):
    zones = {'zone1': 40.0, 'zone2': 50.0 - hard_pct, 'zone3': 10.0, 'zone4': hard_pct, 'zone5': 0.0}
    return RecentLoad(km, trimp, zones, rest_days)


def context(status=ACWRStatus.OPTIMAL, value=1.0, **kwargs):
    fields = {
        'acwr': acwr(value, status),
        'recent_load': load(),
        'as_of': AS_OF,
    }
    fields.update(kwargs)
    return RecommendationContext(**fields)


# =============================================================================
# ACWR family
# =============================================================================

class TestACWRRecommendations:
    """One recommendation per ACWR band."""

    def test_high_risk(self):
        [rec] = acwr_recommendations(acwr(1.6, ACWRStatus.HIGH_RISK), load(), 'intermediate', AS_OF)

        assert rec.priority is Priority.CRITICAL
        assert rec.type is RecommendationType.TRAINING_LOAD
        assert rec.id == 'acwr-high-risk-20240630'
        assert rec.target_metrics.weekly_distance_km == (35, 40)
        assert rec.target_metrics.weekly_trimp == (240, 280)
        assert rec.target_metrics.intensity_distribution == {'easy': 90, 'moderate': 10, 'hard': 0}
        assert rec.target_metrics.rest_days == 2
        assert rec.valid_until == AS_OF + timedelta(days=7)
        assert '1.60' in rec.description

    def test_caution(self):
        [rec] = acwr_recommendations(acwr(1.4, ACWRStatus.CAUTION), load(), 'intermediate', AS_OF)
        assert rec.priority is Priority.HIGH
        assert rec.target_metrics.weekly_distance_km == (45, 50)
        assert rec.timeframe == 'Next 1-2 weeks'

    @pytest.mark.parametrize('level,pct,target', [
        ('beginner', 10, (55, 60)),
        ('intermediate', 15, (57, 62)),
    ])
    def test_detraining_progresses_by_experience(self, level, pct, target):
        [rec] = acwr_recommendations(acwr(0.6, ACWRStatus.DETRAINING), load(), level, AS_OF)
        assert rec.type is RecommendationType.PROGRESSION
        assert rec.priority is Priority.MEDIUM
        assert rec.action_items[0] == f'Increase weekly distance by {pct}% this week'
        assert rec.target_metrics.weekly_distance_km == target
        assert rec.valid_until == AS_OF + timedelta(days=14)

    def test_optimal(self):
        [rec] = acwr_recommendations(acwr(1.0, ACWRStatus.OPTIMAL), load(), 'intermediate', AS_OF)
        assert rec.priority is Priority.LOW
        assert rec.timeframe == 'Ongoing'


# =============================================================================
# Environmental family
# =============================================================================

class TestEnvironmentalRecommendations:
    """Weather-driven guidance."""

    def test_no_forecast(self):
        assert environmental_recommendations(None, AS_OF) == []

    def test_very_hot_is_high_priority(self):
        [rec] = environmental_recommendations(Weather(temperature_c=32.0, humidity_pct=50.0), AS_OF)
        assert rec.priority is Priority.HIGH
        assert rec.environmental_guidance.pace_adjustments['temperature'] == 24
        assert rec.environmental_guidance.temperature_range_c == (15.0, 22.0)
        assert rec.valid_until == AS_OF + timedelta(days=3)

    def test_warm_is_medium_priority(self):
        [rec] = environmental_recommendations(Weather(temperature_c=27.0), AS_OF)
        assert rec.priority is Priority.MEDIUM

    def test_humid_windy_cold(self):
        recs = environmental_recommendations(
            Weather(temperature_c=2.0, humidity_pct=85.0, wind_speed_kmh=25.0), AS_OF
        )
        ids = [r.id.rsplit('-', 1)[0] for r in recs]
        assert ids == ['high-humidity', 'windy-conditions', 'cold-weather']
        assert recs[0].environmental_guidance.pace_adjustments['humidity'] == 5
        assert recs[1].environmental_guidance.pace_adjustments['wind'] == 8

    def test_partial_forecast(self):
        assert environmental_recommendations(Weather(humidity_pct=50.0), AS_OF) == []

    def test_no_recent_heat_exposure(self):
        [rec] = environmental_recommendations(Weather(temperature_c=28.0), AS_OF)
        assert rec.action_items[1] == 'Keep the first hot runs short and easy while you acclimatize'
        assert 'not yet heat acclimatized' in rec.reasoning[-1]

    def test_recent_hot_runs_count_as_acclimatized(self):
        hot = Weather(temperature_c=29.0)
        runs = [
            make_run(AS_OF - timedelta(days=d), weather=hot) for d in (1, 4, 8)
        ] + [
            make_run(AS_OF - timedelta(days=20), weather=hot),         # outside window
            make_run(AS_OF - timedelta(days=2), weather=Weather(temperature_c=18.0)),
        ]
        assert recent_hot_runs(runs, AS_OF) == 3

        [rec] = environmental_recommendations(Weather(temperature_c=28.0), AS_OF, runs)
        assert all('acclimatize' not in item for item in rec.action_items)
        assert len(rec.reasoning) == 3


# =============================================================================
# Progression, recovery and safety
# =============================================================================

class TestProgressionRecommendations:
    """Volume and intensity increases."""

    def test_room_for_volume_and_intensity(self):
        recs = progression_recommendations(
            load(km=20.0), PerformanceContext(), 'intermediate', 5.0, AS_OF
        )
        assert [r.title for r in recs] == ['Gradual Volume Increase', 'Add Structured Intensity']
        assert recs[0].target_metrics.weekly_distance_km == (23.0, 24.0)
        assert recs[1].target_metrics.intensity_distribution == {'easy': 75, 'moderate': 15, 'hard': 10}

    def test_volume_capped_by_available_time(self):
        recs = progression_recommendations(
            load(km=50.0), PerformanceContext(), 'intermediate', 5.0, AS_OF
        )
        assert [r.title for r in recs] == ['Add Structured Intensity']

    def test_enough_intensity_already(self):
        recs = progression_recommendations(
            load(km=50.0, hard_pct=25.0), PerformanceContext(), 'intermediate', 5.0, AS_OF
        )
        assert recs == []

    def test_fatigue_blocks_intensity(self):
        recs = progression_recommendations(
            load(km=20.0), PerformanceContext(fatigue_level='moderate'), 'intermediate', 5.0, AS_OF
        )
        assert [r.title for r in recs] == ['Gradual Volume Increase']

    @pytest.mark.parametrize('performance', [
        PerformanceContext(trend='declining'),
        PerformanceContext(injury_risk='high'),
        PerformanceContext(injury_risk='critical'),
    ])
    def test_blocked(self, performance):
        assert progression_recommendations(load(km=20.0), performance, 'beginner', 5.0, AS_OF) == []


class TestRecoveryRecommendations:
    """Fatigue, heat and rest days."""

    def test_all_triggers(self):
        recs = recovery_recommendations(
            PerformanceContext(fatigue_level='high'),
            load(rest_days=0),
            Weather(temperature_c=29.0),
            AS_OF,
        )
        assert [r.priority for r in recs] == [Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM]
        assert recs[0].target_metrics.intensity_distribution == {'easy': 95, 'moderate': 5, 'hard': 0}
        assert recs[2].timeframe == 'Ongoing weekly schedule'

    def test_humidity_alone_counts_as_stress(self):
        recs = recovery_recommendations(PerformanceContext(), load(), Weather(humidity_pct=85.0), AS_OF)
        assert [r.title for r in recs] == ['Environmental Stress Recovery']

    def test_nothing_to_recover_from(self):
        assert recovery_recommendations(PerformanceContext(), load(), None, AS_OF) == []


class TestSafetyRecommendations:

    def test_only_for_critical_risk(self):
        assert safety_recommendations(PerformanceContext(injury_risk='high'), AS_OF) == []

        [rec] = safety_recommendations(PerformanceContext(injury_risk='critical'), AS_OF)
        assert rec.type is RecommendationType.SAFETY
        assert rec.priority is Priority.CRITICAL


# =============================================================================
# Engine
# =============================================================================

class TestGenerateRecommendations:
    """Combination, gating and ordering."""

    def test_sorted_critical_first(self):
        recs = generate_recommendations([], context(
            ACWRStatus.HIGH_RISK, 1.7,
            upcoming_weather=Weather(temperature_c=32.0),
            performance=PerformanceContext(fatigue_level='high'),
        ))
        ranks = [r.priority.rank for r in recs]
        assert ranks == sorted(ranks, reverse=True)
        assert recs[0].id.startswith('acwr-high-risk')

    def test_high_risk_acwr_blocks_progression(self):
        recs = generate_recommendations([], context(
            ACWRStatus.HIGH_RISK, 1.7, recent_load=load(km=20.0)
        ))
        assert all(r.type is not RecommendationType.PROGRESSION for r in recs)

    def test_high_injury_risk_blocks_progression(self):
        recs = generate_recommendations([], context(
            recent_load=load(km=20.0), performance=PerformanceContext(injury_risk='high')
        ))
        assert all(r.type is not RecommendationType.PROGRESSION for r in recs)

    @pytest.mark.parametrize('risk', ['high', 'critical'])
    def test_detraining_advice_dropped_under_high_injury_risk(self, risk):
        recs = generate_recommendations([], context(
            ACWRStatus.DETRAINING, 0.6,
            recent_load=load(km=20.0),
            performance=PerformanceContext(injury_risk=risk),
        ))
        assert all(r.type is not RecommendationType.PROGRESSION for r in recs)
        assert not any(r.id.startswith('acwr-detraining') for r in recs)

    def test_detraining_advice_kept_at_low_risk(self):
        recs = generate_recommendations([], context(ACWRStatus.DETRAINING, 0.6))
        assert any(r.id.startswith('acwr-detraining') for r in recs)

    def test_history_feeds_heat_advice(self):
        hot = Weather(temperature_c=29.0)
        runs = [make_run(AS_OF - timedelta(days=d), weather=hot) for d in (1, 3, 5)]
        forecast = context(upcoming_weather=Weather(temperature_c=30.0))

        fresh = [r for r in generate_recommendations([], forecast) if r.id.startswith('hot-weather')]
        adapted = [r for r in generate_recommendations(runs, forecast) if r.id.startswith('hot-weather')]
        assert len(fresh[0].action_items) == len(adapted[0].action_items) + 1

    def test_critical_injury_risk_adds_safety(self):
        recs = generate_recommendations([], context(
            performance=PerformanceContext(injury_risk='critical')
        ))
        assert recs[0].type is RecommendationType.SAFETY

    def test_ties_keep_generation_order(self):
        recs = generate_recommendations([], context(
            recent_load=load(km=20.0, rest_days=0),
            upcoming_weather=Weather(humidity_pct=85.0),
        ))
        prefixes = [r.id.rsplit('-', 1)[0] for r in recs]
        assert prefixes == [
            'high-humidity',
            'volume-progression',
            'intensity-progression',
            'environmental-stress-recovery',
            'rest-days',
            'acwr-optimal',
        ]

    def test_serializable(self):
        [rec] = generate_recommendations([], context(recent_load=load(km=50.0, hard_pct=25.0)))
        data = rec.to_dict()
        assert data['priority'] == 'low'
        assert data['created'] == AS_OF.isoformat()


class TestFilterRecommendations:
    """Narrowing recommendation lists."""

    @pytest.fixture
    def recs(self):
        return generate_recommendations([], context(
            ACWRStatus.HIGH_RISK, 1.7,
            upcoming_weather=Weather(temperature_c=27.0, wind_speed_kmh=25.0),
            recent_load=load(rest_days=0),
        ))

    def test_max_count(self, recs):
        assert len(filter_recommendations(recs, max_count=2)) == 2

    def test_min_priority(self, recs):
        kept = filter_recommendations(recs, min_priority=Priority.HIGH)
        assert [r.priority for r in kept] == [Priority.CRITICAL]

    def test_exclude_types(self, recs):
        kept = filter_recommendations(recs, exclude_types=[RecommendationType.ENVIRONMENTAL])
        assert all(r.type is not RecommendationType.ENVIRONMENTAL for r in kept)
        assert len(kept) == 2

    def test_timeframe(self, recs):
        immediate = filter_recommendations(recs, timeframe='immediate')
        assert [r.id.rsplit('-', 1)[0] for r in immediate] == [
            'acwr-high-risk', 'hot-weather', 'windy-conditions'
        ]
        long_term = filter_recommendations(recs, timeframe='long-term')
        assert [r.id.rsplit('-', 1)[0] for r in long_term] == ['rest-days']

    def test_unknown_timeframe(self, recs):
        with pytest.raises(ValueError):
            filter_recommendations(recs, timeframe='someday')


# =============================================================================
# Context builders
# =============================================================================

class TestRecentLoad:
    """Seven-day summary."""

    def test_zones_and_rest_days(self, profile):
        runs = [
            make_run(AS_OF, average_hr=145.0),                          # 68 % HRR
            make_run(AS_OF - timedelta(days=2), average_hr=145.0),
            make_run(AS_OF - timedelta(days=4), average_hr=170.0),      # 86 % HRR
            make_run(AS_OF - timedelta(days=9), average_hr=180.0),      # outside window
        ]
        summary = summarize_recent_load(runs, profile, AS_OF)

        assert summary.weekly_distance_km == 30.0
        assert summary.rest_days == 4
        assert summary.intensity_distribution['zone2'] == pytest.approx(66.7)
        assert summary.intensity_distribution['zone4'] == pytest.approx(33.3)
        assert summary.hard_percentage == pytest.approx(33.3)
        assert summary.weekly_trimp > 0

    def test_without_profile_counts_stored_trimp_only(self):
        runs = [make_run(AS_OF), make_run(AS_OF - timedelta(days=1), trimp=60.0)]
        summary = summarize_recent_load(runs)
        assert summary.weekly_trimp == 60.0
        assert sum(summary.intensity_distribution.values()) == pytest.approx(100.0)

    def test_no_runs(self):
        summary = summarize_recent_load([])
        assert summary.rest_days == 7
        assert summary.weekly_distance_km == 0.0


class TestBuildContext:
    """Context assembled from history alone."""

    def test_steady_history(self, steady_history, profile):
        ctx = build_recommendation_context(steady_history, profile)

        assert ctx.as_of == AS_OF
        assert ctx.acwr.sufficient_data
        assert ctx.performance.trend == 'stable'
        assert ctx.performance.injury_risk == 'low'
        assert ctx.performance.fatigue_level in ('low', 'moderate', 'high')
        assert ctx.recent_load.rest_days == 1

        recs = generate_recommendations(steady_history, ctx)
        assert recs
        ranks = [r.priority.rank for r in recs]
        assert ranks == sorted(ranks, reverse=True)

    def test_as_of_excludes_later_runs(self, steady_history, profile):
        cutoff = AS_OF - timedelta(days=21)
        ctx = build_recommendation_context(steady_history, profile, as_of=cutoff)
        assert ctx.as_of == cutoff
        assert ctx.recent_load.weekly_distance_km == 56.0

    def test_hard_week_after_short_runs(self):
        runs = [
            make_run(AS_OF - timedelta(days=34 - i), distance_km=3.0, trimp=50.0)
            for i in range(28)
        ] + [
            make_run(AS_OF - timedelta(days=6 - i), distance_km=8.0, trimp=120.0)
            for i in range(7)
        ]
        ctx = build_recommendation_context(runs)
        # acute 120, chronic (21 * 50 + 7 * 120) / 28
        assert ctx.acwr.acwr == 1.78
        assert ctx.acwr.status is ACWRStatus.HIGH_RISK

        recs = generate_recommendations(runs, ctx)
        assert recs[0].id == 'acwr-high-risk-20240630'
        assert all(r.type is not RecommendationType.PROGRESSION for r in recs)

    def test_no_runs_needs_a_date(self):
        with pytest.raises(ValueError):
            build_recommendation_context([])
