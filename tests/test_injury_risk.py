"""
Tests for injury risk assessment and overreaching detection.

Run with: python -m pytest tests/test_injury_risk.py -v
"""

from datetime import timedelta

import pytest

from runload.acwr import ACWRStatus, calculate_acwr
from runload.aggregation import Metric
from runload.injury_risk import (
    OverreachingStatus,
    RiskLevel,
    WarningLevel,
    assess_injury_risk,
    assess_performance_decline,
    assess_recovery_patterns,
    assessment_confidence,
    assess_data_quality,
    classify_risk_level,
    injury_prevention_plan,
    monitor_risk_factors,
    overall_risk_score,
)

from conftest import AS_OF, make_run


def spike_history():
    """Five weeks of 8 km days, then a week of 20 km days."""
    runs = []
    for i in range(42):
        day = AS_OF - timedelta(days=41 - i)
        runs.append(make_run(day, distance_km=20.0 if i >= 35 else 8.0))
    return runs


def paced(paces_newest_first):
    return [
        make_run(AS_OF - timedelta(days=i), pace_s_per_km=p)
        for i, p in enumerate(paces_newest_first)
    ]


# =============================================================================
# Full assessment
# =============================================================================

class TestAssessInjuryRisk:
    """End-to-end assessment."""

    def test_minimal_assessment(self, sparse_history):
        assessment = assess_injury_risk(sparse_history)

        assert assessment.overall_risk_score == 20.0
        assert assessment.risk_level is RiskLevel.LOW
        assert assessment.confidence == 0.3
        assert not assessment.sufficient_data
        assert assessment.data_quality == 'low'
        assert assessment.runs_analyzed == 3

    def test_steady_training_is_low_risk(self, steady_history):
        assessment = assess_injury_risk(steady_history)

        assert assessment.sufficient_data
        assert assessment.overall_risk_score == 0.0
        assert assessment.risk_level is RiskLevel.LOW
        assert assessment.warning_level is WarningLevel.MONITOR_CLOSELY
        assert assessment.overreaching.status is OverreachingStatus.NORMAL
        assert assessment.data_quality == 'high'
        assert assessment.confidence == 0.95
        assert assessment.analysis_date == AS_OF

    def test_load_spike(self):
        assessment = assess_injury_risk(spike_history())
        spike = assessment.risk_factors.training_load_spike
        recovery = assessment.risk_factors.recovery_patterns

        # ACWR 1.82 (+40), 150 % week spike (+35), rising chronic load (+10)
        assert spike.score == 85.0
        assert spike.severity == 'critical'
        assert spike.acwr_value == 1.82
        # seven straight 20 km days (+20) and seven runs in the week (+10)
        assert recovery.score == 30.0
        assert recovery.recovery_quality == 'poor'

        # (85 + 0.8 * 30) / (1 + 0.8 + 0.64 + 0.512 + 0.4096)
        assert assessment.overall_risk_score == 32.0
        assert assessment.risk_level is RiskLevel.MODERATE
        assert assessment.overreaching.status is OverreachingStatus.OVERTRAINING
        assert assessment.warning_level is WarningLevel.IMMEDIATE_REST

    def test_short_runs_then_a_hard_week(self):
        # 28 days of 3 km / TRIMP 50, then 7 days of 8 km / TRIMP 120
        runs = [
            make_run(AS_OF - timedelta(days=34 - i), distance_km=3.0, trimp=50.0)
            for i in range(28)
        ] + [
            make_run(AS_OF - timedelta(days=6 - i), distance_km=8.0, trimp=120.0)
            for i in range(7)
        ]
        assert calculate_acwr(runs, Metric.TRIMP).status is ACWRStatus.HIGH_RISK

        assessment = assess_injury_risk(runs)
        spike = assessment.risk_factors.training_load_spike

        # distance ACWR 8 / 4.25 (+40), 167 % week spike (+35), rising chronic load (+10)
        assert spike.acwr_value == 1.88
        assert spike.score == 85.0
        assert spike.severity == 'critical'
        # one dominant factor is diluted by the other four: (85 + 0.8 * 10) / 3.3616
        assert assessment.overall_risk_score == 28.0
        assert assessment.risk_level is RiskLevel.MODERATE
        assert assessment.overreaching.status is OverreachingStatus.OVERTRAINING
        assert assessment.warning_level is WarningLevel.IMMEDIATE_REST

    def test_no_runs_and_no_date(self):
        assessment = assess_injury_risk([])
        assert not assessment.sufficient_data
        assert assessment.analysis_date is None
        assert assessment.runs_analyzed == 0

    def test_no_runs_keeps_given_date(self):
        assert assess_injury_risk([], as_of=AS_OF).analysis_date == AS_OF

    def test_runs_after_as_of_are_ignored(self, steady_history):
        cutoff = AS_OF - timedelta(days=14)
        assessment = assess_injury_risk(steady_history, as_of=cutoff)
        assert assessment.analysis_date == cutoff
        assert assessment.runs_analyzed == sum(1 for r in steady_history if r.local_date <= cutoff)

    def test_repeatable(self, steady_history):
        first = assess_injury_risk(steady_history, as_of=AS_OF)
        second = assess_injury_risk(steady_history, as_of=AS_OF)
        assert first.to_dict() == second.to_dict()


# =============================================================================
# Factors
# =============================================================================

class TestRiskFactors:
    """Individual factor scoring."""

    def test_slowing_paces_are_a_decline(self):
        factor = assess_performance_decline(paced([345 - 5 * i for i in range(10)]))
        assert factor.trend_direction == 'declining'
        assert factor.score == 30.0
        assert factor.severity == 'high'

    def test_faster_paces_are_improving(self):
        factor = assess_performance_decline(paced([300 + 5 * i for i in range(10)]))
        assert factor.trend_direction == 'improving'
        assert factor.score == 0.0

    def test_short_history_is_neutral(self):
        factor = assess_performance_decline(paced([330] * 5))
        assert factor.score == 5.0
        assert factor.severity == 'low'

    def test_failure_falls_back_to_neutral(self):
        broken = [make_run(AS_OF - timedelta(days=i), distance_km=0.0) for i in range(10)]
        factor = assess_performance_decline(broken)
        assert factor.score == 5.0
        assert 'Insufficient data' in factor.description

    def test_back_to_back_runs(self):
        runs = []
        for i in range(8):
            day = AS_OF - timedelta(days=i // 2)
            runs.append(make_run(day, hour=18 if i % 2 == 0 else 7))
        factor = assess_recovery_patterns(runs, AS_OF)
        assert factor.severity == 'high'
        assert factor.recovery_quality == 'poor'


class TestScoring:
    """Synthesis helpers."""

    def test_rank_decayed_average(self):
        assert overall_risk_score([40.0]) == 40.0
        assert overall_risk_score([0.0, 100.0]) == pytest.approx(100.0 / 1.8)
        assert overall_risk_score([]) == 0.0

    @pytest.mark.parametrize('score,level', [
        (70.0, RiskLevel.CRITICAL),
        (69.9, RiskLevel.HIGH),
        (50.0, RiskLevel.HIGH),
        (25.0, RiskLevel.MODERATE),
        (24.9, RiskLevel.LOW),
    ])
    def test_levels(self, score, level):
        assert classify_risk_level(score) is level

    def test_data_quality_never_drops_with_more_runs(self, steady_history):
        grades = {'low': 0, 'medium': 1, 'high': 2}
        previous = 0
        for n in range(1, len(steady_history) + 1):
            grade = grades[assess_data_quality(steady_history[:n])]
            assert grade >= previous
            previous = grade

    def test_confidence_never_drops_with_more_runs(self, steady_history):
        previous = 0.0
        for n in range(10, len(steady_history) + 1):
            subset = steady_history[:n]
            confidence = assessment_confidence(subset, assess_data_quality(subset), AS_OF)
            assert confidence >= previous
            previous = confidence


# =============================================================================
# Follow-up
# =============================================================================

class TestFollowUp:
    """Comparison between assessments and prevention plans."""

    def test_recovery_from_spike(self, sparse_history):
        previous = assess_injury_risk(spike_history())
        current = assess_injury_risk(sparse_history)
        trend = monitor_risk_factors(current, previous)

        assert 'training_load_spike' in trend.improving
        assert 'recovery_patterns' in trend.improving
        assert set(trend.resolved) == {'training_load_spike', 'recovery_patterns'}
        assert trend.overall_trend == 'stable'
        assert trend.ready_for_progression

    def test_unchanged_is_stable(self, steady_history):
        assessment = assess_injury_risk(steady_history)
        trend = monitor_risk_factors(assessment, assessment)
        assert len(trend.stable) == 5
        assert trend.overall_trend == 'stable'

    def test_prevention_plan_targets_elevated_factors(self):
        plan = injury_prevention_plan(assess_injury_risk(spike_history()), days_to_race=10)

        assert plan['training_modifications']
        assert plan['recovery_protocols']
        assert plan['race_readiness_advice'][0].startswith('Begin taper')

    def test_prevention_plan_without_race(self, sparse_history):
        plan = injury_prevention_plan(assess_injury_risk(sparse_history))
        assert plan['training_modifications'] == []
        assert 'race_readiness_advice' not in plan
