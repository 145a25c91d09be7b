"""Tests for the Revenue Health Score and percentile estimate."""

import dataclasses

import pytest

from data.models import PracticeProfile, SpecialtyBenchmark
from scoring.health import (
    _em_coding_score,
    _program_util_score,
    _service_diversity_score,
    calculate_revenue_score,
    estimate_percentile,
    get_score_tier,
    round_half_up,
    safe_divide,
)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(-0.5) == 0
    assert round_half_up(62.4) == 62


def test_safe_divide_fallback():
    assert safe_divide(1, 0) == 0.0
    assert safe_divide(1, -5, 0.5) == 0.5
    assert safe_divide(3, 4) == 0.75


def test_optimized_practice_score(optimized_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    result = calculate_revenue_score(optimized_practice, cardiology)
    b = result.breakdown
    assert b.em_coding == 100  # 99215 share capped at 1.2x peers
    assert b.program_util == 100
    assert b.revenue_efficiency == 73
    assert b.service_diversity == 55  # unknown code count
    assert b.patient_volume == 73
    assert result.overall == 84
    assert result.label == "Strong"


def test_undercoded_practice_score(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    result = calculate_revenue_score(undercoded_practice, cardiology)
    assert result.breakdown.em_coding == 43
    assert result.breakdown.program_util == 0
    assert result.breakdown.revenue_efficiency == 32
    assert result.overall == 30
    assert result.label == "Critical"


def test_em_ratio_contribution_at_benchmark(cardiology: SpecialtyBenchmark):
    # 99214 exactly at peers gives ratio 1.0, worth 0.6 of the factor before 99215
    practice = PracticeProfile(npi="1", em_99214=500, em_total=1000)
    assert _em_coding_score(practice, cardiology) == 60


def test_em_coding_neutral_without_visits(cardiology: SpecialtyBenchmark):
    practice = PracticeProfile(npi="1", em_99214=0, em_total=0, total_payment=50_000)
    assert _em_coding_score(practice, cardiology) == 50
    assert calculate_revenue_score(practice, cardiology).breakdown.em_coding == 50


def test_program_util_neutral_when_no_program_relevant(cardiology: SpecialtyBenchmark):
    bench = dataclasses.replace(cardiology, ccm_adoption_rate=0.005, rpm_adoption_rate=0.0,
                                bhi_adoption_rate=0.009, awv_adoption_rate=0.0)
    assert _program_util_score(PracticeProfile(npi="1"), bench) == 50


def test_program_util_weights_only_relevant_programs(cardiology: SpecialtyBenchmark):
    bench = dataclasses.replace(cardiology, rpm_adoption_rate=0.0, bhi_adoption_rate=0.0)
    practice = PracticeProfile(npi="1", ccm_services=12)
    # CCM 25 of CCM+AWV 65 points
    assert _program_util_score(practice, bench) == 38


@pytest.mark.parametrize("codes,expected", [(25, 100), (15, 85), (12, 70), (6, 55), (3, 35), (2, 15)])
def test_service_diversity_steps(codes: int, expected: int):
    assert _service_diversity_score(codes) == expected


def test_code_count_override(optimized_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    assert calculate_revenue_score(optimized_practice, cardiology, code_count=20).breakdown.service_diversity == 100
    with_codes = dataclasses.replace(optimized_practice, distinct_codes=12)
    assert calculate_revenue_score(with_codes, cardiology).breakdown.service_diversity == 70


def test_score_is_deterministic(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    first = calculate_revenue_score(undercoded_practice, cardiology, 10)
    second = calculate_revenue_score(undercoded_practice, cardiology, 10)
    assert first == second


def test_scores_stay_in_range(cardiology: SpecialtyBenchmark):
    extremes = [
        PracticeProfile(npi="1"),
        PracticeProfile(npi="2", total_beneficiaries=10, total_payment=10_000_000,
                        em_99215=1000, em_total=1000),
        PracticeProfile(npi="3", total_beneficiaries=100_000, total_payment=1, em_99213=5000, em_total=5000),
    ]
    zero_bench = SpecialtyBenchmark(specialty="Empty")
    for practice in extremes:
        for bench in (cardiology, zero_bench):
            result = calculate_revenue_score(practice, bench, code_count=0)
            assert 0 <= result.overall <= 100
            for value in dataclasses.asdict(result.breakdown).values():
                assert 0 <= value <= 100


def test_score_tiers():
    assert get_score_tier(95).label == "Elite"
    assert get_score_tier(75).label == "Strong"
    assert get_score_tier(60).label == "Average"
    assert get_score_tier(59).label == "Below Average"
    assert get_score_tier(0).label == "Critical"


@pytest.mark.parametrize("score,expected", [
    (100, 100), (90, 95), (75, 70), (60, 35), (40, 10), (39, 10), (0, 1),
])
def test_estimate_percentile(score: int, expected: int):
    assert estimate_percentile(score) == expected
