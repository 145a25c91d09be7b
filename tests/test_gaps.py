"""Tests for practice gap derivation and the action plan."""

import pytest

from data.models import OpportunityCategory, PracticeProfile, Program, SpecialtyBenchmark
from forecast.gaps import (
    build_action_plan,
    calculate_coding_gap,
    calculate_practice_gaps,
    estimate_eligible_patients,
    program_gap,
)


def test_eligible_patients_are_capped(cardiology: SpecialtyBenchmark):
    eligible = estimate_eligible_patients(500, cardiology)
    assert eligible[Program.CCM] == 225  # 0.56 of the panel, capped at 0.45
    assert eligible[Program.RPM] == 175  # 0.38, capped at 0.35
    assert eligible[Program.AWV] == 500


def test_coding_gap_for_undercoded_practice(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    gap = calculate_coding_gap(undercoded_practice, cardiology)
    assert gap.current_99213_pct == pytest.approx(0.70)
    assert gap.optimal_99214_pct == 0.50
    # optimal 300/500/200 at the fee schedule vs current 700/250/50
    assert gap.annual_gap == pytest.approx(22_120.5, abs=1)
    assert "400 visits" in gap.shifts_needed


def test_coding_gap_zero_without_visits(cardiology: SpecialtyBenchmark):
    gap = calculate_coding_gap(PracticeProfile(npi="1"), cardiology)
    assert gap.annual_gap == 0
    assert gap.shifts_needed == "E&M distribution is close to benchmark"


def test_coding_gap_never_negative(optimized_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    assert calculate_coding_gap(optimized_practice, cardiology).annual_gap == 0


def test_program_gap_monthly_program():
    gap = program_gap(Program.CCM, 225, 0, 0.0)
    assert gap.potential_annual_revenue == 178_200  # 225 * $66 * 12
    assert gap.annual_gap == 178_200
    assert gap.capture_rate == 0.0


def test_program_gap_awv_is_per_visit():
    gap = program_gap(Program.AWV, 500, 60, 7692.0)
    assert gap.potential_annual_revenue == 59_440  # 500 * $118.88
    assert gap.annual_gap == 59_440 - 7692
    assert gap.capture_rate == pytest.approx(0.12)


def test_program_gap_with_no_eligible_patients():
    gap = program_gap(Program.BHI, 0, 10, 500.0)
    assert gap.capture_rate == 0.0
    assert gap.annual_gap == 0


def test_practice_gaps(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    gaps = calculate_practice_gaps(undercoded_practice, cardiology)
    assert set(gaps.programs) == set(Program)
    assert gaps.programs[Program.CCM].current_patients == 0
    assert gaps.total_missed_revenue == gaps.coding.annual_gap + sum(g.annual_gap for g in gaps.programs.values())
    assert not gaps.estimated


def test_current_patients_from_services(optimized_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    gaps = calculate_practice_gaps(optimized_practice, cardiology)
    assert gaps.programs[Program.CCM].current_patients == 10  # 120 services / 12 months
    assert gaps.programs[Program.RPM].current_patients == 5
    assert gaps.programs[Program.AWV].current_patients == 60


def test_action_plan_ordered_by_gap(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    plan = calculate_practice_gaps(undercoded_practice, cardiology).action_plan
    assert [a.category for a in plan] == [
        OpportunityCategory.RPM,
        OpportunityCategory.CCM,
        OpportunityCategory.AWV,
        OpportunityCategory.BHI,
        OpportunityCategory.CODING,
    ]
    assert [a.priority for a in plan] == [1, 2, 3, 4, 5]
    revenues = [a.estimated_revenue for a in plan]
    assert revenues == sorted(revenues, reverse=True)


def test_action_plan_skips_closed_gaps(cardiology: SpecialtyBenchmark):
    gaps = calculate_practice_gaps(PracticeProfile(npi="1"), cardiology)
    assert build_action_plan(gaps.coding, gaps.programs) == []
