"""Tests for PDF report generation."""

from pathlib import Path

import pytest

from data.models import PracticeProfile, SpecialtyBenchmark, StandaloneForecastInput
from forecast.engine import estimate_standalone_gaps, generate_forecast, scenario_config
from reports.pdf import format_currency, generate_practice_pdf
from reports.practice import build_practice_report


def test_generate_pdf_creates_file(tmp_path: Path, undercoded_practice: PracticeProfile,
                                   cardiology: SpecialtyBenchmark):
    report = build_practice_report(undercoded_practice, cardiology)
    output_path = generate_practice_pdf(report, output_dir=tmp_path)

    assert output_path.exists()
    assert output_path.suffix == ".pdf"
    assert output_path.stat().st_size > 0
    assert "2000000002" in output_path.name


def test_generate_pdf_for_optimized_practice(tmp_path: Path, optimized_practice: PracticeProfile,
                                             cardiology: SpecialtyBenchmark):
    report = build_practice_report(optimized_practice, cardiology, scenario_config("CCM Only"))
    output_path = generate_practice_pdf(report, output_dir=tmp_path)
    assert output_path.exists()


def test_build_practice_report(undercoded_practice: PracticeProfile, cardiology: SpecialtyBenchmark):
    report = build_practice_report(undercoded_practice, cardiology)
    assert report.score.overall == 30
    assert report.percentile == 8
    assert report.acquisition.overall == 84
    assert report.forecast.current_annual_revenue == 60_000.0
    assert report.gaps.action_plan


def test_standalone_forecast_report(tmp_path: Path, cardiology: SpecialtyBenchmark):
    inputs = StandaloneForecastInput(specialty="Family Practice", patient_count=800, chronic_pct=60)
    gaps = estimate_standalone_gaps(inputs)
    report = build_practice_report(gaps.practice, cardiology)
    report.forecast = generate_forecast(gaps)
    output_path = generate_practice_pdf(report, output_dir=tmp_path)
    assert output_path.name.startswith("revenue_report_estimate_")


@pytest.mark.parametrize("amount,expected", [
    (2_460_000, "$2.5M"),
    (1_000_000, "$1.0M"),
    (45_400, "$45K"),
    (83_750, "$84K"),
    (950, "$950"),
    (0, "$0"),
])
def test_format_currency(amount: float, expected: str):
    assert format_currency(amount) == expected
