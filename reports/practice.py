from data.models import ForecastConfig, PracticeProfile, PracticeReport, SpecialtyBenchmark
from forecast.engine import DEFAULT_CONFIG, generate_forecast
from forecast.gaps import calculate_practice_gaps
from scoring.acquisition import calculate_acquisition_score
from scoring.health import calculate_revenue_score, estimate_percentile


def build_practice_report(
    practice: PracticeProfile,
    benchmark: SpecialtyBenchmark,
    config: ForecastConfig = DEFAULT_CONFIG,
) -> PracticeReport:
    """Run every per-practice engine once and bundle the results."""
    score = calculate_revenue_score(practice, benchmark)
    gaps = calculate_practice_gaps(practice, benchmark)
    return PracticeReport(
        practice=practice,
        benchmark=benchmark,
        score=score,
        percentile=estimate_percentile(score.overall),
        acquisition=calculate_acquisition_score(practice, benchmark),
        gaps=gaps,
        forecast=generate_forecast(gaps, config),
    )
