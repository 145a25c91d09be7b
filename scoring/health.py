"""Revenue Health Score: a 0-100 rating of a practice's billing against its specialty peers."""

import math

from data.models import (
    PracticeProfile,
    Program,
    RevenueScore,
    ScoreBreakdown,
    ScoreTier,
    SpecialtyBenchmark,
)

# Factor weights (sum to 1.0)
EM_CODING_WEIGHT = 0.25
PROGRAM_UTIL_WEIGHT = 0.25
REVENUE_EFFICIENCY_WEIGHT = 0.20
SERVICE_DIVERSITY_WEIGHT = 0.15
PATIENT_VOLUME_WEIGHT = 0.15

NEUTRAL_SCORE = 50

# E&M coding: mid/high visit share vs peers
EM_BENCH_FLOOR = 0.01
EM_RATIO_CAP = 1.2
EM_99214_SHARE = 0.6
EM_99215_SHARE = 0.4

# Relative program points; a program counts only when peers adopt it at >= 1%
PROGRAM_POINTS = {
    Program.CCM: 25,
    Program.RPM: 20,
    Program.BHI: 15,
    Program.AWV: 40,
}
PROGRAM_RELEVANCE_THRESHOLD = 0.01

# Revenue efficiency and revenue per patient both cap at 1.5x peers
REVENUE_RATIO_CAP = 1.5
RATIO_SCALE = 66.7

# (minimum distinct codes, score), checked top-down
DIVERSITY_STEPS = [(20, 100), (15, 85), (10, 70), (6, 55), (3, 35)]
DIVERSITY_FLOOR = 15
DEFAULT_CODE_COUNT = 8  # mid-range when the practice's code count is unknown

SCORE_TIERS = [
    ScoreTier(90, 100, "Elite", "#E8A824"),
    ScoreTier(75, 89, "Strong", "#34d399"),
    ScoreTier(60, 74, "Average", "#facc15"),
    ScoreTier(40, 59, "Below Average", "#fb923c"),
    ScoreTier(0, 39, "Critical", "#f87171"),
]

# Percentile curve: (score threshold, base percentile, slope per point)
PERCENTILE_SEGMENTS = [
    (90, 95, 0.5),
    (75, 70, 1.67),
    (60, 35, 2.33),
    (40, 10, 1.25),
]
PERCENTILE_TAIL_SLOPE = 0.25


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide, returning fallback when the denominator is not positive."""
    return numerator / denominator if denominator > 0 else fallback


def round_half_up(value: float) -> int:
    """Round .5 toward positive infinity, so scores don't depend on banker's rounding."""
    return math.floor(value + 0.5)


def get_score_tier(score: float) -> ScoreTier:
    for tier in SCORE_TIERS:
        if score >= tier.min:
            return tier
    return SCORE_TIERS[-1]


def calculate_revenue_score(
    practice: PracticeProfile,
    benchmark: SpecialtyBenchmark,
    code_count: int | None = None,
) -> RevenueScore:
    """Score one practice against its specialty benchmark.

    code_count overrides the practice's own distinct-code count; when neither is
    known, DEFAULT_CODE_COUNT is used.
    """
    if code_count is None:
        code_count = practice.distinct_codes if practice.distinct_codes is not None else DEFAULT_CODE_COUNT

    breakdown = ScoreBreakdown(
        em_coding=_em_coding_score(practice, benchmark),
        program_util=_program_util_score(practice, benchmark),
        revenue_efficiency=_revenue_efficiency_score(practice, benchmark),
        service_diversity=_service_diversity_score(code_count),
        patient_volume=_patient_volume_score(practice, benchmark),
    )
    overall = int(clamp(round_half_up(
        breakdown.em_coding * EM_CODING_WEIGHT
        + breakdown.program_util * PROGRAM_UTIL_WEIGHT
        + breakdown.revenue_efficiency * REVENUE_EFFICIENCY_WEIGHT
        + breakdown.service_diversity * SERVICE_DIVERSITY_WEIGHT
        + breakdown.patient_volume * PATIENT_VOLUME_WEIGHT
    )))
    return RevenueScore(overall=overall, tier=get_score_tier(overall), breakdown=breakdown)


def _em_coding_score(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> int:
    # No office visits at all (pathology, radiology, ...) is neither good nor bad
    if practice.em_total <= 0:
        return NEUTRAL_SCORE

    actual_214 = safe_divide(practice.em_99214, practice.em_total)
    actual_215 = safe_divide(practice.em_99215, practice.em_total)
    ratio_214 = min(actual_214 / max(benchmark.pct_99214, EM_BENCH_FLOOR), EM_RATIO_CAP)
    ratio_215 = min(actual_215 / max(benchmark.pct_99215, EM_BENCH_FLOOR), EM_RATIO_CAP)
    return int(clamp(round_half_up((ratio_214 * EM_99214_SHARE + ratio_215 * EM_99215_SHARE) * 100)))


def _program_util_score(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> int:
    relevant = [
        program for program in PROGRAM_POINTS
        if benchmark.adoption_rate(program) >= PROGRAM_RELEVANCE_THRESHOLD
    ]
    if not relevant:
        return NEUTRAL_SCORE

    total_points = sum(PROGRAM_POINTS[p] for p in relevant)
    earned_points = sum(PROGRAM_POINTS[p] for p in relevant if practice.bills(p))
    return int(clamp(round_half_up(earned_points / total_points * 100)))


def _revenue_efficiency_score(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> int:
    patient_ratio = safe_divide(practice.total_beneficiaries, max(benchmark.avg_patients, 1), 1)
    expected_payment = benchmark.avg_total_payment * patient_ratio
    ratio = min(safe_divide(practice.total_payment, max(expected_payment, 1), 0.5), REVENUE_RATIO_CAP)
    return int(clamp(round_half_up(ratio * RATIO_SCALE)))


def _service_diversity_score(code_count: int) -> int:
    for minimum, score in DIVERSITY_STEPS:
        if code_count >= minimum:
            return score
    return DIVERSITY_FLOOR


def _patient_volume_score(practice: PracticeProfile, benchmark: SpecialtyBenchmark) -> int:
    actual_rpp = safe_divide(practice.total_payment, max(practice.total_beneficiaries, 1))
    bench_rpp = max(benchmark.avg_revenue_per_patient, 1)
    ratio = min(safe_divide(actual_rpp, bench_rpp, 0.5), REVENUE_RATIO_CAP)
    return int(clamp(round_half_up(ratio * RATIO_SCALE)))


def estimate_percentile(score: float) -> int:
    """Approximate population percentile for a health score.

    This is a fixed piecewise curve shaped like a normal distribution, not a fit
    against observed scores.
    """
    for threshold, base, slope in PERCENTILE_SEGMENTS:
        if score >= threshold:
            return base + round_half_up((score - threshold) * slope)
    return max(1, round_half_up(score * PERCENTILE_TAIL_SLOPE))
